from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os
import sys


SALE_FALLBACK_POLICIES = ("outbox", "strict")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(frozen=True)
class AppPaths:
    base_dir: Path
    db_path: Path
    outbox_path: Path
    logs_dir: Path


@dataclass(frozen=True)
class RuntimeConfig:
    host: str = "127.0.0.1"
    port: int = 8080
    sale_fallback: str = "outbox"
    session_ttl_minutes: int = 12 * 60
    bootstrap_admin_password: str = ""
    log_level: str = "INFO"


def _windows_appdata() -> Path:
    return Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))


def _mac_app_support() -> Path:
    return Path.home() / "Library" / "Application Support"


def get_app_paths(app_name: str = "JewelryPOS") -> AppPaths:
    if sys.platform.startswith("win"):
        base = _windows_appdata() / app_name
    elif sys.platform == "darwin":
        base = _mac_app_support() / app_name
    else:
        base = Path.home() / f".{app_name.lower()}"

    override = os.environ.get("JPOS_DB_PATH", "").strip()
    db = Path(override) if override else base / "pos.db"
    logs = base / "logs"

    base.mkdir(parents=True, exist_ok=True)
    logs.mkdir(parents=True, exist_ok=True)
    db.parent.mkdir(parents=True, exist_ok=True)

    return AppPaths(base_dir=base, db_path=db, outbox_path=db.with_name("outbox.db"), logs_dir=logs)


def load_runtime_config(env: dict[str, str] | None = None) -> RuntimeConfig:
    env = os.environ if env is None else env

    fallback = env.get("JPOS_SALE_FALLBACK", "outbox").strip().lower() or "outbox"
    if fallback not in SALE_FALLBACK_POLICIES:
        raise ValueError(f"JPOS_SALE_FALLBACK must be one of {SALE_FALLBACK_POLICIES}, got {fallback!r}")

    log_level = env.get("JPOS_LOG_LEVEL", "INFO").strip().upper() or "INFO"
    if log_level not in LOG_LEVELS:
        raise ValueError(f"JPOS_LOG_LEVEL must be one of {LOG_LEVELS}, got {log_level!r}")

    return RuntimeConfig(
        host=env.get("JPOS_HOST", "127.0.0.1"),
        port=int(env.get("JPOS_PORT", "8080")),
        sale_fallback=fallback,
        session_ttl_minutes=int(env.get("JPOS_SESSION_TTL_MINUTES", str(12 * 60))),
        bootstrap_admin_password=env.get("JPOS_BOOTSTRAP_ADMIN_PASSWORD", "").strip(),
        log_level=log_level,
    )
