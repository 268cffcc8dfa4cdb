from __future__ import annotations

import json
import logging
import shutil
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from jpos.domain.errors import StoreUnavailableError

log = logging.getLogger(__name__)


def _prefix_upper_bound(prefix: str) -> str:
    return prefix[:-1] + chr(ord(prefix[-1]) + 1)


class KvTransaction:
    """Key-value operations bound to one open write transaction."""

    def __init__(self, cur: sqlite3.Cursor):
        self._cur = cur

    def get(self, key: str) -> Optional[dict]:
        self._cur.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
        row = self._cur.fetchone()
        return json.loads(row[0]) if row else None

    def set(self, key: str, value: dict) -> None:
        self._cur.execute(
            """
            INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, datetime('now'))
            ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at
            """,
            (key, json.dumps(value, ensure_ascii=False)),
        )

    def delete(self, key: str) -> bool:
        self._cur.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        return self._cur.rowcount > 0

    def get_by_prefix(self, prefix: str) -> list[dict]:
        if not prefix:
            raise ValueError("Prefix must not be empty.")
        self._cur.execute(
            "SELECT value FROM kv_store WHERE key >= ? AND key < ? ORDER BY key",
            (prefix, _prefix_upper_bound(prefix)),
        )
        return [json.loads(r[0]) for r in self._cur.fetchall()]


class SqliteRepository:
    """Key-value store over a single SQLite table.

    Values are JSON objects. Single operations commit on their own;
    `transaction()` groups several under an immediate write lock so a
    read-modify-write sees the latest stored value and applies all-or-nothing.
    """

    def __init__(self, db_path: Path | str, timeout: float = 10.0):
        self.db_path = str(db_path)
        self.timeout = timeout

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def init_db(self) -> None:
        self.run_migrations()

    def run_migrations(self) -> None:
        conn = self._conn()
        backup_path = self._create_pre_migration_backup()
        try:
            cur = conn.cursor()
            cur.execute("BEGIN")
            cur.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)")
            cur.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
            current_version = int(cur.fetchone()[0])

            migrations = [
                (1, self._migration_v1_kv_store),
            ]

            for version, migration in migrations:
                if version <= current_version:
                    continue
                migration(cur)
                cur.execute(
                    "INSERT INTO schema_migrations (version, applied_at) VALUES (?, datetime('now'))",
                    (version,),
                )
            cur.execute("COMMIT")
        except Exception as exc:
            if conn.in_transaction:
                conn.rollback()
            self._restore_pre_migration_backup(backup_path)
            raise RuntimeError(
                "Database migration failed. Original database restored from automatic backup."
            ) from exc
        finally:
            conn.close()

    def _create_pre_migration_backup(self) -> Path | None:
        db_file = Path(self.db_path)
        if not db_file.exists() or db_file.stat().st_size == 0:
            return None
        backup_file = db_file.with_name(f"{db_file.stem}.pre_migration_{datetime.now().strftime('%Y%m%d%H%M%S')}.bak")
        shutil.copy2(db_file, backup_file)
        return backup_file

    def _restore_pre_migration_backup(self, backup_path: Path | None) -> None:
        if backup_path is None or not backup_path.exists():
            return
        shutil.copy2(backup_path, self.db_path)

    def _migration_v1_kv_store(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
            """
        )

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        try:
            conn = self._conn()
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Store unavailable: {exc}") from exc
        try:
            yield conn.cursor()
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Store operation failed: {exc}") from exc
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[KvTransaction]:
        try:
            conn = self._conn()
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Store unavailable: {exc}") from exc
        cur = conn.cursor()
        try:
            cur.execute("BEGIN IMMEDIATE")
            yield KvTransaction(cur)
            cur.execute("COMMIT")
        except sqlite3.Error as exc:
            if conn.in_transaction:
                conn.rollback()
            log.error("kv_transaction_failed error=%s", exc)
            raise StoreUnavailableError(f"Store transaction failed: {exc}") from exc
        except BaseException:
            if conn.in_transaction:
                conn.rollback()
            raise
        finally:
            conn.close()

    # ---------- Key-value ----------
    def get(self, key: str) -> Optional[dict]:
        with self._cursor() as cur:
            return KvTransaction(cur).get(key)

    def set(self, key: str, value: dict) -> None:
        with self._cursor() as cur:
            KvTransaction(cur).set(key, value)

    def delete(self, key: str) -> bool:
        with self._cursor() as cur:
            return KvTransaction(cur).delete(key)

    def get_by_prefix(self, prefix: str) -> list[dict]:
        with self._cursor() as cur:
            return KvTransaction(cur).get_by_prefix(prefix)

    def integrity_check(self) -> str:
        with self._cursor() as cur:
            cur.execute("PRAGMA integrity_check")
            row = cur.fetchone()
        return str(row[0]) if row else "unknown"
