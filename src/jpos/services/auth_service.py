from __future__ import annotations

import hashlib
import hmac
import logging
import os
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from jpos.domain.errors import AuthorizationError, PermissionDeniedError, ValidationError
from jpos.domain.models import User, new_id, utc_now_iso

log = logging.getLogger(__name__)

SIGNUP_ROLES = ("cashier",)
MANAGED_ROLES = ("cashier", "manager")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class LoginPolicy:
    min_password_length: int = 8
    max_failed_attempts: int = 5
    lockout_seconds: int = 60
    session_ttl_minutes: int = 720


def _validate_secret_strength(secret: str, *, min_len: int) -> None:
    if len(secret) < min_len:
        raise ValidationError(f"Password must have at least {min_len} characters.")
    if not re.search(r"[A-Za-z]", secret):
        raise ValidationError("Password must include at least one letter.")
    if not re.search(r"\d", secret):
        raise ValidationError("Password must include at least one number.")


def hash_password(password: str, *, rounds: int = 200_000, salt: str | None = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), bytes.fromhex(salt), rounds).hex()
    return f"pbkdf2_sha256${rounds}${salt}${digest}"


def verify_password(stored: str, provided: str) -> bool:
    try:
        algo, rounds_s, salt, digest = stored.split("$", 3)
        if algo != "pbkdf2_sha256":
            return False
        candidate = hashlib.pbkdf2_hmac("sha256", provided.encode("utf-8"), bytes.fromhex(salt), int(rounds_s)).hex()
    except ValueError:
        return False
    return hmac.compare_digest(candidate, digest)


PERMISSIONS: dict[str, set[str]] = {
    "sell": {"admin", "manager", "cashier"},
    "view_sales": {"admin", "manager", "cashier"},
    "record_metal": {"admin", "manager", "cashier"},
    "view_settings": {"admin", "manager", "cashier"},
    "manage_products": {"admin", "manager"},
    "manage_movements": {"admin", "manager"},
    "view_reports": {"admin", "manager"},
    "manage_settings": {"admin"},
    "manage_users": {"admin"},
}


def _user_from_record(rec: dict) -> User:
    return User(
        id=str(rec["id"]),
        email=str(rec["email"]),
        name=str(rec.get("name") or ""),
        role=str(rec["role"]),
        active=int(rec.get("active", 1)),
    )


def _parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value)


class AuthService:
    """Issues and resolves bearer tokens for users kept in the key-value store."""

    def __init__(self, repo, policy: LoginPolicy | None = None):
        self.repo = repo
        self.policy = policy or LoginPolicy()

    def list_users(self) -> list[User]:
        users = [_user_from_record(r) for r in self.repo.get_by_prefix("user:")]
        return sorted(users, key=lambda u: u.email)

    def _create(self, email: str, password: str, name: str, role: str) -> User:
        email = (email or "").strip().lower()
        if not _EMAIL_RE.match(email):
            raise ValidationError("A valid email is required.")
        _validate_secret_strength(password or "", min_len=self.policy.min_password_length)

        with self.repo.transaction() as tx:
            if tx.get(f"user:{email}") is not None:
                raise ValidationError(f"User already exists: {email}")
            rec = {
                "id": new_id("user"),
                "email": email,
                "name": (name or "").strip(),
                "role": role,
                "active": 1,
                "passwordHash": hash_password(password),
                "failedAttempts": 0,
                "lockedUntil": None,
                "createdAt": utc_now_iso(),
            }
            tx.set(f"user:{email}", rec)
        log.info("user_created email=%s role=%s", email, role)
        return _user_from_record(rec)

    def signup(self, email: str, password: str, name: str = "", role: str = "cashier") -> User:
        target_role = str(role or "cashier").strip().lower()
        if target_role not in SIGNUP_ROLES:
            raise ValidationError("Open signup creates cashier accounts only; an admin creates managers.")
        return self._create(email, password, name, target_role)

    def create_user(self, actor: User, email: str, password: str, name: str = "", role: str = "cashier") -> User:
        self.require_action(actor, "manage_users")
        target_role = str(role or "cashier").strip().lower()
        if target_role not in MANAGED_ROLES:
            raise ValidationError("Only cashier or manager users can be created.")
        return self._create(email, password, name, target_role)

    def login(self, email: str, password: str) -> tuple[str, User]:
        email_clean = (email or "").strip().lower()
        if not email_clean:
            raise AuthorizationError("Email is required.")

        now = datetime.now(timezone.utc)
        with self.repo.transaction() as tx:
            rec = tx.get(f"user:{email_clean}")
            if rec is None or not int(rec.get("active", 1)):
                raise AuthorizationError("Invalid email or password.")

            locked_until = rec.get("lockedUntil")
            if locked_until and now < _parse_ts(locked_until):
                remaining = int((_parse_ts(locked_until) - now).total_seconds())
                raise AuthorizationError(f"User is temporarily locked. Retry in {remaining}s.")

            if not verify_password(str(rec.get("passwordHash") or ""), password or ""):
                attempts = int(rec.get("failedAttempts", 0)) + 1
                if attempts >= self.policy.max_failed_attempts:
                    rec = {**rec, "failedAttempts": 0,
                           "lockedUntil": (now + timedelta(seconds=self.policy.lockout_seconds)).isoformat()}
                    tx.set(f"user:{email_clean}", rec)
                    log.warning("login_locked email=%s", email_clean)
                    locked = True
                else:
                    tx.set(f"user:{email_clean}", {**rec, "failedAttempts": attempts})
                    locked = False
                failure = (
                    "Too many failed attempts. User is temporarily locked."
                    if locked else "Invalid email or password."
                )
            else:
                failure = None
                tx.set(f"user:{email_clean}", {**rec, "failedAttempts": 0, "lockedUntil": None})
                token = secrets.token_urlsafe(32)
                expires = now + timedelta(minutes=self.policy.session_ttl_minutes)
                tx.set(f"session:{token}", {"email": email_clean, "expiresAt": expires.isoformat()})

        # the failure counter must persist, so the error is raised after the transaction commits
        if failure:
            raise AuthorizationError(failure)
        log.info("login_ok email=%s", email_clean)
        return token, _user_from_record(rec)

    def resolve_token(self, token: Optional[str]) -> Optional[User]:
        if not token:
            return None
        session = self.repo.get(f"session:{token}")
        if session is None:
            return None
        if datetime.now(timezone.utc) >= _parse_ts(session["expiresAt"]):
            self.repo.delete(f"session:{token}")
            return None
        rec = self.repo.get(f"user:{session['email']}")
        if rec is None or not int(rec.get("active", 1)):
            return None
        return _user_from_record(rec)

    def logout(self, token: str) -> None:
        self.repo.delete(f"session:{token}")

    def ensure_bootstrap_admin(self, secrets_dir: Path | str, password: str | None = None) -> Optional[User]:
        """Create the first admin when no admin exists yet.

        The one-time password is written to ``.admin_bootstrap_password`` with
        owner-only permissions.
        """
        if any(u.role == "admin" for u in self.list_users()):
            return None
        secret = (password or os.environ.get("JPOS_BOOTSTRAP_ADMIN_PASSWORD", "")).strip()
        if not secret:
            secret = secrets.token_urlsafe(12) + "a1"
        user = self._create("admin@jpos.local", secret, "Administrator", "admin")

        pw_file = Path(secrets_dir) / ".admin_bootstrap_password"
        pw_file.parent.mkdir(parents=True, exist_ok=True)
        pw_file.write_text(secret + "\n", encoding="utf-8")
        try:
            pw_file.chmod(0o600)
        except OSError:
            log.warning("bootstrap_password_chmod_failed path=%s", pw_file)
        log.warning("bootstrap_admin_created email=%s password_file=%s", user.email, pw_file)
        return user

    def can(self, user: User, action: str) -> bool:
        allowed_roles = PERMISSIONS.get(action)
        if not allowed_roles:
            return False
        return user.role in allowed_roles

    def require_action(self, user: User, action: str) -> None:
        if not self.can(user, action):
            raise PermissionDeniedError(f"Role '{user.role}' is not allowed to perform '{action}'.")
