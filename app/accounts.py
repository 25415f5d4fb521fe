from __future__ import annotations

import base64
import binascii
import datetime
import hashlib
import json
import secrets
from pathlib import Path
from typing import Any, Dict, List, Optional


DATA_DIR = Path(__file__).resolve().parent / "data"
DATA_DIR.mkdir(parents=True, exist_ok=True)
ACCOUNTS_FILE = DATA_DIR / "accounts.json"
AUDIT_FILE = DATA_DIR / "audit.log"
PBKDF2_ITERATIONS = 200_000
MIN_PASSWORD_LENGTH = 8
DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_PASSWORD = "admin123"
MAX_FAILED_ATTEMPTS = 5
LOCKOUT_MINUTES = 15


def hash_password(password: str, *, enforce_length: bool = True) -> tuple[str, str]:
    if enforce_length and len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.")
    salt = secrets.token_bytes(16)
    derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return (
        base64.b64encode(salt).decode("ascii"),
        base64.b64encode(derived).decode("ascii"),
    )


def verify_password(password: str, salt_b64: str, hash_b64: str) -> bool:
    try:
        salt = base64.b64decode(salt_b64.encode("ascii"))
        stored = base64.b64decode(hash_b64.encode("ascii"))
    except (binascii.Error, ValueError):
        return False
    derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return secrets.compare_digest(derived, stored)


class AccountLockedError(Exception):
    """Raised when an account is locked and cannot authenticate."""

    def __init__(self, until: datetime.datetime) -> None:
        super().__init__("Account locked")
        self.until = until


class AuditLogger:
    """Append-only JSON line log for sign-ins and roster edits."""

    def __init__(self, file_path: Path) -> None:
        self.file_path = file_path
        self.file_path.parent.mkdir(parents=True, exist_ok=True)

    def log(
        self,
        event: str,
        username: Optional[str],
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        entry: Dict[str, Any] = {
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "event": event,
            "username": username,
        }
        if details:
            entry["details"] = details
        with self.file_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(entry))
            handle.write("\n")

    def entries(self) -> List[Dict[str, Any]]:
        if not self.file_path.exists():
            return []
        rows = []
        for line in self.file_path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            try:
                rows.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return rows


class AccountStore:
    """JSON-backed admin accounts. The first run seeds a single admin."""

    def __init__(self, file_path: Path, audit: Optional[AuditLogger] = None) -> None:
        self.file_path = file_path
        self.audit = audit
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_seed()

    def _ensure_seed(self) -> None:
        data = self._read()
        if data["users"]:
            return
        salt, password_hash = hash_password(DEFAULT_ADMIN_PASSWORD, enforce_length=False)
        data["users"] = [
            {
                "username": DEFAULT_ADMIN_USERNAME,
                "display_name": "Administrator",
                "password_salt": salt,
                "password_hash": password_hash,
                "failed_attempts": 0,
                "locked_until": None,
            }
        ]
        self._write(data)

    def _read(self) -> Dict[str, List[Dict[str, Any]]]:
        if not self.file_path.exists():
            return {"users": []}
        try:
            data = json.loads(self.file_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        data.setdefault("users", [])
        return data

    def _write(self, data: Dict[str, List[Dict[str, Any]]]) -> None:
        self.file_path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def _log(self, event: str, username: Optional[str], **details: Any) -> None:
        if self.audit is not None:
            self.audit.log(event, username, details=details or None)

    @staticmethod
    def _locked_until(record: Dict[str, Any]) -> Optional[datetime.datetime]:
        value = record.get("locked_until")
        if not value:
            return None
        try:
            parsed = datetime.datetime.fromisoformat(value)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=datetime.timezone.utc)
        return parsed

    def _find(self, data: Dict[str, List[Dict[str, Any]]], username: str) -> Optional[int]:
        wanted = username.strip().lower()
        for index, user in enumerate(data["users"]):
            if user.get("username", "").lower() == wanted:
                return index
        return None

    def verify_credentials(self, username: str, password: str) -> Optional[Dict[str, str]]:
        data = self._read()
        index = self._find(data, username)
        if index is None:
            self._log("login_failure", username, reason="unknown_user")
            return None
        record = data["users"][index]

        now = datetime.datetime.now(datetime.timezone.utc)
        locked_until = self._locked_until(record)
        if locked_until and locked_until > now:
            self._log("login_failure", record["username"], reason="account_locked")
            raise AccountLockedError(locked_until)
        if locked_until:
            record["locked_until"] = None
            record["failed_attempts"] = 0

        if not verify_password(password, record.get("password_salt", ""), record.get("password_hash", "")):
            record["failed_attempts"] = int(record.get("failed_attempts") or 0) + 1
            locked_time = None
            if record["failed_attempts"] >= MAX_FAILED_ATTEMPTS:
                locked_time = now + datetime.timedelta(minutes=LOCKOUT_MINUTES)
                record["locked_until"] = locked_time.isoformat()
            self._write(data)
            self._log("login_failure", record["username"], reason="invalid_credentials")
            if locked_time:
                raise AccountLockedError(locked_time)
            return None

        record["failed_attempts"] = 0
        record["locked_until"] = None
        self._write(data)
        self._log("login_success", record["username"])
        return {
            "username": record["username"],
            "display_name": record.get("display_name", record["username"]),
        }

    def change_password(self, username: str, current_password: str, new_password: str) -> None:
        data = self._read()
        index = self._find(data, username)
        if index is None:
            raise ValueError("Account not found.")
        record = data["users"][index]
        if not verify_password(current_password, record.get("password_salt", ""), record.get("password_hash", "")):
            raise PermissionError("Current password is incorrect.")
        record["password_salt"], record["password_hash"] = hash_password(new_password)
        record["failed_attempts"] = 0
        record["locked_until"] = None
        self._write(data)
        self._log("password_change", record["username"])
