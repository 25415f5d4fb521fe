from __future__ import annotations

import sys
from pathlib import Path

import pytest

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from accounts import (  # noqa: E402
    DEFAULT_ADMIN_PASSWORD,
    DEFAULT_ADMIN_USERNAME,
    MAX_FAILED_ATTEMPTS,
    AccountLockedError,
    AccountStore,
    AuditLogger,
    hash_password,
    verify_password,
)


@pytest.fixture()
def audit(tmp_path):
    return AuditLogger(tmp_path / "audit.log")


@pytest.fixture()
def store(tmp_path, audit):
    return AccountStore(tmp_path / "accounts.json", audit)


def test_seeded_admin_can_sign_in(store, audit):
    account = store.verify_credentials(DEFAULT_ADMIN_USERNAME.upper(), DEFAULT_ADMIN_PASSWORD)
    assert account == {"username": DEFAULT_ADMIN_USERNAME, "display_name": "Administrator"}
    assert audit.entries()[-1]["event"] == "login_success"


def test_wrong_password_and_unknown_user(store, audit):
    assert store.verify_credentials(DEFAULT_ADMIN_USERNAME, "nope") is None
    assert store.verify_credentials("ghost", DEFAULT_ADMIN_PASSWORD) is None
    reasons = [entry["details"]["reason"] for entry in audit.entries()]
    assert reasons == ["invalid_credentials", "unknown_user"]


def test_repeated_failures_lock_the_account(store):
    for _ in range(MAX_FAILED_ATTEMPTS - 1):
        assert store.verify_credentials(DEFAULT_ADMIN_USERNAME, "wrong-password") is None
    with pytest.raises(AccountLockedError):
        store.verify_credentials(DEFAULT_ADMIN_USERNAME, "wrong-password")
    with pytest.raises(AccountLockedError):
        store.verify_credentials(DEFAULT_ADMIN_USERNAME, DEFAULT_ADMIN_PASSWORD)


def test_seed_is_not_repeated(tmp_path, store):
    store.change_password(DEFAULT_ADMIN_USERNAME, DEFAULT_ADMIN_PASSWORD, "a-longer-secret")
    reopened = AccountStore(tmp_path / "accounts.json")
    assert reopened.verify_credentials(DEFAULT_ADMIN_USERNAME, DEFAULT_ADMIN_PASSWORD) is None
    assert reopened.verify_credentials(DEFAULT_ADMIN_USERNAME, "a-longer-secret") is not None


def test_change_password_rules(store):
    with pytest.raises(PermissionError):
        store.change_password(DEFAULT_ADMIN_USERNAME, "wrong", "a-longer-secret")
    with pytest.raises(ValueError):
        store.change_password(DEFAULT_ADMIN_USERNAME, DEFAULT_ADMIN_PASSWORD, "short")


def test_password_hashing():
    salt, digest = hash_password("correct horse")
    assert verify_password("correct horse", salt, digest)
    assert not verify_password("wrong horse", salt, digest)
    assert not verify_password("correct horse", "%%%", digest)


def test_audit_log_skips_garbage_lines(tmp_path):
    audit = AuditLogger(tmp_path / "audit.log")
    audit.log("quick_cycle", "admin", details={"date": "2024-01-02"})
    with audit.file_path.open("a", encoding="utf-8") as handle:
        handle.write("not json\n")
    audit.log("logout", "admin")
    assert [entry["event"] for entry in audit.entries()] == ["quick_cycle", "logout"]
    assert audit.entries()[0]["details"] == {"date": "2024-01-02"}
