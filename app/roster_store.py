from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Iterable, List

from sqlalchemy.exc import SQLAlchemyError

import database
from shift_state import StaffMember


DATA_DIR = Path(__file__).resolve().parent / "data"
DATA_DIR.mkdir(parents=True, exist_ok=True)
CACHE_FILE = DATA_DIR / "staff_cache.json"


def _warn(message: str) -> None:
    print(f"[roster] {message}", file=sys.stderr)


def load_cache() -> List[StaffMember]:
    if not CACHE_FILE.exists():
        return []
    try:
        data = json.loads(CACHE_FILE.read_text(encoding="utf-8"))
        if not isinstance(data, list):
            raise ValueError("cache must hold a list")
        return [StaffMember.from_dict(entry) for entry in data]
    except (ValueError, KeyError, TypeError) as exc:
        _warn(f"Ignoring unreadable cache {CACHE_FILE.name}: {exc}")
        return []


def save_cache(members: Iterable[StaffMember]) -> None:
    payload = database.staff_payload(members)
    tmp = CACHE_FILE.with_suffix(CACHE_FILE.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    tmp.replace(CACHE_FILE)


def load_roster(session_factory=None) -> List[StaffMember]:
    """Read the roster from the record store, falling back to the local cache.

    An empty store also yields the cached roster, so staff entered while the
    store was unreachable are not hidden by a fresh database.
    """
    session_factory = session_factory or database.SessionLocal
    try:
        with session_factory() as session:
            members = database.list_staff(session)
    except SQLAlchemyError as exc:
        _warn(f"Record store unavailable, using local cache: {exc}")
        return load_cache()
    if not members:
        return load_cache()
    save_cache(members)
    return members


def save_roster(session_factory, members: Iterable[StaffMember]) -> List[StaffMember]:
    """Cache the roster locally, then persist it and refresh the cache with stored ids.

    Store errors are re-raised after the local copy is written so callers can
    report the failure without losing the edit.
    """
    members = [database.validate_staff(member) for member in members]
    session_factory = session_factory or database.SessionLocal
    save_cache(members)
    try:
        with session_factory() as session:
            stored = database.save_roster(session, members)
    except SQLAlchemyError as exc:
        _warn(f"Saving to record store failed: {exc}")
        raise
    save_cache(stored)
    return stored
