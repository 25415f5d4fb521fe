from __future__ import annotations

import datetime
import json
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

import database as db  # noqa: E402
import roster_store  # noqa: E402
from shift_state import ShiftOverride, StaffMember  # noqa: E402


@pytest.fixture()
def cache_file(monkeypatch, tmp_path):
    target = tmp_path / "staff_cache.json"
    monkeypatch.setattr(roster_store, "CACHE_FILE", target)
    return target


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    db.Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False, future=True)
    engine.dispose()


@pytest.fixture()
def broken_factory(tmp_path):
    # The parent directory does not exist, so every connection attempt fails.
    engine = create_engine(f"sqlite:///{(tmp_path / 'missing' / 'roster.db').as_posix()}", future=True)
    yield sessionmaker(bind=engine, expire_on_commit=False, future=True)
    engine.dispose()


def _roster():
    return [
        StaffMember(
            id="new-1",
            name="Morgan",
            role="Nurse",
            cycle_start_date=datetime.date(2024, 1, 1),
            pattern_on=5,
            pattern_off=2,
            overrides=(ShiftOverride(date="2024-01-03", is_day_off=True),),
        ),
        StaffMember(
            id="new-2",
            name="Riley",
            role="Porter",
            cycle_start_date=datetime.date(2024, 1, 3),
            pattern_on=3,
            pattern_off=4,
            status="Casual",
        ),
    ]


def test_save_then_load_uses_store_and_refreshes_cache(cache_file, session_factory):
    stored = roster_store.save_roster(session_factory, _roster())
    assert all(db.is_persisted_id(member.id) for member in stored)

    cached = json.loads(cache_file.read_text(encoding="utf-8"))
    assert [entry["id"] for entry in cached] == [member.id for member in stored]
    assert cached[0]["overrides"] == [{"date": "2024-01-03", "isDayOff": True}]

    loaded = roster_store.load_roster(session_factory)
    assert loaded == stored


def test_load_falls_back_to_cache_when_store_unavailable(cache_file, session_factory, broken_factory):
    stored = roster_store.save_roster(session_factory, _roster())
    assert roster_store.load_roster(broken_factory) == stored


def test_failed_save_keeps_local_copy(cache_file, broken_factory):
    with pytest.raises(SQLAlchemyError):
        roster_store.save_roster(broken_factory, _roster())
    cached = roster_store.load_cache()
    assert [member.id for member in cached] == ["new-1", "new-2"]
    assert cached[1].status == "Casual"


def test_invalid_roster_is_rejected_before_caching(cache_file, session_factory):
    bad = StaffMember(
        id="new-1",
        name="Morgan",
        role="Nurse",
        cycle_start_date=datetime.date(2024, 1, 1),
        pattern_on=0,
        pattern_off=0,
    )
    with pytest.raises(ValueError):
        roster_store.save_roster(session_factory, [bad])
    assert not cache_file.exists()


def test_unreadable_cache_is_ignored(cache_file, capsys):
    cache_file.write_text("{not json", encoding="utf-8")
    assert roster_store.load_cache() == []
    assert "[roster]" in capsys.readouterr().err


def test_missing_cache_returns_empty_roster(cache_file, broken_factory):
    assert roster_store.load_roster(broken_factory) == []


def test_empty_store_keeps_cached_roster(cache_file, session_factory, broken_factory):
    with pytest.raises(SQLAlchemyError):
        roster_store.save_roster(broken_factory, _roster())
    loaded = roster_store.load_roster(session_factory)
    assert [member.name for member in loaded] == ["Morgan", "Riley"]
