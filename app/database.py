from __future__ import annotations

import dataclasses
import datetime
import os
import re
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    select,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, selectinload, sessionmaker

from shift_state import (
    SHIFT_TYPES,
    STAFF_STATUSES,
    ShiftOverride,
    StaffMember,
    local_date_string,
    parse_date,
    parse_time,
    validate_pattern,
)


DATA_DIR = Path(__file__).resolve().parent / "data"
DATA_DIR.mkdir(parents=True, exist_ok=True)
DATABASE_URL = os.environ.get("ROSTER_DATABASE_URL") or f"sqlite:///{(DATA_DIR / 'roster.db').as_posix()}"
UUID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class Base(DeclarativeBase):
    """Metadata for the roster tables."""

    pass


class StaffRecord(Base):
    __tablename__ = "staff"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    role: Mapped[str] = mapped_column(String(80), nullable=False, default="")
    cycle_start_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    pattern_on: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    pattern_off: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    shift_type: Mapped[str] = mapped_column(String(12), nullable=False, default="Normal")
    status: Mapped[str] = mapped_column(String(12), nullable=False, default="Permanent")
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
    )

    overrides: Mapped[List["ShiftOverrideRecord"]] = relationship(
        back_populates="staff",
        cascade="all, delete-orphan",
        order_by="ShiftOverrideRecord.id",
    )

    def to_member(self) -> StaffMember:
        return StaffMember(
            id=self.id,
            name=self.name,
            role=self.role,
            cycle_start_date=self.cycle_start_date,
            pattern_on=self.pattern_on,
            pattern_off=self.pattern_off,
            shift_type=self.shift_type,
            status=self.status,
            overrides=tuple(row.to_override() for row in self.overrides),
        )


class ShiftOverrideRecord(Base):
    __tablename__ = "shift_overrides"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    staff_id: Mapped[str] = mapped_column(ForeignKey("staff.id", ondelete="CASCADE"), nullable=False)
    date: Mapped[str] = mapped_column(String(10), nullable=False)
    start_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    end_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    is_day_off: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    shift_type: Mapped[str | None] = mapped_column(String(12), nullable=True)

    staff: Mapped[StaffRecord] = relationship(back_populates="overrides")

    __table_args__ = (UniqueConstraint("staff_id", "date", name="uq_shift_override_staff_date"),)

    def to_override(self) -> ShiftOverride:
        return ShiftOverride(
            date=self.date,
            start_time=self.start_time,
            end_time=self.end_time,
            is_day_off=self.is_day_off,
            shift_type=self.shift_type,
        )


engine = create_engine(DATABASE_URL, echo=False, future=True)
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False, future=True)


def init_database() -> None:
    Base.metadata.create_all(engine)


def is_persisted_id(value: Optional[str]) -> bool:
    """Temporary ids (``new-…``, ``imported-…``) are not UUIDs and get replaced on insert."""
    return bool(value) and bool(UUID_PATTERN.match(str(value)))


def validate_override(override: ShiftOverride) -> ShiftOverride:
    """Check one override and return it with its date and times normalised."""
    date_str = local_date_string(parse_date(override.date))
    if override.shift_type is not None and override.shift_type not in SHIFT_TYPES:
        raise ValueError(f"Unknown shift type '{override.shift_type}'.")
    if override.is_day_off is not None and not isinstance(override.is_day_off, bool):
        raise ValueError("Override day-off flag must be a boolean.")
    start = parse_time(override.start_time) if override.start_time else None
    end = parse_time(override.end_time) if override.end_time else None
    if (start is None) != (end is None):
        raise ValueError("Override times need both a start and an end.")
    if start is not None and end <= start:
        raise ValueError("Override end time must be after start time.")
    return dataclasses.replace(override, date=date_str, start_time=start, end_time=end)


def validate_staff(member: StaffMember) -> StaffMember:
    """Check a staff record; the returned copy carries normalised overrides."""
    if not member.name:
        raise ValueError("Staff name is required.")
    validate_pattern(member.pattern_on, member.pattern_off)
    if member.shift_type not in SHIFT_TYPES:
        raise ValueError(f"Unknown shift type '{member.shift_type}'.")
    if member.status not in STAFF_STATUSES:
        raise ValueError(f"Unknown employment status '{member.status}'.")
    overrides = []
    seen = set()
    for override in member.overrides:
        override = validate_override(override)
        if override.date in seen:
            raise ValueError(f"Duplicate override for {override.date}.")
        seen.add(override.date)
        overrides.append(override)
    return member.with_overrides(overrides)


def _load_record(session, staff_id: str) -> Optional[StaffRecord]:
    stmt = select(StaffRecord).where(StaffRecord.id == staff_id).options(selectinload(StaffRecord.overrides))
    return session.scalars(stmt).first()


def _require_record(session, staff_id: str) -> StaffRecord:
    record = _load_record(session, staff_id)
    if record is None:
        raise LookupError(f"Staff member '{staff_id}' not found.")
    return record


def _apply_member(session, record: StaffRecord, member: StaffMember, display_order: Optional[int]) -> None:
    record.name = member.name
    record.role = member.role
    record.cycle_start_date = member.cycle_start_date
    record.pattern_on = member.pattern_on
    record.pattern_off = member.pattern_off
    record.shift_type = member.shift_type
    record.status = member.status
    if display_order is not None:
        record.display_order = display_order
    # Clear first so a same-date rewrite does not collide with the unique constraint.
    record.overrides.clear()
    session.flush()
    for override in member.overrides:
        record.overrides.append(
            ShiftOverrideRecord(
                date=override.date,
                start_time=override.start_time,
                end_time=override.end_time,
                is_day_off=override.is_day_off,
                shift_type=override.shift_type,
            )
        )


def list_staff(session) -> List[StaffMember]:
    stmt = (
        select(StaffRecord)
        .options(selectinload(StaffRecord.overrides))
        .order_by(StaffRecord.display_order.asc(), StaffRecord.name.asc())
    )
    return [record.to_member() for record in session.scalars(stmt).all()]


def get_staff(session, staff_id: str) -> Optional[StaffMember]:
    record = _load_record(session, staff_id)
    return record.to_member() if record else None


def create_staff(session, member: StaffMember, *, display_order: Optional[int] = None) -> StaffMember:
    member = validate_staff(member)
    if display_order is None:
        display_order = len(session.scalars(select(StaffRecord.id)).all())
    staff_id = member.id if is_persisted_id(member.id) else str(uuid.uuid4())
    record = StaffRecord(id=staff_id, cycle_start_date=member.cycle_start_date, name=member.name)
    session.add(record)
    _apply_member(session, record, member, display_order)
    session.commit()
    return record.to_member()


def upsert_staff(session, member: StaffMember, *, display_order: Optional[int] = None) -> StaffMember:
    member = validate_staff(member)
    record = _load_record(session, member.id) if is_persisted_id(member.id) else None
    if record is None:
        return create_staff(session, member, display_order=display_order)
    _apply_member(session, record, member, display_order)
    session.commit()
    return record.to_member()


def delete_staff(session, staff_id: str) -> None:
    record = _require_record(session, staff_id)
    session.delete(record)
    session.commit()


def save_roster(session, members: Iterable[StaffMember]) -> List[StaffMember]:
    """Persist the full ordered roster.

    Members with a UUID id are updated, temporary ids are inserted under a
    fresh UUID, and rows missing from ``members`` are removed. List position
    becomes ``display_order``.
    """
    members = [validate_staff(member) for member in members]
    keep_ids = set()
    for index, member in enumerate(members):
        record = _load_record(session, member.id) if is_persisted_id(member.id) else None
        if record is None:
            staff_id = member.id if is_persisted_id(member.id) else str(uuid.uuid4())
            record = StaffRecord(id=staff_id, cycle_start_date=member.cycle_start_date, name=member.name)
            session.add(record)
        _apply_member(session, record, member, index)
        keep_ids.add(record.id)
    stale = session.scalars(select(StaffRecord).where(StaffRecord.id.not_in(keep_ids))).all()
    for record in stale:
        session.delete(record)
    session.commit()
    return list_staff(session)


def _drop_override_rows(session, record: StaffRecord, date_str: str) -> None:
    for row in [row for row in record.overrides if row.date == date_str]:
        record.overrides.remove(row)
    session.flush()


def set_override(session, staff_id: str, override: ShiftOverride) -> StaffMember:
    """Write the single override for one date, replacing any existing entry."""
    override = validate_override(override)
    record = _require_record(session, staff_id)
    _drop_override_rows(session, record, override.date)
    record.overrides.append(
        ShiftOverrideRecord(
            date=override.date,
            start_time=override.start_time,
            end_time=override.end_time,
            is_day_off=override.is_day_off,
            shift_type=override.shift_type,
        )
    )
    session.commit()
    return record.to_member()


def clear_override(session, staff_id: str, date_value: datetime.date | str) -> StaffMember:
    record = _require_record(session, staff_id)
    _drop_override_rows(session, record, local_date_string(parse_date(date_value)))
    session.commit()
    return record.to_member()


def staff_payload(members: Iterable[StaffMember]) -> List[Dict[str, Any]]:
    return [member.to_dict() for member in members]
