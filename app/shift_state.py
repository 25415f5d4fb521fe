from __future__ import annotations

import dataclasses
import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple


SHIFT_NORMAL = "Normal"
SHIFT_HALF = "Half"
SHIFT_OFF = "Off"
SHIFT_TYPES = {SHIFT_NORMAL, SHIFT_HALF}

STATUS_PERMANENT = "Permanent"
STATUS_CASUAL = "Casual"
STAFF_STATUSES = {STATUS_PERMANENT, STATUS_CASUAL}

VISUAL_SOLID = "Solid"
VISUAL_HOLLOW = "Hollow"
VISUAL_DASH = "Dash"
VISUAL_NONE = "None"

DEFAULT_SHIFT_WINDOWS: Dict[str, Tuple[str, str]] = {
    SHIFT_NORMAL: ("08:00", "17:00"),
    SHIFT_HALF: ("08:00", "13:00"),
}


def local_date_string(value: datetime.date) -> str:
    """Canonical YYYY-MM-DD key used for overrides and grid columns."""
    if isinstance(value, datetime.datetime):
        value = value.date()
    return value.isoformat()


def parse_date(value: datetime.date | str) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    try:
        return datetime.date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD.") from exc


def parse_time(value: str) -> str:
    """Validate an HH:MM time and return it zero-padded."""
    try:
        parsed = datetime.datetime.strptime(str(value).strip(), "%H:%M")
    except ValueError as exc:
        raise ValueError(f"Invalid time '{value}', expected HH:MM.") from exc
    return parsed.strftime("%H:%M")


def validate_pattern(pattern_on: int, pattern_off: int) -> None:
    if pattern_on < 0 or pattern_off < 0:
        raise ValueError("Pattern day counts cannot be negative.")
    if pattern_on + pattern_off <= 0:
        raise ValueError("Pattern must contain at least one day (on + off > 0).")


@dataclass(frozen=True)
class ShiftOverride:
    date: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    is_day_off: Optional[bool] = None
    shift_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"date": self.date}
        if self.start_time is not None:
            payload["startTime"] = self.start_time
        if self.end_time is not None:
            payload["endTime"] = self.end_time
        if self.is_day_off is not None:
            payload["isDayOff"] = self.is_day_off
        if self.shift_type is not None:
            payload["shiftType"] = self.shift_type
        return payload

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "ShiftOverride":
        is_day_off = data.get("isDayOff", data.get("is_day_off"))
        if is_day_off is not None and not isinstance(is_day_off, bool):
            raise ValueError(f"isDayOff must be true or false, got {is_day_off!r}.")
        return ShiftOverride(
            date=local_date_string(parse_date(data["date"])),
            start_time=data.get("startTime", data.get("start_time")) or None,
            end_time=data.get("endTime", data.get("end_time")) or None,
            is_day_off=is_day_off,
            shift_type=data.get("shiftType", data.get("shift_type")) or None,
        )


@dataclass(frozen=True)
class StaffMember:
    id: str
    name: str
    role: str
    cycle_start_date: datetime.date
    pattern_on: int
    pattern_off: int
    shift_type: str = SHIFT_NORMAL
    status: str = STATUS_PERMANENT
    overrides: Tuple[ShiftOverride, ...] = field(default_factory=tuple)

    @property
    def cycle_length(self) -> int:
        return self.pattern_on + self.pattern_off

    def with_overrides(self, overrides: Iterable[ShiftOverride]) -> "StaffMember":
        return dataclasses.replace(self, overrides=tuple(overrides))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "cycleStartDate": local_date_string(self.cycle_start_date),
            "patternOn": self.pattern_on,
            "patternOff": self.pattern_off,
            "shiftType": self.shift_type,
            "status": self.status,
            "overrides": [override.to_dict() for override in self.overrides],
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "StaffMember":
        overrides: List[ShiftOverride] = []
        for entry in data.get("overrides") or []:
            overrides = upsert_override(overrides, ShiftOverride.from_dict(entry))
        return StaffMember(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or "").strip(),
            role=str(data.get("role") or "").strip(),
            cycle_start_date=parse_date(data.get("cycleStartDate", data.get("cycle_start_date"))),
            pattern_on=int(data.get("patternOn", data.get("pattern_on", 0))),
            pattern_off=int(data.get("patternOff", data.get("pattern_off", 0))),
            shift_type=data.get("shiftType", data.get("shift_type")) or SHIFT_NORMAL,
            status=data.get("status") or STATUS_PERMANENT,
            overrides=tuple(overrides),
        )


@dataclass(frozen=True)
class DayStatus:
    date: datetime.date
    day_name: str
    day_number: int
    full_date_str: str

    @property
    def is_weekend(self) -> bool:
        return self.date.weekday() >= 5

    @staticmethod
    def for_date(value: datetime.date | str) -> "DayStatus":
        day = parse_date(value)
        return DayStatus(
            date=day,
            day_name=day.strftime("%a").upper(),
            day_number=day.day,
            full_date_str=local_date_string(day),
        )


@dataclass(frozen=True)
class ShiftState:
    is_working: bool
    shift_type: str
    visual_type: str
    label: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isWorking": self.is_working,
            "shiftType": self.shift_type,
            "visualType": self.visual_type,
            "label": self.label,
        }


def generate_date_range(start: datetime.date, days: int = 60) -> List[DayStatus]:
    start = parse_date(start)
    return [DayStatus.for_date(start + datetime.timedelta(days=offset)) for offset in range(days)]


def find_override(staff: StaffMember, date_str: str) -> Optional[ShiftOverride]:
    for override in staff.overrides:
        if override.date == date_str:
            return override
    return None


def upsert_override(overrides: Iterable[ShiftOverride], override: ShiftOverride) -> List[ShiftOverride]:
    """Return a new list where ``override`` is the only entry for its date."""
    updated = [entry for entry in overrides if entry.date != override.date]
    updated.append(override)
    return updated


def remove_override(overrides: Iterable[ShiftOverride], date_str: str) -> List[ShiftOverride]:
    return [entry for entry in overrides if entry.date != date_str]


def is_working(staff: StaffMember, target_date: datetime.date | str) -> bool:
    diff_days = (parse_date(target_date) - parse_date(staff.cycle_start_date)).days
    # Python's modulo already lands in [0, cycle_length) for negative offsets.
    day_in_cycle = diff_days % staff.cycle_length
    return day_in_cycle < staff.pattern_on


def compute_shift_state(staff: StaffMember, day: DayStatus) -> ShiftState:
    override = find_override(staff, day.full_date_str)

    if override is not None and override.is_day_off:
        return ShiftState(False, SHIFT_OFF, VISUAL_DASH, "Day Off (Manual)")

    if override is not None and override.shift_type:
        if override.shift_type == SHIFT_HALF:
            return ShiftState(True, SHIFT_HALF, VISUAL_HOLLOW, "Half Shift (Manual)")
        return ShiftState(True, SHIFT_NORMAL, VISUAL_SOLID, "Normal Shift (Manual)")

    if not is_working(staff, day.full_date_str):
        return ShiftState(False, SHIFT_OFF, VISUAL_DASH, "Off")
    return ShiftState(True, SHIFT_NORMAL, VISUAL_SOLID, "Normal Shift")


def resolve_shift_times(
    staff: StaffMember,
    date_str: str,
    shift_type: str,
    windows: Optional[Dict[str, Tuple[str, str]]] = None,
) -> Dict[str, str]:
    override = find_override(staff, date_str)
    if override is not None and override.start_time and override.end_time:
        return {"start": override.start_time, "end": override.end_time}
    windows = windows or DEFAULT_SHIFT_WINDOWS
    key = SHIFT_HALF if shift_type == SHIFT_HALF else SHIFT_NORMAL
    start, end = windows.get(key, DEFAULT_SHIFT_WINDOWS[key])
    return {"start": start, "end": end}


def cycle_next_state(current: ShiftState) -> str:
    if current.shift_type == SHIFT_HALF:
        return SHIFT_OFF
    if current.shift_type == SHIFT_OFF or not current.is_working:
        return SHIFT_NORMAL
    return SHIFT_HALF


def apply_quick_cycle(
    staff: StaffMember,
    day: DayStatus,
    windows: Optional[Dict[str, Tuple[str, str]]] = None,
) -> StaffMember:
    """Advance one cell Normal -> Half -> Off -> Normal and rewrite its override."""
    windows = windows or DEFAULT_SHIFT_WINDOWS
    next_state = cycle_next_state(compute_shift_state(staff, day))
    overrides = remove_override(staff.overrides, day.full_date_str)

    if next_state == SHIFT_OFF:
        overrides.append(ShiftOverride(date=day.full_date_str, is_day_off=True))
    elif next_state == SHIFT_HALF:
        start, end = windows.get(SHIFT_HALF, DEFAULT_SHIFT_WINDOWS[SHIFT_HALF])
        overrides.append(
            ShiftOverride(
                date=day.full_date_str,
                start_time=start,
                end_time=end,
                is_day_off=False,
                shift_type=SHIFT_HALF,
            )
        )
    elif not is_working(staff, day.full_date_str):
        start, end = windows.get(SHIFT_NORMAL, DEFAULT_SHIFT_WINDOWS[SHIFT_NORMAL])
        overrides.append(
            ShiftOverride(
                date=day.full_date_str,
                start_time=start,
                end_time=end,
                is_day_off=False,
                shift_type=SHIFT_NORMAL,
            )
        )
    return staff.with_overrides(overrides)


def count_on_duty(staff_list: Iterable[StaffMember], day: DayStatus) -> int:
    return sum(1 for staff in staff_list if compute_shift_state(staff, day).is_working)


def describe_shift(
    staff: StaffMember,
    day: DayStatus,
    windows: Optional[Dict[str, Tuple[str, str]]] = None,
) -> Optional[Dict[str, Any]]:
    """Payload for the shift details popup; ``None`` when the day is off."""
    state = compute_shift_state(staff, day)
    if not state.is_working:
        return None
    times = resolve_shift_times(staff, day.full_date_str, state.shift_type, windows)
    return {
        "staffId": staff.id,
        "dateStr": day.full_date_str,
        "staffName": staff.name,
        "shiftType": state.shift_type,
        "label": state.label,
        "start": times["start"],
        "end": times["end"],
        "isDayOff": not state.is_working,
    }
