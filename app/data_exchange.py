from __future__ import annotations

import csv
import datetime
import io
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from shift_state import (
    SHIFT_NORMAL,
    SHIFT_TYPES,
    STAFF_STATUSES,
    STATUS_PERMANENT,
    StaffMember,
    parse_date,
    validate_pattern,
)


DATA_DIR = Path(__file__).resolve().parent / "data"
EXPORT_DIR = DATA_DIR / "exports"
EXPORT_DIR.mkdir(parents=True, exist_ok=True)
CSV_HEADER = ["Name", "Role", "CycleStartDate", "PatternOn", "PatternOff", "ShiftType", "Status"]


def _timestamp() -> str:
    return datetime.datetime.now().strftime("%Y%m%d_%H%M%S")


def staff_to_csv(members: Iterable[StaffMember]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for member in members:
        writer.writerow(
            [
                member.name,
                member.role,
                member.cycle_start_date.isoformat(),
                member.pattern_on,
                member.pattern_off,
                member.shift_type,
                member.status,
            ]
        )
    return buffer.getvalue()


def export_staff(members: Iterable[StaffMember], target: Optional[Path] = None) -> Path:
    """Write the roster configuration (no overrides) as CSV."""
    filename = target or EXPORT_DIR / f"roster-config_{_timestamp()}.csv"
    filename.write_text(staff_to_csv(members), encoding="utf-8")
    return filename


def staff_from_csv(text: str) -> Tuple[List[StaffMember], int]:
    """Parse CSV text into new staff members; returns (members, skipped_rows).

    The first non-blank line is the header. Imported rows get temporary
    ``imported-<line>`` ids and are inserted as new records on save.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    members: List[StaffMember] = []
    skipped = 0
    for index, row in enumerate(csv.reader(lines[1:]), start=1):
        if len(row) < len(CSV_HEADER):
            skipped += 1
            continue
        name, role, start, pattern_on, pattern_off, shift_type, status = (col.strip() for col in row[:7])
        try:
            cycle_start = parse_date(start)
            on_days = int(pattern_on)
            off_days = int(pattern_off)
            validate_pattern(on_days, off_days)
        except ValueError:
            skipped += 1
            continue
        shift_type = shift_type or SHIFT_NORMAL
        status = status or STATUS_PERMANENT
        if not name or shift_type not in SHIFT_TYPES or status not in STAFF_STATUSES:
            skipped += 1
            continue
        members.append(
            StaffMember(
                id=f"imported-{index}",
                name=name,
                role=role,
                cycle_start_date=cycle_start,
                pattern_on=on_days,
                pattern_off=off_days,
                shift_type=shift_type,
                status=status,
            )
        )
    return members, skipped


def import_staff(file_path: Path) -> Tuple[List[StaffMember], int]:
    return staff_from_csv(file_path.read_text(encoding="utf-8"))
