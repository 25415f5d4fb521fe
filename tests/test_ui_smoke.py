from __future__ import annotations

import datetime
import os
import sys
from pathlib import Path

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
QtWidgets = pytest.importorskip("PySide6.QtWidgets")

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from shift_state import DEFAULT_SHIFT_WINDOWS, DayStatus, ShiftOverride, ShiftState, StaffMember  # noqa: E402
from ui.roster_grid import RosterGridPage, cell_colors  # noqa: E402
from ui.staff_directory import StaffDirectoryDialog  # noqa: E402


@pytest.fixture(scope="module")
def qt_app():
    app = QtWidgets.QApplication.instance() or QtWidgets.QApplication([])
    yield app


def _staff():
    return [
        StaffMember(
            id="new-1",
            name="Morgan",
            role="Nurse",
            cycle_start_date=datetime.date(2024, 1, 1),
            pattern_on=5,
            pattern_off=2,
        ),
        StaffMember(
            id="new-2",
            name="Riley",
            role="Porter",
            cycle_start_date=datetime.date(2024, 1, 1),
            pattern_on=3,
            pattern_off=4,
            status="Casual",
            overrides=(ShiftOverride(date="2024-01-02", is_day_off=True),),
        ),
    ]


def test_grid_shows_staff_rows_and_on_duty_totals(qt_app):
    page = RosterGridPage(
        _staff(),
        is_admin=False,
        days=7,
        windows=DEFAULT_SHIFT_WINDOWS,
        start_date=datetime.date(2024, 1, 1),
    )
    assert page.table.rowCount() == 3
    assert page.table.columnCount() == 8
    assert page.table.item(2, 0).text() == "On Duty"
    assert page.table.item(1, 0).text().endswith("[Casual]")
    assert "[Casual]" not in page.table.item(0, 0).text()
    totals = [page.table.item(2, col).text() for col in range(1, 8)]
    assert totals == ["2", "1", "2", "1", "1", "0", "0"]
    assert page.table.item(0, 1).text() == "●"
    assert page.table.item(1, 2).text() == "—"


def test_admin_click_cycles_and_reports_update(qt_app):
    updates = []
    page = RosterGridPage(
        _staff(),
        is_admin=True,
        days=7,
        windows=DEFAULT_SHIFT_WINDOWS,
        start_date=datetime.date(2024, 1, 1),
        on_update_staff=lambda staff, **kwargs: updates.append((staff, kwargs)),
    )
    page.handle_shift_click(page.staff[0], DayStatus.for_date("2024-01-03"))
    assert len(updates) == 1
    updated, audit_info = updates[0]
    assert updated[1] == page.staff[1]
    assert updated[0].overrides == (
        ShiftOverride(date="2024-01-03", start_time="08:00", end_time="13:00", is_day_off=False, shift_type="Half"),
    )
    assert audit_info == {
        "event": "quick_cycle",
        "details": {"staff_id": "new-1", "date": "2024-01-03", "state": "Half"},
    }


def test_color_mode_paints_cells():
    working = ShiftState(True, "Normal", "Solid", "Normal Shift")
    background, _ = cell_colors(working, "colors", dark_mode=False)
    assert background is not None
    assert cell_colors(working, "dots", dark_mode=True)[0] is None


def test_directory_save_calls_store(qt_app):
    saved = []

    def on_save(members):
        saved.append(list(members))
        return members

    dialog = StaffDirectoryDialog(_staff(), on_save)
    dialog.table.selectRow(1)
    dialog.move_member(-1)
    assert [member.name for member in dialog.local_staff] == ["Riley", "Morgan"]
    assert dialog.save_button.isEnabled()
    dialog.save_all()
    assert [member.name for member in saved[0]] == ["Riley", "Morgan"]
    assert dialog.has_unsaved_changes is False
