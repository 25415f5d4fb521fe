from __future__ import annotations

import datetime
import sys
from pathlib import Path

import pytest

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from shift_state import (  # noqa: E402
    SHIFT_HALF,
    SHIFT_NORMAL,
    SHIFT_OFF,
    VISUAL_DASH,
    VISUAL_HOLLOW,
    VISUAL_SOLID,
    DayStatus,
    ShiftOverride,
    ShiftState,
    StaffMember,
    apply_quick_cycle,
    compute_shift_state,
    count_on_duty,
    cycle_next_state,
    describe_shift,
    find_override,
    generate_date_range,
    is_working,
    parse_date,
    resolve_shift_times,
    upsert_override,
    validate_pattern,
)


def _member(pattern_on=5, pattern_off=2, start=datetime.date(2024, 1, 1), overrides=(), **extra) -> StaffMember:
    return StaffMember(
        id="staff-1",
        name="Avery",
        role="Nurse",
        cycle_start_date=start,
        pattern_on=pattern_on,
        pattern_off=pattern_off,
        overrides=tuple(overrides),
        **extra,
    )


def _day(value: str) -> DayStatus:
    return DayStatus.for_date(value)


def test_five_two_pattern_from_cycle_start():
    member = _member()
    working = [is_working(member, datetime.date(2024, 1, day)) for day in range(1, 9)]
    assert working == [True, True, True, True, True, False, False, True]


def test_dates_before_cycle_start_wrap_into_the_cycle():
    member = _member()
    assert is_working(member, "2023-12-25") is True
    assert is_working(member, "2023-12-30") is False
    assert is_working(member, "2023-12-31") is False


def test_three_four_pattern_over_several_cycles():
    start = datetime.date(2024, 3, 10)
    member = _member(3, 4, start=start)
    for offset in range(-21, 22):
        target = start + datetime.timedelta(days=offset)
        assert is_working(member, target) == ((offset % 7) < 3), target


def test_all_off_pattern_never_works():
    member = _member(0, 3)
    assert not any(is_working(member, day.date) for day in generate_date_range(datetime.date(2024, 1, 1), 9))


def test_pattern_day_ignores_staff_shift_type():
    member = _member(shift_type=SHIFT_HALF)
    state = compute_shift_state(member, _day("2024-01-02"))
    assert state == ShiftState(True, SHIFT_NORMAL, VISUAL_SOLID, "Normal Shift")
    off_state = compute_shift_state(member, _day("2024-01-06"))
    assert off_state == ShiftState(False, SHIFT_OFF, VISUAL_DASH, "Off")


def test_compute_shift_state_is_pure():
    member = _member(overrides=[ShiftOverride(date="2024-01-03", shift_type=SHIFT_HALF)])
    day = _day("2024-01-03")
    first = compute_shift_state(member, day)
    assert compute_shift_state(member, day) == first
    assert member.overrides == (ShiftOverride(date="2024-01-03", shift_type=SHIFT_HALF),)


def test_day_off_override_wins_over_shift_type():
    override = ShiftOverride(date="2024-01-02", is_day_off=True, shift_type=SHIFT_HALF)
    state = compute_shift_state(_member(overrides=[override]), _day("2024-01-02"))
    assert state == ShiftState(False, SHIFT_OFF, VISUAL_DASH, "Day Off (Manual)")


def test_manual_shift_overrides_on_pattern_off_day():
    half = ShiftOverride(date="2024-01-06", shift_type=SHIFT_HALF, is_day_off=False)
    normal = ShiftOverride(date="2024-01-07", shift_type=SHIFT_NORMAL)
    member = _member(overrides=[half, normal])
    assert compute_shift_state(member, _day("2024-01-06")) == ShiftState(
        True, SHIFT_HALF, VISUAL_HOLLOW, "Half Shift (Manual)"
    )
    assert compute_shift_state(member, _day("2024-01-07")) == ShiftState(
        True, SHIFT_NORMAL, VISUAL_SOLID, "Normal Shift (Manual)"
    )


def test_time_only_override_falls_through_to_pattern():
    override = ShiftOverride(date="2024-01-02", start_time="10:00", end_time="15:00")
    member = _member(overrides=[override])
    state = compute_shift_state(member, _day("2024-01-02"))
    assert state.label == "Normal Shift"
    assert resolve_shift_times(member, "2024-01-02", state.shift_type) == {"start": "10:00", "end": "15:00"}


def test_resolve_shift_times_defaults():
    member = _member()
    assert resolve_shift_times(member, "2024-01-02", SHIFT_HALF) == {"start": "08:00", "end": "13:00"}
    assert resolve_shift_times(member, "2024-01-02", SHIFT_NORMAL) == {"start": "08:00", "end": "17:00"}


def test_resolve_shift_times_needs_both_override_times():
    member = _member(overrides=[ShiftOverride(date="2024-01-02", start_time="06:00")])
    assert resolve_shift_times(member, "2024-01-02", SHIFT_NORMAL) == {"start": "08:00", "end": "17:00"}


def test_resolve_shift_times_uses_configured_windows():
    windows = {SHIFT_NORMAL: ("09:00", "18:00"), SHIFT_HALF: ("12:00", "16:00")}
    member = _member()
    assert resolve_shift_times(member, "2024-01-02", SHIFT_HALF, windows) == {"start": "12:00", "end": "16:00"}


def test_cycle_next_state_transitions():
    assert cycle_next_state(ShiftState(True, SHIFT_NORMAL, VISUAL_SOLID, "Normal Shift")) == SHIFT_HALF
    assert cycle_next_state(ShiftState(True, SHIFT_HALF, VISUAL_HOLLOW, "Half Shift (Manual)")) == SHIFT_OFF
    assert cycle_next_state(ShiftState(False, SHIFT_OFF, VISUAL_DASH, "Off")) == SHIFT_NORMAL


def test_quick_cycle_on_working_day_returns_to_pattern():
    day = _day("2024-01-02")
    member = _member()

    member = apply_quick_cycle(member, day)
    assert find_override(member, day.full_date_str) == ShiftOverride(
        date="2024-01-02", start_time="08:00", end_time="13:00", is_day_off=False, shift_type=SHIFT_HALF
    )
    assert compute_shift_state(member, day).label == "Half Shift (Manual)"

    member = apply_quick_cycle(member, day)
    assert find_override(member, day.full_date_str) == ShiftOverride(date="2024-01-02", is_day_off=True)
    assert compute_shift_state(member, day).label == "Day Off (Manual)"

    member = apply_quick_cycle(member, day)
    assert member.overrides == ()
    assert compute_shift_state(member, day) == compute_shift_state(_member(), day)


def test_quick_cycle_on_pattern_off_day_writes_normal_override():
    day = _day("2024-01-06")
    member = apply_quick_cycle(_member(), day)
    assert find_override(member, day.full_date_str) == ShiftOverride(
        date="2024-01-06", start_time="08:00", end_time="17:00", is_day_off=False, shift_type=SHIFT_NORMAL
    )
    assert compute_shift_state(member, day).label == "Normal Shift (Manual)"

    labels = []
    for _ in range(3):
        member = apply_quick_cycle(member, day)
        labels.append(compute_shift_state(member, day).label)
    assert labels == ["Half Shift (Manual)", "Day Off (Manual)", "Normal Shift (Manual)"]


def test_quick_cycle_keeps_other_dates_and_input_untouched():
    other = ShiftOverride(date="2024-01-09", is_day_off=True)
    before = _member(overrides=[other])
    updated = apply_quick_cycle(before, _day("2024-01-02"))
    assert before.overrides == (other,)
    assert other in updated.overrides
    assert len(updated.overrides) == 2


def test_upsert_override_keeps_one_entry_per_date():
    overrides = upsert_override([], ShiftOverride(date="2024-01-02", is_day_off=True))
    overrides = upsert_override(overrides, ShiftOverride(date="2024-01-02", shift_type=SHIFT_HALF))
    assert overrides == [ShiftOverride(date="2024-01-02", shift_type=SHIFT_HALF)]


def test_from_dict_collapses_duplicate_override_dates():
    member = StaffMember.from_dict(
        {
            "id": "x",
            "name": " Jo ",
            "role": "Porter",
            "cycleStartDate": "2024-01-01",
            "patternOn": 4,
            "patternOff": 4,
            "overrides": [
                {"date": "2024-01-02", "isDayOff": True},
                {"date": "2024-01-02", "shiftType": "Half"},
            ],
        }
    )
    assert member.name == "Jo"
    assert member.overrides == (ShiftOverride(date="2024-01-02", shift_type=SHIFT_HALF),)
    assert member.to_dict()["overrides"] == [{"date": "2024-01-02", "shiftType": "Half"}]


def test_count_on_duty():
    day = _day("2024-01-01")
    off_today = _member(overrides=[ShiftOverride(date="2024-01-01", is_day_off=True)])
    pattern_off = _member(start=datetime.date(2023, 12, 27))
    assert count_on_duty([_member(), off_today, pattern_off], day) == 1


def test_describe_shift():
    member = _member(overrides=[ShiftOverride(date="2024-01-03", shift_type=SHIFT_HALF)])
    details = describe_shift(member, _day("2024-01-03"))
    assert details == {
        "staffId": "staff-1",
        "dateStr": "2024-01-03",
        "staffName": "Avery",
        "shiftType": SHIFT_HALF,
        "label": "Half Shift (Manual)",
        "start": "08:00",
        "end": "13:00",
        "isDayOff": False,
    }
    assert describe_shift(member, _day("2024-01-06")) is None


def test_generate_date_range():
    days = generate_date_range(datetime.date(2024, 1, 1), 3)
    assert [day.full_date_str for day in days] == ["2024-01-01", "2024-01-02", "2024-01-03"]
    assert days[0].day_name == "MON"
    assert days[0].day_number == 1
    assert len(generate_date_range(datetime.date(2024, 1, 1))) == 60
    assert days[0].is_weekend is False
    assert DayStatus.for_date("2024-01-06").is_weekend is True


def test_validate_pattern_and_parse_date():
    validate_pattern(0, 1)
    with pytest.raises(ValueError):
        validate_pattern(0, 0)
    with pytest.raises(ValueError):
        validate_pattern(-1, 3)
    assert parse_date("2024-02-29") == datetime.date(2024, 2, 29)
    with pytest.raises(ValueError):
        parse_date("29/02/2024")


def test_override_day_off_flag_must_be_boolean():
    for value in ("false", "0", 0, 1):
        with pytest.raises(ValueError):
            ShiftOverride.from_dict({"date": "2024-01-02", "isDayOff": value})
    override = ShiftOverride.from_dict({"date": "2024-01-02", "isDayOff": False})
    assert override.is_day_off is False
    assert compute_shift_state(_member(overrides=[override]), _day("2024-01-02")).label == "Normal Shift"
