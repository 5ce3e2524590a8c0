import pytest
from datetime import datetime, time, date, timezone
from shift_attendance.main import aggregate, calculate_break_minutes, group_by_day, summarize_period
from shift_attendance.models.schema import (
    DailyResult,
    DayStatus,
    DeviceShiftRule,
    Employee,
    HistoryEntry,
    PunchEvent,
    ShiftWindow,
)
from shift_attendance.registry import ShiftRegistry, alias_contains
from shift_attendance.settings import ReportSettings, parse_weekdays

# 2026-02-01 is a Sunday, 2026-02-06 a Friday.
SUNDAY = date(2026, 2, 1)
WEEK = (date(2026, 2, 1), date(2026, 2, 7))
EMPTY_REGISTRY = ShiftRegistry([])


def punch(punch_type, day, at, employee="E101", serial="UNKNOWN", alias=None, purpose=None):
    return PunchEvent(
        employee_id=employee,
        employee_name=f"Employee {employee}",
        timestamp=datetime.combine(day, at),
        type=punch_type,
        device_serial=serial,
        device_alias=alias,
        purpose=purpose,
    )


def test_day_with_default_shift():
    punches = [punch("CHECK_IN", SUNDAY, time(8, 17)), punch("CHECK_OUT", SUNDAY, time(17, 45))]

    rows = aggregate(punches, (SUNDAY, SUNDAY), registry=EMPTY_REGISTRY)

    assert len(rows) == 1
    assert rows[0].late_minutes == 17
    assert rows[0].overtime_minutes == 105
    assert rows[0].status == DayStatus.LATE
    assert rows[0].first_in.timestamp.time() == time(8, 17)
    assert rows[0].last_out.timestamp.time() == time(17, 45)
    assert rows[0].shift_name == "جهاز UNKNOWN"


def test_on_time_day():
    rows = aggregate([punch("CHECK_IN", SUNDAY, time(7, 55))], (SUNDAY, SUNDAY), registry=EMPTY_REGISTRY)

    assert rows[0].status == DayStatus.ON_TIME
    assert rows[0].missing_out is True
    assert rows[0].last_out is None


def test_group_by_day_sorts_events():
    groups = group_by_day([
        punch("CHECK_OUT", SUNDAY, time(17, 0)),
        punch("CHECK_IN", SUNDAY, time(8, 0)),
        punch("CHECK_IN", date(2026, 2, 2), time(8, 0)),
    ])

    assert [g.date for g in groups] == [SUNDAY, date(2026, 2, 2)]
    assert [e.type.value for e in groups[0].events] == ["CHECK_IN", "CHECK_OUT"]


def test_group_by_day_uses_local_date():
    settings = ReportSettings(timezone="Asia/Riyadh")
    late_utc = PunchEvent(
        employee_id="E101",
        employee_name="Employee E101",
        timestamp=datetime(2026, 1, 31, 22, 30, tzinfo=timezone.utc),
        type="CHECK_IN",
    )

    groups = group_by_day([late_utc], settings)

    assert groups[0].date == SUNDAY


def test_aware_timestamps_are_judged_in_local_time():
    settings = ReportSettings(timezone="Asia/Riyadh")
    check_in = PunchEvent(
        employee_id="E101",
        employee_name="Employee E101",
        timestamp=datetime(2026, 2, 1, 5, 17, tzinfo=timezone.utc),
        type="CHECK_IN",
    )

    rows = aggregate([check_in], (SUNDAY, SUNDAY), registry=EMPTY_REGISTRY, settings=settings)

    assert rows[0].late_minutes == 17


def test_absence_rows_skip_fridays():
    roster = [Employee(id="E101", name="Employee E101"), Employee(id="E102", name="Employee E102")]
    punches = [punch("CHECK_IN", SUNDAY, time(8, 0))]

    rows = aggregate(punches, WEEK, roster=roster, registry=EMPTY_REGISTRY)

    absent = [r for r in rows if r.is_absent]
    assert len([r for r in absent if r.employee_id == "E101"]) == 5
    assert len([r for r in absent if r.employee_id == "E102"]) == 6
    assert date(2026, 2, 6) not in {r.date for r in absent}
    for row in absent:
        assert row.status == DayStatus.ABSENT
        assert row.late_minutes == 0 and row.overtime_minutes == 0
        assert row.first_in is None and row.last_out is None


def test_non_working_days_are_configurable():
    settings = ReportSettings(non_working_weekdays=parse_weekdays("fri,sat"))
    roster = [Employee(id="E102", name="Employee E102")]

    rows = aggregate([], WEEK, roster=roster, registry=EMPTY_REGISTRY, settings=settings)

    assert [r.date.day for r in rows] == [1, 2, 3, 4, 5]


def test_recorded_absence_is_its_own_state():
    punches = [punch("CHECK_IN", SUNDAY, time(11, 0), purpose="غياب: مرض")]
    roster = [Employee(id="E101", name="Employee E101")]

    rows = aggregate(punches, (SUNDAY, SUNDAY), roster=roster, registry=EMPTY_REGISTRY)

    assert len(rows) == 1
    assert rows[0].is_absent is True
    assert rows[0].late_minutes == 0
    assert rows[0].punch_count == 1


def test_cross_device_pairing():
    punches = [
        punch("CHECK_IN", SUNDAY, time(8, 5), serial="GATE-A"),
        punch("CHECK_OUT", SUNDAY, time(16, 30), serial="GATE-B"),
    ]
    roster = [Employee(id="E101", name="Employee E101")]

    on_b = aggregate(punches, (SUNDAY, SUNDAY), roster=roster, registry=EMPTY_REGISTRY, device_serial="GATE-B")
    on_c = aggregate(punches, (SUNDAY, SUNDAY), roster=roster, registry=EMPTY_REGISTRY, device_serial="GATE-C")

    assert len(on_b) == 1
    assert on_b[0].first_in.device_serial == "GATE-A"
    assert on_b[0].last_out.device_serial == "GATE-B"
    assert on_b[0].late_minutes == 5
    assert on_b[0].overtime_minutes == 30
    assert on_c == []


def test_history_is_resolved_per_day():
    registry = ShiftRegistry([
        DeviceShiftRule(
            name="shops",
            matcher=alias_contains("محلات"),
            shifts=[ShiftWindow(start="08:00", end="12:00"), ShiftWindow(start="15:30", end="20:30")],
            history=[HistoryEntry(
                effective_date=date(2026, 1, 14),
                shifts=[ShiftWindow(start="08:00", end="12:00"), ShiftWindow(start="15:15", end="20:15")],
            )],
        )
    ])
    punches = [
        punch("CHECK_IN", date(2026, 1, 10), time(15, 40), alias="محلات القصيم"),
        punch("CHECK_IN", date(2026, 1, 20), time(15, 40), alias="محلات القصيم"),
    ]

    rows = aggregate(punches, (date(2026, 1, 1), date(2026, 1, 31)), registry=registry)

    assert [r.late_minutes for r in rows] == [25, 10]


def test_punches_outside_range_are_ignored():
    punches = [punch("CHECK_IN", date(2026, 1, 31), time(9, 0)), punch("CHECK_IN", SUNDAY, time(8, 30))]

    rows = aggregate(punches, (SUNDAY, SUNDAY), registry=EMPTY_REGISTRY)

    assert [r.date for r in rows] == [SUNDAY]


def test_aggregate_is_idempotent():
    punches = [
        punch("CHECK_IN", SUNDAY, time(8, 17)),
        punch("CHECK_OUT", SUNDAY, time(17, 45)),
        punch("CHECK_IN", date(2026, 2, 2), time(9, 0), employee="E102"),
    ]
    roster = [Employee(id="E101", name="Employee E101"), Employee(id="E102", name="Employee E102")]

    first = aggregate(punches, WEEK, roster=roster, registry=EMPTY_REGISTRY)
    second = aggregate(punches, WEEK, roster=roster, registry=EMPTY_REGISTRY)

    assert first == second


def test_last_out_falls_back_to_latest_punch():
    punches = [punch("CHECK_IN", SUNDAY, time(8, 0)), punch("BREAK_OUT", SUNDAY, time(12, 0))]

    rows = aggregate(punches, (SUNDAY, SUNDAY), registry=EMPTY_REGISTRY)

    assert rows[0].last_out.type.value == "BREAK_OUT"


def test_explicit_break_minutes():
    events = [
        punch("CHECK_IN", SUNDAY, time(8, 0)),
        punch("BREAK_OUT", SUNDAY, time(12, 0)),
        punch("BREAK_IN", SUNDAY, time(13, 0)),
        punch("CHECK_OUT", SUNDAY, time(16, 0)),
    ]

    assert calculate_break_minutes(events) == 60


def test_implied_break_minutes():
    events = [
        punch("CHECK_IN", SUNDAY, time(8, 0)),
        punch("CHECK_OUT", SUNDAY, time(12, 0)),
        punch("CHECK_IN", SUNDAY, time(13, 30)),
        punch("CHECK_OUT", SUNDAY, time(16, 0)),
    ]

    assert calculate_break_minutes(events) == 90


def test_break_longer_than_cap_is_ignored():
    events = [
        punch("CHECK_OUT", SUNDAY, time(1, 0)),
        punch("CHECK_IN", SUNDAY, time(10, 0)),
    ]

    assert calculate_break_minutes(events) == 0


def test_period_summary_keeps_lateness_raw():
    punches = [
        punch("CHECK_IN", SUNDAY, time(8, 17)),
        punch("CHECK_OUT", SUNDAY, time(17, 45)),
        punch("CHECK_IN", date(2026, 2, 2), time(8, 10)),
        punch("CHECK_IN", date(2026, 2, 3), time(7, 50)),
        punch("CHECK_OUT", date(2026, 2, 3), time(16, 0)),
    ]
    roster = [Employee(id="E101", name="Employee E101")]

    summaries = summarize_period(aggregate(punches, WEEK, roster=roster, registry=EMPTY_REGISTRY))

    assert len(summaries) == 1
    summary = summaries[0]
    assert summary.total_late_minutes == 27
    assert summary.late_day_count == 2
    assert summary.total_overtime_minutes == 105
    assert summary.absent_day_count == 3
    assert summary.missing_out_count == 1


def test_period_summary_sorted_by_lateness():
    punches = [
        punch("CHECK_IN", SUNDAY, time(8, 5), employee="E101"),
        punch("CHECK_IN", SUNDAY, time(9, 0), employee="E102"),
    ]

    summaries = summarize_period(aggregate(punches, (SUNDAY, SUNDAY), registry=EMPTY_REGISTRY))

    assert [s.employee_id for s in summaries] == ["E102", "E101"]


def test_absent_result_invariant():
    with pytest.raises(ValueError):
        DailyResult(employee_id="E101", employee_name="x", date=SUNDAY, is_absent=True, late_minutes=5)


def test_parse_weekdays():
    assert parse_weekdays("fri") == frozenset({4})
    assert parse_weekdays("Friday, 5") == frozenset({4, 5})
    assert parse_weekdays("") == frozenset()
    with pytest.raises(ValueError):
        parse_weekdays("someday")
