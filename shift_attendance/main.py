import logging
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from shift_attendance.calculator import compute_day_delay
from shift_attendance.models.schema import (
    DailyResult,
    DayGroup,
    DayStatus,
    Employee,
    PeriodSummary,
    PunchEvent,
    PunchType,
)
from shift_attendance.registry import ShiftRegistry
from shift_attendance.rules import get_default_registry
from shift_attendance.settings import ReportSettings
from shift_attendance.utils.helper import daterange, floor_minutes_after, local_datetime


def group_by_day(punches: Iterable[PunchEvent], settings: Optional[ReportSettings] = None) -> List[DayGroup]:
    """Group punches by employee and local calendar date, each group sorted oldest first."""
    tz = settings.tzinfo if settings else None
    buckets: Dict[Tuple[str, date], List[PunchEvent]] = defaultdict(list)
    for punch in punches:
        day = local_datetime(punch.timestamp, tz).date()
        buckets[(punch.employee_id, day)].append(punch)

    groups = []
    for (employee_id, day), events in sorted(buckets.items()):
        events = sorted(events, key=lambda e: e.timestamp)
        groups.append(DayGroup(
            employee_id=employee_id,
            employee_name=events[0].employee_name,
            date=day,
            events=events,
        ))
    return groups


def pick_first_in(events: Sequence[PunchEvent]) -> Optional[PunchEvent]:
    for event in events:
        if event.type == PunchType.CHECK_IN:
            return event
    return events[0] if events else None


def pick_last_out(events: Sequence[PunchEvent], first_in: Optional[PunchEvent]) -> Optional[PunchEvent]:
    for event in reversed(events):
        if event.type == PunchType.CHECK_OUT:
            return event
    if events and events[-1] is not first_in:
        return events[-1]
    return None


def calculate_break_minutes(events: Sequence[PunchEvent], cap_minutes: int = 8 * 60) -> int:
    """
    Break time for one day: explicit BREAK_OUT -> BREAK_IN pairs, or
    CHECK_OUT -> CHECK_IN gaps until the first explicit break shows up.
    """
    total = 0
    last_break_out = None
    last_check_out = None
    explicit_breaks = False

    for event in events:
        if event.type == PunchType.BREAK_OUT:
            last_break_out = event.timestamp
            explicit_breaks = True
        elif event.type == PunchType.BREAK_IN and last_break_out is not None:
            total += _capped_gap(event.timestamp, last_break_out, cap_minutes)
            last_break_out = None

        if not explicit_breaks:
            if event.type == PunchType.CHECK_IN and last_check_out is not None:
                total += _capped_gap(event.timestamp, last_check_out, cap_minutes)
                last_check_out = None
            if event.type == PunchType.CHECK_OUT:
                last_check_out = event.timestamp

    return total


def _capped_gap(later, earlier, cap_minutes: int) -> int:
    gap = (later - earlier).total_seconds()
    if gap <= 0 or gap >= cap_minutes * 60:
        return 0
    return floor_minutes_after(later, earlier)


def absent_result(employee_id: str, employee_name: str, day: date, punch_count: int = 0) -> DailyResult:
    return DailyResult(
        employee_id=employee_id,
        employee_name=employee_name,
        date=day,
        is_absent=True,
        punch_count=punch_count,
        status=DayStatus.ABSENT,
    )


def build_daily_result(group: DayGroup, registry: ShiftRegistry, settings: ReportSettings) -> DailyResult:
    events = group.events
    if any(e.is_absence for e in events):
        return absent_result(group.employee_id, group.employee_name, group.date, len(events))

    first_in = pick_first_in(events)
    last_out = pick_last_out(events, first_in)
    config = registry.resolve_config(first_in.device, group.date)
    delay = compute_day_delay(
        group,
        config,
        tz=settings.tzinfo,
        cutover_hour=settings.alternating_cutover_hour,
    )

    return DailyResult(
        employee_id=group.employee_id,
        employee_name=group.employee_name,
        date=group.date,
        first_in=first_in,
        last_out=last_out,
        late_minutes=delay.late_minutes,
        overtime_minutes=delay.overtime_minutes,
        break_minutes=calculate_break_minutes(events, settings.break_cap_minutes),
        missing_out=first_in.type == PunchType.CHECK_IN
        and not any(e.type == PunchType.CHECK_OUT for e in events),
        punch_count=len(events),
        shift_name=config.display_name,
        status=DayStatus.LATE if delay.late_minutes > 0 else DayStatus.ON_TIME,
    )


def aggregate(
    punches: Iterable[PunchEvent],
    date_range: Tuple[date, date],
    roster: Optional[Sequence[Employee]] = None,
    registry: Optional[ShiftRegistry] = None,
    settings: Optional[ReportSettings] = None,
    device_serial: Optional[str] = None,
) -> List[DailyResult]:
    """
    Build one DailyResult per employee-day in ``date_range`` (inclusive).

    All of an employee's punches on a date are paired regardless of device;
    ``device_serial`` only decides which of those days are reported. Roster
    employees with no punches on a working day get an absence row.
    """
    start, end = date_range
    registry = registry or get_default_registry()
    settings = settings or ReportSettings()
    tz = settings.tzinfo

    in_range = []
    for punch in punches:
        if start <= local_datetime(punch.timestamp, tz).date() <= end:
            in_range.append(punch)
        else:
            logging.debug(f"Punch for employee_id: {punch.employee_id} at {punch.timestamp} outside {start}..{end}")

    groups = group_by_day(in_range, settings)
    seen = {(g.employee_id, g.date) for g in groups}

    results = []
    for group in groups:
        if device_serial and not any(e.device_serial == device_serial for e in group.events):
            continue
        results.append(build_daily_result(group, registry, settings))

    absent_count = 0
    for employee in roster or []:
        for day in daterange(start, end):
            if day.weekday() in settings.non_working_weekdays:
                continue
            if (employee.id, day) in seen:
                continue
            results.append(absent_result(employee.id, employee.name, day))
            absent_count += 1

    logging.info(f"Aggregated {len(groups)} day group(s) and {absent_count} absence row(s) for {start}..{end}")
    return sorted(results, key=lambda r: (r.employee_id, r.date))


def summarize_period(results: Iterable[DailyResult]) -> List[PeriodSummary]:
    """Roll daily rows up per employee. Lateness is reported raw, never netted against overtime."""
    summaries: Dict[str, PeriodSummary] = {}
    for row in results:
        summary = summaries.get(row.employee_id)
        if summary is None:
            summary = PeriodSummary(employee_id=row.employee_id, employee_name=row.employee_name)
            summaries[row.employee_id] = summary

        if row.is_absent:
            summary.absent_day_count += 1
            continue
        summary.total_late_minutes += row.late_minutes
        summary.total_overtime_minutes += row.overtime_minutes
        summary.total_break_minutes += row.break_minutes
        if row.late_minutes > 0:
            summary.late_day_count += 1
        if row.missing_out:
            summary.missing_out_count += 1

    return sorted(summaries.values(), key=lambda s: (-s.total_late_minutes, s.employee_id))
