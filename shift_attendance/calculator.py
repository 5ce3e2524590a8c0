import logging
from datetime import date, datetime, tzinfo
from typing import List, Optional, Tuple

from shift_attendance.models.schema import (
    DayGroup,
    DelayResult,
    PunchType,
    ResolvedShiftConfig,
    ShiftTopology,
    ShiftWindow,
)
from shift_attendance.utils.helper import (
    MINUTES_PER_DAY,
    at_minutes,
    floor_minutes_after,
    local_datetime,
    minutes_since,
    parse_hhmm,
)

FALLBACK_SHIFT_START = "08:00"
ALTERNATING_CUTOVER_HOUR = 13


def window_start(window: ShiftWindow, day: date, tz: Optional[tzinfo] = None) -> datetime:
    return at_minutes(day, window.start_minutes, tz)


def window_end(window: ShiftWindow, day: date, tz: Optional[tzinfo] = None) -> datetime:
    end = window.end_minutes
    if window.crosses_midnight:
        end += MINUTES_PER_DAY
    return at_minutes(day, end, tz)


def late_against(window: ShiftWindow, check_in: datetime, day: date) -> int:
    return floor_minutes_after(check_in, window_start(window, day, check_in.tzinfo))


def overtime_against(window: ShiftWindow, check_out: Optional[datetime], day: date) -> int:
    if check_out is None:
        return 0
    return floor_minutes_after(check_out, window_end(window, day, check_out.tzinfo))


def attribution_ranges(windows: List[ShiftWindow]) -> List[Tuple[float, float]]:
    """
    Minute-of-day range owned by each window (windows sorted by start).
    Neighbouring windows split the gap between them at its midpoint. The
    nominal bounds of the outer ranges are 00:00 and 24:00, but attribution
    leaves them open, so next-day punches fall to the last window.
    """
    ranges = []
    for i, window in enumerate(windows):
        low = 0 if i == 0 else (windows[i - 1].end_minutes + window.start_minutes) / 2
        if i + 1 < len(windows):
            high = (window.end_minutes + windows[i + 1].start_minutes) / 2
        else:
            high = MINUTES_PER_DAY
        ranges.append((low, high))
    return ranges


def _in_range(minute: int, low: float, high: float, first: bool, last: bool) -> bool:
    return (first or minute >= low) and (last or minute < high)


def compute_day_delay(
    group: DayGroup,
    config: ResolvedShiftConfig,
    tz: Optional[tzinfo] = None,
    cutover_hour: int = ALTERNATING_CUTOVER_HOUR,
) -> DelayResult:
    """
    Late and overtime minutes for one employee-day, judged against ``config``.

    Minutes are floored, never rounded. Lateness and overtime are returned
    separately; netting one against the other is left to the caller.
    """
    events = group.events
    if not events:
        return DelayResult()

    if any(e.is_absence for e in events):
        logging.debug(f"Recorded absence for employee_id: {group.employee_id} on {group.date}, skipping delay")
        return DelayResult()

    local = [(e, local_datetime(e.timestamp, tz)) for e in events]
    check_ins = [t for e, t in local if e.type == PunchType.CHECK_IN]
    check_outs = [t for e, t in local if e.type == PunchType.CHECK_OUT]
    if not check_ins:
        logging.debug(f"No CHECK_IN for employee_id: {group.employee_id} on {group.date}, using earliest punch")
        check_ins = [local[0][1]]

    first_in = min(check_ins)
    last_out = max(check_outs) if check_outs else None

    if not config.shifts:
        start = at_minutes(group.date, parse_hhmm(FALLBACK_SHIFT_START), first_in.tzinfo)
        return DelayResult(late_minutes=floor_minutes_after(first_in, start), overtime_minutes=0)

    if config.topology == ShiftTopology.ALTERNATING:
        target = config.shifts[0]
        if len(config.shifts) > 1 and first_in.hour >= cutover_hour:
            target = config.shifts[1]
        return DelayResult(
            late_minutes=late_against(target, first_in, group.date),
            overtime_minutes=overtime_against(target, last_out, group.date),
        )

    return _split_delay(group.date, config.shifts, check_ins, check_outs)


def _split_delay(day: date, shifts: List[ShiftWindow], check_ins: List[datetime], check_outs: List[datetime]) -> DelayResult:
    windows = sorted(shifts, key=lambda w: w.start_minutes)
    ranges = attribution_ranges(windows)
    late = overtime = 0

    for i, (window, (low, high)) in enumerate(zip(windows, ranges)):
        first, last = i == 0, i == len(windows) - 1
        ins = [t for t in check_ins if _in_range(minutes_since(day, t), low, high, first, last)]
        outs = [t for t in check_outs if _in_range(minutes_since(day, t), low, high, first, last)]
        if ins:
            late += late_against(window, min(ins), day)
        if outs:
            overtime += overtime_against(window, max(outs), day)

    return DelayResult(late_minutes=late, overtime_minutes=overtime)
