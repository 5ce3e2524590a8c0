from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterator, Optional, Union

ABSENCE_MARKER = "غياب"
MINUTES_PER_DAY = 24 * 60

# Vendor punch_state codes as reported by the biometric terminals.
PUNCH_STATE_CODES = {
    "0": "CHECK_IN",
    "1": "CHECK_OUT",
    "2": "BREAK_OUT",
    "3": "BREAK_IN",
    "4": "CHECK_IN",
    "5": "CHECK_OUT",
}
PUNCH_STATE_NAMES = ("CHECK_IN", "CHECK_OUT", "BREAK_IN", "BREAK_OUT")


def parse_hhmm(value: str) -> int:
    """Return minutes since midnight for an ``HH:MM`` string."""
    if not isinstance(value, str):
        raise ValueError(f"Shift time must be a string, got {type(value).__name__}")
    parts = value.strip().split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid shift time '{value}', expected HH:MM")
    hours, minutes = int(parts[0]), int(parts[1])
    if hours > 23 or minutes > 59:
        raise ValueError(f"Invalid shift time '{value}', out of range")
    return hours * 60 + minutes


def parse_punch_state(state: Union[str, int]) -> str:
    s = str(state).strip()
    if s in PUNCH_STATE_NAMES:
        return s
    return PUNCH_STATE_CODES.get(s, "CHECK_OUT")


def is_absence_purpose(purpose: Optional[str], marker: str = ABSENCE_MARKER) -> bool:
    return bool(purpose) and marker in purpose


def local_datetime(timestamp: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Wall-clock view of ``timestamp``; naive values are taken as already local."""
    if tz is not None and timestamp.tzinfo is not None:
        return timestamp.astimezone(tz)
    return timestamp


def minutes_since(day: date, timestamp: datetime) -> int:
    """Whole minutes from midnight of ``day`` to ``timestamp``; next-day values run past 1440."""
    return int((timestamp - at_minutes(day, 0, timestamp.tzinfo)).total_seconds() // 60)


def at_minutes(day: date, minutes: int, tz: Optional[tzinfo] = None) -> datetime:
    """Anchor a minute-of-day offset on ``day``. Offsets past 24:00 roll into the next day."""
    return datetime.combine(day, time(0, 0), tzinfo=tz) + timedelta(minutes=minutes)


def floor_minutes_after(later: datetime, earlier: datetime) -> int:
    """Whole minutes by which ``later`` follows ``earlier``; zero when it does not."""
    if later <= earlier:
        return 0
    return int((later - earlier).total_seconds() // 60)


def daterange(start_date: date, end_date: date) -> Iterator[date]:
    for n in range(int((end_date - start_date).days) + 1):
        yield start_date + timedelta(n)


def format_minutes(minutes: Optional[int]) -> str:
    if minutes is None or minutes < 0:
        return ""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"
