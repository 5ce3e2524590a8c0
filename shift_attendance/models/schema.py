from datetime import datetime, date
from enum import Enum
from typing import Callable, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from shift_attendance.utils.helper import parse_hhmm, parse_punch_state, is_absence_purpose


class ShiftTopology(str, Enum):
    SPLIT = "SPLIT"
    ALTERNATING = "ALTERNATING"


class PunchType(str, Enum):
    CHECK_IN = "CHECK_IN"
    CHECK_OUT = "CHECK_OUT"
    BREAK_IN = "BREAK_IN"
    BREAK_OUT = "BREAK_OUT"


class DayStatus(str, Enum):
    ON_TIME = "ON_TIME"
    LATE = "LATE"
    ABSENT = "ABSENT"


class ShiftWindow(BaseModel):
    """A work period within a day. ``end`` before ``start`` crosses midnight."""
    model_config = ConfigDict(frozen=True)

    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def _check_hhmm(cls, value: str) -> str:
        parse_hhmm(value)
        return value

    @property
    def start_minutes(self) -> int:
        return parse_hhmm(self.start)

    @property
    def end_minutes(self) -> int:
        return parse_hhmm(self.end)

    @property
    def crosses_midnight(self) -> bool:
        return self.end_minutes < self.start_minutes


class HistoryEntry(BaseModel):
    """Shifts that applied to punches dated before ``effective_date``."""
    model_config = ConfigDict(frozen=True)

    effective_date: date
    shifts: List[ShiftWindow]


class DeviceRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    serial: str = ""
    alias: Optional[str] = None


class DeviceShiftRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    matcher: Callable[[DeviceRef], bool]
    shifts: List[ShiftWindow]
    topology: ShiftTopology = ShiftTopology.SPLIT
    alias_override: Optional[str] = None
    history: List[HistoryEntry] = []

    @field_validator("history")
    @classmethod
    def _order_history(cls, value: List[HistoryEntry]) -> List[HistoryEntry]:
        return sorted(value, key=lambda entry: entry.effective_date)


class ResolvedShiftConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    shifts: List[ShiftWindow]
    topology: ShiftTopology = ShiftTopology.SPLIT
    display_name: str = ""


class PunchEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    employee_id: str
    employee_name: str
    timestamp: datetime
    type: PunchType
    device_serial: str = ""
    device_alias: Optional[str] = None
    purpose: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value):
        if isinstance(value, PunchType):
            return value
        return parse_punch_state(value)

    @property
    def is_absence(self) -> bool:
        return is_absence_purpose(self.purpose)

    @property
    def device(self) -> DeviceRef:
        return DeviceRef(serial=self.device_serial, alias=self.device_alias)


class DayGroup(BaseModel):
    """All punches of one employee on one local calendar date, oldest first."""
    model_config = ConfigDict(frozen=True)

    employee_id: str
    employee_name: str
    date: date
    events: List[PunchEvent]


class DelayResult(BaseModel):
    late_minutes: int = 0
    overtime_minutes: int = 0


class Employee(BaseModel):
    id: str
    name: str


class DailyResult(BaseModel):
    employee_id: str
    employee_name: str
    date: date
    first_in: Optional[PunchEvent] = None
    last_out: Optional[PunchEvent] = None
    late_minutes: int = 0
    overtime_minutes: int = 0
    break_minutes: int = 0
    is_absent: bool = False
    missing_out: bool = False
    punch_count: int = 0
    shift_name: Optional[str] = None
    status: DayStatus = DayStatus.ON_TIME

    @model_validator(mode="after")
    def _check_absence(self):
        if self.is_absent:
            if self.late_minutes or self.overtime_minutes:
                raise ValueError("absent days cannot carry late or overtime minutes")
            if self.first_in is not None or self.last_out is not None:
                raise ValueError("absent days cannot carry punches")
        if self.late_minutes < 0 or self.overtime_minutes < 0:
            raise ValueError("late and overtime minutes must be non-negative")
        return self


class PeriodSummary(BaseModel):
    employee_id: str
    employee_name: str
    total_late_minutes: int = 0
    late_day_count: int = 0
    total_overtime_minutes: int = 0
    absent_day_count: int = 0
    missing_out_count: int = 0
    total_break_minutes: int = 0
