import logging
import os
from pathlib import Path
from typing import FrozenSet, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

_ENV_PATH = Path.cwd() / ".env"
_DOTENV_LOADED = False

WEEKDAY_NAMES = {
    "mon": 0,
    "tue": 1,
    "wed": 2,
    "thu": 3,
    "fri": 4,
    "sat": 5,
    "sun": 6,
}


class ReportSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Weekdays (Monday=0) that never produce absence rows.
    non_working_weekdays: FrozenSet[int] = frozenset({4})
    timezone: Optional[str] = None
    rules_file: Optional[str] = None
    break_cap_minutes: int = 8 * 60
    alternating_cutover_hour: int = 13

    @field_validator("non_working_weekdays")
    @classmethod
    def _check_weekdays(cls, value: FrozenSet[int]) -> FrozenSet[int]:
        for day in value:
            if day < 0 or day > 6:
                raise ValueError(f"Weekday must be between 0 and 6, got {day}")
        return value

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: Optional[str]) -> Optional[str]:
        if value:
            try:
                ZoneInfo(value)
            except ZoneInfoNotFoundError:
                raise ValueError(f"Invalid timezone '{value}'. Use IANA timezone identifiers.")
        return value or None

    @field_validator("alternating_cutover_hour")
    @classmethod
    def _check_cutover(cls, value: int) -> int:
        if value < 0 or value > 23:
            raise ValueError(f"Cutover hour must be between 0 and 23, got {value}")
        return value

    @property
    def tzinfo(self) -> Optional[ZoneInfo]:
        return ZoneInfo(self.timezone) if self.timezone else None


def ensure_env_loaded() -> None:
    global _DOTENV_LOADED
    if _DOTENV_LOADED:
        return
    load_dotenv(dotenv_path=_ENV_PATH, override=False)
    _DOTENV_LOADED = True


def parse_weekdays(text: str) -> FrozenSet[int]:
    days = set()
    for token in text.split(","):
        token = token.strip().lower()
        if not token:
            continue
        if token.isdigit():
            days.add(int(token))
        elif token[:3] in WEEKDAY_NAMES:
            days.add(WEEKDAY_NAMES[token[:3]])
        else:
            raise ValueError(f"Unknown weekday '{token}' in ATTENDANCE_NON_WORKING_DAYS")
    return frozenset(days)


def _to_int(name: str, default: int) -> int:
    text = (os.getenv(name) or "").strip()
    if not text:
        return default
    try:
        return int(text)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{text}'")


def get_settings() -> ReportSettings:
    ensure_env_loaded()
    weekdays = os.getenv("ATTENDANCE_NON_WORKING_DAYS")
    settings = ReportSettings(
        non_working_weekdays=parse_weekdays(weekdays) if weekdays is not None else frozenset({4}),
        timezone=(os.getenv("ATTENDANCE_TIMEZONE") or "").strip() or None,
        rules_file=(os.getenv("ATTENDANCE_RULES_FILE") or "").strip() or None,
        break_cap_minutes=_to_int("ATTENDANCE_BREAK_CAP_MINUTES", 8 * 60),
        alternating_cutover_hour=_to_int("ATTENDANCE_CUTOVER_HOUR", 13),
    )
    logging.debug(f"Report settings loaded: {settings}")
    return settings
