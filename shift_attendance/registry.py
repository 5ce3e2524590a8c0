import logging
from datetime import date
from typing import Iterable, List, Optional, Sequence

from shift_attendance.models.schema import (
    DeviceRef,
    DeviceShiftRule,
    ResolvedShiftConfig,
    ShiftTopology,
    ShiftWindow,
)

DEFAULT_SHIFTS = [ShiftWindow(start="08:00", end="16:00")]


class ShiftConfigurationError(ValueError):
    pass


class ShiftRegistry:
    """Ordered device rules; the first rule whose matcher accepts a device wins."""

    def __init__(self, rules: Iterable[DeviceShiftRule], default_shifts: Optional[Sequence[ShiftWindow]] = None):
        self._rules = tuple(rules)
        self._default_shifts = list(default_shifts or DEFAULT_SHIFTS)
        seen = set()
        for rule in self._rules:
            if rule.name in seen:
                raise ShiftConfigurationError(f"Shift rule '{rule.name}' is declared more than once")
            seen.add(rule.name)
        logging.info(f"Shift registry loaded with {len(self._rules)} rule(s)")

    @property
    def rules(self) -> tuple:
        return self._rules

    def match(self, device: DeviceRef) -> Optional[DeviceShiftRule]:
        for rule in self._rules:
            if rule.matcher(device):
                return rule
        return None

    def resolve_config(self, device: DeviceRef, on_date: Optional[date] = None) -> ResolvedShiftConfig:
        rule = self.match(device)
        if rule is None:
            logging.debug(f"No shift rule for device {device.serial or device.alias}, using default window")
            return ResolvedShiftConfig(
                shifts=self._default_shifts,
                topology=ShiftTopology.SPLIT,
                display_name=device_display_name(device),
            )

        shifts = shifts_on(rule, on_date)
        return ResolvedShiftConfig(
            shifts=shifts if shifts else self._default_shifts,
            topology=rule.topology,
            display_name=rule.alias_override or device_display_name(device),
        )


def shifts_on(rule: DeviceShiftRule, on_date: Optional[date]) -> List[ShiftWindow]:
    """Shifts in force on ``on_date``: the earliest history entry still in the future wins."""
    if on_date is not None:
        for entry in rule.history:
            if on_date < entry.effective_date:
                return list(entry.shifts)
    return list(rule.shifts)


def device_display_name(device: DeviceRef) -> str:
    return device.alias or f"جهاز {device.serial}"


# Matcher builders. Matching is substring based over the device alias.

def alias_contains(*words: str, ignore_case: bool = False):
    def matcher(device: DeviceRef) -> bool:
        alias = device.alias or ""
        if ignore_case:
            alias = alias.lower()
            return any(w.lower() in alias for w in words)
        return any(w in alias for w in words)
    return matcher


def alias_contains_all(*words: str, excluding: Sequence[str] = ()):
    def matcher(device: DeviceRef) -> bool:
        alias = device.alias or ""
        return all(w in alias for w in words) and not any(w in alias for w in excluding)
    return matcher


def serial_is(serial: str):
    def matcher(device: DeviceRef) -> bool:
        return device.serial == serial
    return matcher


def any_of(*matchers):
    def matcher(device: DeviceRef) -> bool:
        return any(m(device) for m in matchers)
    return matcher
