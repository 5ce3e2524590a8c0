"""
Device shift rules.

Rules are evaluated in declaration order, so more specific matchers must
come before broader ones (the Qassim iron warehouse before the general
Qassim warehouse). Rulesets can also be declared in a JSON file:

    [
        {
            "name": "qassim-shops",
            "alias_contains": ["المحلات"],
            "shifts": [{"start": "08:00", "end": "12:00"}, {"start": "15:30", "end": "20:30"}],
            "topology": "SPLIT",
            "alias_override": "محلات القصيم",
            "history": [{"effective_date": "2026-01-14", "shifts": [...]}]
        }
    ]
"""

import json
import logging
from functools import lru_cache
from typing import List, Optional

from pydantic import ValidationError

from shift_attendance.models.schema import DeviceShiftRule, HistoryEntry, ShiftTopology, ShiftWindow
from shift_attendance.registry import (
    ShiftConfigurationError,
    ShiftRegistry,
    alias_contains,
    alias_contains_all,
    any_of,
    serial_is,
)
from shift_attendance.settings import ReportSettings, get_settings


def _windows(*pairs) -> List[ShiftWindow]:
    return [ShiftWindow(start=start, end=end) for start, end in pairs]


DEFAULT_RULES = [
    DeviceShiftRule(
        name="al-sarrar",
        matcher=alias_contains("الصرار"),
        shifts=_windows(("08:00", "11:30"), ("15:30", "20:30")),
        alias_override="فرع الصرار",
    ),
    DeviceShiftRule(
        name="ladies-section",
        matcher=alias_contains("نسائي", "ladies", ignore_case=True),
        shifts=_windows(("08:00", "15:10"), ("14:50", "22:00")),
        topology=ShiftTopology.ALTERNATING,
        alias_override="القسم النسائي",
    ),
    DeviceShiftRule(
        name="qassim-iron-warehouse",
        matcher=alias_contains_all("حديد", "القصيم"),
        shifts=_windows(("08:00", "17:30")),
        alias_override="مستودع الحديد القصيم",
    ),
    DeviceShiftRule(
        name="qassim-warehouse",
        matcher=alias_contains_all("المستودع", "القصيم", excluding=("حديد",)),
        shifts=_windows(("08:00", "17:30")),
        alias_override="مستودع القصيم",
    ),
    DeviceShiftRule(
        name="qassim-shops",
        matcher=any_of(alias_contains("المحلات"), alias_contains_all("محلات", "القصيم")),
        shifts=_windows(("08:00", "12:00"), ("15:30", "20:30")),
        alias_override="محلات القصيم",
        history=[
            HistoryEntry(effective_date="2026-01-14", shifts=_windows(("08:00", "12:00"), ("15:15", "20:15"))),
        ],
    ),
    DeviceShiftRule(
        name="dammam",
        matcher=alias_contains("الدمام"),
        shifts=_windows(("08:00", "11:30"), ("15:30", "20:30")),
        alias_override="فرع الدمام",
    ),
    DeviceShiftRule(
        name="riyadh-showroom",
        matcher=alias_contains("الرياض", "المعرض"),
        shifts=_windows(("08:00", "12:00"), ("15:30", "20:30")),
        alias_override="معرض الرياض",
    ),
    DeviceShiftRule(
        name="wadi-ad-dawasir",
        matcher=alias_contains("الدواسر"),
        shifts=_windows(("08:00", "12:00"), ("15:30", "20:30")),
        alias_override="فرع وادي الدواسر",
    ),
    DeviceShiftRule(
        name="administration",
        matcher=alias_contains("الإدارة", "الادارة", "Admin"),
        shifts=_windows(("08:00", "17:30")),
        alias_override="الإدارة",
    ),
    DeviceShiftRule(
        name="tabarjal",
        matcher=alias_contains("طبرجل"),
        shifts=_windows(("08:00", "13:00"), ("16:30", "20:30")),
        alias_override="فرع طبرجل",
    ),
    DeviceShiftRule(
        name="test-device",
        matcher=any_of(serial_is("AF4C232560143"), alias_contains("Test")),
        shifts=_windows(("09:00", "17:00")),
        alias_override="جهاز تجريبي",
    ),
]


def _word_list(entry: dict, key: str) -> list:
    words = entry.get(key, [])
    if not isinstance(words, list) or not all(isinstance(w, str) and w for w in words):
        raise ShiftConfigurationError(
            f"Shift rule '{entry.get('name')}': '{key}' must be a list of non-empty strings"
        )
    return words


def _matcher_from_entry(entry: dict):
    for key in ("alias_contains", "alias_contains_all", "alias_excludes"):
        _word_list(entry, key)
    matchers = []
    if entry.get("alias_contains"):
        matchers.append(alias_contains(*entry["alias_contains"], ignore_case=bool(entry.get("ignore_case"))))
    if entry.get("alias_contains_all"):
        matchers.append(alias_contains_all(*entry["alias_contains_all"], excluding=entry.get("alias_excludes", ())))
    if entry.get("serial"):
        matchers.append(serial_is(str(entry["serial"])))
    if not matchers:
        raise ShiftConfigurationError(
            f"Shift rule '{entry.get('name')}' needs one of alias_contains, alias_contains_all or serial"
        )
    return matchers[0] if len(matchers) == 1 else any_of(*matchers)


def rules_from_config(entries: list) -> List[DeviceShiftRule]:
    rules = []
    for idx, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ShiftConfigurationError(f"Shift rule {idx}: expected an object, got {type(entry).__name__}")
        if "name" not in entry:
            raise ShiftConfigurationError(f"Shift rule {idx}: missing 'name'")
        topology = str(entry.get("topology", "SPLIT")).upper()
        if topology not in ShiftTopology.__members__:
            raise ShiftConfigurationError(f"Shift rule '{entry['name']}': unknown topology '{topology}'")
        try:
            rules.append(DeviceShiftRule(
                name=entry["name"],
                matcher=_matcher_from_entry(entry),
                shifts=entry.get("shifts", []),
                topology=ShiftTopology[topology],
                alias_override=entry.get("alias_override"),
                history=entry.get("history", []),
            ))
        except ValidationError as e:
            raise ShiftConfigurationError(f"Shift rule '{entry['name']}': {e}") from e
    return rules


def load_rules_file(filepath: str) -> List[DeviceShiftRule]:
    try:
        with open(filepath, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ShiftConfigurationError(f"Shift rules file not found: {filepath}")
    except json.JSONDecodeError as e:
        raise ShiftConfigurationError(f"Invalid JSON in shift rules file: {e}")

    if not isinstance(data, list):
        raise ShiftConfigurationError(f"Shift rules file must hold a list, got {type(data).__name__}")
    return rules_from_config(data)


def build_registry(settings: Optional[ReportSettings] = None) -> ShiftRegistry:
    settings = settings or get_settings()
    if settings.rules_file:
        logging.info(f"Loading shift rules from {settings.rules_file}")
        return ShiftRegistry(load_rules_file(settings.rules_file))
    return ShiftRegistry(DEFAULT_RULES)


@lru_cache(maxsize=1)
def get_default_registry() -> ShiftRegistry:
    return build_registry()
