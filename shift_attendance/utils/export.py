"""CSV renderings of attendance reports."""

import csv
import io
from typing import Iterable

from shift_attendance.models.schema import DailyResult, PeriodSummary
from shift_attendance.utils.helper import format_minutes

# Lets spreadsheet apps detect UTF-8 so Arabic names and aliases render.
UTF8_BOM = "\ufeff"

DAILY_HEADER = [
    "employee_id", "employee_name", "date", "first_in", "last_out",
    "late", "overtime", "break", "status", "shift",
]
SUMMARY_HEADER = [
    "employee_id", "employee_name", "total_late", "late_days",
    "total_overtime", "absent_days", "missing_out_days",
]


def _clock(event) -> str:
    return event.timestamp.strftime("%H:%M:%S") if event else ""


def _daily_status(row: DailyResult) -> str:
    if row.is_absent:
        return "ABSENT"
    if row.missing_out:
        return "MISSING_OUT"
    return row.status.value


def daily_rows_to_csv(rows: Iterable[DailyResult]) -> str:
    buffer = io.StringIO()
    buffer.write(UTF8_BOM)
    writer = csv.writer(buffer)
    writer.writerow(DAILY_HEADER)
    for row in rows:
        writer.writerow([
            row.employee_id,
            row.employee_name,
            row.date.isoformat(),
            _clock(row.first_in),
            _clock(row.last_out),
            format_minutes(row.late_minutes),
            format_minutes(row.overtime_minutes),
            format_minutes(row.break_minutes),
            _daily_status(row),
            row.shift_name or "",
        ])
    return buffer.getvalue()


def summaries_to_csv(summaries: Iterable[PeriodSummary]) -> str:
    buffer = io.StringIO()
    buffer.write(UTF8_BOM)
    writer = csv.writer(buffer)
    writer.writerow(SUMMARY_HEADER)
    for s in summaries:
        writer.writerow([
            s.employee_id,
            s.employee_name,
            format_minutes(s.total_late_minutes),
            s.late_day_count,
            format_minutes(s.total_overtime_minutes),
            s.absent_day_count,
            s.missing_out_count,
        ])
    return buffer.getvalue()
