import logging
from contextlib import asynccontextmanager
from datetime import date
from enum import Enum
from typing import List, Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from shift_attendance.main import aggregate, summarize_period
from shift_attendance.models.schema import DailyResult, Employee, PeriodSummary, PunchEvent
from shift_attendance.rules import get_default_registry
from shift_attendance.settings import get_settings
from shift_attendance.utils.export import daily_rows_to_csv, summaries_to_csv


@asynccontextmanager
async def lifespan(app: FastAPI):
    # A bad rules file aborts startup instead of failing every request.
    registry = get_default_registry()
    logging.info(f"Shift registry ready with {len(registry.rules)} rules")
    yield


app = FastAPI(lifespan=lifespan)


class ExportKind(str, Enum):
    DAILY = "daily"
    SUMMARY = "summary"


class ReportRequest(BaseModel):
    punches: List[PunchEvent]
    start: date
    end: date
    roster: List[Employee] = []
    device_serial: Optional[str] = None


def _daily_rows(request: ReportRequest) -> List[DailyResult]:
    if request.start > request.end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start must not be after end",
        )
    logging.info(f"Report requested for {request.start}..{request.end} with {len(request.punches)} punch(es)")
    return aggregate(
        request.punches,
        (request.start, request.end),
        roster=request.roster,
        settings=get_settings(),
        device_serial=request.device_serial,
    )


def log_late_digest(summaries: List[PeriodSummary]) -> None:
    late = [s for s in summaries if s.late_day_count > 0]
    logging.info(f"Late digest: {len(late)} of {len(summaries)} employee(s) were late in the period")
    for s in late:
        logging.info(f"  {s.employee_id} {s.employee_name}: {s.total_late_minutes} min over {s.late_day_count} day(s)")


@app.post("/reports/daily", response_model=List[DailyResult])
def daily_report(request: ReportRequest):
    return _daily_rows(request)


@app.post("/reports/summary", response_model=List[PeriodSummary])
def summary_report(request: ReportRequest, background_tasks: BackgroundTasks):
    summaries = summarize_period(_daily_rows(request))
    background_tasks.add_task(log_late_digest, summaries)
    return summaries


@app.post("/reports/export/{kind}", response_class=PlainTextResponse)
def export_report(kind: ExportKind, request: ReportRequest):
    rows = _daily_rows(request)
    if kind == ExportKind.DAILY:
        return PlainTextResponse(daily_rows_to_csv(rows), media_type="text/csv")
    return PlainTextResponse(summaries_to_csv(summarize_period(rows)), media_type="text/csv")
