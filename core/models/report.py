"""Reporting window and KPI models."""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, model_validator


class WindowKind(str, Enum):
    TODAY = "today"
    WEEK = "week"
    RANGE = "range"


class ReportWindow(BaseModel):
    """Which tickets to report on, by creation time in the tenant's timezone."""

    kind: WindowKind = WindowKind.TODAY
    start_date: date | None = None
    end_date: date | None = None

    @model_validator(mode="after")
    def range_needs_dates(self) -> "ReportWindow":
        if self.kind == WindowKind.RANGE:
            if self.start_date is None or self.end_date is None:
                raise ValueError("A date range needs start_date and end_date")
            if self.end_date < self.start_date:
                raise ValueError("end_date must not precede start_date")
        return self


class BreakdownRow(BaseModel):
    """Count and completed hours for one service type or technician."""

    key: str
    label: str
    count: int
    hours: float


class KPISummary(BaseModel):
    """Aggregates over the non-excluded tickets of a window."""

    window_start: datetime
    window_end: datetime
    total: int
    completed: int
    pending: int
    excluded: int
    average_completion_minutes: int | None
    total_hours: float
    by_service: list[BreakdownRow]
    by_technician: list[BreakdownRow]
