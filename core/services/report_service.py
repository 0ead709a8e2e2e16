"""
Report service: read-only KPIs and CSV export over a time window.

Windows select tickets by creation time in the tenant's timezone. Tickets
excluded from metrics are skipped by every aggregate; the KPI math itself is
the pure function compute_kpis so it can be checked against hand-built
fixtures.
"""

import csv
import io
import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Any, Iterable

from clients.postgres_client import PostgresClient
from core.models import (
    BreakdownRow,
    KPISummary,
    ReportWindow,
    StaffIdentity,
    TicketStatus,
    WindowKind,
)
from core.permissions import MANAGER_ONLY, require_role
from core.service_types import ServiceDefinition, ServiceTypeRegistry
from core.services.catalog_service import CatalogService
from utils.timezone import combine_local, minutes_between, now_utc, start_of_day, start_of_week, to_local

logger = logging.getLogger(__name__)

UNKNOWN_TECHNICIAN = "Unknown"

CSV_COLUMNS = [
    "ticket_number",
    "created_at",
    "completed_at",
    "service",
    "details",
    "vehicle",
    "customer_name",
    "customer_phone",
    "technician",
    "minutes",
    "excluded",
]


def _local_midnight(day: date, tz_name: str) -> datetime:
    return combine_local(day.isoformat(), "00:00", tz_name)


def window_bounds(window: ReportWindow, tz_name: str, now: datetime) -> tuple[datetime, datetime]:
    """UTC [start, end) for a report window. Weeks start Sunday."""
    if window.kind == WindowKind.RANGE:
        return (
            _local_midnight(window.start_date, tz_name),
            _local_midnight(window.end_date + timedelta(days=1), tz_name),
        )

    today = to_local(now, tz_name).date()
    if window.kind == WindowKind.WEEK:
        start = start_of_week(now, tz_name)
        first_day = to_local(start, tz_name).date()
        return start, _local_midnight(first_day + timedelta(days=7), tz_name)

    return start_of_day(now, tz_name), _local_midnight(today + timedelta(days=1), tz_name)


def _completion_minutes(row: dict[str, Any]) -> float | None:
    if row.get("status") != TicketStatus.COMPLETED.value or row.get("completed_at") is None:
        return None
    return max(minutes_between(row["created_at"], row["completed_at"]), 0.0)


def compute_kpis(
    rows: Iterable[dict[str, Any]],
    labels: dict[str, str],
    window_start: datetime,
    window_end: datetime,
) -> KPISummary:
    """
    Aggregate ticket rows into KPIs.

    Rows need: service_type, status, created_at, completed_at, completed_by,
    excluded_from_metrics and (optionally) technician_name. Excluded rows
    are counted in `excluded` and nowhere else.
    """
    total = completed = pending = excluded = 0
    durations: list[float] = []

    service_counts: dict[str, int] = defaultdict(int)
    service_minutes: dict[str, float] = defaultdict(float)
    tech_counts: dict[str, int] = defaultdict(int)
    tech_minutes: dict[str, float] = defaultdict(float)
    tech_names: dict[str, str] = {}

    for row in rows:
        if row.get("excluded_from_metrics"):
            excluded += 1
            continue

        total += 1
        service = row["service_type"]
        service_counts[service] += 1

        minutes = _completion_minutes(row)
        if minutes is None:
            if row.get("status") == TicketStatus.PENDING.value:
                pending += 1
            continue

        completed += 1
        durations.append(minutes)
        service_minutes[service] += minutes

        tech_key = str(row["completed_by"]) if row.get("completed_by") else UNKNOWN_TECHNICIAN
        tech_counts[tech_key] += 1
        tech_minutes[tech_key] += minutes
        tech_names.setdefault(tech_key, row.get("technician_name") or UNKNOWN_TECHNICIAN)

    def breakdown(counts, minutes, label_for):
        result = [
            BreakdownRow(key=key, label=label_for(key), count=count, hours=round(minutes[key] / 60, 1))
            for key, count in counts.items()
        ]
        result.sort(key=lambda r: (-r.count, r.label))
        return result

    return KPISummary(
        window_start=window_start,
        window_end=window_end,
        total=total,
        completed=completed,
        pending=pending,
        excluded=excluded,
        average_completion_minutes=round(sum(durations) / len(durations)) if durations else None,
        total_hours=round(sum(durations) / 60, 1),
        by_service=breakdown(service_counts, service_minutes, lambda k: labels.get(k) or k),
        by_technician=breakdown(tech_counts, tech_minutes, lambda k: tech_names[k]),
    )


class ReportService:
    """Service for manager reports."""

    def __init__(self, postgres: PostgresClient, catalog: CatalogService, timezone: str):
        self.postgres = postgres
        self.catalog = catalog
        self.timezone = timezone

    def _window_rows(self, caller: StaffIdentity, start: datetime, end: datetime) -> list[dict]:
        return self.postgres.execute(
            """
            SELECT t.*, tech.name AS technician_name
            FROM tickets t
            LEFT JOIN technicians tech ON tech.id = t.completed_by
            WHERE t.tenant_id = %s AND t.deleted_at IS NULL
              AND t.created_at >= %s AND t.created_at < %s
            ORDER BY t.created_at ASC
            """,
            (caller.tenant_id, start, end)
        )

    def _definitions(self, caller: StaffIdentity) -> dict[str, ServiceDefinition]:
        return self.catalog.definitions(caller)

    def summary(self, caller: StaffIdentity, window: ReportWindow, now: datetime | None = None) -> KPISummary:
        """
        KPIs for tickets created in the window.

        Raises:
            AccessDenied: Caller is not a manager
        """
        require_role(caller, MANAGER_ONLY, "reports")

        start, end = window_bounds(window, self.timezone, now or now_utc())
        rows = self._window_rows(caller, start, end)
        labels = {slug: d.label for slug, d in self._definitions(caller).items()}

        summary = compute_kpis(rows, labels, start, end)
        logger.debug(f"Report {window.kind.value} for tenant {caller.tenant_id}: {summary.total} tickets")
        return summary

    def export_csv(self, caller: StaffIdentity, window: ReportWindow, now: datetime | None = None) -> str:
        """
        Completed tickets in the window as CSV, excluded ones flagged.

        Raises:
            AccessDenied: Caller is not a manager
        """
        require_role(caller, MANAGER_ONLY, "reports")

        start, end = window_bounds(window, self.timezone, now or now_utc())
        rows = self._window_rows(caller, start, end)
        definitions = self._definitions(caller)
        registry: ServiceTypeRegistry = self.catalog.registry

        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(CSV_COLUMNS)

        for row in rows:
            minutes = _completion_minutes(row)
            if minutes is None:
                continue
            definition = definitions.get(row["service_type"]) or registry.resolve(row["service_type"])
            writer.writerow([
                row["ticket_number"],
                to_local(row["created_at"], self.timezone).strftime("%Y-%m-%d %H:%M"),
                to_local(row["completed_at"], self.timezone).strftime("%Y-%m-%d %H:%M"),
                definition.label,
                definition.summarize(row.get("service_data") or {}),
                row.get("vehicle") or "",
                row.get("customer_name") or "",
                row.get("customer_phone") or "",
                row.get("technician_name") or UNKNOWN_TECHNICIAN,
                round(minutes),
                "yes" if row.get("excluded_from_metrics") else "no",
            ])

        return output.getvalue()
