"""
Queue service: the live view of a tenant's PENDING tickets.

A snapshot is always a full reload. Change notices from the hub carry no
row data; subscribers react by loading a fresh snapshot. A burst of notices
costs a few redundant reloads but never a missed update.
"""

import logging
from datetime import datetime
from uuid import UUID

from clients.postgres_client import PostgresClient
from core.models import Priority, QueueItem, QueueSnapshot, StaffIdentity, Ticket, TicketStatus
from core.services.catalog_service import CatalogService
from core.ticket_changes import ChangeCallback, TicketChangeHub
from utils.staff_context import staff_scope
from utils.timezone import minutes_between, now_utc

logger = logging.getLogger(__name__)


def format_wait(minutes: int) -> str:
    """'Just now', '12m', '1h 5m'."""
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m"
    return f"{minutes // 60}h {minutes % 60}m"


def is_due(scheduled_time: datetime | None, now: datetime) -> bool:
    """Unscheduled tickets are always due; appointments once their time arrives."""
    return scheduled_time is None or scheduled_time <= now


class QueueService:
    """Service for the live work queue."""

    def __init__(self, postgres: PostgresClient, catalog: CatalogService, hub: TicketChangeHub):
        self.postgres = postgres
        self.catalog = catalog
        self.hub = hub

    def load(self, caller: StaffIdentity, now: datetime | None = None) -> QueueSnapshot:
        """
        Load every PENDING ticket of the caller's tenant, grouped by priority.

        Runs under the caller's RLS scope explicitly, since reloads are
        triggered from the change listener thread as well as from requests.
        """
        now = now or now_utc()

        with staff_scope(caller.staff_id, caller.tenant_id):
            rows = self.postgres.execute(
                """
                SELECT * FROM tickets
                WHERE tenant_id = %s AND status = %s AND deleted_at IS NULL
                ORDER BY created_at ASC, ticket_number ASC
                """,
                (caller.tenant_id, TicketStatus.PENDING.value)
            )
            definitions = self.catalog.definitions(caller)

        snapshot = QueueSnapshot(tenant_id=caller.tenant_id, loaded_at=now)

        for row in rows:
            ticket = Ticket.model_validate(row)
            if ticket.tenant_id != caller.tenant_id:
                logger.warning(f"Dropping ticket {ticket.id} from another tenant out of queue")
                continue

            definition = definitions.get(ticket.service_type)
            if definition is None:
                definition = self.catalog.registry.resolve(ticket.service_type)

            waited = max(int(minutes_between(ticket.created_at, now)), 0)
            snapshot.group(ticket.priority).append(
                QueueItem(
                    id=ticket.id,
                    ticket_number=ticket.ticket_number,
                    service_type=ticket.service_type,
                    service_label=definition.label,
                    priority=ticket.priority,
                    vehicle=ticket.vehicle,
                    summary=definition.summarize(ticket.service_data),
                    notes=ticket.notes,
                    customer_name=ticket.customer_name,
                    customer_phone=ticket.customer_phone,
                    scheduled_time=ticket.scheduled_time,
                    created_at=ticket.created_at,
                    minutes_waiting=waited,
                    wait_display=format_wait(waited),
                    is_due=is_due(ticket.scheduled_time, now),
                )
            )

        for priority in Priority:
            snapshot.group(priority).sort(key=lambda item: (item.created_at, item.ticket_number))

        return snapshot

    def subscribe(self, caller: StaffIdentity, callback: ChangeCallback) -> UUID:
        """Be told whenever the caller's tenant's tickets change."""
        return self.hub.subscribe(caller.tenant_id, callback)

    def unsubscribe(self, handle: UUID) -> bool:
        """Stop notifications. Safe to call twice."""
        return self.hub.unsubscribe(handle)
