"""
Ticket service: completion, metrics exclusion and completed-job management.

Completion is the only status transition (PENDING -> COMPLETED) and happens
in one conditional UPDATE, so a double tap can never stamp a ticket twice.
The technician is always derived from the caller, never chosen.
"""

import logging
from uuid import UUID

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction, compute_changes
from core.errors import NotFound, TechnicianNotResolved, TicketAlreadyCompleted, ValidationFailed
from core.event_bus import EventBus
from core.events import TicketCompleted, TicketDeleted, TicketExclusionChanged, TicketUpdated
from core.models import (
    CompletedTicket,
    StaffIdentity,
    Technician,
    Ticket,
    TicketEdit,
    TicketStatus,
)
from core.permissions import COMPLETION_ROLES, MANAGER_ONLY, require_role
from core.services.catalog_service import CatalogService
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_UPDATABLE_COLUMNS = {"vehicle", "notes", "customer_name", "completed_at"}

ACCOUNT_INACTIVE_MESSAGE = "Your account was not found or is inactive."
NO_TECHNICIAN_MESSAGE = "No active technician profile found for your account."


class TicketService:
    """Service for ticket operations after intake."""

    def __init__(
        self,
        postgres: PostgresClient,
        audit: AuditLogger,
        event_bus: EventBus,
        catalog: CatalogService,
        completed_list_limit: int = 50,
    ):
        self.postgres = postgres
        self.audit = audit
        self.event_bus = event_bus
        self.catalog = catalog
        self.completed_list_limit = completed_list_limit

    def get_by_id(self, caller: StaffIdentity, ticket_id: UUID) -> Ticket | None:
        """Non-deleted ticket in the caller's tenant, or None."""
        row = self.postgres.execute_single(
            "SELECT * FROM tickets WHERE id = %s AND tenant_id = %s AND deleted_at IS NULL",
            (ticket_id, caller.tenant_id)
        )
        if row is None:
            return None
        return Ticket.model_validate(row)

    def resolve_technician(self, caller: StaffIdentity) -> Technician:
        """
        The active technician profile belonging to the caller.

        Raises:
            TechnicianNotResolved: Staff inactive/missing, or no active technician row
        """
        staff = self.postgres.execute_single(
            "SELECT id FROM staff WHERE id = %s AND tenant_id = %s AND active = true",
            (caller.staff_id, caller.tenant_id)
        )
        if staff is None:
            raise TechnicianNotResolved(ACCOUNT_INACTIVE_MESSAGE)

        row = self.postgres.execute_single(
            """
            SELECT * FROM technicians
            WHERE staff_id = %s AND tenant_id = %s AND active = true
            ORDER BY created_at ASC
            LIMIT 1
            """,
            (caller.staff_id, caller.tenant_id)
        )
        if row is None:
            raise TechnicianNotResolved(NO_TECHNICIAN_MESSAGE)

        return Technician.model_validate(row)

    def complete(self, caller: StaffIdentity, ticket_id: UUID, confirm: bool = False) -> Ticket:
        """
        Mark a PENDING ticket COMPLETED, attributed to the caller's technician profile.

        Raises:
            AccessDenied: Caller is a service writer (checked before any read)
            ValidationFailed: confirm not given
            TechnicianNotResolved: Caller has no active technician profile
            NotFound: Ticket not in the caller's tenant
            TicketAlreadyCompleted: Ticket was no longer PENDING
        """
        require_role(caller, COMPLETION_ROLES, "complete")

        if not confirm:
            raise ValidationFailed(
                {"confirm": "Confirm to complete this job. Completion cannot be undone."}
            )

        technician = self.resolve_technician(caller)

        now = now_utc()
        rows = self.postgres.execute_returning(
            """
            UPDATE tickets
            SET status = %s, completed_by = %s, completed_at = %s, updated_at = %s
            WHERE id = %s AND tenant_id = %s AND status = %s AND deleted_at IS NULL
            RETURNING *
            """,
            (
                TicketStatus.COMPLETED.value, technician.id, now, now,
                ticket_id, caller.tenant_id, TicketStatus.PENDING.value
            )
        )

        if not rows:
            current = self.get_by_id(caller, ticket_id)
            if current is None:
                raise NotFound("ticket", ticket_id)
            logger.info(f"Ticket #{current.ticket_number} already completed, ignoring repeat")
            raise TicketAlreadyCompleted(current.ticket_number)

        ticket = Ticket.model_validate(rows[0])

        self.audit.log_change(
            caller,
            entity_type="ticket",
            entity_id=ticket.id,
            action=AuditAction.UPDATE,
            changes={
                "status": {"old": TicketStatus.PENDING.value, "new": TicketStatus.COMPLETED.value},
                "completed_by": {"old": None, "new": str(technician.id)},
                "completed_at": {"old": None, "new": now.isoformat()},
            }
        )

        self.event_bus.publish(TicketCompleted.create(ticket))

        logger.info(f"Ticket #{ticket.ticket_number} completed by technician {technician.id}")
        return ticket

    def toggle_exclusion(self, caller: StaffIdentity, ticket_id: UUID) -> Ticket:
        """
        Flip the metrics-exclusion flag. Status and completion facts are untouched.

        Raises:
            AccessDenied: Caller is not a manager
            NotFound: Ticket not in the caller's tenant
        """
        require_role(caller, MANAGER_ONLY, "toggle_exclusion")

        rows = self.postgres.execute_returning(
            """
            UPDATE tickets
            SET excluded_from_metrics = NOT excluded_from_metrics, updated_at = %s
            WHERE id = %s AND tenant_id = %s AND deleted_at IS NULL
            RETURNING *
            """,
            (now_utc(), ticket_id, caller.tenant_id)
        )
        if not rows:
            raise NotFound("ticket", ticket_id)

        ticket = Ticket.model_validate(rows[0])

        self.audit.log_change(
            caller,
            entity_type="ticket",
            entity_id=ticket.id,
            action=AuditAction.UPDATE,
            changes={
                "excluded_from_metrics": {
                    "old": not ticket.excluded_from_metrics,
                    "new": ticket.excluded_from_metrics,
                }
            }
        )

        self.event_bus.publish(TicketExclusionChanged.create(ticket))
        return ticket

    def exclude_all_completed(self, caller: StaffIdentity, confirm: bool = False) -> int:
        """
        Exclude every completed, not-yet-excluded ticket from metrics.

        Only ever sets the flag, so running it twice equals running it once.
        Returns the number of tickets newly excluded.

        Raises:
            AccessDenied: Caller is not a manager
            ValidationFailed: confirm not given
        """
        require_role(caller, MANAGER_ONLY, "exclude_all")

        if not confirm:
            raise ValidationFailed(
                {"confirm": "Confirm to exclude all completed jobs from reports."}
            )

        rows = self.postgres.execute_returning(
            """
            UPDATE tickets
            SET excluded_from_metrics = true, updated_at = %s
            WHERE tenant_id = %s AND status = %s
              AND excluded_from_metrics = false AND deleted_at IS NULL
            RETURNING id
            """,
            (now_utc(), caller.tenant_id, TicketStatus.COMPLETED.value)
        )

        if rows:
            self.audit.log_change(
                caller,
                entity_type="tenant",
                entity_id=caller.tenant_id,
                action=AuditAction.UPDATE,
                changes={"excluded_tickets": {"old": None, "new": [str(r["id"]) for r in rows]}}
            )

        logger.info(f"Excluded {len(rows)} completed tickets from metrics for tenant {caller.tenant_id}")
        return len(rows)

    def list_completed(self, caller: StaffIdentity, limit: int | None = None) -> list[CompletedTicket]:
        """
        Most recently completed tickets, excluded ones included (flagged).

        Raises:
            AccessDenied: Caller is not a manager
        """
        require_role(caller, MANAGER_ONLY, "list_completed")

        rows = self.postgres.execute(
            """
            SELECT t.*, tech.name AS technician_name
            FROM tickets t
            LEFT JOIN technicians tech ON tech.id = t.completed_by
            WHERE t.tenant_id = %s AND t.status = %s AND t.deleted_at IS NULL
            ORDER BY t.completed_at DESC
            LIMIT %s
            """,
            (caller.tenant_id, TicketStatus.COMPLETED.value, limit or self.completed_list_limit)
        )

        definitions = self.catalog.definitions(caller)
        result = []
        for row in rows:
            ticket = Ticket.model_validate(row)
            definition = definitions.get(ticket.service_type) or self.catalog.registry.resolve(ticket.service_type)
            result.append(
                CompletedTicket(
                    ticket=ticket,
                    technician_name=row.get("technician_name") or "Unknown",
                    service_label=definition.label,
                    summary=definition.summarize(ticket.service_data),
                )
            )
        return result

    def edit(self, caller: StaffIdentity, ticket_id: UUID, data: TicketEdit) -> Ticket:
        """
        Correct a ticket's vehicle, notes, customer name or completion time.

        Raises:
            AccessDenied: Caller is not a manager
            NotFound: Ticket not in the caller's tenant
            ValidationFailed: completion time on a pending ticket, or before creation
        """
        require_role(caller, MANAGER_ONLY, "edit_ticket")

        current = self.get_by_id(caller, ticket_id)
        if current is None:
            raise NotFound("ticket", ticket_id)

        updates = data.model_dump(exclude_none=True)
        if not updates:
            return current

        for field in updates:
            if field not in _UPDATABLE_COLUMNS:
                logger.warning(
                    f"Attempted to update unknown field '{field}' on ticket {ticket_id}"
                )

        if "completed_at" in updates:
            if current.status != TicketStatus.COMPLETED:
                raise ValidationFailed({"completed_at": "Only completed tickets have a completion time."})
            if updates["completed_at"] < current.created_at:
                raise ValidationFailed({"completed_at": "Completion time cannot be before the ticket was created."})

        valid_updates = {k: v for k, v in updates.items() if k in _UPDATABLE_COLUMNS}
        if not valid_updates:
            return current

        set_parts = []
        params = []
        for field, value in valid_updates.items():
            set_parts.append(f"{field} = %s")
            params.append(value)

        set_parts.append("updated_at = %s")
        params.append(now_utc())
        params.extend([ticket_id, caller.tenant_id])

        rows = self.postgres.execute_returning(
            f"""
            UPDATE tickets
            SET {', '.join(set_parts)}
            WHERE id = %s AND tenant_id = %s AND deleted_at IS NULL
            RETURNING *
            """,
            tuple(params)
        )
        if not rows:
            raise NotFound("ticket", ticket_id)

        updated = Ticket.model_validate(rows[0])

        changes = compute_changes(
            current.model_dump(mode="json"),
            updated.model_dump(mode="json")
        )
        if changes:
            self.audit.log_change(
                caller,
                entity_type="ticket",
                entity_id=ticket_id,
                action=AuditAction.UPDATE,
                changes=changes
            )

        self.event_bus.publish(TicketUpdated.create(updated))
        return updated

    def delete(self, caller: StaffIdentity, ticket_id: UUID) -> bool:
        """
        Soft delete a ticket. Returns False if it was not found.

        Raises:
            AccessDenied: Caller is not a manager
        """
        require_role(caller, MANAGER_ONLY, "delete_ticket")

        current = self.get_by_id(caller, ticket_id)
        if current is None:
            return False

        now = now_utc()
        self.postgres.execute_returning(
            """
            UPDATE tickets
            SET deleted_at = %s, updated_at = %s
            WHERE id = %s AND tenant_id = %s
            RETURNING id
            """,
            (now, now, ticket_id, caller.tenant_id)
        )

        self.audit.log_change(
            caller,
            entity_type="ticket",
            entity_id=ticket_id,
            action=AuditAction.DELETE,
            changes={"deleted": current.model_dump(mode="json")}
        )

        self.event_bus.publish(TicketDeleted.create(current))

        logger.info(f"Ticket #{current.ticket_number} deleted by staff {caller.staff_id}")
        return True
