"""
Intake service: validate a submission and create one PENDING ticket.

Every field error is collected before anything is written. The ticket itself
is a single INSERT, so a datastore failure never leaves a partial ticket.
"""

import logging
from uuid import uuid4

import psycopg2
from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction
from core.errors import DatastoreUnavailable, ValidationFailed
from core.event_bus import EventBus
from core.events import TicketCreated
from core.models import (
    Priority,
    StaffIdentity,
    Ticket,
    TicketStatus,
    TicketSubmission,
    format_phone,
    is_valid_phone,
)
from core.permissions import INTAKE_ROLES, require_role
from core.services.catalog_service import CatalogService
from core.services.customer_service import CustomerService
from utils.timezone import combine_local, now_utc

logger = logging.getLogger(__name__)

CREATE_FAILED_MESSAGE = "Failed to create ticket. Please try again."


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class IntakeService:
    """Service for ticket intake."""

    def __init__(
        self,
        postgres: PostgresClient,
        audit: AuditLogger,
        event_bus: EventBus,
        catalog: CatalogService,
        customers: CustomerService,
        timezone: str,
    ):
        self.postgres = postgres
        self.audit = audit
        self.event_bus = event_bus
        self.catalog = catalog
        self.customers = customers
        self.timezone = timezone

    def submit(self, caller: StaffIdentity, submission: TicketSubmission) -> Ticket:
        """
        Create a ticket from an intake submission.

        Appointments are always NORMAL priority and their date and time are
        combined into scheduled_time (tenant timezone, stored UTC).

        Raises:
            AccessDenied: Caller is not a service writer or manager
            ValidationFailed: One or more fields invalid, nothing written
            DatastoreUnavailable: Insert failed, nothing written
        """
        require_role(caller, INTAKE_ROLES, "intake")

        errors: dict[str, str] = {}

        definition = self.catalog.definition_for_intake(caller, submission.service_type)
        if definition is None:
            errors["service_type"] = "Choose a valid service type"

        vehicle = submission.vehicle.strip()
        if not vehicle:
            errors["vehicle"] = "Vehicle is required"

        customer_name = submission.customer_name.strip()
        if not customer_name:
            errors["customer_name"] = "Customer name is required"

        if _blank(submission.customer_phone):
            errors["customer_phone"] = "Phone number is required"
        elif not is_valid_phone(submission.customer_phone):
            errors["customer_phone"] = "Enter 10-digit phone number"

        service_data = {k: v for k, v in submission.service_data.items() if not _blank(v)}
        scheduled_time = None
        priority = submission.priority

        if definition is not None:
            if definition.schedulable:
                if submission.scheduled_date:
                    service_data.setdefault("scheduled_date", submission.scheduled_date)
                if submission.scheduled_time:
                    service_data.setdefault("scheduled_time", submission.scheduled_time)
                priority = Priority.NORMAL

            errors.update(definition.validate(service_data))

            if definition.schedulable and "scheduled_date" not in errors and "scheduled_time" not in errors:
                try:
                    scheduled_time = combine_local(
                        str(service_data["scheduled_date"]),
                        str(service_data["scheduled_time"]),
                        self.timezone,
                    )
                except ValueError:
                    errors["scheduled_time"] = "Enter a valid date and time"

        if errors:
            logger.info(f"Intake rejected for staff {caller.staff_id}: {sorted(errors)}")
            raise ValidationFailed(errors)

        customer_phone = format_phone(submission.customer_phone)
        if definition.schedulable:
            service_data["customer_name"] = customer_name
            service_data["phone"] = customer_phone

        try:
            customer = self.customers.resolve_for_intake(
                caller,
                name=customer_name,
                phone=customer_phone,
                vehicle=vehicle,
                customer_id=submission.customer_id,
            )
            ticket = self._insert(
                caller,
                service_type=definition.slug,
                priority=priority,
                vehicle=vehicle,
                service_data=service_data,
                notes=(submission.notes or "").strip() or None,
                scheduled_time=scheduled_time,
                customer_id=customer.id,
                customer_name=customer_name,
                customer_phone=customer_phone,
            )
        except psycopg2.Error as e:
            logger.error(f"Ticket insert failed for staff {caller.staff_id}: {e}")
            raise DatastoreUnavailable(CREATE_FAILED_MESSAGE) from e

        self.audit.log_change(
            caller,
            entity_type="ticket",
            entity_id=ticket.id,
            action=AuditAction.CREATE,
            changes={"created": ticket.model_dump(mode="json")}
        )

        self.event_bus.publish(TicketCreated.create(ticket))

        logger.info(f"Ticket #{ticket.ticket_number} ({ticket.service_type}) created by staff {caller.staff_id}")
        return ticket

    def _insert(self, caller: StaffIdentity, **fields) -> Ticket:
        now = now_utc()
        rows = self.postgres.execute_returning(
            """
            INSERT INTO tickets (
                id, tenant_id, service_type, priority, status,
                vehicle, service_data, notes, scheduled_time,
                customer_id, customer_name, customer_phone,
                created_by, excluded_from_metrics, created_at, updated_at
            ) VALUES (
                %s, %s, %s, %s, %s,
                %s, %s, %s, %s,
                %s, %s, %s,
                %s, %s, %s, %s
            )
            RETURNING *
            """,
            (
                uuid4(), caller.tenant_id, fields["service_type"], fields["priority"].value,
                TicketStatus.PENDING.value,
                fields["vehicle"], Json(fields["service_data"]), fields["notes"], fields["scheduled_time"],
                fields["customer_id"], fields["customer_name"], fields["customer_phone"],
                caller.staff_id, False, now, now
            )
        )
        return Ticket.model_validate(rows[0])
