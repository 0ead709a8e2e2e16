"""Tests for IntakeService."""

from unittest.mock import Mock
from uuid import uuid4

import psycopg2
import pytest

from core.errors import AccessDenied, DatastoreUnavailable, ValidationFailed
from core.events import TicketCreated
from core.models import Priority, TicketStatus, TicketSubmission
from core.services.customer_service import CustomerService
from core.services.intake_service import IntakeService
from tests.conftest import TENANT_ID, WRITER_ID


@pytest.fixture
def customers():
    service = Mock(spec=CustomerService)
    service.resolve_for_intake.return_value = Mock(id=uuid4())
    return service


@pytest.fixture
def intake(db, audit, event_bus, catalog, customers):
    return IntakeService(db, audit, event_bus, catalog, customers, timezone="America/New_York")


def _flat_repair(**overrides):
    data = {
        "service_type": "FLAT_REPAIR",
        "vehicle": "2018 Honda Civic",
        "service_data": {"tire_position": "FR"},
        "customer_name": "Jane Doe",
        "customer_phone": "423-555-0001",
    }
    data.update(overrides)
    return TicketSubmission(**data)


class TestSubmit:

    def test_flat_repair_creates_pending_normal_ticket(self, db, intake, catalog, writer, ticket_row):
        """Jane Doe's flat repair lands in the queue reading 'Front Right'."""
        db.execute_returning.return_value = [ticket_row(customer_name="Jane Doe", customer_phone="423-555-0001")]

        ticket = intake.submit(writer, _flat_repair())

        assert ticket.status == TicketStatus.PENDING
        assert ticket.priority == Priority.NORMAL
        assert catalog.registry.summarize(ticket.service_type, ticket.service_data) == "Front Right"

    def test_insert_stamps_tenant_creator_and_pending(self, db, intake, writer, ticket_row):
        db.execute_returning.return_value = [ticket_row()]

        intake.submit(writer, _flat_repair())

        params = db.execute_returning.call_args.args[1]
        assert params[1] == TENANT_ID
        assert params[2] == "FLAT_REPAIR"
        assert params[3] == "NORMAL"
        assert params[4] == "PENDING"
        assert params[11] == "423-555-0001"
        assert params[12] == WRITER_ID
        assert params[13] is False

    def test_phone_is_formatted(self, db, intake, writer, customers, ticket_row):
        db.execute_returning.return_value = [ticket_row()]

        intake.submit(writer, _flat_repair(customer_phone="(423) 555 0001"))

        assert customers.resolve_for_intake.call_args.kwargs["phone"] == "423-555-0001"

    def test_publishes_and_audits(self, db, intake, writer, audit, event_bus, ticket_row):
        db.execute_returning.return_value = [ticket_row()]

        ticket = intake.submit(writer, _flat_repair())

        event = event_bus.publish.call_args.args[0]
        assert isinstance(event, TicketCreated)
        assert event.ticket == ticket
        audit.log_change.assert_called_once()

    def test_manager_may_create(self, db, intake, manager, ticket_row):
        db.execute_returning.return_value = [ticket_row(created_by=manager.staff_id)]
        assert intake.submit(manager, _flat_repair()).created_by == manager.staff_id

    def test_technician_refused_before_any_read(self, db, intake, technician):
        with pytest.raises(AccessDenied):
            intake.submit(technician, _flat_repair())
        db.execute.assert_not_called()
        db.execute_returning.assert_not_called()


class TestValidation:

    def test_every_error_reported_together(self, db, intake, writer):
        """Missing vehicle, name, phone and position all come back at once."""
        with pytest.raises(ValidationFailed) as exc:
            intake.submit(writer, _flat_repair(
                vehicle="  ", customer_name="", customer_phone="", service_data={}
            ))

        assert exc.value.field_errors == {
            "vehicle": "Vehicle is required",
            "customer_name": "Customer name is required",
            "customer_phone": "Phone number is required",
            "tire_position": "Tire Position is required",
        }
        db.execute_returning.assert_not_called()

    def test_short_phone(self, intake, writer):
        with pytest.raises(ValidationFailed) as exc:
            intake.submit(writer, _flat_repair(customer_phone="555-0001"))
        assert exc.value.field_errors == {"customer_phone": "Enter 10-digit phone number"}

    def test_unknown_service_type(self, intake, writer):
        with pytest.raises(ValidationFailed) as exc:
            intake.submit(writer, _flat_repair(service_type="UNDERCOATING"))
        assert exc.value.field_errors["service_type"] == "Choose a valid service type"

    def test_bad_tire_size(self, intake, writer):
        with pytest.raises(ValidationFailed) as exc:
            intake.submit(writer, _flat_repair(
                service_type="NEW_TIRES", service_data={"tire_size": "225-65-17", "quantity": "4"}
            ))
        assert exc.value.field_errors == {"tire_size": "Format: 225/65R17"}


class TestAppointments:

    def test_appointment_forced_normal_and_scheduled(self, db, intake, writer, ticket_row):
        db.execute_returning.return_value = [ticket_row(service_type="APPOINTMENT")]

        intake.submit(writer, _flat_repair(
            service_type="APPOINTMENT",
            priority=Priority.HIGH,
            service_data={},
            scheduled_date="2025-03-14",
            scheduled_time="14:30",
        ))

        params = db.execute_returning.call_args.args[1]
        assert params[3] == "NORMAL"
        # 14:30 EDT is 18:30 UTC
        assert params[8].isoformat() == "2025-03-14T18:30:00+00:00"
        service_data = params[6].adapted
        assert service_data["customer_name"] == "Jane Doe"
        assert service_data["phone"] == "423-555-0001"

    def test_appointment_needs_date_and_time(self, intake, writer):
        with pytest.raises(ValidationFailed) as exc:
            intake.submit(writer, _flat_repair(service_type="APPOINTMENT", service_data={}))
        assert set(exc.value.field_errors) == {"scheduled_date", "scheduled_time"}


class TestDatastoreFailure:

    def test_insert_failure_is_retryable(self, db, intake, writer, event_bus, audit):
        db.execute_returning.side_effect = psycopg2.OperationalError("timeout")

        with pytest.raises(DatastoreUnavailable) as exc:
            intake.submit(writer, _flat_repair())

        assert exc.value.message == "Failed to create ticket. Please try again."
        event_bus.publish.assert_not_called()
        audit.log_change.assert_not_called()
