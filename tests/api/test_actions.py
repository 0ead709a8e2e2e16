"""Tests for POST /api/actions."""

from uuid import uuid4

import psycopg2
import pytest

from core.errors import (
    AccessDenied,
    DatastoreUnavailable,
    LoginCodeInUse,
    NotFound,
    TechnicianNotResolved,
    TicketAlreadyCompleted,
    ValidationFailed,
)
from core.models import StaffCreate, StaffRole, Ticket, TicketEdit, TicketSubmission
from clients.email_client import EmailGatewayError


def _action(client, domain, action, data=None):
    return client.post("/api/actions", json={"domain": domain, "action": action, "data": data or {}})


@pytest.fixture
def ticket(ticket_row):
    return Ticket.model_validate(ticket_row())


class TestDispatch:

    def test_unknown_domain(self, writer_client):
        response = _action(writer_client, "invoice", "create")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"

    def test_unknown_action(self, writer_client):
        response = _action(writer_client, "ticket", "cancel")

        assert response.status_code == 400
        assert "Allowed" in response.json()["error"]["message"]

    def test_requires_session(self, anon_client):
        assert _action(anon_client, "ticket", "submit").status_code == 401


class TestTicketActions:

    def test_submit(self, writer_client, services, ticket, writer):
        services["intake"].submit.return_value = ticket

        response = _action(writer_client, "ticket", "submit", {
            "service_type": "FLAT_REPAIR",
            "vehicle": "2018 Honda Civic",
            "service_data": {"tire_position": "FR"},
            "customer_name": "Jane Doe",
            "customer_phone": "423-555-0001",
        })

        assert response.status_code == 200
        assert response.json()["data"]["ticket_number"] == 101
        caller, submission = services["intake"].submit.call_args.args
        assert caller == writer
        assert isinstance(submission, TicketSubmission)

    def test_submit_field_errors(self, writer_client, services):
        services["intake"].submit.side_effect = ValidationFailed({"customer_phone": "Enter 10-digit phone number"})

        response = _action(writer_client, "ticket", "submit", {"service_type": "FLAT_REPAIR"})

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["field_errors"] == {"customer_phone": "Enter 10-digit phone number"}

    def test_submit_shape_errors(self, writer_client, services):
        response = _action(writer_client, "ticket", "submit", {"priority": "URGENT"})

        assert response.status_code == 422
        field_errors = response.json()["error"]["field_errors"]
        assert "service_type" in field_errors
        assert "priority" in field_errors
        services["intake"].submit.assert_not_called()

    def test_submit_datastore_failure_is_retryable(self, writer_client, services):
        services["intake"].submit.side_effect = DatastoreUnavailable("Failed to create ticket. Please try again.")

        response = _action(writer_client, "ticket", "submit", {"service_type": "FLAT_REPAIR"})

        assert response.status_code == 503
        assert response.json()["error"]["retryable"] is True

    def test_complete_passes_confirm(self, tech_client, services, ticket, technician):
        services["ticket"].complete.return_value = ticket

        response = _action(tech_client, "ticket", "complete", {"id": str(ticket.id), "confirm": True})

        assert response.status_code == 200
        services["ticket"].complete.assert_called_once_with(technician, ticket.id, confirm=True)

    def test_complete_refused_for_writer(self, writer_client, services, ticket):
        services["ticket"].complete.side_effect = AccessDenied("Only technicians and managers can complete jobs.")

        response = _action(writer_client, "ticket", "complete", {"id": str(ticket.id), "confirm": True})

        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Only technicians and managers can complete jobs."

    def test_double_completion(self, tech_client, services, ticket):
        services["ticket"].complete.side_effect = TicketAlreadyCompleted(101)

        response = _action(tech_client, "ticket", "complete", {"id": str(ticket.id), "confirm": True})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "TICKET_ALREADY_COMPLETED"

    def test_technician_not_resolved(self, manager_client, services, ticket):
        services["ticket"].complete.side_effect = TechnicianNotResolved(
            "No active technician profile found for your account."
        )

        response = _action(manager_client, "ticket", "complete", {"id": str(ticket.id), "confirm": True})

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "TECHNICIAN_NOT_RESOLVED"

    def test_missing_id(self, tech_client, services):
        response = _action(tech_client, "ticket", "complete", {"confirm": True})

        assert response.status_code == 422
        assert response.json()["error"]["field_errors"] == {"id": "id is required"}

    def test_malformed_id(self, tech_client):
        response = _action(tech_client, "ticket", "complete", {"id": "42"})
        assert response.json()["error"]["field_errors"] == {"id": "id must be a valid id"}

    def test_exclude_all(self, manager_client, services):
        services["ticket"].exclude_all_completed.return_value = 7

        response = _action(manager_client, "ticket", "exclude_all", {"confirm": True})

        assert response.json()["data"] == {"excluded": 7}

    def test_edit(self, manager_client, services, ticket, manager):
        services["ticket"].edit.return_value = ticket

        _action(manager_client, "ticket", "edit", {"id": str(ticket.id), "notes": "Customer waiting"})

        caller, ticket_id, edit = services["ticket"].edit.call_args.args
        assert ticket_id == ticket.id
        assert edit == TicketEdit(notes="Customer waiting")

    def test_edit_naive_completion_time(self, manager_client, services, ticket):
        response = _action(
            manager_client, "ticket", "edit",
            {"id": str(ticket.id), "completed_at": "2026-01-01T10:00:00"},
        )

        assert response.status_code == 422
        assert "completed_at" in response.json()["error"]["field_errors"]
        services["ticket"].edit.assert_not_called()

    def test_delete_missing(self, manager_client, services):
        services["ticket"].delete.return_value = False

        response = _action(manager_client, "ticket", "delete", {"id": str(uuid4())})

        assert response.status_code == 404

    def test_delete(self, manager_client, services, ticket):
        services["ticket"].delete.return_value = True

        response = _action(manager_client, "ticket", "delete", {"id": str(ticket.id)})

        assert response.json()["data"] == {"deleted": True}

    def test_datastore_down(self, manager_client, services, ticket):
        services["ticket"].toggle_exclusion.side_effect = psycopg2.OperationalError("connection refused")

        response = _action(manager_client, "ticket", "toggle_exclusion", {"id": str(ticket.id)})

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "SERVICE_UNAVAILABLE"


class TestStaffActions:

    def test_create(self, manager_client, services):
        services["roster"].create_member.side_effect = LoginCodeInUse("T01")

        response = _action(manager_client, "staff", "create", {
            "name": "Tom", "id_code": "t01", "role": "TECHNICIAN",
        })

        assert response.status_code == 409
        assert response.json()["error"]["message"] == 'ID Code "T01" is already in use.'
        data = services["roster"].create_member.call_args.args[1]
        assert data == StaffCreate(name="Tom", id_code="T01", role=StaffRole.TECHNICIAN)

    def test_update_code(self, manager_client, services):
        staff_id = uuid4()
        services["roster"].update_code.side_effect = NotFound("staff", staff_id)

        response = _action(manager_client, "staff", "update_code", {"id": str(staff_id), "id_code": "T07"})

        assert response.status_code == 404
        assert services["roster"].update_code.call_args.args[1:] == (staff_id, "T07")

    def test_invite_gateway_down(self, manager_client, services):
        services["roster"].invite_member.side_effect = EmailGatewayError("timeout")

        response = _action(manager_client, "staff", "invite", {"id": str(uuid4())})

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "EMAIL_UNAVAILABLE"

    def test_suggest_code(self, manager_client, services):
        services["roster"].suggest_code.return_value = "T42"

        response = _action(manager_client, "staff", "suggest_code", {"role": "TECHNICIAN"})

        assert response.json()["data"] == {"id_code": "T42"}

    def test_suggest_code_bad_role(self, manager_client):
        response = _action(manager_client, "staff", "suggest_code", {"role": "OWNER"})

        assert response.status_code == 422
        assert response.json()["error"]["field_errors"] == {"role": "Choose a valid role"}
