"""
Domain errors raised by core services.

Each error carries an HTTP status and a stable error code so the API layer
can render it without knowing which service raised it. Services raise these;
they never return error values or swallow failures.
"""

from typing import Dict


class DomainError(Exception):
    """Base class for all domain failures surfaced to callers."""

    status_code = 400
    code = "BAD_REQUEST"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationFailed(DomainError):
    """Input failed validation. Nothing was written."""

    status_code = 422
    code = "VALIDATION_ERROR"

    def __init__(self, field_errors: Dict[str, str], message: str = "Please correct the highlighted fields."):
        self.field_errors = dict(field_errors)
        super().__init__(message)


class AccessDenied(DomainError):
    """Caller's role or tenant does not permit the action."""

    status_code = 403
    code = "ACCESS_DENIED"


class TechnicianNotResolved(DomainError):
    """Caller could not be resolved to an active technician profile."""

    status_code = 403
    code = "TECHNICIAN_NOT_RESOLVED"


class NotFound(DomainError):
    """Entity does not exist in the caller's tenant."""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id=None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        label = entity_type.replace("_", " ").capitalize()
        super().__init__(f"{label} not found" if entity_id is None else f"{label} {entity_id} not found")


class Conflict(DomainError):
    """Request conflicts with current state."""

    status_code = 409
    code = "CONFLICT"


class TicketAlreadyCompleted(Conflict):
    """Completion attempted on a ticket that is no longer pending."""

    code = "TICKET_ALREADY_COMPLETED"

    def __init__(self, ticket_number: int | None = None):
        self.ticket_number = ticket_number
        if ticket_number is None:
            super().__init__("This ticket has already been completed.")
        else:
            super().__init__(f"Ticket #{ticket_number} has already been completed.")


class LoginCodeInUse(Conflict):
    """Login code is held by another staff record (active or not)."""

    code = "LOGIN_CODE_IN_USE"

    def __init__(self, id_code: str):
        self.id_code = id_code
        super().__init__(f'ID Code "{id_code}" is already in use.')


class DatastoreUnavailable(DomainError):
    """
    Datastore failed or timed out. Retryable.

    The write may or may not have happened; callers re-fetch before retrying.
    """

    status_code = 503
    code = "SERVICE_UNAVAILABLE"
