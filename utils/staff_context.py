"""Carry the caller's staff and tenant ids to the database connection.

Services receive the caller's identity explicitly. This contextvar exists only
so PostgresClient can stamp the RLS session settings on each pooled
connection without every query threading ids through by hand.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import NamedTuple
from uuid import UUID


class RLSScope(NamedTuple):
    """Ids written to app.current_staff_id / app.current_tenant_id."""

    staff_id: UUID
    tenant_id: UUID


_current_scope: ContextVar[RLSScope | None] = ContextVar("current_rls_scope", default=None)


def get_current_scope() -> RLSScope | None:
    """Current RLS scope, or None outside an authenticated request."""
    return _current_scope.get()


def set_current_scope(staff_id: UUID, tenant_id: UUID) -> None:
    """
    Set RLS scope for the current context.

    Called by auth middleware after validating the session.
    """
    _current_scope.set(RLSScope(staff_id=staff_id, tenant_id=tenant_id))


def clear_current_scope() -> None:
    """
    Clear RLS scope.

    Must be called in a finally block to prevent context leakage.
    """
    _current_scope.set(None)


@contextmanager
def staff_scope(staff_id: UUID, tenant_id: UUID):
    """
    Temporarily run database calls as a given staff member.

    Example:
        with staff_scope(identity.staff_id, identity.tenant_id):
            rows = db.execute("SELECT * FROM tickets")  # tenant rows only
    """
    token = _current_scope.set(RLSScope(staff_id=staff_id, tenant_id=tenant_id))
    try:
        yield
    finally:
        _current_scope.reset(token)
