"""
Role checks for service operations.

These are UX conveniences: the datastore's row-level security is the
authoritative boundary. They run before any read or write so a refused
caller never touches the datastore.
"""

import logging
from uuid import UUID

from core.errors import AccessDenied
from core.models.staff import StaffIdentity, StaffRole

logger = logging.getLogger(__name__)

INTAKE_ROLES = (StaffRole.SERVICE_WRITER, StaffRole.MANAGER)
COMPLETION_ROLES = (StaffRole.TECHNICIAN, StaffRole.MANAGER)
MANAGER_ONLY = (StaffRole.MANAGER,)

_ACTION_REASONS = {
    "complete": "Only technicians and managers can complete jobs.",
    "intake": "Only service writers and managers can create tickets.",
}


def require_role(caller: StaffIdentity, allowed: tuple[StaffRole, ...], action: str) -> None:
    """
    Raise AccessDenied unless caller holds one of the allowed roles.

    Raises:
        AccessDenied: With a reason naming the refused action
    """
    if caller.role in allowed:
        return
    logger.warning(
        f"Staff {caller.staff_id} ({caller.role.value}) refused action '{action}'"
    )
    reason = _ACTION_REASONS.get(action, "Manager access required.")
    raise AccessDenied(reason)


def require_same_tenant(caller: StaffIdentity, tenant_id: UUID | None, entity_type: str) -> None:
    """
    Raise AccessDenied if a row belongs to another tenant.

    RLS hides such rows already; this catches trusted (non-RLS) lookups.
    """
    if tenant_id is not None and tenant_id != caller.tenant_id:
        logger.warning(
            f"Staff {caller.staff_id} attempted cross-tenant access to {entity_type} in tenant {tenant_id}"
        )
        raise AccessDenied("You do not have access to this business.")
