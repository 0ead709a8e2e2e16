"""
Audit trail for every ticket, customer and roster change.

Every mutation is logged here. The audit log is:
- Append-only (entries never modified or deleted)
- Staff-attributed (who made the change, in which tenant)
- Detailed (captures old and new values)

audit_log rows carry tenant_id so RLS scopes history reads to the caller's
business like every other table.
"""

from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from core.models.staff import StaffIdentity
from utils.timezone import now_utc


class AuditAction(Enum):
    """Type of change made to an entity."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Compute changes between two entity states.

    Returns:
        Dict of {field: {"old": old_val, "new": new_val}} for changed fields.
        Empty dict if no changes.
    """
    exclude = exclude_fields or {"updated_at"}
    changes = {}

    for key in set(old.keys()) | set(new.keys()):
        if key in exclude:
            continue

        old_val = old.get(key)
        new_val = new.get(key)

        if old_val != new_val:
            changes[key] = {"old": old_val, "new": new_val}

    return changes


class AuditLogger:
    """
    Audit trail writer.

    Always use model_dump(mode="json") when passing Pydantic models so UUIDs
    and datetimes serialize to JSON-compatible strings.

    Usage:
        audit = AuditLogger(postgres)

        audit.log_change(
            caller,
            entity_type="ticket",
            entity_id=ticket.id,
            action=AuditAction.UPDATE,
            changes=compute_changes(old.model_dump(mode="json"), new.model_dump(mode="json")),
        )

        history = audit.get_entity_history("ticket", ticket.id)
    """

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def log_change(
        self,
        caller: StaffIdentity,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        changes: dict[str, Any],
    ) -> None:
        """
        Log an entity change made by caller.

        Changes format by action:
        - CREATE: {"created": {full entity data}}
        - UPDATE: {"field": {"old": old_val, "new": new_val}, ...}
        - DELETE: {"deleted": {full entity data at deletion}}
        """
        self.postgres.execute(
            """
            INSERT INTO audit_log (id, tenant_id, staff_id, entity_type, entity_id, action, changes, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                uuid4(),
                caller.tenant_id,
                caller.staff_id,
                entity_type,
                entity_id,
                action.value,
                Json(changes),
                now_utc()
            )
        )

    def get_entity_history(
        self,
        entity_type: str,
        entity_id: UUID
    ) -> list[dict[str, Any]]:
        """Full audit history for an entity, newest first."""
        return self.postgres.execute(
            """
            SELECT id, tenant_id, staff_id, entity_type, entity_id, action, changes, created_at
            FROM audit_log
            WHERE entity_type = %s AND entity_id = %s
            ORDER BY created_at DESC
            """,
            (entity_type, entity_id)
        )
