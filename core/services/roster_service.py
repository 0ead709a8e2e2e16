"""
Roster service: a tenant's staff and their paired technician profiles.

Login codes are unique across every staff record in the system (any tenant,
active or not) and compare upper-cased. Staff are never hard-deleted;
deactivation keeps historical completion attribution intact.
"""

import logging
import random
from uuid import UUID, uuid4

import psycopg2.errors

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction
from core.errors import LoginCodeInUse, NotFound, ValidationFailed
from core.event_bus import EventBus
from core.events import StaffDeactivated
from core.models import Staff, StaffCreate, StaffIdentity, StaffRole, TeamMember, normalize_code
from core.permissions import MANAGER_ONLY, require_role, require_same_tenant
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_SUGGEST_ATTEMPTS = 20


class RosterService:
    """Service for team management."""

    def __init__(
        self,
        postgres: PostgresClient,
        audit: AuditLogger,
        event_bus: EventBus,
        inviter=None,
    ):
        """
        Args:
            inviter: Object with send_invite(staff) that emails a sign-in
                link (auth.service.AuthService). Invitations are refused
                when not configured.
        """
        self.postgres = postgres
        self.audit = audit
        self.event_bus = event_bus
        self.inviter = inviter

    def code_in_use(self, id_code: str, exclude_staff_id: UUID | None = None) -> bool:
        """
        Whether any other staff record holds this code.

        login_code_in_use() runs as the datastore owner so it sees every tenant.
        """
        return bool(self.postgres.execute_scalar(
            "SELECT login_code_in_use(%s, %s)",
            (normalize_code(id_code), exclude_staff_id)
        ))

    def _get_staff(self, caller: StaffIdentity, staff_id: UUID) -> Staff:
        row = self.postgres.execute_single(
            "SELECT * FROM staff WHERE id = %s",
            (staff_id,)
        )
        if row is None:
            raise NotFound("staff", staff_id)
        staff = Staff.model_validate(row)
        require_same_tenant(caller, staff.tenant_id, "staff")
        return staff

    def list_members(self, caller: StaffIdentity) -> list[TeamMember]:
        """
        Everyone on the caller's team, active first.

        Raises:
            AccessDenied: Caller is not a manager
        """
        require_role(caller, MANAGER_ONLY, "list_staff")

        rows = self.postgres.execute(
            """
            SELECT s.*, t.id AS technician_id
            FROM staff s
            LEFT JOIN technicians t ON t.staff_id = s.id
            WHERE s.tenant_id = %s
            ORDER BY s.active DESC, s.role ASC, s.name ASC
            """,
            (caller.tenant_id,)
        )
        return [
            TeamMember(staff=Staff.model_validate(row), technician_id=row.get("technician_id"))
            for row in rows
        ]

    def create_member(self, caller: StaffIdentity, data: StaffCreate) -> TeamMember:
        """
        Add a staff member; technicians also get a paired technician row.

        Both rows are written in one transaction.

        Raises:
            AccessDenied: Caller is not a manager
            LoginCodeInUse: Code held by any other staff record
        """
        require_role(caller, MANAGER_ONLY, "create_staff")

        if self.code_in_use(data.id_code):
            raise LoginCodeInUse(data.id_code)

        now = now_utc()
        technician_id = None
        try:
            with self.postgres.transaction() as tx:
                row = tx.execute_returning(
                    """
                    INSERT INTO staff (
                        id, tenant_id, id_code, name, email, role, active, created_at, updated_at
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING *
                    """,
                    (
                        uuid4(), caller.tenant_id, data.id_code, data.name, data.email,
                        data.role.value, True, now, now
                    )
                )[0]
                staff = Staff.model_validate(row)

                if data.role == StaffRole.TECHNICIAN:
                    technician_id = tx.execute_returning(
                        """
                        INSERT INTO technicians (id, tenant_id, staff_id, name, active, created_at)
                        VALUES (%s, %s, %s, %s, %s, %s)
                        RETURNING id
                        """,
                        (uuid4(), caller.tenant_id, staff.id, staff.name, True, now)
                    )[0]["id"]
        except psycopg2.errors.UniqueViolation:
            # Lost a race with another create using the same code
            raise LoginCodeInUse(data.id_code)

        self.audit.log_change(
            caller,
            entity_type="staff",
            entity_id=staff.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude_none=True)}
        )

        logger.info(f"Staff {staff.id_code} ({staff.role.value}) added to tenant {caller.tenant_id}")
        return TeamMember(staff=staff, technician_id=technician_id)

    def update_code(self, caller: StaffIdentity, staff_id: UUID, id_code: str) -> Staff:
        """
        Change a staff member's login code.

        Raises:
            AccessDenied: Caller is not a manager, or staff in another tenant
            NotFound: Staff does not exist
            ValidationFailed: Code blank
            LoginCodeInUse: Code held by any other staff record
        """
        require_role(caller, MANAGER_ONLY, "update_staff")

        code = normalize_code(id_code)
        if not code:
            raise ValidationFailed({"id_code": "ID code is required"})

        current = self._get_staff(caller, staff_id)
        if current.id_code == code:
            return current

        if self.code_in_use(code, exclude_staff_id=staff_id):
            raise LoginCodeInUse(code)

        try:
            row = self.postgres.execute_returning(
                """
                UPDATE staff
                SET id_code = %s, updated_at = %s
                WHERE id = %s AND tenant_id = %s
                RETURNING *
                """,
                (code, now_utc(), staff_id, caller.tenant_id)
            )[0]
        except psycopg2.errors.UniqueViolation:
            raise LoginCodeInUse(code)

        updated = Staff.model_validate(row)

        self.audit.log_change(
            caller,
            entity_type="staff",
            entity_id=staff_id,
            action=AuditAction.UPDATE,
            changes={"id_code": {"old": current.id_code, "new": updated.id_code}}
        )

        return updated

    def rename_member(self, caller: StaffIdentity, staff_id: UUID, name: str) -> Staff:
        """
        Rename a staff member, keeping the paired technician's name in sync.

        Raises:
            AccessDenied: Caller is not a manager, or staff in another tenant
            NotFound: Staff does not exist
            ValidationFailed: Name blank
        """
        require_role(caller, MANAGER_ONLY, "update_staff")

        name = name.strip()
        if not name:
            raise ValidationFailed({"name": "Name is required"})

        current = self._get_staff(caller, staff_id)
        if current.name == name:
            return current

        now = now_utc()
        with self.postgres.transaction() as tx:
            row = tx.execute_returning(
                """
                UPDATE staff SET name = %s, updated_at = %s
                WHERE id = %s AND tenant_id = %s
                RETURNING *
                """,
                (name, now, staff_id, caller.tenant_id)
            )[0]
            tx.execute_returning(
                "UPDATE technicians SET name = %s WHERE staff_id = %s RETURNING id",
                (name, staff_id)
            )

        updated = Staff.model_validate(row)

        self.audit.log_change(
            caller,
            entity_type="staff",
            entity_id=staff_id,
            action=AuditAction.UPDATE,
            changes={"name": {"old": current.name, "new": updated.name}}
        )

        return updated

    def _set_active(self, caller: StaffIdentity, staff_id: UUID, active: bool) -> tuple[Staff, bool]:
        """Set active on staff and technician rows. Returns (staff, changed)."""
        current = self._get_staff(caller, staff_id)
        if current.active == active:
            return current, False

        with self.postgres.transaction() as tx:
            row = tx.execute_returning(
                """
                UPDATE staff SET active = %s, updated_at = %s
                WHERE id = %s AND tenant_id = %s
                RETURNING *
                """,
                (active, now_utc(), staff_id, caller.tenant_id)
            )[0]
            tx.execute_returning(
                "UPDATE technicians SET active = %s WHERE staff_id = %s RETURNING id",
                (active, staff_id)
            )

        updated = Staff.model_validate(row)

        self.audit.log_change(
            caller,
            entity_type="staff",
            entity_id=staff_id,
            action=AuditAction.UPDATE,
            changes={"active": {"old": current.active, "new": updated.active}}
        )

        return updated, True

    def deactivate_member(self, caller: StaffIdentity, staff_id: UUID) -> Staff:
        """
        Deactivate a staff member and their technician profile.

        Completed tickets keep their completed_by reference. Every session the
        member holds is revoked (via StaffDeactivated).

        Raises:
            AccessDenied: Caller is not a manager, or staff in another tenant
            NotFound: Staff does not exist
            ValidationFailed: Caller tried to deactivate themselves
        """
        require_role(caller, MANAGER_ONLY, "deactivate_staff")

        if staff_id == caller.staff_id:
            raise ValidationFailed({"staff_id": "You cannot deactivate your own account."})

        updated, changed = self._set_active(caller, staff_id, False)

        if changed:
            self.event_bus.publish(StaffDeactivated.create(updated))
            logger.info(f"Staff {updated.id_code} deactivated by {caller.staff_id}")

        return updated

    def activate_member(self, caller: StaffIdentity, staff_id: UUID) -> Staff:
        """
        Reactivate a staff member and their technician profile.

        Raises:
            AccessDenied: Caller is not a manager, or staff in another tenant
            NotFound: Staff does not exist
        """
        require_role(caller, MANAGER_ONLY, "activate_staff")
        updated, _ = self._set_active(caller, staff_id, True)
        return updated

    def invite_member(self, caller: StaffIdentity, staff_id: UUID) -> Staff:
        """
        Email a staff member a sign-in link.

        Raises:
            AccessDenied: Caller is not a manager, or staff in another tenant
            NotFound: Staff does not exist
            ValidationFailed: Staff inactive, has no email, or invites not configured
            EmailGatewayError: Sending failed
        """
        require_role(caller, MANAGER_ONLY, "invite_staff")

        staff = self._get_staff(caller, staff_id)

        if not staff.active:
            raise ValidationFailed({"staff_id": "Cannot invite an inactive staff member."})
        if not staff.email or "@" not in staff.email:
            raise ValidationFailed({"email": "This staff member has no valid email address."})
        if self.inviter is None:
            raise ValidationFailed({"email": "Email invitations are not configured."})

        self.inviter.send_invite(staff)

        self.audit.log_change(
            caller,
            entity_type="staff",
            entity_id=staff.id,
            action=AuditAction.UPDATE,
            changes={"invited": {"old": None, "new": staff.email}}
        )

        return staff

    def suggest_code(self, caller: StaffIdentity, role: StaffRole) -> str | None:
        """
        Propose an unused login code: role prefix plus two digits (SW42, T17, M88).

        Widens to three digits when two-digit codes keep colliding. Returns
        None if no free code turned up.

        Raises:
            AccessDenied: Caller is not a manager
        """
        require_role(caller, MANAGER_ONLY, "suggest_code")

        for low, high in ((10, 99), (100, 999)):
            for _ in range(_SUGGEST_ATTEMPTS):
                candidate = f"{role.code_prefix}{random.randint(low, high)}"
                if not self.code_in_use(candidate):
                    return candidate

        logger.warning(f"No free {role.code_prefix} login code found for tenant {caller.tenant_id}")
        return None
