"""Session token lifecycle management.

Sessions are stored in Valkey with TTL matching session expiry.
Token format is cryptographically random (secrets.token_urlsafe).
Each staff member's tokens are also tracked in a set so all of them can be
revoked at once when the staff member is deactivated.
"""

import logging
import secrets
from datetime import datetime, timedelta
from uuid import UUID

from clients.valkey_client import ValkeyClient
from auth.config import AuthConfig
from auth.types import Session, StaffLogin
from auth.exceptions import SessionExpiredError
from utils.timezone import now_utc, parse_iso

logger = logging.getLogger(__name__)


class SessionManager:
    """Session token lifecycle management.

    Lifetime is a fixed window from sign-in. Activity never extends it.
    """

    KEY_PREFIX = "session:"
    STAFF_INDEX_PREFIX = "staff_sessions:"

    def __init__(self, valkey: ValkeyClient, config: AuthConfig):
        self._valkey = valkey
        self._config = config

    def _key(self, token: str) -> str:
        """Generate Valkey key for session token."""
        return f"{self.KEY_PREFIX}{token}"

    def _index_key(self, staff_id: UUID) -> str:
        return f"{self.STAFF_INDEX_PREFIX}{staff_id}"

    def create_session(self, staff: StaffLogin) -> Session:
        """Create new session for a staff member.

        Generates cryptographically secure token and stores in Valkey
        with TTL matching session expiry.
        """
        token = secrets.token_urlsafe(32)
        now = now_utc()
        ttl_seconds = self._config.session_expiry_hours * 3600

        session = Session(
            token=token,
            staff_id=staff.id,
            tenant_id=staff.tenant_id,
            id_code=staff.id_code,
            name=staff.name,
            role=staff.role,
            created_at=now,
            expires_at=now + timedelta(seconds=ttl_seconds),
        )

        self._valkey.set_json(
            self._key(token),
            session.model_dump(mode="json", exclude={"token"}),
            expire_seconds=ttl_seconds,
        )
        self._valkey.add_to_set(self._index_key(staff.id), token, expire_seconds=ttl_seconds)

        return session

    def validate_session(self, token: str, now: datetime | None = None) -> Session:
        """Validate session token and return session.

        Raises SessionExpiredError if token invalid or expired.
        """
        data = self._valkey.get_json(self._key(token))

        if data is None:
            raise SessionExpiredError("Session not found or expired")

        session = Session(
            token=token,
            staff_id=UUID(data["staff_id"]),
            tenant_id=UUID(data["tenant_id"]),
            id_code=data["id_code"],
            name=data["name"],
            role=data["role"],
            created_at=parse_iso(data["created_at"]),
            expires_at=parse_iso(data["expires_at"]),
        )

        # Belt and suspenders - Valkey TTL should handle this
        if session.is_expired(now or now_utc()):
            self.revoke_session(token, staff_id=session.staff_id)
            raise SessionExpiredError("Session expired")

        return session

    def revoke_session(self, token: str, staff_id: UUID | None = None) -> None:
        """Revoke session (logout).

        Safe to call with nonexistent token.
        """
        self._valkey.delete(self._key(token))
        if staff_id is not None:
            self._valkey.remove_from_set(self._index_key(staff_id), token)

    def revoke_all_for_staff(self, staff_id: UUID) -> int:
        """Revoke every session held by a staff member. Returns count revoked."""
        index_key = self._index_key(staff_id)
        tokens = self._valkey.set_members(index_key)

        revoked = 0
        for token in tokens:
            if self._valkey.delete(self._key(token)):
                revoked += 1
        self._valkey.delete(index_key)

        if revoked:
            logger.info(f"Revoked {revoked} sessions for staff {staff_id}")
        return revoked
