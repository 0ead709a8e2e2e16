"""Database operations for authentication.

Staff lookups go through SECURITY DEFINER functions because they run before
any staff context exists, so RLS would otherwise hide every row. The
magic_link_tokens table has no RLS.
"""

from uuid import UUID

from clients.postgres_client import PostgresClient
from auth.types import MagicLinkToken, StaffLogin
from utils.timezone import now_utc


class AuthDatabase:
    """Database operations for authentication."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def lookup_staff_by_code(self, id_code: str) -> StaffLogin | None:
        """Find staff by login code, across every tenant, active or not."""
        row = self._db.execute_single(
            "SELECT * FROM lookup_staff_by_code(%s)",
            (id_code,),
        )
        if row is None:
            return None
        return StaffLogin.model_validate(row)

    def lookup_staff_by_email(self, email: str) -> StaffLogin | None:
        """Find staff by email (case-insensitive), across every tenant."""
        row = self._db.execute_single(
            "SELECT * FROM lookup_my_staff(lower(%s))",
            (email,),
        )
        if row is None:
            return None
        return StaffLogin.model_validate(row)

    def get_staff_by_id(self, staff_id: UUID) -> StaffLogin | None:
        """Current state of a staff record, used to re-check sessions."""
        row = self._db.execute_single(
            "SELECT * FROM lookup_staff_by_id(%s)",
            (staff_id,),
        )
        if row is None:
            return None
        return StaffLogin.model_validate(row)

    def store_magic_link_token(self, token: MagicLinkToken) -> None:
        """Store magic link token for verification."""
        self._db.execute_returning(
            """INSERT INTO magic_link_tokens
                   (token, staff_id, tenant_id, email, created_at, expires_at, used)
               VALUES (%s, %s, %s, %s, %s, %s, %s)
               RETURNING token""",
            (
                token.token,
                token.staff_id,
                token.tenant_id,
                token.email,
                token.created_at,
                token.expires_at,
                token.used,
            ),
        )

    def get_magic_link_token(self, token: str) -> MagicLinkToken | None:
        """Retrieve magic link token by token string."""
        row = self._db.execute_single(
            """SELECT token, staff_id, tenant_id, email, created_at, expires_at, used
               FROM magic_link_tokens
               WHERE token = %s""",
            (token,),
        )
        if row is None:
            return None
        return MagicLinkToken.model_validate(row)

    def mark_token_used(self, token: str) -> None:
        """Mark token as used and set used_at timestamp."""
        self._db.execute_returning(
            """UPDATE magic_link_tokens
               SET used = true, used_at = %s
               WHERE token = %s
               RETURNING token""",
            (now_utc(), token),
        )

    def cleanup_expired_tokens(self) -> int:
        """Delete expired tokens. Returns count deleted."""
        rows = self._db.execute_returning(
            """DELETE FROM magic_link_tokens
               WHERE expires_at < %s
               RETURNING token""",
            (now_utc(),),
        )
        return len(rows)
