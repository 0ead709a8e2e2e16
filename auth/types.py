"""Pydantic models for auth domain."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from core.models.staff import StaffIdentity, StaffRole


class Session(BaseModel):
    """
    A signed-in staff member's session.

    Lifetime is a fixed wall-clock window from sign-in; activity does not
    extend it.
    """

    token: str = Field(..., description="Session token (opaque string)")
    staff_id: UUID
    tenant_id: UUID
    id_code: str
    name: str
    role: StaffRole
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """True once now reaches expires_at."""
        return now >= self.expires_at

    def identity(self) -> StaffIdentity:
        return StaffIdentity(
            staff_id=self.staff_id,
            tenant_id=self.tenant_id,
            id_code=self.id_code,
            name=self.name,
            role=self.role,
        )


class StaffLogin(BaseModel):
    """Staff row as returned by the trusted login lookups."""

    id: UUID
    tenant_id: UUID
    id_code: str
    name: str
    email: str | None = None
    role: StaffRole
    active: bool


class CodeLoginRequest(BaseModel):
    """Request payload for code login."""

    code: str = Field(..., min_length=1, max_length=20)


class MagicLinkRequest(BaseModel):
    """Request payload for magic link."""

    email: EmailStr


class MagicLinkToken(BaseModel):
    """A magic link token awaiting verification."""

    token: str = Field(..., description="URL-safe token")
    staff_id: UUID
    tenant_id: UUID
    email: EmailStr
    created_at: datetime
    expires_at: datetime
    used: bool  # Required - fail closed, no default
