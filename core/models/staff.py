"""Staff, technician and caller-identity models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator


class StaffRole(str, Enum):
    """What a staff member may do."""

    SERVICE_WRITER = "SERVICE_WRITER"
    TECHNICIAN = "TECHNICIAN"
    MANAGER = "MANAGER"

    @property
    def home(self) -> str:
        """Landing route after login."""
        return _ROLE_HOME[self]

    @property
    def code_prefix(self) -> str:
        """Prefix used when suggesting login codes."""
        return _ROLE_CODE_PREFIX[self]


_ROLE_HOME = {
    StaffRole.SERVICE_WRITER: "/intake",
    StaffRole.TECHNICIAN: "/queue",
    StaffRole.MANAGER: "/admin",
}

_ROLE_CODE_PREFIX = {
    StaffRole.SERVICE_WRITER: "SW",
    StaffRole.TECHNICIAN: "T",
    StaffRole.MANAGER: "M",
}


def normalize_code(code: str) -> str:
    """Login codes compare case-insensitively; stored upper-case."""
    return code.strip().upper()


class StaffCreate(BaseModel):
    """Data required to add a team member."""

    name: str = Field(..., max_length=255)
    id_code: str = Field(..., max_length=20)
    role: StaffRole
    email: EmailStr | None = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("id_code")
    @classmethod
    def code_not_blank(cls, v: str) -> str:
        v = normalize_code(v)
        if not v:
            raise ValueError("ID code is required")
        return v


class Staff(BaseModel):
    """Full staff entity as stored."""

    id: UUID
    tenant_id: UUID
    id_code: str
    name: str
    email: str | None = None
    role: StaffRole
    active: bool
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class Technician(BaseModel):
    """Work-attribution identity paired 1:1 with a technician staff row."""

    id: UUID
    tenant_id: UUID
    staff_id: UUID | None
    name: str
    active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class TeamMember(BaseModel):
    """Staff row plus its paired technician id, as listed in the roster."""

    staff: Staff
    technician_id: UUID | None = None


class StaffIdentity(BaseModel):
    """
    The resolved caller.

    Built by the auth layer from a validated session and passed explicitly
    into every service call. Immutable for the life of a request.
    """

    staff_id: UUID
    tenant_id: UUID
    id_code: str
    name: str
    role: StaffRole

    model_config = {"frozen": True}

    def has_role(self, *roles: StaffRole) -> bool:
        return self.role in roles
