"""Customer (repeat-visit tracking) models."""

import re
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw: str | None) -> str:
    """Digits only. This is the customer dedup key."""
    return _NON_DIGITS.sub("", raw or "")


def format_phone(raw: str) -> str:
    """xxx-xxx-xxxx for 10-digit numbers, input unchanged otherwise."""
    digits = normalize_phone(raw)
    if len(digits) == 10:
        return f"{digits[:3]}-{digits[3:6]}-{digits[6:]}"
    return raw


def is_valid_phone(raw: str | None) -> bool:
    return len(normalize_phone(raw)) == 10


class Customer(BaseModel):
    """Full customer entity as stored."""

    id: UUID
    tenant_id: UUID
    name: str
    phone_raw: str | None
    phone_normalized: str | None
    last_vehicle_text: str | None
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class VisitSummary(BaseModel):
    """One past ticket shown under a search result."""

    id: UUID
    ticket_number: int
    service_type: str
    vehicle: str
    status: str
    created_at: datetime


class CustomerSearchResult(BaseModel):
    """Customers and inline ticket contacts, grouped by name."""

    customer_id: UUID | None = None
    name: str
    phone: str | None = None
    vehicles: list[str] = Field(default_factory=list)
    total_visits: int = 0
    last_visit: datetime | None = None
    tickets: list[VisitSummary] = Field(default_factory=list)
