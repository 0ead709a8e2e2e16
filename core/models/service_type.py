"""Tenant service catalog entries."""

from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class ServiceTypeEntry(BaseModel):
    """
    One row of a tenant's service catalog.

    `fields` holds form field definitions for tenant-defined types; legacy
    slugs leave it empty and use the built-in definitions.
    """

    id: UUID
    tenant_id: UUID
    slug: str
    name: str
    icon: str | None = None
    base_price: Decimal | None = None
    display_order: int = 0
    active: bool = True
    fields: list[dict[str, Any]] = Field(default_factory=list)

    model_config = {"from_attributes": True}
