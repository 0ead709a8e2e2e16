"""Tenant (business account) models."""

from uuid import UUID

from pydantic import BaseModel


class Tenant(BaseModel):
    """A business account and its branding."""

    id: UUID
    slug: str
    name: str
    logo_url: str | None = None
    primary_color: str | None = None
    secondary_color: str | None = None

    model_config = {"from_attributes": True}

    def branding(self) -> dict:
        """Public branding fields only."""
        return {
            "slug": self.slug,
            "name": self.name,
            "logo_url": self.logo_url,
            "primary_color": self.primary_color,
            "secondary_color": self.secondary_color,
        }
