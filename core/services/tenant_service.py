"""
Tenant lookups for routing and branding.

Reads the tenants_public projection, which exposes branding only and is
readable before anyone has signed in.
"""

import logging
from uuid import UUID

from clients.postgres_client import PostgresClient
from core.models import Tenant

logger = logging.getLogger(__name__)


class TenantService:
    """Resolve tenants by slug or id."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def get_by_slug(self, slug: str) -> Tenant | None:
        row = self.postgres.execute_single(
            """
            SELECT id, slug, name, logo_url, primary_color, secondary_color
            FROM tenants_public WHERE slug = %s
            """,
            (slug,)
        )
        if row is None:
            return None
        return Tenant.model_validate(row)

    def get_by_id(self, tenant_id: UUID) -> Tenant | None:
        row = self.postgres.execute_single(
            """
            SELECT id, slug, name, logo_url, primary_color, secondary_color
            FROM tenants_public WHERE id = %s
            """,
            (tenant_id,)
        )
        if row is None:
            return None
        return Tenant.model_validate(row)
