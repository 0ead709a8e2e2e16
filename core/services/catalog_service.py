"""
Catalog service for a tenant's service types.

Tenants configure which services they offer (label, icon, price, order).
Tenants with no catalog rows offer the built-in legacy set. Tickets keep
their slug forever, so label/summary lookups cover inactive entries too.
"""

import logging

from clients.postgres_client import PostgresClient
from core.models import ServiceTypeEntry, StaffIdentity
from core.service_types import ServiceDefinition, ServiceTypeRegistry

logger = logging.getLogger(__name__)


class CatalogService:
    """Service for service catalog lookups."""

    def __init__(self, postgres: PostgresClient, registry: ServiceTypeRegistry):
        self.postgres = postgres
        self.registry = registry

    def _entries(self, caller: StaffIdentity, active_only: bool) -> list[ServiceTypeEntry]:
        query = "SELECT * FROM service_types WHERE tenant_id = %s"
        if active_only:
            query += " AND active = true"
        query += " ORDER BY display_order ASC, name ASC"
        rows = self.postgres.execute(query, (caller.tenant_id,))
        return [ServiceTypeEntry.model_validate(row) for row in rows]

    def list_active(self, caller: StaffIdentity) -> list[dict]:
        """
        Services offered at intake, in display order.

        Each item carries slug, label, icon, base_price and form fields.
        """
        entries = self._entries(caller, active_only=True)
        if entries:
            definitions = [(e, self.registry.from_entry(e)) for e in entries]
        else:
            definitions = [(None, self.registry.get(slug)) for slug in self.registry.slugs()]

        return [
            {
                "slug": d.slug,
                "label": d.label,
                "icon": e.icon if e else None,
                "base_price": e.base_price if e else None,
                "schedulable": d.schedulable,
                "fields": [
                    {
                        "name": f.name,
                        "label": f.label,
                        "type": f.type.value,
                        "required": f.required,
                        "options": [{"value": o.value, "label": o.label} for o in f.options],
                    }
                    for f in d.fields
                ],
            }
            for e, d in definitions
        ]

    def definition_for_intake(self, caller: StaffIdentity, slug: str) -> ServiceDefinition | None:
        """
        Definition a new ticket of this slug is validated against.

        None if the tenant does not currently offer it.
        """
        entries = self._entries(caller, active_only=False)
        if not entries:
            return self.registry.get(slug)

        for entry in entries:
            if entry.slug == slug:
                return self.registry.from_entry(entry) if entry.active else None
        return None

    def definitions(self, caller: StaffIdentity) -> dict[str, ServiceDefinition]:
        """All definitions known for the tenant (legacy plus catalog, active or not)."""
        known = {slug: self.registry.get(slug) for slug in self.registry.slugs()}
        for entry in self._entries(caller, active_only=False):
            known[entry.slug] = self.registry.from_entry(entry)
        return known
