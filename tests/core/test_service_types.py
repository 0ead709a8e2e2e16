"""Tests for the service type registry."""

from decimal import Decimal
from uuid import uuid4

import pytest

from core.models import ServiceTypeEntry
from core.service_types import (
    FieldType,
    ServiceField,
    ServiceTypeRegistry,
    generic_summary,
)


@pytest.fixture
def registry():
    return ServiceTypeRegistry()


def _entry(slug, name, fields=None, active=True):
    return ServiceTypeEntry(
        id=uuid4(), tenant_id=uuid4(), slug=slug, name=name, icon=None,
        base_price=Decimal("25.00"), display_order=1, active=active, fields=fields or [],
    )


# =============================================================================
# SUMMARIES
# =============================================================================


class TestLegacySummaries:
    """Each built-in service renders its own one-line summary."""

    def test_flat_repair_shows_position_label(self, registry):
        """FLAT_REPAIR {tire_position: FR} reads 'Front Right'."""
        assert registry.summarize("FLAT_REPAIR", {"tire_position": "FR"}) == "Front Right"

    def test_mount_balance_pluralizes(self, registry):
        """One tire is singular, more are plural."""
        assert registry.summarize("MOUNT_BALANCE", {"tire_count": "1"}) == "1 tire"
        assert registry.summarize("MOUNT_BALANCE", {"tire_count": "4"}) == "4 tires"

    def test_rotation_defaults_to_standard(self, registry):
        """Missing pattern summarizes as Standard."""
        assert registry.summarize("ROTATION", {}) == "Standard"
        assert registry.summarize("ROTATION", {"pattern": "X"}) == "X"

    def test_new_tires_include_brand(self, registry):
        """Size, quantity and brand."""
        summary = registry.summarize(
            "NEW_TIRES", {"tire_size": "225/65R17", "quantity": "4", "brand": "Michelin"}
        )
        assert summary == "225/65R17 × 4 (Michelin)"

    def test_used_tires_without_brand(self, registry):
        """No brand, no parenthetical."""
        assert registry.summarize("USED_TIRES", {"tire_size": "205/55R16", "quantity": "2"}) == "205/55R16 × 2"

    def test_maintenance_with_description(self, registry):
        """Type and description joined by a dash."""
        summary = registry.summarize(
            "MAINTENANCE", {"maintenance_type": "Oil Change", "description": "5W-30"}
        )
        assert summary == "Oil Change - 5W-30"

    def test_maintenance_without_type(self, registry):
        """Missing type reads General."""
        assert registry.summarize("MAINTENANCE", {}) == "General"

    def test_detailing_level(self, registry):
        assert registry.summarize("DETAILING", {"service_level": "Basic"}) == "Basic Detail"

    def test_appointment_shows_contact(self, registry):
        summary = registry.summarize("APPOINTMENT", {"customer_name": "Dana", "phone": "555-123-4567"})
        assert summary == "Dana - 555-123-4567"

    def test_unknown_slug_uses_generic_renderer(self, registry):
        """Unknown slugs print every present key/value pair."""
        summary = registry.summarize("WINDSHIELD", {"side": "Driver", "chip_count": 2, "empty": ""})
        assert summary == "Side: Driver, Chip count: 2"


class TestGenericSummary:

    def test_uses_field_labels_and_option_labels(self):
        """Known fields render with their labels."""
        field = ServiceField.from_dict(
            {"name": "side", "label": "Side", "type": "select", "options": [{"value": "D", "label": "Driver"}]}
        )
        assert field.type == FieldType.SELECT
        assert generic_summary({"side": "D"}, [field]) == "Side: Driver"

    def test_empty_payload(self):
        assert generic_summary({}) == ""


# =============================================================================
# VALIDATION
# =============================================================================


class TestValidation:
    """Field validation against service schemas."""

    def test_required_field_missing(self, registry):
        """Missing required field names the field."""
        errors = registry.resolve("FLAT_REPAIR").validate({})
        assert errors == {"tire_position": "Tire Position is required"}

    def test_option_outside_choices(self, registry):
        """Values must be one of the options."""
        errors = registry.resolve("FLAT_REPAIR").validate({"tire_position": "XX"})
        assert "tire_position" in errors

    def test_tire_size_pattern(self, registry):
        """Tire size must look like 225/65R17."""
        definition = registry.resolve("NEW_TIRES")
        assert definition.validate({"tire_size": "225/65R17", "quantity": "4"}) == {}
        errors = definition.validate({"tire_size": "big ones", "quantity": "4"})
        assert errors == {"tire_size": "Format: 225/65R17"}

    def test_appointment_requires_date_and_time(self, registry):
        errors = registry.resolve("APPOINTMENT").validate({})
        assert set(errors) == {"scheduled_date", "scheduled_time"}

    def test_appointment_rejects_bad_time(self, registry):
        errors = registry.resolve("APPOINTMENT").validate(
            {"scheduled_date": "2025-03-14", "scheduled_time": "half past"}
        )
        assert errors == {"scheduled_time": "Invalid value"}

    def test_number_bounds(self):
        field = ServiceField.from_dict(
            {"name": "count", "type": "number", "min": 1, "max": 4, "errorMessage": "1 to 4"}
        )
        assert field.validate("2") is None
        assert field.validate("9") == "1 to 4"
        assert field.validate("many") == "1 to 4"

    def test_tel_field(self):
        field = ServiceField.from_dict({"name": "phone", "type": "tel"})
        assert field.validate("(555) 123-4567") is None
        assert field.validate("123") == "Enter 10-digit phone number"

    def test_optional_blank_is_fine(self, registry):
        assert registry.resolve("ROTATION").validate({}) == {}


# =============================================================================
# CATALOG ENTRIES
# =============================================================================


class TestFromEntry:
    """Tenant catalog entries become definitions."""

    def test_builtin_slug_keeps_behavior_with_tenant_label(self, registry):
        """A tenant may rename a legacy service; summaries are unchanged."""
        definition = registry.from_entry(_entry("FLAT_REPAIR", "Puncture Fix"))
        assert definition.label == "Puncture Fix"
        assert definition.summarize({"tire_position": "RL"}) == "Rear Left"

    def test_custom_entry_fields(self, registry):
        """Non-legacy entries take their fields from the catalog."""
        definition = registry.from_entry(_entry(
            "WINDSHIELD", "Windshield",
            fields=[{"name": "side", "label": "Side", "type": "select", "required": True,
                     "options": ["Driver", "Passenger"]}],
        ))
        assert definition.validate({}) == {"side": "Side is required"}
        assert definition.summarize({"side": "Driver"}) == "Side: Driver"

    def test_malformed_fields_skipped(self, registry):
        """Bad field definitions are dropped, good ones kept."""
        definition = registry.from_entry(_entry(
            "WINDSHIELD", "Windshield",
            fields=[{"label": "no name"}, {"name": "x", "type": "hologram"}, {"name": "side"}],
        ))
        assert [f.name for f in definition.fields] == ["side"]

    def test_resolve_unknown_slug(self, registry):
        definition = registry.resolve("TIRE_STORAGE")
        assert definition.label == "Tire Storage"
        assert not registry.is_known("TIRE_STORAGE")
