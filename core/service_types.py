"""
Service type registry.

Maps a service-type slug to its form fields, validators and a summary
renderer. Legacy slugs are built in; tenant-defined catalog entries carry
their own field definitions. Slugs with no definition at all fall back to a
generic renderer that prints every present key/value pair.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, time
from enum import Enum
from typing import Any, Callable, Dict, Iterable

from core.models.customer import is_valid_phone
from core.models.service_type import ServiceTypeEntry

logger = logging.getLogger(__name__)

TIRE_SIZE_PATTERN = r"^\d{3}/\d{2}[R/]\d{2}$"

APPOINTMENT = "APPOINTMENT"


class FieldType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    SELECT = "select"
    RADIO = "radio"
    TEXTAREA = "textarea"
    TIME = "time"
    TEL = "tel"
    DATE = "date"


@dataclass(frozen=True)
class FieldOption:
    value: str
    label: str


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


@dataclass(frozen=True)
class ServiceField:
    """One input on a service form."""

    name: str
    label: str
    type: FieldType = FieldType.TEXT
    required: bool = False
    options: tuple[FieldOption, ...] = ()
    pattern: str | None = None
    error_message: str | None = None
    min: int | None = None
    max: int | None = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServiceField":
        """Build from a catalog `fields` entry. Options may be strings or {value, label}."""
        options = []
        for opt in data.get("options") or []:
            if isinstance(opt, dict):
                options.append(FieldOption(str(opt["value"]), str(opt.get("label", opt["value"]))))
            else:
                options.append(FieldOption(str(opt), str(opt)))
        return cls(
            name=data["name"],
            label=data.get("label") or data["name"].replace("_", " ").title(),
            type=FieldType(data.get("type", "text")),
            required=bool(data.get("required", False)),
            options=tuple(options),
            pattern=data.get("pattern"),
            error_message=data.get("error_message") or data.get("errorMessage"),
            min=data.get("min"),
            max=data.get("max"),
        )

    def option_label(self, value: Any) -> str | None:
        for opt in self.options:
            if opt.value == str(value):
                return opt.label
        return None

    def validate(self, value: Any) -> str | None:
        """Error message for this value, or None if acceptable."""
        if _is_blank(value):
            return f"{self.label} is required" if self.required else None

        invalid = self.error_message or "Invalid value"

        if self.options and self.option_label(value) is None:
            return invalid

        if self.type == FieldType.NUMBER:
            try:
                number = int(value)
            except (TypeError, ValueError):
                return invalid
            if (self.min is not None and number < self.min) or (self.max is not None and number > self.max):
                return invalid

        if self.type == FieldType.TEL and not is_valid_phone(str(value)):
            return self.error_message or "Enter 10-digit phone number"

        if self.type == FieldType.DATE:
            try:
                date.fromisoformat(str(value))
            except ValueError:
                return invalid

        if self.type == FieldType.TIME:
            try:
                time.fromisoformat(str(value))
            except ValueError:
                return invalid

        if self.pattern and not re.fullmatch(self.pattern, str(value)):
            return invalid

        return None


Summarizer = Callable[[Dict[str, Any]], str]


@dataclass(frozen=True)
class ServiceDefinition:
    """Everything the system knows about one service type."""

    slug: str
    label: str
    fields: tuple[ServiceField, ...] = ()
    summarizer: Summarizer | None = None
    schedulable: bool = False

    def validate(self, data: Dict[str, Any]) -> Dict[str, str]:
        """Field-scoped errors for a service payload. Empty dict when valid."""
        errors = {}
        for f in self.fields:
            message = f.validate(data.get(f.name))
            if message:
                errors[f.name] = message
        return errors

    def summarize(self, data: Dict[str, Any]) -> str:
        if self.summarizer is not None:
            return self.summarizer(data or {})
        return generic_summary(data or {}, self.fields)


def generic_summary(data: Dict[str, Any], fields: Iterable[ServiceField] = ()) -> str:
    """Render every present key/value pair, using field labels where known."""
    by_name = {f.name: f for f in fields}
    parts = []
    for key, value in data.items():
        if _is_blank(value):
            continue
        f = by_name.get(key)
        label = f.label if f else key.replace("_", " ").capitalize()
        shown = (f.option_label(value) if f else None) or value
        parts.append(f"{label}: {shown}")
    return ", ".join(parts)


# =============================================================================
# LEGACY SERVICE TYPES
# =============================================================================

_COUNT_OPTIONS = tuple(FieldOption(str(n), str(n)) for n in range(1, 5))

_TIRE_POSITION = ServiceField(
    name="tire_position",
    label="Tire Position",
    type=FieldType.RADIO,
    required=True,
    options=(
        FieldOption("FL", "Front Left"),
        FieldOption("FR", "Front Right"),
        FieldOption("RL", "Rear Left"),
        FieldOption("RR", "Rear Right"),
    ),
)

_TIRE_SIZE = ServiceField(
    name="tire_size",
    label="Tire Size",
    type=FieldType.TEXT,
    required=True,
    pattern=TIRE_SIZE_PATTERN,
    error_message="Format: 225/65R17",
)

_QUANTITY = ServiceField(
    name="quantity",
    label="Quantity",
    type=FieldType.RADIO,
    required=True,
    options=_COUNT_OPTIONS,
)

_MAINTENANCE_TYPES = (
    "Oil Change",
    "Brake Service",
    "Alignment",
    "Inspection",
    "Battery",
    "Wiper Blades",
    "Other",
)


def _mount_balance(data):
    count = data.get("tire_count") or 0
    return f"{count} tire" if str(count) == "1" else f"{count} tires"


def _flat_repair(data):
    position = data.get("tire_position") or ""
    return _TIRE_POSITION.option_label(position) or position


def _rotation(data):
    return data.get("pattern") or "Standard"


def _tires(data):
    text = f"{data.get('tire_size') or ''} × {data.get('quantity') or 0}"
    if data.get("brand"):
        text += f" ({data['brand']})"
    return text


def _detailing(data):
    return f"{data.get('service_level') or ''} Detail"


def _maintenance(data):
    kind = data.get("maintenance_type") or "General"
    if data.get("description"):
        return f"{kind} - {data['description']}"
    return kind


def _appointment(data):
    return f"{data.get('customer_name') or ''} - {data.get('phone') or ''}"


LEGACY_SERVICE_TYPES: tuple[ServiceDefinition, ...] = (
    ServiceDefinition(
        slug="MOUNT_BALANCE",
        label="Mount & Balance",
        fields=(
            ServiceField(
                name="tire_count",
                label="Number of Tires",
                type=FieldType.RADIO,
                required=True,
                options=_COUNT_OPTIONS,
            ),
        ),
        summarizer=_mount_balance,
    ),
    ServiceDefinition(
        slug="FLAT_REPAIR",
        label="Flat Repair",
        fields=(_TIRE_POSITION,),
        summarizer=_flat_repair,
    ),
    ServiceDefinition(
        slug="ROTATION",
        label="Rotation",
        fields=(
            ServiceField(
                name="pattern",
                label="Rotation Pattern",
                type=FieldType.SELECT,
                options=(
                    FieldOption("Forward", "Forward Cross"),
                    FieldOption("X", "X-Pattern"),
                    FieldOption("Rearward", "Rearward Cross"),
                ),
            ),
        ),
        summarizer=_rotation,
    ),
    ServiceDefinition(
        slug="NEW_TIRES",
        label="New Tires",
        fields=(
            _TIRE_SIZE,
            _QUANTITY,
            ServiceField(name="brand", label="Brand", type=FieldType.TEXT),
        ),
        summarizer=_tires,
    ),
    ServiceDefinition(
        slug="USED_TIRES",
        label="Used Tires",
        fields=(_TIRE_SIZE, _QUANTITY),
        summarizer=_tires,
    ),
    ServiceDefinition(
        slug="DETAILING",
        label="Detailing",
        fields=(
            ServiceField(
                name="service_level",
                label="Service Level",
                type=FieldType.RADIO,
                required=True,
                options=(FieldOption("Basic", "Basic Detail"), FieldOption("Full", "Full Detail")),
            ),
        ),
        summarizer=_detailing,
    ),
    ServiceDefinition(
        slug="MAINTENANCE",
        label="Maintenance",
        fields=(
            ServiceField(
                name="maintenance_type",
                label="Maintenance Type",
                type=FieldType.SELECT,
                required=True,
                options=tuple(FieldOption(t, t) for t in _MAINTENANCE_TYPES),
            ),
            ServiceField(name="description", label="Description", type=FieldType.TEXTAREA),
        ),
        summarizer=_maintenance,
    ),
    ServiceDefinition(
        slug=APPOINTMENT,
        label="Appointment",
        fields=(
            ServiceField(name="scheduled_date", label="Date", type=FieldType.DATE, required=True),
            ServiceField(name="scheduled_time", label="Time", type=FieldType.TIME, required=True),
        ),
        summarizer=_appointment,
        schedulable=True,
    ),
)


class ServiceTypeRegistry:
    """
    Slug -> ServiceDefinition lookup.

    Usage:
        registry = ServiceTypeRegistry()
        definition = registry.resolve("FLAT_REPAIR")
        errors = definition.validate({"tire_position": "FR"})   # {}
        registry.summarize("FLAT_REPAIR", {"tire_position": "FR"})  # "Front Right"

    Tenant catalog entries override the built-in label, and supply fields
    when the slug is not a legacy one.
    """

    def __init__(self, definitions: Iterable[ServiceDefinition] = LEGACY_SERVICE_TYPES):
        self._definitions: Dict[str, ServiceDefinition] = {d.slug: d for d in definitions}

    def get(self, slug: str) -> ServiceDefinition | None:
        return self._definitions.get(slug)

    def is_known(self, slug: str) -> bool:
        return slug in self._definitions

    def slugs(self) -> list[str]:
        return list(self._definitions)

    def from_entry(self, entry: ServiceTypeEntry) -> ServiceDefinition:
        """Definition for a catalog entry: built-in behavior with the tenant's label."""
        builtin = self._definitions.get(entry.slug)
        if builtin is not None:
            return ServiceDefinition(
                slug=builtin.slug,
                label=entry.name or builtin.label,
                fields=builtin.fields,
                summarizer=builtin.summarizer,
                schedulable=builtin.schedulable,
            )

        fields = []
        for raw in entry.fields:
            try:
                fields.append(ServiceField.from_dict(raw))
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping malformed field on service type {entry.slug}: {e}")
        return ServiceDefinition(slug=entry.slug, label=entry.name, fields=tuple(fields))

    def resolve(self, slug: str) -> ServiceDefinition:
        """Built-in definition, or a generic one for unknown slugs."""
        definition = self._definitions.get(slug)
        if definition is not None:
            return definition
        return ServiceDefinition(slug=slug, label=slug.replace("_", " ").title())

    def label(self, slug: str) -> str:
        return self.resolve(slug).label

    def summarize(self, slug: str, data: Dict[str, Any]) -> str:
        return self.resolve(slug).summarize(data)
