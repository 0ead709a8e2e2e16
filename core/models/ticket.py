"""Ticket (job) domain models."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from utils.timezone import to_utc


class TicketStatus(str, Enum):
    """Ticket lifecycle status. PENDING -> COMPLETED, terminal."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class Priority(str, Enum):
    """Queue priority. Declaration order is display order."""

    HIGH = "HIGH"
    NORMAL = "NORMAL"
    LOW = "LOW"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class TicketSubmission(BaseModel):
    """
    Intake form payload.

    Shape checks only; domain validation (service schema, phone, schedule)
    happens in IntakeService so every field error is reported together.
    """

    service_type: str = Field(..., min_length=1, max_length=100)
    priority: Priority = Priority.NORMAL
    vehicle: str = Field("", max_length=255)
    service_data: dict[str, Any] = Field(default_factory=dict)
    notes: str | None = Field(None, max_length=10000)
    customer_name: str = Field("", max_length=255)
    customer_phone: str = Field("", max_length=50)
    customer_id: UUID | None = None
    scheduled_date: str | None = None
    scheduled_time: str | None = None


class TicketEdit(BaseModel):
    """Manager corrections to a ticket. All fields optional."""

    vehicle: str | None = Field(None, min_length=1, max_length=255)
    notes: str | None = Field(None, max_length=10000)
    customer_name: str | None = Field(None, max_length=255)
    completed_at: datetime | None = None

    @field_validator("completed_at")
    @classmethod
    def require_timezone(cls, v: datetime | None) -> datetime | None:
        if v is None:
            return v
        if v.tzinfo is None:
            raise ValueError("Completion time must include a timezone offset")
        return to_utc(v)


class Ticket(BaseModel):
    """Full ticket entity as stored."""

    id: UUID
    tenant_id: UUID
    ticket_number: int
    service_type: str
    priority: Priority
    status: TicketStatus
    vehicle: str
    service_data: dict[str, Any] = Field(default_factory=dict)
    notes: str | None = None
    scheduled_time: datetime | None = None
    customer_id: UUID | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    created_by: UUID | None = None
    completed_by: UUID | None = None
    completed_at: datetime | None = None
    excluded_from_metrics: bool = False
    created_at: datetime
    updated_at: datetime | None = None
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}

    @model_validator(mode="after")
    def completion_stamped_together(self) -> "Ticket":
        """COMPLETED iff completed_by and completed_at are both set."""
        stamped = self.completed_by is not None and self.completed_at is not None
        partial = (self.completed_by is None) != (self.completed_at is None)
        if partial or stamped != (self.status == TicketStatus.COMPLETED):
            raise ValueError(
                f"Ticket {self.id}: status {self.status.value} inconsistent with completion stamp"
            )
        return self

    @property
    def is_pending(self) -> bool:
        return self.status == TicketStatus.PENDING


class CompletedTicket(BaseModel):
    """Row of the completed-jobs management list."""

    ticket: Ticket
    technician_name: str
    service_label: str
    summary: str


class QueueItem(BaseModel):
    """A pending ticket as shown in the live queue. Derived fields are never stored."""

    id: UUID
    ticket_number: int
    service_type: str
    service_label: str
    priority: Priority
    vehicle: str
    summary: str
    notes: str | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    scheduled_time: datetime | None = None
    created_at: datetime
    minutes_waiting: int
    wait_display: str
    is_due: bool


class QueueSnapshot(BaseModel):
    """Pending tickets grouped by priority, each group oldest first."""

    tenant_id: UUID
    loaded_at: datetime
    high: list[QueueItem] = Field(default_factory=list)
    normal: list[QueueItem] = Field(default_factory=list)
    low: list[QueueItem] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.high) + len(self.normal) + len(self.low)

    def group(self, priority: Priority) -> list[QueueItem]:
        return {Priority.HIGH: self.high, Priority.NORMAL: self.normal, Priority.LOW: self.low}[priority]
