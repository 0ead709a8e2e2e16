"""
Domain events for shop tickets.

Immutable event objects that represent state changes. A service publishes
what happened, and handlers react without the publisher knowing who's
listening.

Event Categories:
- TicketEvent: Ticket lifecycle (create, complete, exclusion, edit, delete)
- StaffEvent: Roster lifecycle (deactivate)

Events carry the full domain object so handlers don't need to re-fetch state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class ShopEvent:
    """Base class for all domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


# =============================================================================
# TICKET EVENTS
# =============================================================================


@dataclass(frozen=True)
class TicketEvent(ShopEvent):
    """Events related to ticket lifecycle."""
    ticket: Any = None  # Ticket - Any avoids a models import cycle

    # Short operation name used for queue invalidation notices
    op = "update"


@dataclass(frozen=True)
class TicketCreated(TicketEvent):
    """A new ticket entered the queue as PENDING."""
    op = "insert"

    @classmethod
    def create(cls, ticket: Any) -> "TicketCreated":
        return cls(ticket=ticket)


@dataclass(frozen=True)
class TicketCompleted(TicketEvent):
    """Ticket moved PENDING -> COMPLETED."""

    @classmethod
    def create(cls, ticket: Any) -> "TicketCompleted":
        return cls(ticket=ticket)


@dataclass(frozen=True)
class TicketExclusionChanged(TicketEvent):
    """Ticket's metrics-exclusion flag changed."""

    @classmethod
    def create(cls, ticket: Any) -> "TicketExclusionChanged":
        return cls(ticket=ticket)


@dataclass(frozen=True)
class TicketUpdated(TicketEvent):
    """Manager edited a ticket."""

    @classmethod
    def create(cls, ticket: Any) -> "TicketUpdated":
        return cls(ticket=ticket)


@dataclass(frozen=True)
class TicketDeleted(TicketEvent):
    """Manager soft-deleted a ticket."""
    op = "delete"

    @classmethod
    def create(cls, ticket: Any) -> "TicketDeleted":
        return cls(ticket=ticket)


# =============================================================================
# STAFF EVENTS
# =============================================================================


@dataclass(frozen=True)
class StaffEvent(ShopEvent):
    """Events related to roster lifecycle."""
    staff: Any = None


@dataclass(frozen=True)
class StaffDeactivated(StaffEvent):
    """Staff member (and paired technician) deactivated."""

    @classmethod
    def create(cls, staff: Any) -> "StaffDeactivated":
        return cls(staff=staff)
