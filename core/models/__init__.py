"""Core domain models."""

from core.models.tenant import Tenant
from core.models.staff import (
    StaffRole,
    Staff,
    StaffCreate,
    Technician,
    TeamMember,
    StaffIdentity,
    normalize_code,
)
from core.models.customer import (
    Customer,
    CustomerSearchResult,
    VisitSummary,
    normalize_phone,
    format_phone,
    is_valid_phone,
)
from core.models.ticket import (
    Ticket,
    TicketStatus,
    Priority,
    TicketSubmission,
    TicketEdit,
    CompletedTicket,
    QueueItem,
    QueueSnapshot,
)
from core.models.service_type import ServiceTypeEntry
from core.models.report import ReportWindow, WindowKind, BreakdownRow, KPISummary

__all__ = [
    # Tenant
    "Tenant",
    # Staff
    "StaffRole", "Staff", "StaffCreate", "Technician", "TeamMember", "StaffIdentity", "normalize_code",
    # Customer
    "Customer", "CustomerSearchResult", "VisitSummary", "normalize_phone", "format_phone", "is_valid_phone",
    # Ticket
    "Ticket", "TicketStatus", "Priority", "TicketSubmission", "TicketEdit", "CompletedTicket",
    "QueueItem", "QueueSnapshot",
    # Catalog
    "ServiceTypeEntry",
    # Reports
    "ReportWindow", "WindowKind", "BreakdownRow", "KPISummary",
]
