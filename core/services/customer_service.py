"""
Customer service for repeat-visit tracking.

Customers are deduplicated on their normalized (digits-only) phone number
within a tenant. Intake resolves a customer for every ticket; search merges
customer records with contacts captured inline on older tickets.
"""

import logging
from datetime import date, datetime
from uuid import UUID, uuid4

import psycopg2.errors

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction
from core.errors import NotFound
from core.models import Customer, CustomerSearchResult, StaffIdentity, VisitSummary, normalize_phone
from core.permissions import require_same_tenant
from utils.timezone import combine_local, now_utc, to_utc

logger = logging.getLogger(__name__)

# Phone matching in search needs at least this many digits
_MIN_PHONE_DIGITS = 4
_SEARCH_TICKET_LIMIT = 100


class CustomerService:
    """Service for customer operations."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger, timezone: str = "UTC"):
        self.postgres = postgres
        self.audit = audit
        self.timezone = timezone

    def get_by_id(self, caller: StaffIdentity, customer_id: UUID) -> Customer | None:
        """Customer in the caller's tenant, or None."""
        row = self.postgres.execute_single(
            "SELECT * FROM customers WHERE id = %s AND tenant_id = %s",
            (customer_id, caller.tenant_id)
        )
        if row is None:
            return None
        return Customer.model_validate(row)

    def find_by_phone(self, caller: StaffIdentity, phone_normalized: str) -> Customer | None:
        """Customer whose normalized phone matches, or None."""
        row = self.postgres.execute_single(
            "SELECT * FROM customers WHERE tenant_id = %s AND phone_normalized = %s",
            (caller.tenant_id, phone_normalized)
        )
        if row is None:
            return None
        return Customer.model_validate(row)

    def _refresh_vehicle(self, customer: Customer, vehicle: str) -> Customer:
        if customer.last_vehicle_text == vehicle:
            return customer
        row = self.postgres.execute_returning(
            """
            UPDATE customers
            SET last_vehicle_text = %s, updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (vehicle, now_utc(), customer.id)
        )[0]
        return Customer.model_validate(row)

    def _create(self, caller: StaffIdentity, name: str, phone: str, vehicle: str) -> Customer:
        now = now_utc()
        row = self.postgres.execute_returning(
            """
            INSERT INTO customers (
                id, tenant_id, name, phone_raw, phone_normalized,
                last_vehicle_text, created_at, updated_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING *
            """,
            (
                uuid4(), caller.tenant_id, name, phone, normalize_phone(phone),
                vehicle, now, now
            )
        )[0]

        customer = Customer.model_validate(row)

        self.audit.log_change(
            caller,
            entity_type="customer",
            entity_id=customer.id,
            action=AuditAction.CREATE,
            changes={"created": customer.model_dump(mode="json")}
        )

        return customer

    def resolve_for_intake(
        self,
        caller: StaffIdentity,
        name: str,
        phone: str,
        vehicle: str,
        customer_id: UUID | None = None,
    ) -> Customer:
        """
        Find or create the customer for a new ticket.

        A linked customer_id is used as-is. Otherwise the phone is normalized
        and matched; a match gets its last vehicle refreshed, no match creates
        a customer. A concurrent create of the same phone loses the unique
        index race and re-reads the winner's row.

        Raises:
            NotFound: If customer_id is given but not in the caller's tenant
        """
        if customer_id is not None:
            row = self.postgres.execute_single(
                "SELECT * FROM customers WHERE id = %s", (customer_id,)
            )
            if row is None:
                raise NotFound("customer", customer_id)
            customer = Customer.model_validate(row)
            require_same_tenant(caller, customer.tenant_id, "customer")
            return self._refresh_vehicle(customer, vehicle)

        phone_normalized = normalize_phone(phone)
        existing = self.find_by_phone(caller, phone_normalized)
        if existing is not None:
            return self._refresh_vehicle(existing, vehicle)

        try:
            return self._create(caller, name, phone, vehicle)
        except psycopg2.errors.UniqueViolation:
            logger.info(f"Customer with phone {phone_normalized} created concurrently, re-reading")
            existing = self.find_by_phone(caller, phone_normalized)
            if existing is None:
                raise
            return self._refresh_vehicle(existing, vehicle)

    def search(self, caller: StaffIdentity, query: str) -> list[CustomerSearchResult]:
        """
        Search customers by name or phone.

        Merges the datastore's search_customers procedure with tickets whose
        inline customer name (or phone, given 4+ digits) matches. Results are
        grouped case-insensitively by name, most recent visit first.
        """
        term = query.strip()
        if not term:
            return []

        digits = normalize_phone(term)
        name_pattern = f"%{term}%"

        if len(digits) >= _MIN_PHONE_DIGITS:
            tickets = self.postgres.execute(
                """
                SELECT id, ticket_number, service_type, vehicle, status, created_at,
                       customer_name, customer_phone
                FROM tickets
                WHERE tenant_id = %s AND deleted_at IS NULL
                  AND (customer_name ILIKE %s
                       OR regexp_replace(coalesce(customer_phone, ''), '\\D', '', 'g') LIKE %s)
                ORDER BY created_at DESC
                LIMIT %s
                """,
                (caller.tenant_id, name_pattern, f"%{digits}%", _SEARCH_TICKET_LIMIT)
            )
        else:
            tickets = self.postgres.execute(
                """
                SELECT id, ticket_number, service_type, vehicle, status, created_at,
                       customer_name, customer_phone
                FROM tickets
                WHERE tenant_id = %s AND deleted_at IS NULL AND customer_name ILIKE %s
                ORDER BY created_at DESC
                LIMIT %s
                """,
                (caller.tenant_id, name_pattern, _SEARCH_TICKET_LIMIT)
            )

        customers = self.postgres.execute(
            "SELECT * FROM search_customers(%s)", (term,)
        )

        return merge_search_results(customers, tickets, self.timezone)


def _visit_time(value: date | datetime | None, tz_name: str) -> datetime | None:
    """Aware UTC visit time. Dates and naive datetimes are tenant-local."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return to_utc(value)
        return combine_local(value.date().isoformat(), value.time().isoformat(), tz_name)
    return combine_local(value.isoformat(), "00:00", tz_name)


def merge_search_results(
    customers: list[dict],
    tickets: list[dict],
    tz_name: str = "UTC",
) -> list[CustomerSearchResult]:
    """Group customer rows and ticket rows by lower-cased name."""
    grouped: dict[str, CustomerSearchResult] = {}

    for row in customers:
        key = (row.get("name") or "").strip().lower()
        if not key or key in grouped:
            continue
        grouped[key] = CustomerSearchResult(
            customer_id=row.get("id"),
            name=row["name"],
            phone=row.get("phone_raw"),
            vehicles=[row["last_vehicle_text"]] if row.get("last_vehicle_text") else [],
            total_visits=row.get("total_visits") or 0,
            last_visit=_visit_time(row.get("last_visit_date"), tz_name),
        )

    for row in tickets:
        name = row.get("customer_name") or ""
        key = name.strip().lower()
        if not key or key == "unknown":
            continue

        result = grouped.get(key)
        if result is None:
            result = grouped[key] = CustomerSearchResult(name=name, phone=row.get("customer_phone"))

        result.total_visits += 1
        if row.get("customer_phone") and not result.phone:
            result.phone = row["customer_phone"]
        if row.get("vehicle") and row["vehicle"] not in result.vehicles:
            result.vehicles.append(row["vehicle"])
        visited = _visit_time(row["created_at"], tz_name)
        if result.last_visit is None or visited > result.last_visit:
            result.last_visit = visited
        result.tickets.append(VisitSummary.model_validate(row))

    def sort_key(r: CustomerSearchResult):
        # Visited first (newest first), then never-visited by name
        if r.last_visit is None:
            return (1, 0.0, r.name.lower())
        return (0, -r.last_visit.timestamp(), r.name.lower())

    return sorted(grouped.values(), key=sort_key)
