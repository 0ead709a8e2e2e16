"""Shared test fixtures for the shop tickets test suite."""

import fnmatch
import json
from pathlib import Path
from unittest.mock import Mock
from uuid import UUID

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env")

from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from core.models import StaffIdentity, StaffRole, Tenant
from utils.staff_context import clear_current_scope
from utils.timezone import now_utc


# =============================================================================
# TENANT AND STAFF CONSTANTS
# =============================================================================

TENANT_ID = UUID("00000000-0000-0000-0000-0000000000a1")
OTHER_TENANT_ID = UUID("00000000-0000-0000-0000-0000000000b2")

WRITER_ID = UUID("00000000-0000-0000-0000-000000000001")
TECH_ID = UUID("00000000-0000-0000-0000-000000000002")
MANAGER_ID = UUID("00000000-0000-0000-0000-000000000003")

TECHNICIAN_PROFILE_ID = UUID("00000000-0000-0000-0000-0000000000f2")


# =============================================================================
# IDENTITY FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_staff_scope():
    """Ensure clean RLS scope before and after each test."""
    clear_current_scope()
    yield
    clear_current_scope()


@pytest.fixture
def tenant() -> Tenant:
    return Tenant(id=TENANT_ID, slug="interstate", name="Interstate Tire", primary_color="#b91c1c")


@pytest.fixture
def other_tenant() -> Tenant:
    return Tenant(id=OTHER_TENANT_ID, slug="eastside", name="Eastside Auto")


@pytest.fixture
def writer() -> StaffIdentity:
    return StaffIdentity(
        staff_id=WRITER_ID, tenant_id=TENANT_ID, id_code="SW01", name="Sam Writer",
        role=StaffRole.SERVICE_WRITER,
    )


@pytest.fixture
def technician() -> StaffIdentity:
    return StaffIdentity(
        staff_id=TECH_ID, tenant_id=TENANT_ID, id_code="T01", name="Tina Tech",
        role=StaffRole.TECHNICIAN,
    )


@pytest.fixture
def manager() -> StaffIdentity:
    return StaffIdentity(
        staff_id=MANAGER_ID, tenant_id=TENANT_ID, id_code="M01", name="Morgan Manager",
        role=StaffRole.MANAGER,
    )


# =============================================================================
# DATASTORE FIXTURES
# =============================================================================


@pytest.fixture
def db():
    """PostgresClient double. Tests program return values per call."""
    mock = Mock(spec=PostgresClient)
    mock.execute.return_value = []
    mock.execute_single.return_value = None
    mock.execute_returning.return_value = []
    return mock


@pytest.fixture
def ticket_row():
    """Factory for stored ticket rows."""

    def _make(**overrides):
        now = now_utc()
        row = {
            "id": UUID("00000000-0000-0000-0000-00000000c001"),
            "tenant_id": TENANT_ID,
            "ticket_number": 101,
            "service_type": "FLAT_REPAIR",
            "priority": "NORMAL",
            "status": "PENDING",
            "vehicle": "2018 Honda Civic",
            "service_data": {"tire_position": "FR"},
            "notes": None,
            "scheduled_time": None,
            "customer_id": None,
            "customer_name": "Dana Driver",
            "customer_phone": "555-123-4567",
            "created_by": WRITER_ID,
            "completed_by": None,
            "completed_at": None,
            "excluded_from_metrics": False,
            "created_at": now,
            "updated_at": now,
            "deleted_at": None,
        }
        row.update(overrides)
        return row

    return _make


# =============================================================================
# VALKEY FIXTURES
# =============================================================================


class InMemoryValkey:
    """Dict-backed stand-in for ValkeyClient. TTLs are recorded, never elapse."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.sets: dict[str, set[str]] = {}
        self.ttls: dict[str, int] = {}

    def get(self, key):
        return self.values.get(key)

    def set(self, key, value, expire_seconds=None):
        self.values[key] = value
        if expire_seconds is not None:
            self.ttls[key] = expire_seconds

    def delete(self, key):
        existed = key in self.values or key in self.sets
        self.values.pop(key, None)
        self.sets.pop(key, None)
        self.ttls.pop(key, None)
        return existed

    def exists(self, key):
        return key in self.values or key in self.sets

    def ttl(self, key):
        if not self.exists(key):
            return -2
        return self.ttls.get(key, -1)

    def expire(self, key, seconds):
        if not self.exists(key):
            return False
        self.ttls[key] = seconds
        return True

    def incr(self, key):
        value = int(self.values.get(key, 0)) + 1
        self.values[key] = str(value)
        return value

    def set_json(self, key, value, expire_seconds=None):
        self.set(key, json.dumps(value), expire_seconds)

    def get_json(self, key):
        value = self.get(key)
        return None if value is None else json.loads(value)

    def add_to_set(self, key, member, expire_seconds=None):
        self.sets.setdefault(key, set()).add(member)
        if expire_seconds is not None:
            self.ttls[key] = expire_seconds

    def remove_from_set(self, key, member):
        self.sets.get(key, set()).discard(member)

    def set_members(self, key):
        return set(self.sets.get(key, set()))

    def keys(self, pattern):
        return [k for k in list(self.values) + list(self.sets) if fnmatch.fnmatch(k, pattern)]

    def close(self):
        pass


@pytest.fixture
def valkey():
    """In-memory Valkey with the ValkeyClient interface."""
    fake = InMemoryValkey()
    # Keep the double honest: every public method must exist on the real client
    for name in ("get", "set", "delete", "exists", "ttl", "expire", "incr", "set_json",
                 "get_json", "add_to_set", "remove_from_set", "set_members", "close"):
        assert hasattr(ValkeyClient, name)
    return fake
