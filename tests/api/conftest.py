"""API test fixtures: the real app, middleware and routers over mocked services."""

from unittest.mock import Mock

import pytest
from starlette.testclient import TestClient

from api.app import create_app
from auth.config import AuthConfig
from auth.exceptions import SessionExpiredError
from auth.service import AuthService
from core.config import AppConfig
from core.services.catalog_service import CatalogService
from core.services.customer_service import CustomerService
from core.services.intake_service import IntakeService
from core.services.queue_service import QueueService
from core.services.report_service import ReportService
from core.services.roster_service import RosterService
from core.services.tenant_service import TenantService
from core.services.ticket_service import TicketService
from core.ticket_changes import TicketChangeHub

BASE_URL = "http://interstate.tickets.example.com"


@pytest.fixture
def identities(writer, technician, manager):
    """Session token -> identity the mocked auth service resolves."""
    return {"writer-token": writer, "tech-token": technician, "manager-token": manager}


@pytest.fixture
def services(tenant, identities):
    auth = Mock(spec=AuthService)

    def resolve_identity(token, request_tenant):
        if token not in identities:
            raise SessionExpiredError("Session not found or expired")
        return identities[token]

    auth.resolve_identity.side_effect = resolve_identity

    tenants = Mock(spec=TenantService)
    tenants.get_by_slug.side_effect = lambda slug: tenant if slug == tenant.slug else None

    return {
        "hub": TicketChangeHub(),
        "tenants": tenants,
        "auth": auth,
        "catalog": Mock(spec=CatalogService),
        "customer": Mock(spec=CustomerService),
        "intake": Mock(spec=IntakeService),
        "queue": Mock(spec=QueueService),
        "ticket": Mock(spec=TicketService),
        "roster": Mock(spec=RosterService),
        "report": Mock(spec=ReportService),
    }


@pytest.fixture
def app(services):
    return create_app(
        services,
        AppConfig(queue_heartbeat_seconds=0.05),
        AuthConfig(secure_cookies=False),
    )


def _client(app, token=None):
    cookies = {"session_token": token} if token else None
    return TestClient(app, base_url=BASE_URL, cookies=cookies)


@pytest.fixture
def anon_client(app):
    return _client(app)


@pytest.fixture
def writer_client(app):
    return _client(app, "writer-token")


@pytest.fixture
def tech_client(app):
    return _client(app, "tech-token")


@pytest.fixture
def manager_client(app):
    return _client(app, "manager-token")
