"""Fixtures shared by the service tests."""

from unittest.mock import MagicMock, Mock

import pytest

from core.audit import AuditLogger
from core.event_bus import EventBus
from core.service_types import ServiceTypeRegistry
from core.services.catalog_service import CatalogService


@pytest.fixture
def audit():
    return Mock(spec=AuditLogger)


@pytest.fixture
def event_bus():
    return Mock(spec=EventBus)


@pytest.fixture
def catalog(db):
    """Catalog over the built-in service types (tenant has no catalog rows)."""
    return CatalogService(db, ServiceTypeRegistry())


@pytest.fixture
def tx(db):
    """Transaction double handed out by db.transaction()."""
    transaction = Mock()
    transaction.execute_returning.return_value = []
    context = MagicMock()
    context.__enter__.return_value = transaction
    context.__exit__.return_value = False
    db.transaction.return_value = context
    return transaction
