"""Tests for QueueService."""

from datetime import timedelta
from unittest.mock import Mock
from uuid import uuid4

import pytest

from core.models import TicketStatus
from core.services.queue_service import QueueService, format_wait, is_due
from core.ticket_changes import TicketChangeHub
from tests.conftest import OTHER_TENANT_ID, TECH_ID, TENANT_ID
from utils.staff_context import get_current_scope
from utils.timezone import now_utc


@pytest.fixture
def hub():
    return TicketChangeHub()


@pytest.fixture
def queue(db, catalog, hub):
    return QueueService(db, catalog, hub)


class TestFormatWait:

    def test_under_a_minute(self):
        assert format_wait(0) == "Just now"

    def test_minutes(self):
        assert format_wait(12) == "12m"

    def test_hours_and_minutes(self):
        assert format_wait(65) == "1h 5m"
        assert format_wait(120) == "2h 0m"


class TestIsDue:

    def test_unscheduled_always_due(self):
        assert is_due(None, now_utc())

    def test_future_appointment_not_due(self):
        now = now_utc()
        assert not is_due(now + timedelta(hours=1), now)
        assert is_due(now - timedelta(minutes=1), now)


class TestLoad:

    def test_groups_by_priority_oldest_first(self, db, queue, technician, ticket_row):
        now = now_utc()
        db.execute.side_effect = [
            [
                ticket_row(id=uuid4(), ticket_number=3, priority="HIGH", created_at=now - timedelta(minutes=5)),
                ticket_row(id=uuid4(), ticket_number=1, priority="NORMAL", created_at=now - timedelta(minutes=40)),
                ticket_row(id=uuid4(), ticket_number=2, priority="HIGH", created_at=now - timedelta(minutes=20)),
                ticket_row(id=uuid4(), ticket_number=4, priority="LOW", created_at=now - timedelta(minutes=1)),
            ],
            [],
        ]

        snapshot = queue.load(technician, now=now)

        assert [i.ticket_number for i in snapshot.high] == [2, 3]
        assert [i.ticket_number for i in snapshot.normal] == [1]
        assert [i.ticket_number for i in snapshot.low] == [4]
        assert snapshot.total == 4

    def test_derived_fields(self, db, queue, technician, ticket_row):
        now = now_utc()
        db.execute.side_effect = [[ticket_row(created_at=now - timedelta(minutes=65))], []]

        item = queue.load(technician, now=now).normal[0]

        assert item.minutes_waiting == 65
        assert item.wait_display == "1h 5m"
        assert item.service_label == "Flat Repair"
        assert item.summary == "Front Right"
        assert item.is_due

    def test_future_appointment_flagged_not_due(self, db, queue, technician, ticket_row):
        now = now_utc()
        db.execute.side_effect = [[
            ticket_row(
                service_type="APPOINTMENT",
                service_data={"customer_name": "Jane Doe", "phone": "423-555-0001"},
                scheduled_time=now + timedelta(hours=2),
            )
        ], []]

        item = queue.load(technician, now=now).normal[0]

        assert not item.is_due
        assert item.summary == "Jane Doe - 423-555-0001"

    def test_unknown_service_type_still_shown(self, db, queue, technician, ticket_row):
        db.execute.side_effect = [[ticket_row(service_type="TPMS", service_data={"sensor_count": 2})], []]

        item = queue.load(technician).normal[0]

        assert item.service_label == "Tpms"
        assert item.summary == "Sensor count: 2"

    def test_other_tenant_rows_dropped(self, db, queue, technician, ticket_row):
        db.execute.side_effect = [[ticket_row(tenant_id=OTHER_TENANT_ID)], []]
        assert queue.load(technician).total == 0

    def test_loads_under_caller_scope(self, db, queue, technician):
        """Reloads from the listener thread still run as the caller."""
        seen = []

        def capture(query, params=None):
            seen.append(get_current_scope())
            return []

        db.execute.side_effect = capture

        queue.load(technician)

        assert seen[0].staff_id == TECH_ID
        assert seen[0].tenant_id == TENANT_ID

    def test_only_pending_tickets_loaded(self, db, queue, technician):
        """A completed ticket drops out of the queue on the next reload."""
        queue.load(technician)

        query, params = db.execute.call_args_list[0].args
        assert "status = %s" in query
        assert "deleted_at IS NULL" in query
        assert params == (TENANT_ID, TicketStatus.PENDING.value)
        assert get_current_scope() is None


class TestSubscribe:

    def test_subscriber_hears_own_tenant(self, queue, hub, technician):
        callback = Mock()
        handle = queue.subscribe(technician, callback)

        hub.notify(TENANT_ID, uuid4(), "insert")
        hub.notify(OTHER_TENANT_ID, uuid4(), "insert")

        assert callback.call_count == 1
        assert queue.unsubscribe(handle) is True
        assert queue.unsubscribe(handle) is False
