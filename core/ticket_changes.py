"""
Fan-out of ticket change notices to live queue subscribers.

Fed from two sides: the datastore's ticket_changes notifications (via
TicketChangeListener) and in-process domain events (via the queue
invalidation handler). Subscribers are keyed by tenant and only hear about
their own tenant's tickets.
"""

import logging
import threading
from typing import Callable, Dict, NamedTuple
from uuid import UUID, uuid4

from clients.ticket_listener import TicketChangeNotice

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[TicketChangeNotice], None]


class _Subscription(NamedTuple):
    tenant_id: UUID
    callback: ChangeCallback


class TicketChangeHub:
    """
    Thread-safe registry of change subscribers.

    Usage:
        hub = TicketChangeHub()
        handle = hub.subscribe(tenant_id, on_change)
        hub.notify(tenant_id, ticket_id, "update")
        hub.unsubscribe(handle)
    """

    def __init__(self):
        self._subs: Dict[UUID, _Subscription] = {}
        self._lock = threading.Lock()

    def subscribe(self, tenant_id: UUID, callback: ChangeCallback) -> UUID:
        """Register callback for one tenant. Returns the handle for unsubscribe."""
        handle = uuid4()
        with self._lock:
            self._subs[handle] = _Subscription(tenant_id, callback)
        logger.debug(f"Queue subscriber {handle} added for tenant {tenant_id}")
        return handle

    def unsubscribe(self, handle: UUID) -> bool:
        """Remove a subscription. False if the handle was unknown (already removed)."""
        with self._lock:
            removed = self._subs.pop(handle, None)
        if removed is not None:
            logger.debug(f"Queue subscriber {handle} removed")
        return removed is not None

    def subscriber_count(self, tenant_id: UUID | None = None) -> int:
        with self._lock:
            if tenant_id is None:
                return len(self._subs)
            return sum(1 for s in self._subs.values() if s.tenant_id == tenant_id)

    def publish(self, notice: TicketChangeNotice) -> int:
        """
        Deliver a notice to every subscriber of its tenant.

        A failing subscriber is logged and does not stop delivery to the rest.
        Returns the number of subscribers notified.
        """
        with self._lock:
            targets = [
                (handle, sub.callback)
                for handle, sub in self._subs.items()
                if sub.tenant_id == notice.tenant_id
            ]

        for handle, callback in targets:
            try:
                callback(notice)
            except Exception:
                logger.exception(f"Queue subscriber {handle} failed on {notice.op} notice")

        return len(targets)

    def notify(self, tenant_id: UUID, ticket_id: UUID | None = None, op: str = "update") -> int:
        return self.publish(TicketChangeNotice(tenant_id=tenant_id, ticket_id=ticket_id, op=op))
