"""
PostgreSQL LISTEN client for ticket change notifications.

The datastore issues pg_notify('ticket_changes', '{"tenant_id": ..., "ticket_id": ..., "op": ...}')
on every insert, update and delete of a ticket. This client holds one
dedicated autocommit connection outside the pool, listens on that channel on
a daemon thread, and hands each decoded notice to a callback.

Notifications carry no row data - consumers reload what they need.
"""

import json
import logging
import select
import threading
from typing import Callable, NamedTuple
from uuid import UUID

import psycopg2
import psycopg2.extensions

logger = logging.getLogger(__name__)

CHANNEL = "ticket_changes"


class TicketChangeNotice(NamedTuple):
    """One decoded change notification."""

    tenant_id: UUID
    ticket_id: UUID | None
    op: str


def parse_notice(payload: str) -> TicketChangeNotice:
    """
    Decode a notification payload.

    Raises:
        ValueError: If payload is not JSON or lacks tenant_id
    """
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid notification payload: {e}")

    if not isinstance(data, dict) or not data.get("tenant_id"):
        raise ValueError("Notification payload missing tenant_id")

    ticket_id = data.get("ticket_id")
    return TicketChangeNotice(
        tenant_id=UUID(str(data["tenant_id"])),
        ticket_id=UUID(str(ticket_id)) if ticket_id else None,
        op=str(data.get("op", "update")).lower(),
    )


class TicketChangeListener:
    """
    Background LISTEN loop on the ticket_changes channel.

    Usage:
        listener = TicketChangeListener(database_url, on_change=hub.publish)
        listener.start()
        ...
        listener.stop()

    Connection loss is logged and retried after reconnect_delay seconds.
    """

    def __init__(
        self,
        database_url: str,
        on_change: Callable[[TicketChangeNotice], None],
        poll_seconds: float = 5.0,
        reconnect_delay: float = 3.0,
    ):
        self._database_url = database_url
        self._on_change = on_change
        self._poll_seconds = poll_seconds
        self._reconnect_delay = reconnect_delay
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._conn = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the listener thread. No-op if already running."""
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="ticket-change-listener", daemon=True
        )
        self._thread.start()
        logger.info(f"Listening for {CHANNEL} notifications")

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the thread to exit and wait for it."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self._close()

    def _connect(self) -> None:
        self._conn = psycopg2.connect(self._database_url)
        self._conn.set_isolation_level(psycopg2.extensions.ISOLATION_LEVEL_AUTOCOMMIT)
        with self._conn.cursor() as cur:
            cur.execute(f"LISTEN {CHANNEL}")

    def _close(self) -> None:
        if self._conn is not None and not self._conn.closed:
            self._conn.close()
        self._conn = None

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                if self._conn is None:
                    self._connect()
                self._poll_once()
            except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
                logger.error(f"Ticket change listener lost connection: {e}")
                self._close()
                self._stop.wait(self._reconnect_delay)

    def _poll_once(self) -> None:
        ready, _, _ = select.select([self._conn], [], [], self._poll_seconds)
        if not ready:
            return

        self._conn.poll()
        while self._conn.notifies:
            notify = self._conn.notifies.pop(0)
            self.dispatch(notify.payload)

    def dispatch(self, payload: str) -> None:
        """Decode one payload and deliver it. Bad payloads are logged and dropped."""
        try:
            notice = parse_notice(payload)
        except ValueError as e:
            logger.warning(f"Ignoring ticket notification: {e}")
            return

        try:
            self._on_change(notice)
        except Exception:
            logger.exception(f"Ticket change callback failed for tenant {notice.tenant_id}")
