"""
Live queue stream and report export.

GET /api/queue/stream is a server-sent event stream: a full queue snapshot
on connect, then a fresh snapshot after every change to the tenant's
tickets, with comment heartbeats in between.
"""

import asyncio
import json
import logging
from typing import AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, Query, Request
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool

from api.actions import parse_model
from api.data import snapshot_payload, window_params
from clients.ticket_listener import TicketChangeNotice
from core.models import ReportWindow, StaffIdentity

logger = logging.getLogger(__name__)


def _sse(event: str, payload: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(payload)}\n\n"


class QueueEventStream:
    """
    One caller's live queue as server-sent events.

    Subscribes on construction. events() yields a snapshot straight away,
    then a fresh snapshot after every burst of change notices, with comment
    heartbeats in between. The subscription is dropped when the generator
    finishes or is closed.
    """

    def __init__(self, queue_svc, caller: StaffIdentity, heartbeat_seconds: float):
        self.queue_svc = queue_svc
        self.caller = caller
        self.heartbeat_seconds = heartbeat_seconds
        self._loop = asyncio.get_running_loop()
        self._changes: asyncio.Queue = asyncio.Queue()
        self._handle = queue_svc.subscribe(caller, self._on_change)

    def _on_change(self, notice: TicketChangeNotice) -> None:
        # Called from the listener thread or a request thread
        self._loop.call_soon_threadsafe(self._changes.put_nowait, notice)

    async def _snapshot_event(self) -> str:
        snapshot = await run_in_threadpool(self.queue_svc.load, self.caller)
        return _sse("snapshot", snapshot_payload(snapshot))

    async def events(self, is_disconnected: Callable[[], Awaitable[bool]]) -> AsyncIterator[str]:
        try:
            yield await self._snapshot_event()

            while not await is_disconnected():
                try:
                    await asyncio.wait_for(self._changes.get(), timeout=self.heartbeat_seconds)
                except asyncio.TimeoutError:
                    yield ": heartbeat\n\n"
                    continue

                # Collapse a burst of notices into one reload
                while not self._changes.empty():
                    self._changes.get_nowait()

                yield await self._snapshot_event()
        finally:
            self.close()

    def close(self) -> None:
        """Drop the subscription. Safe to call twice."""
        if self._handle is not None:
            self.queue_svc.unsubscribe(self._handle)
            self._handle = None


def create_stream_router(services: dict, heartbeat_seconds: float) -> APIRouter:
    router = APIRouter()

    queue_svc = services["queue"]
    report_svc = services["report"]

    @router.get("/queue/stream")
    async def queue_stream(request: Request):
        caller = request.state.identity
        stream = QueueEventStream(queue_svc, caller, heartbeat_seconds)
        logger.info(f"Queue stream opened for staff {caller.staff_id}")

        async def event_stream():
            try:
                async for event in stream.events(request.is_disconnected):
                    yield event
            finally:
                stream.close()
                logger.info(f"Queue stream closed for staff {caller.staff_id}")

        return StreamingResponse(
            event_stream(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    @router.get("/reports/export.csv")
    async def export_report(
        request: Request,
        window: str = Query("today"),
        start: str | None = Query(None),
        end: str | None = Query(None),
    ):
        report_window = parse_model(ReportWindow, window_params(window, start, end))
        content = report_svc.export_csv(request.state.identity, report_window)
        filename = f"tickets-{report_window.kind.value}.csv"
        return StreamingResponse(
            iter([content]),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    return router
