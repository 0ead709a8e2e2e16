"""GET /api/data: unified read endpoint."""

from fastapi import APIRouter, Query, Request

from api.actions import parse_model
from api.base import success_response
from core.models import ReportWindow


VALID_TYPES = {"queue", "completed", "staff", "customers", "services", "report"}


def create_data_router(services: dict) -> APIRouter:
    router = APIRouter()

    queue_svc = services["queue"]
    ticket_svc = services["ticket"]
    roster_svc = services["roster"]
    customer_svc = services["customer"]
    catalog_svc = services["catalog"]
    report_svc = services["report"]

    @router.get("/data")
    async def get_data(
        request: Request,
        type: str | None = Query(None),
        search: str | None = Query(None),
        window: str = Query("today"),
        start: str | None = Query(None),
        end: str | None = Query(None),
        limit: int | None = Query(None, ge=1, le=500),
    ):
        if type is None:
            raise ValueError("'type' query parameter is required")

        if type not in VALID_TYPES:
            raise ValueError(f"Unknown type '{type}'. Valid types: {', '.join(sorted(VALID_TYPES))}")

        caller = request.state.identity

        if type == "queue":
            snapshot = queue_svc.load(caller)
            return success_response(snapshot_payload(snapshot)).model_dump(mode="json")

        if type == "completed":
            rows = ticket_svc.list_completed(caller, limit=limit)
            return success_response([r.model_dump(mode="json") for r in rows]).model_dump(mode="json")

        if type == "staff":
            members = roster_svc.list_members(caller)
            return success_response([m.model_dump(mode="json") for m in members]).model_dump(mode="json")

        if type == "customers":
            results = customer_svc.search(caller, search or "")
            return success_response([r.model_dump(mode="json") for r in results]).model_dump(mode="json")

        if type == "services":
            return success_response(catalog_svc.list_active(caller)).model_dump(mode="json")

        report_window = parse_model(ReportWindow, window_params(window, start, end))
        summary = report_svc.summary(caller, report_window)
        return success_response(summary.model_dump(mode="json")).model_dump(mode="json")

    return router


def window_params(window: str, start: str | None, end: str | None) -> dict:
    params = {"kind": window}
    if start:
        params["start_date"] = start
    if end:
        params["end_date"] = end
    return params


def snapshot_payload(snapshot) -> dict:
    payload = snapshot.model_dump(mode="json")
    payload["total"] = snapshot.total
    return payload
