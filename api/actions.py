"""POST /api/actions: unified mutation endpoint."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Request
from pydantic import BaseModel, ValidationError

from api.base import success_response
from core.errors import NotFound, ValidationFailed
from core.models import StaffCreate, StaffIdentity, StaffRole, TicketEdit, TicketSubmission


class ActionRequest(BaseModel):
    domain: str
    action: str
    data: dict = {}


def parse_model(model: type[BaseModel], data: dict) -> Any:
    """Build a request model, reporting problems per field."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        field_errors = {}
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"]) or "data"
            field_errors.setdefault(field, error["msg"])
        raise ValidationFailed(field_errors)


def require_id(data: dict, key: str = "id") -> UUID:
    """UUID from the payload or a field error."""
    value = data.get(key)
    if value is None:
        raise ValidationFailed({key: f"{key} is required"})
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationFailed({key: f"{key} must be a valid id"})


def create_actions_router(services: dict) -> APIRouter:
    router = APIRouter()

    handlers = {
        "ticket": TicketHandler(services["intake"], services["ticket"]),
        "staff": StaffHandler(services["roster"]),
    }

    @router.post("/actions")
    async def perform_action(request: Request, body: ActionRequest):
        handler = handlers.get(body.domain)
        if handler is None:
            raise ValueError(
                f"Unknown domain '{body.domain}'. "
                f"Valid domains: {', '.join(sorted(handlers.keys()))}"
            )

        if body.action not in handler.ALLOWED_ACTIONS:
            raise ValueError(
                f"Action '{body.action}' not allowed on '{body.domain}'. "
                f"Allowed: {', '.join(sorted(handler.ALLOWED_ACTIONS))}"
            )

        method = getattr(handler, f"_handle_{body.action}")
        result = method(request.state.identity, dict(body.data))
        return success_response(result).model_dump(mode="json")

    return router


# =============================================================================
# HANDLER CLASSES
# =============================================================================


class TicketHandler:
    ALLOWED_ACTIONS = {"submit", "complete", "toggle_exclusion", "exclude_all", "edit", "delete"}

    def __init__(self, intake, tickets):
        self.intake = intake
        self.tickets = tickets

    def _handle_submit(self, caller: StaffIdentity, data: dict):
        ticket = self.intake.submit(caller, parse_model(TicketSubmission, data))
        return ticket.model_dump(mode="json")

    def _handle_complete(self, caller: StaffIdentity, data: dict):
        ticket = self.tickets.complete(caller, require_id(data), confirm=bool(data.get("confirm")))
        return ticket.model_dump(mode="json")

    def _handle_toggle_exclusion(self, caller: StaffIdentity, data: dict):
        ticket = self.tickets.toggle_exclusion(caller, require_id(data))
        return ticket.model_dump(mode="json")

    def _handle_exclude_all(self, caller: StaffIdentity, data: dict):
        count = self.tickets.exclude_all_completed(caller, confirm=bool(data.get("confirm")))
        return {"excluded": count}

    def _handle_edit(self, caller: StaffIdentity, data: dict):
        ticket_id = require_id(data)
        data.pop("id")
        ticket = self.tickets.edit(caller, ticket_id, parse_model(TicketEdit, data))
        return ticket.model_dump(mode="json")

    def _handle_delete(self, caller: StaffIdentity, data: dict):
        ticket_id = require_id(data)
        deleted = self.tickets.delete(caller, ticket_id)
        if not deleted:
            raise NotFound("ticket", ticket_id)
        return {"deleted": True}


class StaffHandler:
    ALLOWED_ACTIONS = {
        "create", "update_code", "rename", "deactivate", "activate", "invite", "suggest_code",
    }

    def __init__(self, roster):
        self.roster = roster

    def _handle_create(self, caller: StaffIdentity, data: dict):
        member = self.roster.create_member(caller, parse_model(StaffCreate, data))
        return member.model_dump(mode="json")

    def _handle_update_code(self, caller: StaffIdentity, data: dict):
        staff = self.roster.update_code(caller, require_id(data), str(data.get("id_code") or ""))
        return staff.model_dump(mode="json")

    def _handle_rename(self, caller: StaffIdentity, data: dict):
        staff = self.roster.rename_member(caller, require_id(data), str(data.get("name") or ""))
        return staff.model_dump(mode="json")

    def _handle_deactivate(self, caller: StaffIdentity, data: dict):
        staff = self.roster.deactivate_member(caller, require_id(data))
        return staff.model_dump(mode="json")

    def _handle_activate(self, caller: StaffIdentity, data: dict):
        staff = self.roster.activate_member(caller, require_id(data))
        return staff.model_dump(mode="json")

    def _handle_invite(self, caller: StaffIdentity, data: dict):
        staff = self.roster.invite_member(caller, require_id(data))
        return {"invited": staff.email}

    def _handle_suggest_code(self, caller: StaffIdentity, data: dict):
        try:
            role = StaffRole(data.get("role"))
        except ValueError:
            raise ValidationFailed({"role": "Choose a valid role"})
        return {"id_code": self.roster.suggest_code(caller, role)}
