"""Global exception handlers for FastAPI."""

import logging

import psycopg2
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from auth.exceptions import AuthError
from auth.security_middleware import auth_error_response
from clients.email_client import EmailGatewayError
from core.errors import DatastoreUnavailable, DomainError, ValidationFailed

logger = logging.getLogger(__name__)


def _validation_field_errors(exc: RequestValidationError) -> dict[str, str]:
    field_errors = {}
    for error in exc.errors():
        # Drop the leading "body"/"query" segment
        loc = [str(part) for part in error.get("loc", ())[1:]] or ["request"]
        field_errors.setdefault(".".join(loc), error.get("msg", "Invalid value"))
    return field_errors


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(ValidationFailed)
    async def validation_failed_handler(request: Request, exc: ValidationFailed):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(
                exc.code, exc.message, field_errors=exc.field_errors
            ).model_dump(mode="json"),
        )

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        if exc.status_code == 403:
            logger.warning(f"{exc.code} on {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(
                exc.code,
                exc.message,
                retryable=isinstance(exc, DatastoreUnavailable),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        return auth_error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=error_response(
                ErrorCodes.VALIDATION_ERROR,
                "Please correct the highlighted fields.",
                field_errors=_validation_field_errors(exc),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(
            status_code=400,
            content=error_response(ErrorCodes.INVALID_REQUEST, str(exc)).model_dump(mode="json"),
        )

    @app.exception_handler(EmailGatewayError)
    async def email_error_handler(request: Request, exc: EmailGatewayError):
        logger.error(f"Email gateway failure on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=502,
            content=error_response(
                ErrorCodes.EMAIL_UNAVAILABLE,
                "Could not send email. Please try again.",
                retryable=True,
            ).model_dump(mode="json"),
        )

    @app.exception_handler(psycopg2.OperationalError)
    @app.exception_handler(psycopg2.InterfaceError)
    async def datastore_error_handler(request: Request, exc: psycopg2.Error):
        logger.error(f"Datastore unavailable on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=503,
            content=error_response(
                ErrorCodes.SERVICE_UNAVAILABLE,
                "The service is temporarily unavailable. Please try again.",
                retryable=True,
            ).model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return JSONResponse(
            status_code=500,
            content=error_response(
                ErrorCodes.INTERNAL_ERROR,
                "An internal error occurred",
            ).model_dump(mode="json"),
        )
