"""Request-scoped middleware for API requests."""

import logging
import re
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from core.config import AppConfig
from core.services.tenant_service import TenantService

logger = logging.getLogger(__name__)

SLUG_RE = re.compile(r"^[a-z0-9-]+$")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a unique request ID to every request."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


def resolve_tenant_slug(host: str, tenant_param: str | None, config: AppConfig) -> str | None:
    """
    Tenant slug for a request, or None if the candidate slug is malformed.

    interstate.example.com -> "interstate". On development hosts ?tenant=
    picks the tenant. Anything else falls back to the default tenant.
    """
    hostname = host.split(":", 1)[0].lower()

    if hostname in config.development_hosts:
        slug = (tenant_param or config.default_tenant).strip().lower()
    else:
        labels = hostname.split(".")
        slug = labels[0] if len(labels) >= 3 else config.default_tenant

    return slug if SLUG_RE.match(slug) else None


class TenantMiddleware(BaseHTTPMiddleware):
    """Resolves the tenant from the host and sets request.state.tenant.

    Unknown tenants get 404 before any auth happens.
    """

    EXEMPT_PATHS = ["/health", "/docs", "/openapi.json"]

    def __init__(self, app, tenants: TenantService, config: AppConfig):
        super().__init__(app)
        self._tenants = tenants
        self._config = config

    def _not_found(self) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content=error_response(
                ErrorCodes.BUSINESS_NOT_FOUND,
                "Business not found",
            ).model_dump(mode="json"),
        )

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.EXEMPT_PATHS:
            return await call_next(request)

        slug = resolve_tenant_slug(
            request.headers.get("host", ""),
            request.query_params.get("tenant"),
            self._config,
        )
        if slug is None:
            return self._not_found()

        tenant = self._tenants.get_by_slug(slug)
        if tenant is None:
            logger.info(f"Request for unknown business '{slug}'")
            return self._not_found()

        request.state.tenant = tenant
        return await call_next(request)
