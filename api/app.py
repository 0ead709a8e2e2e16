"""
Application factory.

build_services() wires clients into services and subscribes event handlers;
create_app() mounts middleware and routers around them. create_app_from_vault()
is the production entry point:

    uvicorn api.app:create_app_from_vault --factory
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from api.actions import create_actions_router
from api.base import success_response
from api.data import create_data_router
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware, TenantMiddleware
from api.stream import create_stream_router
from auth.api import create_auth_router
from auth.config import AuthConfig
from auth.database import AuthDatabase
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger
from auth.security_middleware import AuthMiddleware
from auth.service import AuthService
from auth.session import SessionManager
from clients.email_client import EmailGatewayClient
from clients.postgres_client import PostgresClient
from clients.ticket_listener import TicketChangeListener
from clients.valkey_client import ValkeyClient
from core.audit import AuditLogger
from core.config import AppConfig
from core.event_bus import EventBus
from core.events import StaffDeactivated
from core.handlers.queue_invalidation_handler import TICKET_EVENT_TYPES, handle_ticket_changed
from core.handlers.staff_deactivation_handler import handle_staff_deactivated
from core.service_types import ServiceTypeRegistry
from core.services.catalog_service import CatalogService
from core.services.customer_service import CustomerService
from core.services.intake_service import IntakeService
from core.services.queue_service import QueueService
from core.services.report_service import ReportService
from core.services.roster_service import RosterService
from core.services.tenant_service import TenantService
from core.services.ticket_service import TicketService
from core.ticket_changes import TicketChangeHub

logger = logging.getLogger(__name__)


def build_services(
    postgres: PostgresClient,
    valkey: ValkeyClient,
    email_client: EmailGatewayClient | None,
    app_config: AppConfig,
    auth_config: AuthConfig,
) -> dict:
    """Construct every service and subscribe event handlers."""
    event_bus = EventBus()
    hub = TicketChangeHub()
    audit = AuditLogger(postgres)
    registry = ServiceTypeRegistry()

    tenants = TenantService(postgres)
    catalog = CatalogService(postgres, registry)
    customers = CustomerService(postgres, audit, app_config.tenant_timezone)

    session_manager = SessionManager(valkey, auth_config)
    auth = AuthService(
        config=auth_config,
        auth_db=AuthDatabase(postgres),
        session_manager=session_manager,
        link_limiter=RateLimiter.for_magic_links(valkey, auth_config),
        code_limiter=RateLimiter.for_code_logins(valkey, auth_config),
        email_client=email_client,
        security_logger=SecurityLogger(postgres),
        tenants=tenants,
        valkey=valkey,
    )

    for event_type in TICKET_EVENT_TYPES:
        event_bus.subscribe(event_type, handle_ticket_changed(hub))
    event_bus.subscribe(StaffDeactivated.__name__, handle_staff_deactivated(session_manager))

    return {
        "event_bus": event_bus,
        "hub": hub,
        "tenants": tenants,
        "auth": auth,
        "session_manager": session_manager,
        "catalog": catalog,
        "customer": customers,
        "intake": IntakeService(
            postgres, audit, event_bus, catalog, customers, app_config.tenant_timezone
        ),
        "queue": QueueService(postgres, catalog, hub),
        "ticket": TicketService(
            postgres, audit, event_bus, catalog, app_config.completed_list_limit
        ),
        "roster": RosterService(
            postgres, audit, event_bus, inviter=auth if email_client is not None else None
        ),
        "report": ReportService(postgres, catalog, app_config.tenant_timezone),
    }


def create_app(
    services: dict,
    app_config: AppConfig,
    auth_config: AuthConfig,
    listener: TicketChangeListener | None = None,
) -> FastAPI:
    """FastAPI app with tenant routing, auth, error handlers and all routes."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if listener is not None:
            listener.start()
        try:
            yield
        finally:
            if listener is not None:
                listener.stop()

    app = FastAPI(title="Shop Tickets", lifespan=lifespan)

    # Last added runs first: request id, then tenant, then auth
    app.add_middleware(AuthMiddleware, auth_service=services["auth"])
    app.add_middleware(TenantMiddleware, tenants=services["tenants"], config=app_config)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_auth_router(services["auth"], auth_config), prefix="/auth")
    app.include_router(create_data_router(services), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")
    app.include_router(
        create_stream_router(services, app_config.queue_heartbeat_seconds), prefix="/api"
    )

    @app.get("/health")
    async def health():
        return success_response({"status": "ok"})

    @app.get("/manifest.json")
    async def manifest(request: Request):
        """Web app manifest branded for the request's business."""
        tenant = request.state.tenant
        manifest = {
            "name": tenant.name,
            "short_name": tenant.name,
            "start_url": "/",
            "display": "standalone",
            "background_color": "#ffffff",
            "theme_color": tenant.primary_color or "#1f2937",
        }
        if tenant.logo_url:
            manifest["icons"] = [{"src": tenant.logo_url, "sizes": "512x512", "type": "image/png"}]
        return manifest

    return app


def create_app_from_vault() -> FastAPI:
    """Production app: secrets from Vault, settings from environment."""
    from clients.vault_client import get_database_url, get_email_config, get_valkey_url

    app_config = AppConfig.from_env()
    auth_config = AuthConfig(app_base_url=app_config.app_base_url)

    database_url = get_database_url()
    postgres = PostgresClient(database_url, statement_timeout_ms=app_config.statement_timeout_ms)
    valkey = ValkeyClient(get_valkey_url())

    email = get_email_config()
    email_client = EmailGatewayClient(
        gateway_url=email["gateway_url"],
        api_key=email["api_key"],
        hmac_secret=email["hmac_secret"],
    )

    services = build_services(postgres, valkey, email_client, app_config, auth_config)
    listener = TicketChangeListener(database_url, on_change=services["hub"].publish)

    logger.info("Shop Tickets app configured")
    return create_app(services, app_config, auth_config, listener=listener)
