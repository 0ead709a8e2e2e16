"""Application configuration (non-secret settings)."""

import os

from pydantic import BaseModel, Field, field_validator

_SLUG_PATTERN = r"^[a-z0-9-]+$"


class AppConfig(BaseModel):
    """
    Tenant routing, datastore and live-queue settings.

    Secrets (datastore URL, Valkey URL, email credentials) come from Vault,
    never from here.
    """

    default_tenant: str = Field(
        default="interstate",
        description="Tenant slug used when the host carries no subdomain",
        pattern=_SLUG_PATTERN,
    )
    development_hosts: list[str] = Field(
        default_factory=lambda: ["localhost", "127.0.0.1"],
        description="Hosts where ?tenant= overrides the tenant slug",
    )
    tenant_timezone: str = Field(
        default="America/New_York",
        description="Timezone for report windows and appointment times",
    )
    statement_timeout_ms: int = Field(
        default=15000,
        description="Per-statement datastore timeout",
        ge=1000,
        le=120000,
    )
    queue_heartbeat_seconds: float = Field(
        default=25.0,
        description="Keep-alive interval for the live queue stream",
        gt=0,
    )
    completed_list_limit: int = Field(
        default=50,
        description="Rows shown in the completed-jobs management list",
        ge=1,
        le=500,
    )
    app_base_url: str = Field(
        default="http://localhost:8000",
        description="Public base URL used in generated links",
    )

    @field_validator("app_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build config from TICKETS_* environment variables, defaults otherwise."""
        overrides = {}
        if os.getenv("TICKETS_DEFAULT_TENANT"):
            overrides["default_tenant"] = os.environ["TICKETS_DEFAULT_TENANT"]
        if os.getenv("TICKETS_STATEMENT_TIMEOUT_MS"):
            overrides["statement_timeout_ms"] = int(os.environ["TICKETS_STATEMENT_TIMEOUT_MS"])
        if os.getenv("TICKETS_APP_BASE_URL"):
            overrides["app_base_url"] = os.environ["TICKETS_APP_BASE_URL"]
        if os.getenv("TICKETS_TIMEZONE"):
            overrides["tenant_timezone"] = os.environ["TICKETS_TIMEZONE"]
        return cls(**overrides)
