"""Authentication configuration."""

from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    All durations are in their natural units (minutes for short durations,
    hours for longer ones) to make configuration intuitive.
    """

    # Magic link settings
    magic_link_expiry_minutes: int = Field(
        default=15,
        description="How long magic links remain valid",
        ge=5,
        le=60,
    )
    invite_expiry_minutes: int = Field(
        default=60 * 24,
        description="How long staff invitation links remain valid",
        ge=60,
        le=60 * 24 * 7,
    )

    # Session settings
    session_expiry_hours: int = Field(
        default=8,
        description="Session lifetime in hours, fixed from sign-in",
        ge=1,
        le=24,
    )

    # Rate limiting
    rate_limit_attempts: int = Field(
        default=5,
        description="Max magic link requests per email per window",
        ge=1,
        le=20,
    )
    rate_limit_window_minutes: int = Field(
        default=15,
        description="Rate limit window duration",
        ge=5,
        le=60,
    )
    code_attempts: int = Field(
        default=10,
        description="Max failed code logins per IP per window",
        ge=3,
        le=50,
    )
    code_window_minutes: int = Field(
        default=15,
        description="Code login rate limit window",
        ge=1,
        le=60,
    )

    # Application
    app_base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL for magic link generation",
    )
    app_name: str = Field(
        default="Job Tickets",
        description="Application name for emails",
    )
    secure_cookies: bool = Field(
        default=True,
        description="Mark session cookie Secure (disable only for local http)",
    )
