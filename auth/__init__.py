"""Authentication and authorization modules."""

from auth.exceptions import (
    AuthError,
    InvalidCodeError,
    InvalidTokenError,
    NotAuthorizedError,
    RateLimitedError,
    SessionExpiredError,
    StaffInactiveError,
    WrongBusinessError,
)
from auth.types import (
    Session,
    StaffLogin,
    CodeLoginRequest,
    MagicLinkRequest,
    MagicLinkToken,
)
from auth.config import AuthConfig
from auth.database import AuthDatabase
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.session import SessionManager
from auth.service import AuthService, MagicLinkResult
from auth.security_middleware import AuthMiddleware
from auth.api import create_auth_router
