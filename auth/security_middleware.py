"""Security middleware for FastAPI - session validation and staff context."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from auth.exceptions import AuthError, RateLimitedError
from auth.service import AuthService
from api.base import error_response
from utils.staff_context import set_current_scope, clear_current_scope

SESSION_COOKIE = "session_token"
LOGIN_RECOVERY = "login"


def auth_error_response(exc: AuthError) -> JSONResponse:
    """Render an auth failure with the reason and a recovery hint."""
    headers = {}
    if isinstance(exc, RateLimitedError):
        headers["Retry-After"] = str(exc.retry_after_seconds)
        recovery = None
    else:
        recovery = LOGIN_RECOVERY

    return JSONResponse(
        status_code=exc.status_code,
        headers=headers,
        content=error_response(exc.code, exc.message, recovery=recovery).model_dump(mode="json"),
    )


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware that validates session and sets the caller's identity.

    For protected routes:
    1. Extracts session token from 'session_token' cookie
    2. Resolves identity via AuthService against request.state.tenant
    3. Sets identity in request.state and the RLS scope
    4. Clears context after request completes

    Public paths bypass authentication entirely. Must run inside
    TenantMiddleware.
    """

    PUBLIC_PATHS = [
        "/auth/login",
        "/auth/request-link",
        "/auth/verify",
        "/auth/logout",
        "/manifest.json",
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def __init__(self, app, auth_service: AuthService):
        super().__init__(app)
        self._auth_service = auth_service

    def _is_public_path(self, path: str) -> bool:
        """Check if path is in public paths list."""
        for public_path in self.PUBLIC_PATHS:
            if path == public_path or path.startswith(public_path + "/"):
                return True
        return False

    async def dispatch(self, request: Request, call_next):
        """Process request through middleware."""
        if self._is_public_path(request.url.path):
            return await call_next(request)

        session_token = request.cookies.get(SESSION_COOKIE)
        if not session_token:
            return auth_error_response(AuthError())

        try:
            identity = self._auth_service.resolve_identity(session_token, request.state.tenant)
        except AuthError as e:
            return auth_error_response(e)

        # RLS scope for every query this request makes
        set_current_scope(identity.staff_id, identity.tenant_id)
        request.state.identity = identity

        try:
            response = await call_next(request)
            return response
        finally:
            # Always clear context
            clear_current_scope()
