"""HTTP routes for authentication."""

import ipaddress

from fastapi import APIRouter, Request, Response, Query

from auth.config import AuthConfig
from auth.service import AuthService
from auth.security_middleware import SESSION_COOKIE
from auth.types import CodeLoginRequest, MagicLinkRequest, Session
from auth.exceptions import AuthError
from api.base import success_response

LINK_SENT_MESSAGE = "If that email belongs to a team member, a sign-in link is on its way."


def _get_client_ip(request: Request) -> str | None:
    """Extract valid IP address from request, or None if invalid."""
    if not request.client:
        return None
    host = request.client.host
    try:
        ipaddress.ip_address(host)
        return host
    except ValueError:
        return None


def _session_payload(session: Session) -> dict:
    return {
        "staff": {
            "id": str(session.staff_id),
            "id_code": session.id_code,
            "name": session.name,
            "role": session.role.value,
        },
        "home": session.role.home,
        "expires_at": session.expires_at.isoformat(),
    }


def create_auth_router(auth_service: AuthService, config: AuthConfig) -> APIRouter:
    """Create auth router with injected service."""
    router = APIRouter(tags=["auth"])

    def set_session_cookie(response: Response, session: Session) -> None:
        response.set_cookie(
            key=SESSION_COOKIE,
            value=session.token,
            httponly=True,
            secure=config.secure_cookies,
            samesite="lax",
            max_age=int((session.expires_at - session.created_at).total_seconds()),
        )

    @router.post("/login")
    async def login_with_code(request: Request, response: Response, body: CodeLoginRequest):
        """Sign in with a staff ID code. Sets session_token cookie on success."""
        session = auth_service.login_with_code(
            code=body.code,
            tenant=request.state.tenant,
            ip_address=_get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )
        set_session_cookie(response, session)
        return success_response(_session_payload(session))

    @router.post("/request-link")
    async def request_magic_link(request: Request, body: MagicLinkRequest):
        """Request magic link email.

        The response is the same whether or not a link was sent.
        """
        auth_service.request_magic_link(
            email=body.email,
            tenant=request.state.tenant,
            ip_address=_get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )
        return success_response({"message": LINK_SENT_MESSAGE})

    @router.get("/verify")
    async def verify_magic_link(
        request: Request,
        response: Response,
        token: str = Query(None),
    ):
        """Verify magic link token and create session.

        Sets session_token cookie on success.
        """
        if not token:
            raise AuthError("Sign-in link is missing its token")

        session = auth_service.verify_magic_link(
            token=token,
            tenant=request.state.tenant,
            ip_address=_get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )
        set_session_cookie(response, session)
        return success_response(_session_payload(session))

    @router.post("/logout")
    async def logout(request: Request, response: Response):
        """Logout - revoke session and clear cookie."""
        session_token = request.cookies.get(SESSION_COOKIE)

        if session_token:
            auth_service.logout(
                session_token=session_token,
                ip_address=_get_client_ip(request),
            )

        response.delete_cookie(key=SESSION_COOKIE)

        return success_response({"message": "Logged out successfully"})

    @router.get("/me")
    async def get_current_staff(request: Request):
        """Current staff identity, business branding and landing route.

        Requires authentication (middleware sets identity).
        """
        identity = request.state.identity

        return success_response({
            "staff": {
                "id": str(identity.staff_id),
                "id_code": identity.id_code,
                "name": identity.name,
                "role": identity.role.value,
            },
            "tenant": request.state.tenant.branding(),
            "home": identity.role.home,
        })

    return router
