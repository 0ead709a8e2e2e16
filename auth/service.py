"""Authentication service - orchestrates code login and magic link flows."""

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta

from auth.config import AuthConfig
from auth.database import AuthDatabase
from auth.session import SessionManager
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.types import MagicLinkToken, Session, StaffLogin
from auth.exceptions import (
    InvalidCodeError,
    InvalidTokenError,
    NotAuthorizedError,
    RateLimitedError,
    SessionExpiredError,
    StaffInactiveError,
    WrongBusinessError,
)
from clients.email_client import EmailGatewayClient, EmailGatewayError
from clients.valkey_client import ValkeyClient
from core.models import Staff, StaffIdentity, Tenant, normalize_code
from core.services.tenant_service import TenantService
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


@dataclass
class MagicLinkResult:
    """Result of magic link request. Callers must not reveal `sent` to the client."""

    sent: bool


class AuthService:
    """Orchestrates staff authentication.

    Handles:
    - Code login (rate limited per IP)
    - Magic link requests (with enumeration protection) and verification
    - Staff invitations
    - Session validation against the tenant being accessed
    - Logout
    """

    ENUMERATION_KEY_PREFIX = "enumeration:"
    ENUMERATION_LIMIT = 3
    ENUMERATION_WINDOW_SECONDS = 900  # 15 minutes

    def __init__(
        self,
        config: AuthConfig,
        auth_db: AuthDatabase,
        session_manager: SessionManager,
        link_limiter: RateLimiter,
        code_limiter: RateLimiter,
        email_client: EmailGatewayClient | None,
        security_logger: SecurityLogger,
        tenants: TenantService,
        valkey: ValkeyClient,
    ):
        self._config = config
        self._auth_db = auth_db
        self._session_manager = session_manager
        self._link_limiter = link_limiter
        self._code_limiter = code_limiter
        self._email_client = email_client
        self._security_logger = security_logger
        self._tenants = tenants
        self._valkey = valkey

    def _enumeration_key(self, ip_address: str) -> str:
        """Generate Valkey key for IP enumeration tracking."""
        return f"{self.ENUMERATION_KEY_PREFIX}{ip_address}"

    def _check_enumeration_limit(self, ip_address: str) -> None:
        """Check if IP is blocked due to enumeration attempts.

        Raises:
            RateLimitedError: If IP has exceeded enumeration limit.
        """
        key = self._enumeration_key(ip_address)
        count = self._valkey.get(key)

        if count is not None and int(count) >= self.ENUMERATION_LIMIT:
            ttl = self._valkey.ttl(key)
            raise RateLimitedError(retry_after_seconds=max(ttl, 1))

    def _increment_enumeration_counter(self, ip_address: str) -> None:
        """Increment enumeration counter for IP."""
        key = self._enumeration_key(ip_address)
        count = self._valkey.incr(key)

        if count == 1:
            # First attempt, set expiry
            self._valkey.expire(key, self.ENUMERATION_WINDOW_SECONDS)

    def _reset_enumeration_counter(self, ip_address: str) -> None:
        """Reset enumeration counter for IP (after successful login)."""
        self._valkey.delete(self._enumeration_key(ip_address))

    def login_with_code(
        self,
        code: str,
        tenant: Tenant,
        ip_address: str,
        user_agent: str,
    ) -> Session:
        """Sign in with a staff login code.

        Flow:
        1. Check per-IP attempt limit
        2. Look up staff by normalized code (any tenant)
        3. Reject unknown, inactive or other-business staff
        4. Create session, reset attempt counter

        Raises:
            RateLimitedError: Too many attempts from this IP.
            InvalidCodeError: No staff holds this code.
            StaffInactiveError: Staff is deactivated.
            WrongBusinessError: Staff belongs to another tenant.
        """
        self._code_limiter.check_rate_limit(ip_address)

        id_code = normalize_code(code)
        staff = self._auth_db.lookup_staff_by_code(id_code) if id_code else None

        if staff is None:
            self._security_logger.log(
                SecurityEvent.CODE_LOGIN_FAILED,
                tenant_id=tenant.id,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": "unknown_code"},
            )
            raise InvalidCodeError()

        if not staff.active:
            self._security_logger.log(
                SecurityEvent.STAFF_INACTIVE,
                staff_id=staff.id,
                tenant_id=staff.tenant_id,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"method": "code"},
            )
            raise StaffInactiveError()

        if staff.tenant_id != tenant.id:
            self._log_wrong_business(staff, tenant, ip_address, user_agent, method="code")
            raise WrongBusinessError()

        session = self._session_manager.create_session(staff)
        self._code_limiter.reset_rate_limit(ip_address)

        self._security_logger.log(
            SecurityEvent.CODE_LOGIN_SUCCEEDED,
            staff_id=staff.id,
            tenant_id=staff.tenant_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        logger.info(f"Staff {staff.id_code} signed in to {tenant.slug} with code")
        return session

    def request_magic_link(
        self,
        email: str,
        tenant: Tenant,
        ip_address: str,
        user_agent: str,
    ) -> MagicLinkResult:
        """Request magic link for email.

        Flow:
        1. Check IP enumeration limit
        2. Look up active staff by email
        3. If no staff for this business: increment enumeration counter, send nothing
        4. Check per-email rate limit
        5. Generate and store token
        6. Send email

        Raises:
            RateLimitedError: If rate limit or enumeration limit exceeded.
            EmailGatewayError: If email send fails.
        """
        email = email.lower().strip()

        self._check_enumeration_limit(ip_address)

        staff = self._auth_db.lookup_staff_by_email(email)

        if staff is None or not staff.active or staff.tenant_id != tenant.id:
            self._increment_enumeration_counter(ip_address)

            if staff is None:
                reason = "staff_not_found"
            elif not staff.active:
                reason = "staff_inactive"
            else:
                reason = "wrong_business"

            self._security_logger.log(
                SecurityEvent.MAGIC_LINK_FAILED,
                email=email,
                tenant_id=tenant.id,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": reason},
            )
            return MagicLinkResult(sent=False)

        self._link_limiter.check_rate_limit(email)

        token_value = self._issue_token(staff, email, self._config.magic_link_expiry_minutes)

        self._security_logger.log(
            SecurityEvent.MAGIC_LINK_REQUESTED,
            email=email,
            staff_id=staff.id,
            tenant_id=staff.tenant_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        self._require_email_client().send_magic_link(
            email=email,
            token=token_value,
            app_url=self._config.app_base_url,
            tenant_name=tenant.name,
        )

        self._security_logger.log(
            SecurityEvent.MAGIC_LINK_SENT,
            email=email,
            staff_id=staff.id,
            tenant_id=staff.tenant_id,
            ip_address=ip_address,
        )

        return MagicLinkResult(sent=True)

    def send_invite(self, staff: Staff) -> None:
        """Email a staff member a sign-in link valid for the invite window.

        Raises:
            EmailGatewayError: If email send fails.
        """
        tenant = self._tenants.get_by_id(staff.tenant_id)
        tenant_name = tenant.name if tenant else self._config.app_name

        login = StaffLogin.model_validate(staff.model_dump())
        token_value = self._issue_token(login, staff.email.lower(), self._config.invite_expiry_minutes)

        self._require_email_client().send_staff_invite(
            email=staff.email,
            token=token_value,
            app_url=self._config.app_base_url,
            tenant_name=tenant_name,
            staff_name=staff.name,
        )

        self._security_logger.log(
            SecurityEvent.STAFF_INVITED,
            email=staff.email,
            staff_id=staff.id,
            tenant_id=staff.tenant_id,
        )

    def verify_magic_link(
        self,
        token: str,
        tenant: Tenant,
        ip_address: str,
        user_agent: str,
    ) -> Session:
        """Verify magic link token and create session.

        Any rejection after the token is found marks it used, so a refused
        link can never be retried.

        Raises:
            InvalidTokenError: If token invalid, expired, or already used.
            NotAuthorizedError: No staff record for the link's email.
            StaffInactiveError: Staff is deactivated.
            WrongBusinessError: Staff belongs to another tenant.
        """
        magic_token = self._auth_db.get_magic_link_token(token)

        if magic_token is None:
            self._security_logger.log(
                SecurityEvent.MAGIC_LINK_FAILED,
                tenant_id=tenant.id,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": "token_not_found"},
            )
            raise InvalidTokenError()

        if magic_token.used:
            self._security_logger.log(
                SecurityEvent.MAGIC_LINK_ALREADY_USED,
                email=magic_token.email,
                staff_id=magic_token.staff_id,
                tenant_id=magic_token.tenant_id,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            raise InvalidTokenError("This link has already been used")

        # Single use from here on, whatever the outcome
        self._auth_db.mark_token_used(token)

        if now_utc() > magic_token.expires_at:
            self._security_logger.log(
                SecurityEvent.MAGIC_LINK_EXPIRED,
                email=magic_token.email,
                staff_id=magic_token.staff_id,
                tenant_id=magic_token.tenant_id,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            raise InvalidTokenError("This link has expired")

        staff = self._auth_db.lookup_staff_by_email(magic_token.email)

        if staff is None:
            self._security_logger.log(
                SecurityEvent.MAGIC_LINK_FAILED,
                email=magic_token.email,
                tenant_id=tenant.id,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": "not_authorized"},
            )
            raise NotAuthorizedError()

        if not staff.active:
            self._security_logger.log(
                SecurityEvent.STAFF_INACTIVE,
                email=magic_token.email,
                staff_id=staff.id,
                tenant_id=staff.tenant_id,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"method": "magic_link"},
            )
            raise StaffInactiveError()

        if staff.tenant_id != tenant.id:
            self._log_wrong_business(staff, tenant, ip_address, user_agent, method="magic_link")
            raise WrongBusinessError()

        session = self._session_manager.create_session(staff)

        self._link_limiter.reset_rate_limit(magic_token.email)
        self._reset_enumeration_counter(ip_address)

        self._security_logger.log(
            SecurityEvent.MAGIC_LINK_VERIFIED,
            email=magic_token.email,
            staff_id=staff.id,
            tenant_id=staff.tenant_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        return session

    def resolve_identity(self, session_token: str, tenant: Tenant) -> StaffIdentity:
        """Turn a session cookie into the caller's identity for this tenant.

        The staff record is re-read so a deactivation takes effect on the
        very next request even if a session slipped past revocation.

        Raises:
            SessionExpiredError: Session invalid or expired.
            WrongBusinessError: Session belongs to another tenant.
            StaffInactiveError: Staff was deactivated or removed.
        """
        session = self._session_manager.validate_session(session_token)

        if session.tenant_id != tenant.id:
            logger.warning(
                f"Session for staff {session.staff_id} presented to tenant {tenant.slug}"
            )
            raise WrongBusinessError()

        staff = self._auth_db.get_staff_by_id(session.staff_id)
        if staff is None or not staff.active:
            self._session_manager.revoke_all_for_staff(session.staff_id)
            raise StaffInactiveError()

        return session.identity()

    def logout(self, session_token: str, ip_address: str) -> None:
        """Revoke session (logout).

        Safe to call with invalid token.
        """
        try:
            session = self._session_manager.validate_session(session_token)
            staff_id = session.staff_id
            tenant_id = session.tenant_id
        except SessionExpiredError:
            staff_id = None
            tenant_id = None

        self._session_manager.revoke_session(session_token, staff_id=staff_id)

        self._security_logger.log(
            SecurityEvent.SESSION_REVOKED,
            staff_id=staff_id,
            tenant_id=tenant_id,
            ip_address=ip_address,
        )

    def validate_session(self, token: str) -> Session:
        """Validate session token.

        Raises:
            SessionExpiredError: If session invalid or expired.
        """
        return self._session_manager.validate_session(token)

    def _issue_token(self, staff: StaffLogin, email: str, expiry_minutes: int) -> str:
        now = now_utc()
        token_value = secrets.token_urlsafe(32)
        self._auth_db.store_magic_link_token(
            MagicLinkToken(
                token=token_value,
                staff_id=staff.id,
                tenant_id=staff.tenant_id,
                email=email,
                created_at=now,
                expires_at=now + timedelta(minutes=expiry_minutes),
                used=False,
            )
        )
        return token_value

    def _require_email_client(self) -> EmailGatewayClient:
        if self._email_client is None:
            raise EmailGatewayError("Email gateway is not configured")
        return self._email_client

    def _log_wrong_business(self, staff: StaffLogin, tenant: Tenant, ip_address: str, user_agent: str, method: str):
        logger.warning(f"Staff {staff.id} from tenant {staff.tenant_id} attempted sign-in to {tenant.slug}")
        self._security_logger.log(
            SecurityEvent.WRONG_BUSINESS,
            staff_id=staff.id,
            tenant_id=tenant.id,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"method": method, "staff_tenant_id": str(staff.tenant_id)},
        )
