"""Typed exceptions for auth failures.

Every auth failure sends the caller back to login with a visible reason, so
each exception carries the user-facing message it should be shown.
"""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""

    status_code = 401
    code = "NOT_AUTHENTICATED"
    default_message = "Authentication required"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidCodeError(AuthError):
    """No staff record holds this login code."""

    code = "INVALID_CODE"
    default_message = "Invalid code"


class StaffInactiveError(AuthError):
    """Staff record exists but is deactivated. Login not permitted."""

    status_code = 403
    code = "STAFF_INACTIVE"
    default_message = "This account has been deactivated"


class NotAuthorizedError(AuthError):
    """Credential is valid but maps to no staff record."""

    status_code = 403
    code = "NOT_AUTHORIZED"
    default_message = "Your email is not authorized to access this system. Contact your administrator."


class WrongBusinessError(AuthError):
    """Caller belongs to a different tenant than the one being accessed."""

    status_code = 403
    code = "WRONG_BUSINESS"
    default_message = "You do not have access to this business."


class InvalidTokenError(AuthError):
    """
    Token is invalid, expired, or already used.

    Used for both magic link tokens and session tokens.
    """

    code = "INVALID_TOKEN"
    default_message = "Invalid or expired link"


class SessionExpiredError(AuthError):
    """Session has expired or was revoked; the caller must sign in again."""

    code = "SESSION_EXPIRED"
    default_message = "Session has expired"


class RateLimitedError(AuthError):
    """Too many attempts. Client should wait before retrying."""

    status_code = 429
    code = "RATE_LIMITED"

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Too many attempts. Please wait {retry_after_seconds} seconds.")
