"""Rate limiting for magic link requests and code logins.

Uses Valkey with sliding window TTL - each attempt resets the expiry.
Attackers bypassing frontend rate limiting hit an ever-extending lockout.
"""

from clients.valkey_client import ValkeyClient
from auth.config import AuthConfig
from auth.exceptions import RateLimitedError


class RateLimiter:
    """Attempt counter for one kind of auth attempt, keyed by subject."""

    KEY_PREFIX = "ratelimit:"

    def __init__(self, valkey: ValkeyClient, scope: str, max_attempts: int, window_minutes: int):
        """
        Args:
            scope: Attempt kind, part of the key (magic_link, code_login)
            max_attempts: Attempts allowed per window
            window_minutes: Window length, restarted by every attempt
        """
        self._valkey = valkey
        self._scope = scope
        self._max_attempts = max_attempts
        self._window_seconds = window_minutes * 60

    @classmethod
    def for_magic_links(cls, valkey: ValkeyClient, config: AuthConfig) -> "RateLimiter":
        """Per-email limit on magic link requests."""
        return cls(valkey, "magic_link", config.rate_limit_attempts, config.rate_limit_window_minutes)

    @classmethod
    def for_code_logins(cls, valkey: ValkeyClient, config: AuthConfig) -> "RateLimiter":
        """Per-IP limit on code login attempts."""
        return cls(valkey, "code_login", config.code_attempts, config.code_window_minutes)

    def _key(self, subject: str) -> str:
        """Generate rate limit key for subject (normalized to lowercase)."""
        return f"{self.KEY_PREFIX}{self._scope}:{subject.lower()}"

    def check_rate_limit(self, subject: str) -> None:
        """Check rate limit and increment counter.

        Sliding window: TTL resets on every attempt. Hammering extends lockout.

        Raises:
            RateLimitedError: If rate limit exceeded.
        """
        key = self._key(subject)

        count = self._valkey.incr(key)
        self._valkey.expire(key, self._window_seconds)

        if count > self._max_attempts:
            ttl = self._valkey.ttl(key)
            retry_after = max(ttl, 1)  # At least 1 second
            raise RateLimitedError(retry_after_seconds=retry_after)

    def reset_rate_limit(self, subject: str) -> None:
        """Reset rate limit after successful login."""
        self._valkey.delete(self._key(subject))

    def get_remaining_attempts(self, subject: str) -> int:
        """Get remaining attempts before rate limit."""
        current = self._valkey.get(self._key(subject))

        if current is None:
            return self._max_attempts

        return max(self._max_attempts - int(current), 0)
