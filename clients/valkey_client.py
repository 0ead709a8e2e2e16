"""
Valkey (Redis-compatible) client for sessions and rate limiting.

Thin wrapper around redis-py. Connection URL from Vault.
Fail-fast: raises on connection failure, never returns fallback values.
"""

import json
import logging
from typing import Set

import redis

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Redis-compatible client for Valkey.

    Usage:
        client = ValkeyClient("redis://localhost:6379/0")
        client.set_json("session:abc", {"staff_id": "..."}, expire_seconds=28800)
        client.add_to_set("staff_sessions:123", "abc", expire_seconds=28800)
    """

    def __init__(self, url: str):
        """
        Initialize Valkey connection.

        Raises:
            redis.ConnectionError: If connection fails
        """
        self._client = redis.from_url(url, decode_responses=True)
        # Verify connectivity immediately (fail-fast)
        self._client.ping()
        logger.info("ValkeyClient connected")

    def ping(self) -> bool:
        """Health check. Raises redis.ConnectionError if unreachable."""
        self._client.ping()
        return True

    def get(self, key: str) -> str | None:
        """Get value by key. None if missing."""
        return self._client.get(key)

    def set(self, key: str, value: str, expire_seconds: int | None = None) -> None:
        """Set key to value, optionally with expiration."""
        if expire_seconds is not None:
            self._client.setex(key, expire_seconds, value)
        else:
            self._client.set(key, value)

    def delete(self, key: str) -> bool:
        """Delete key. True if it existed."""
        return self._client.delete(key) > 0

    def exists(self, key: str) -> bool:
        """Check if key exists."""
        return self._client.exists(key) > 0

    def ttl(self, key: str) -> int:
        """
        Remaining TTL in seconds.

        -2 if key doesn't exist, -1 if key has no expiration.
        """
        return self._client.ttl(key)

    def expire(self, key: str, seconds: int) -> bool:
        """Set key expiry. False if key doesn't exist."""
        return bool(self._client.expire(key, seconds))

    def incr(self, key: str) -> int:
        """Increment key by 1 (creating it at 1). Returns the new value."""
        return self._client.incr(key)

    def set_json(self, key: str, value: dict | list, expire_seconds: int | None = None) -> None:
        """Set key to JSON-serialized value."""
        self.set(key, json.dumps(value), expire_seconds)

    def get_json(self, key: str) -> dict | list | None:
        """
        Get and deserialize JSON value.

        Returns None if key doesn't exist.
        Raises ValueError if value is not valid JSON.
        """
        value = self.get(key)
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in key '{key}': {e}")

    def add_to_set(self, key: str, member: str, expire_seconds: int | None = None) -> None:
        """Add member to a set, refreshing the set's expiry if given."""
        self._client.sadd(key, member)
        if expire_seconds is not None:
            self._client.expire(key, expire_seconds)

    def remove_from_set(self, key: str, member: str) -> None:
        """Remove member from a set. No-op if absent."""
        self._client.srem(key, member)

    def set_members(self, key: str) -> Set[str]:
        """All members of a set (empty if key missing)."""
        return set(self._client.smembers(key))

    def close(self) -> None:
        """Close the connection."""
        self._client.close()
        logger.info("ValkeyClient closed")
