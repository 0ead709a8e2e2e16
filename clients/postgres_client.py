"""
PostgreSQL client with connection pooling and tenant-scoped RLS.

Uses psycopg2 with ThreadedConnectionPool. Tenant isolation is enforced by
PostgreSQL Row Level Security: each connection handed out by the pool is
stamped with app.current_staff_id and app.current_tenant_id from the
request's RLS scope (utils.staff_context).

Security: No scope = see nothing (RLS casts '' to uuid and matches no rows).
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, List, Tuple
from uuid import UUID

import psycopg2
import psycopg2.extras
import psycopg2.pool

from utils.staff_context import get_current_scope

logger = logging.getLogger(__name__)

# Global JSONB registration flag
_jsonb_registered = False

DEFAULT_STATEMENT_TIMEOUT_MS = 15000


def _convert(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, list):
        return [_convert(v) for v in value]
    if isinstance(value, tuple):
        return tuple(_convert(v) for v in value)
    if isinstance(value, dict):
        return {k: _convert(v) for k, v in value.items()}
    return value


class Transaction:
    """Cursor wrapper for several statements committed together."""

    def __init__(self, cursor):
        self._cur = cursor

    def execute_returning(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        """Execute a statement inside the transaction, return rows."""
        self._cur.execute(query, _convert(params) if params is not None else None)
        if self._cur.description:
            return [dict(row) for row in self._cur.fetchall()]
        return []


class PostgresClient:
    """
    PostgreSQL client with automatic RLS scope from contextvar.

    - Scope set    -> sees only the caller's tenant (RLS filtered)
    - No scope     -> sees nothing (RLS blocks all rows)

    Usage:
        db = PostgresClient(database_url)

        with staff_scope(staff_id, tenant_id):
            tickets = db.execute("SELECT * FROM tickets")  # tenant rows only

        with db.transaction() as tx:
            staff = tx.execute_returning("INSERT INTO staff ... RETURNING *", (...))
            tx.execute_returning("INSERT INTO technicians ... RETURNING id", (...))
    """

    # Class-level connection pools shared across instances
    _connection_pools: Dict[str, psycopg2.pool.ThreadedConnectionPool] = {}
    _pools_lock = threading.RLock()

    def __init__(self, database_url: str, statement_timeout_ms: int = DEFAULT_STATEMENT_TIMEOUT_MS):
        self._database_url = database_url
        self._statement_timeout_ms = statement_timeout_ms
        self._ensure_connection_pool()

    @property
    def database_url(self) -> str:
        return self._database_url

    def _ensure_connection_pool(self) -> None:
        """Create connection pool if it doesn't exist."""
        with self._pools_lock:
            if self._database_url not in self._connection_pools:
                pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=2,
                    maxconn=20,
                    dsn=self._database_url,
                    connect_timeout=30,
                    options=f"-c statement_timeout={self._statement_timeout_ms}",
                )

                global _jsonb_registered
                if not _jsonb_registered:
                    psycopg2.extras.register_default_jsonb(globally=True)
                    _jsonb_registered = True

                self._connection_pools[self._database_url] = pool
                logger.info("Connection pool created")

    @contextmanager
    def get_connection(self):
        """Get connection with RLS scope from contextvar. Rolls back on error."""
        if self._database_url not in self._connection_pools:
            self._ensure_connection_pool()

        pool = self._connection_pools[self._database_url]
        conn = None

        try:
            conn = pool.getconn()
            if conn is None:
                raise RuntimeError("Could not get connection from pool")

            scope = get_current_scope()

            with conn.cursor() as cur:
                if scope is not None:
                    cur.execute(
                        "SELECT set_config('app.current_staff_id', %s, false), "
                        "set_config('app.current_tenant_id', %s, false)",
                        (str(scope.staff_id), str(scope.tenant_id)),
                    )
                else:
                    # Empty string fails the ::uuid cast in policies = no rows
                    cur.execute(
                        "SELECT set_config('app.current_staff_id', '', false), "
                        "set_config('app.current_tenant_id', '', false)"
                    )

            yield conn

        except Exception:
            if conn is not None and not conn.closed:
                conn.rollback()
            raise

        finally:
            if conn:
                pool.putconn(conn)

    def execute(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        """Execute query, return list of row dicts. Empty list if no results."""
        params = _convert(params) if params is not None else None
        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(query, params)
                rows = [dict(row) for row in cur.fetchall()] if cur.description else []
                conn.commit()
                return rows

    def execute_single(self, query: str, params: Tuple | Dict | None = None) -> Dict[str, Any] | None:
        """Execute query, return first row or None."""
        results = self.execute(query, params)
        return results[0] if results else None

    def execute_scalar(self, query: str, params: Tuple | Dict | None = None) -> Any:
        """Execute query, return first value of first row or None."""
        params = _convert(params) if params is not None else None
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                result = cur.fetchone()
                conn.commit()
                return result[0] if result else None

    def execute_returning(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        """Execute INSERT/UPDATE/DELETE with RETURNING, return results."""
        params = _convert(params) if params is not None else None
        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(query, params)
                rows = [dict(row) for row in cur.fetchall()]
                conn.commit()
                return rows

    @contextmanager
    def transaction(self):
        """Run several statements atomically. Commits on exit, rolls back on error."""
        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                yield Transaction(cur)
            conn.commit()

    def close(self) -> None:
        """Close connection pool."""
        with self._pools_lock:
            if self._database_url in self._connection_pools:
                self._connection_pools[self._database_url].closeall()
                del self._connection_pools[self._database_url]

    @classmethod
    def close_all_pools(cls) -> None:
        """Close all connection pools."""
        with cls._pools_lock:
            for pool in cls._connection_pools.values():
                pool.closeall()
            cls._connection_pools.clear()
