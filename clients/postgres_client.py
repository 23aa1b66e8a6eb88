"""
PostgreSQL access for the lead pipeline.

psycopg2 with one ThreadedConnectionPool per database URL, shared by every
PostgresClient in the process. The pipeline connects with a service role
that owns the lead, email log and catalog tables.

Each call runs in its own transaction: committed when the statement
succeeds, rolled back when it raises. Every session gets a server-side
statement_timeout.
"""

import logging
import threading
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Tuple
from uuid import UUID

import psycopg2
import psycopg2.extras
import psycopg2.pool

logger = logging.getLogger(__name__)

Params = Tuple | Dict | None

_jsonb_registered = False


def _adapt(value: Any) -> Any:
    """One query parameter as psycopg2 should see it."""
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return value
    if isinstance(value, list):
        return [_adapt(v) for v in value]
    if isinstance(value, tuple):
        return tuple(_adapt(v) for v in value)
    if isinstance(value, dict):
        return psycopg2.extras.Json({k: _adapt(v) for k, v in value.items()})
    return value


class PostgresClient:
    """
    Row-dict PostgreSQL client.

    Usage:
        db = PostgresClient(database_url)
        lead = db.execute_single("SELECT * FROM leads WHERE id = %s", (lead_id,))
    """

    _pools: Dict[str, psycopg2.pool.ThreadedConnectionPool] = {}
    _pools_lock = threading.RLock()

    def __init__(
        self,
        database_url: str,
        min_connections: int = 1,
        max_connections: int = 10,
        statement_timeout_ms: int = 15000,
    ):
        self._database_url = database_url
        self._min_connections = min_connections
        self._max_connections = max_connections
        self._statement_timeout_ms = statement_timeout_ms

    def _pool(self) -> psycopg2.pool.ThreadedConnectionPool:
        """Pool for this URL, created on first use."""
        global _jsonb_registered

        with self._pools_lock:
            pool = self._pools.get(self._database_url)
            if pool is None:
                pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=self._min_connections,
                    maxconn=self._max_connections,
                    dsn=self._database_url,
                    connect_timeout=10,
                )
                if not _jsonb_registered:
                    psycopg2.extras.register_default_jsonb(globally=True)
                    _jsonb_registered = True
                self._pools[self._database_url] = pool
                logger.info(f"Connection pool created ({self._min_connections}-{self._max_connections})")
            return pool

    @contextmanager
    def _cursor(self, dict_rows: bool = True) -> Iterator[Any]:
        """Cursor inside a single transaction on a pooled connection."""
        pool = self._pool()
        conn = pool.getconn()
        if conn is None:
            raise RuntimeError("Could not get connection from pool")

        cursor_factory = psycopg2.extras.RealDictCursor if dict_rows else None
        try:
            with conn.cursor(cursor_factory=cursor_factory) as cur:
                cur.execute("SET statement_timeout = %s", (self._statement_timeout_ms,))
                yield cur
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            pool.putconn(conn)

    def _convert_params(self, params: Params) -> Params:
        """Adapt UUIDs to strings and dicts to JSONB."""
        if params is None:
            return None
        if isinstance(params, dict):
            return {k: _adapt(v) for k, v in params.items()}
        return _adapt(params)

    def execute(self, query: str, params: Params = None) -> List[Dict[str, Any]]:
        """Run a statement; rows as dicts, [] when it returns none."""
        with self._cursor() as cur:
            cur.execute(query, self._convert_params(params))
            if cur.description is None:
                return []
            return [dict(row) for row in cur.fetchall()]

    def execute_single(self, query: str, params: Params = None) -> Dict[str, Any] | None:
        """First row or None."""
        rows = self.execute(query, params)
        return rows[0] if rows else None

    def execute_scalar(self, query: str, params: Params = None) -> Any:
        """First column of the first row, or None."""
        with self._cursor(dict_rows=False) as cur:
            cur.execute(query, self._convert_params(params))
            row = cur.fetchone()
            return row[0] if row else None

    def execute_returning(self, query: str, params: Params = None) -> List[Dict[str, Any]]:
        """INSERT / UPDATE ... RETURNING; [] when nothing matched."""
        return self.execute(query, params)

    def close(self) -> None:
        """Close this URL's pool."""
        with self._pools_lock:
            pool = self._pools.pop(self._database_url, None)
            if pool is not None:
                pool.closeall()

    @classmethod
    def close_all_pools(cls) -> None:
        """Close every pool in the process."""
        with cls._pools_lock:
            for pool in cls._pools.values():
                pool.closeall()
            cls._pools.clear()
