import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

import psycopg2
import psycopg2.extras
from psycopg2.pool import ThreadedConnectionPool

from blog_api.config import Settings
from blog_api.errors import StorageUnavailable

logger = logging.getLogger(__name__)


class Database:
    """
    PostgreSQL connection pool plus query helpers.

    psycopg2's pool raises as soon as it is exhausted, so a semaphore sized to
    ``maxconn`` makes callers queue for a connection instead. Waiting is
    bounded by ``pool_timeout``; after that the caller gets StorageUnavailable.
    """

    def __init__(
        self,
        dsn: str,
        minconn: int = 1,
        maxconn: int = 10,
        pool_timeout: float = 5.0,
        connect_timeout: int = 5,
        statement_timeout_ms: int = 10000,
    ):
        self._pool_timeout = pool_timeout
        self._slots = threading.BoundedSemaphore(maxconn)
        try:
            self._pool = ThreadedConnectionPool(
                minconn=minconn,
                maxconn=maxconn,
                dsn=dsn,
                connect_timeout=connect_timeout,
                options=f"-c statement_timeout={statement_timeout_ms}",
            )
        except psycopg2.Error as exc:
            logger.error("Could not open database pool: %s", exc)
            raise StorageUnavailable() from exc

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            settings.database_dsn,
            minconn=settings.db_pool_min,
            maxconn=settings.db_pool_max,
            pool_timeout=settings.db_pool_timeout_seconds,
            connect_timeout=settings.db_connect_timeout_seconds,
            statement_timeout_ms=settings.db_statement_timeout_ms,
        )

    @contextmanager
    def connection(self) -> Iterator[Any]:
        """Borrow a connection; rolled back on error, always returned."""
        if not self._slots.acquire(timeout=self._pool_timeout):
            logger.error("Timed out after %.1fs waiting for a database connection", self._pool_timeout)
            raise StorageUnavailable()
        try:
            try:
                conn = self._pool.getconn()
            except psycopg2.Error as exc:
                logger.error("Could not obtain database connection: %s", exc)
                raise StorageUnavailable() from exc
            try:
                yield conn
            except psycopg2.Error:
                conn.rollback()
                raise
            finally:
                self._pool.putconn(conn)
        finally:
            self._slots.release()

    def _dict_cursor(self, conn):
        return conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)

    # PUBLIC_INTERFACE
    def fetch_one(self, query: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        """Fetch a single row as a dict, or None."""
        with self.connection() as conn:
            with self._dict_cursor(conn) as cur:
                cur.execute(query, params or [])
                row = cur.fetchone()
                return dict(row) if row else None

    # PUBLIC_INTERFACE
    def fetch_all(self, query: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Fetch all rows as dicts."""
        with self.connection() as conn:
            with self._dict_cursor(conn) as cur:
                cur.execute(query, params or [])
                rows = cur.fetchall()
                return [dict(r) for r in rows]

    # PUBLIC_INTERFACE
    def execute(self, query: str, params: Optional[Sequence[Any]] = None) -> int:
        """Execute a statement (INSERT/UPDATE/DELETE). Returns affected rowcount."""
        with self.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params or [])
                affected = cur.rowcount
                conn.commit()
                return affected

    # PUBLIC_INTERFACE
    def execute_returning_one(self, query: str, params: Optional[Sequence[Any]] = None) -> Dict[str, Any]:
        """Execute a statement with RETURNING and return the first row as dict."""
        with self.connection() as conn:
            with self._dict_cursor(conn) as cur:
                cur.execute(query, params or [])
                row = cur.fetchone()
                if not row:
                    conn.rollback()
                    raise RuntimeError("Expected one row returned, got none.")
                conn.commit()
                return dict(row)

    # PUBLIC_INTERFACE
    def ping(self) -> bool:
        """Return True when the pool can run a trivial query."""
        try:
            return self.fetch_one("SELECT 1 AS ok") is not None
        except (StorageUnavailable, psycopg2.Error) as exc:
            logger.warning("Database ping failed: %s", exc)
            return False

    # PUBLIC_INTERFACE
    def close(self) -> None:
        """Close every pooled connection."""
        self._pool.closeall()
        logger.info("Database pool closed")
