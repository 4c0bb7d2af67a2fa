"""
Connection pool for the configured datasource.

At most ``max_connections`` connections are checked out at once; a checkout
beyond that waits up to ``checkout_timeout`` seconds for a release and then
raises ``TimeoutError``. When no idle connection is usable a new one is
opened, and ``pool_size`` only caps how many idle connections are kept.
A connection is retired once it is older than ``max_age`` seconds (counted
from when it was opened, not from its last use) and is pinged before reuse
when it sat idle for a while.
"""

import logging
import threading
import time
from collections import deque
from typing import Any, NamedTuple

from querybridge.core.config import settings

from .connect import DataSource, connect

_log = logging.getLogger(__name__)

# Ping idle connections older than this before handing them out (seconds).
_PING_AFTER_IDLE_SEC = 30.0


class _Idle(NamedTuple):
    conn: Any
    opened_at: float
    idle_since: float


class PoolManager:
    """Idle-connection pool for one datasource."""

    def __init__(
        self,
        datasource: DataSource,
        *,
        pool_size: int | None = None,
        max_age: float | None = None,
        max_connections: int | None = None,
        checkout_timeout: float | None = None,
    ) -> None:
        self.datasource = datasource
        self.pool_size = pool_size if pool_size is not None else settings.EXTERNAL_DB_POOL_SIZE
        self.max_age = float(
            max_age if max_age is not None else settings.EXTERNAL_DB_POOL_MAX_AGE_SEC
        )
        self.max_connections = (
            max_connections
            if max_connections is not None
            else settings.EXTERNAL_DB_MAX_CONNECTIONS
        )
        self.checkout_timeout = float(
            checkout_timeout
            if checkout_timeout is not None
            else settings.EXTERNAL_DB_CONNECT_TIMEOUT
        )
        self._idle: deque[_Idle] = deque()
        # id(conn) -> monotonic open time, for connections checked out or idle
        self._opened_at: dict[int, float] = {}
        self._lock = threading.Lock()
        # one permit per checked-out connection
        self._slots = threading.BoundedSemaphore(self.max_connections)

    def get_connection(self) -> Any:
        """Check out an idle connection that is still usable, or open one.

        Raises TimeoutError when ``max_connections`` are already checked out
        and none is released within ``checkout_timeout`` seconds.
        """
        if not self._slots.acquire(timeout=self.checkout_timeout):
            raise TimeoutError(
                f"Connection pool exhausted: {self.max_connections} connections "
                f"in use after waiting {self.checkout_timeout}s"
            )
        try:
            return self._checkout()
        except BaseException:
            self._slots.release()
            raise

    def _checkout(self) -> Any:
        while (idle := self._take_idle()) is not None:
            now = time.monotonic()
            if now - idle.opened_at > self.max_age:
                _log.debug("Retiring connection older than %ss", self.max_age)
                self._discard(idle.conn)
                continue
            if now - idle.idle_since > _PING_AFTER_IDLE_SEC and not self._ping(idle.conn):
                _log.debug("Dropping idle connection that failed its ping")
                self._discard(idle.conn)
                continue
            return idle.conn

        _log.debug("Opening connection to %s", self.datasource.describe())
        conn = connect(self.datasource)
        with self._lock:
            self._opened_at[id(conn)] = time.monotonic()
        return conn

    def release(self, conn: Any) -> None:
        """Roll back and keep *conn* idle, or close it when the pool is full."""
        try:
            self._return(conn)
        finally:
            self._slots.release()

    def _return(self, conn: Any) -> None:
        try:
            conn.rollback()
        except Exception as e:
            _log.debug("Rollback on release failed, closing connection: %s", e)
            self._discard(conn)
            return

        now = time.monotonic()
        with self._lock:
            if len(self._idle) < self.pool_size:
                opened_at = self._opened_at.setdefault(id(conn), now)
                self._idle.append(_Idle(conn, opened_at, now))
                return
        self._discard(conn)

    def dispose(self) -> None:
        """Close every idle connection."""
        with self._lock:
            idle = list(self._idle)
            self._idle.clear()
        for entry in idle:
            self._discard(entry.conn)

    def stats(self) -> dict[str, int]:
        with self._lock:
            idle = len(self._idle)
            return {"idle_connections": idle, "in_use_connections": len(self._opened_at) - idle}

    def _take_idle(self) -> _Idle | None:
        with self._lock:
            return self._idle.pop() if self._idle else None

    def _discard(self, conn: Any) -> None:
        with self._lock:
            self._opened_at.pop(id(conn), None)
        try:
            conn.close()
        except Exception as e:
            _log.debug("Ignoring error while closing connection: %s", e)

    @staticmethod
    def _ping(conn: Any) -> bool:
        try:
            cur = conn.cursor()
            try:
                cur.execute("SELECT 1")
            finally:
                cur.close()
        except Exception:
            return False
        return True


_pool_manager: PoolManager | None = None
_pool_lock = threading.Lock()


def get_pool_manager() -> PoolManager:
    """Process-wide pool for the DB_* datasource, created on first use."""
    global _pool_manager
    if _pool_manager is None:
        with _pool_lock:
            if _pool_manager is None:
                _pool_manager = PoolManager(DataSource.from_settings())
    return _pool_manager
