"""
Database reachability check used at startup and by /utils/health-check/.
"""

import logging
from typing import Any

from .connect import execute
from .manager import PoolManager, get_pool_manager

_log = logging.getLogger(__name__)


def health_check(conn: Any) -> bool:
    """``SELECT 1`` on *conn*; True when it answers."""
    try:
        cur = execute(conn, "SELECT 1")
    except Exception as e:
        _log.warning("Database ping failed: %s", e)
        return False
    try:
        cur.fetchone()
        return True
    except Exception as e:
        _log.warning("Database ping failed: %s", e)
        return False
    finally:
        cur.close()


def check_database(pool: PoolManager | None = None) -> bool:
    """Ping the database through the pool. False when it is unreachable."""
    pm = pool or get_pool_manager()
    try:
        conn = pm.get_connection()
    except Exception as e:
        _log.warning("Database unreachable: %s", e)
        return False
    try:
        return health_check(conn)
    finally:
        pm.release(conn)
