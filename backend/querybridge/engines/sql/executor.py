"""
Execute rendered SQL against the configured datasource.

Returns the rows as a list of dicts (empty for statements without a
result set). Every call re-executes; nothing is cached. Driver failures
are raised as QueryExecutionError and never retried here.

Uses core.pool (get_pool_manager, execute, cursor_to_dicts).
"""

import logging
from typing import Any

from querybridge.core.exceptions import QueryExecutionError
from querybridge.core.pool import PoolManager, cursor_to_dicts, execute, get_pool_manager

_log = logging.getLogger(__name__)


def execute_sql(sql: str, *, pool: PoolManager | None = None) -> list[dict[str, Any]]:
    """
    Run final SQL (no parameter binding) and return its rows.

    The connection is committed on success, rolled back on failure, and
    returned to the pool either way.
    """
    pm = pool or get_pool_manager()
    conn: Any = None
    try:
        conn = pm.get_connection()
        cur = execute(conn, sql)
        try:
            rows = cursor_to_dicts(cur)
        finally:
            try:
                cur.close()
            except Exception:
                pass
        conn.commit()
        return rows
    except Exception as e:
        if conn is not None:
            try:
                conn.rollback()
            except Exception:
                pass
        _log.error("SQL execution failed: %s. SQL: %s", e, sql, exc_info=True)
        raise QueryExecutionError(f"SQL execution failed: {e}", sql=sql) from e
    finally:
        if conn is not None:
            pm.release(conn)
