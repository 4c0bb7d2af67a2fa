"""Unit tests for engines.sql.executor."""

from unittest.mock import MagicMock, patch

import pytest

from querybridge.core.exceptions import QueryExecutionError
from querybridge.engines.sql import execute_sql


@patch("querybridge.engines.sql.executor.cursor_to_dicts")
@patch("querybridge.engines.sql.executor.execute")
@patch("querybridge.engines.sql.executor.get_pool_manager")
def test_execute_sql_uses_pool_and_commits(
    mock_pm: MagicMock,
    mock_execute: MagicMock,
    mock_ctd: MagicMock,
) -> None:
    mock_conn = MagicMock()
    mock_cur = MagicMock()
    mock_pm.return_value.get_connection.return_value = mock_conn
    mock_execute.return_value = mock_cur
    mock_ctd.return_value = [{"n": 1}]

    out = execute_sql("SELECT 1 AS n")

    assert out == [{"n": 1}]
    mock_execute.assert_called_once_with(mock_conn, "SELECT 1 AS n")
    mock_ctd.assert_called_once_with(mock_cur)
    mock_cur.close.assert_called_once()
    mock_conn.commit.assert_called_once()
    mock_pm.return_value.release.assert_called_once_with(mock_conn)


@patch("querybridge.engines.sql.executor.execute")
def test_execute_sql_explicit_pool_no_result_set(mock_execute: MagicMock) -> None:
    pool = MagicMock()
    mock_cur = MagicMock()
    mock_cur.description = None
    mock_execute.return_value = mock_cur

    out = execute_sql("UPDATE t SET a = 1", pool=pool)

    assert out == []
    pool.release.assert_called_once_with(pool.get_connection.return_value)


@patch("querybridge.engines.sql.executor.execute")
def test_execute_sql_failure_rolls_back_and_wraps(mock_execute: MagicMock) -> None:
    pool = MagicMock()
    conn = pool.get_connection.return_value
    mock_execute.side_effect = RuntimeError("relation t does not exist")

    with pytest.raises(QueryExecutionError) as exc:
        execute_sql("SELECT * FROM t", pool=pool)

    assert "relation t does not exist" in str(exc.value)
    assert exc.value.sql == "SELECT * FROM t"
    assert isinstance(exc.value.__cause__, RuntimeError)
    conn.rollback.assert_called_once()
    conn.commit.assert_not_called()
    pool.release.assert_called_once_with(conn)


def test_execute_sql_connect_failure_wraps() -> None:
    pool = MagicMock()
    pool.get_connection.side_effect = OSError("connection refused")

    with pytest.raises(QueryExecutionError):
        execute_sql("SELECT 1", pool=pool)

    pool.release.assert_not_called()
