"""Unit tests for core.pool: PoolManager, health check and cursor_to_dicts (no database)."""

from unittest.mock import MagicMock, patch

import pytest

from querybridge.core.config import Settings
from querybridge.core.pool import (
    DataSource,
    PoolManager,
    ProductTypeEnum,
    check_database,
    cursor_to_dicts,
    health_check,
)


def _datasource() -> DataSource:
    return DataSource(
        product_type=ProductTypeEnum.POSTGRES,
        host="localhost",
        port=5432,
        database="db",
        username="u",
        password="p",
    )


def test_datasource_from_settings():
    s = Settings(
        _env_file=None,
        DB_PRODUCT_TYPE="mysql",
        DB_HOST="db",
        DB_PORT=3306,
        DB_DATABASE="app",
        DB_USERNAME="root",
        DB_PASSWORD="secret",
    )
    ds = DataSource.from_settings(s)
    assert ds.product_type is ProductTypeEnum.MYSQL
    assert ds.describe() == "mysql://db:3306/app"


def test_cursor_to_dicts():
    cur = MagicMock()
    cur.description = [("id",), ("name",)]
    cur.fetchall.return_value = [(1, "a"), (2, "b")]
    assert cursor_to_dicts(cur) == [{"id": 1, "name": "a"}, {"id": 2, "name": "b"}]


def test_cursor_to_dicts_no_result_set():
    cur = MagicMock()
    cur.description = None
    assert cursor_to_dicts(cur) == []


@patch("querybridge.core.pool.manager.connect")
def test_released_connection_is_reused(mock_connect: MagicMock):
    conn = MagicMock()
    mock_connect.return_value = conn
    pm = PoolManager(_datasource(), pool_size=2, max_age=600)

    first = pm.get_connection()
    pm.release(first)
    second = pm.get_connection()

    assert second is conn
    mock_connect.assert_called_once()
    conn.rollback.assert_called_once()


@patch("querybridge.core.pool.manager.connect")
def test_release_closes_when_pool_full(mock_connect: MagicMock):
    mock_connect.side_effect = [MagicMock(), MagicMock()]
    pm = PoolManager(_datasource(), pool_size=1, max_age=600)

    a = pm.get_connection()
    b = pm.get_connection()
    pm.release(a)
    pm.release(b)

    assert pm.stats() == {"idle_connections": 1, "in_use_connections": 0}
    b.close.assert_called_once()


@patch("querybridge.core.pool.manager.connect")
def test_expired_connection_replaced(mock_connect: MagicMock):
    old, new = MagicMock(), MagicMock()
    mock_connect.side_effect = [old, new]
    pm = PoolManager(_datasource(), pool_size=2, max_age=-1)

    pm.release(pm.get_connection())
    assert pm.get_connection() is new
    old.close.assert_called_once()


@patch("querybridge.core.pool.manager.connect")
def test_dispose_closes_idle(mock_connect: MagicMock):
    conn = MagicMock()
    mock_connect.return_value = conn
    pm = PoolManager(_datasource(), pool_size=2, max_age=600)
    pm.release(pm.get_connection())

    pm.dispose()

    conn.close.assert_called_once()
    assert pm.stats() == {"idle_connections": 0, "in_use_connections": 0}


@patch("querybridge.core.pool.manager.connect")
def test_checkout_beyond_max_connections_times_out(mock_connect: MagicMock):
    mock_connect.side_effect = [MagicMock(), MagicMock()]
    pm = PoolManager(
        _datasource(), pool_size=0, max_age=600, max_connections=1, checkout_timeout=0.05
    )

    held = pm.get_connection()
    with pytest.raises(TimeoutError, match="pool exhausted"):
        pm.get_connection()
    assert mock_connect.call_count == 1

    pm.release(held)
    pm.get_connection()
    assert mock_connect.call_count == 2


@patch("querybridge.core.pool.manager.connect")
def test_failed_connect_frees_its_slot(mock_connect: MagicMock):
    conn = MagicMock()
    mock_connect.side_effect = [OSError("refused"), conn]
    pm = PoolManager(_datasource(), max_connections=1, checkout_timeout=0.05)

    with pytest.raises(OSError):
        pm.get_connection()
    assert pm.get_connection() is conn


def test_health_check():
    conn = MagicMock()
    assert health_check(conn) is True
    conn.cursor.return_value.execute.assert_called_once_with("SELECT 1")

    conn.cursor.return_value.execute.side_effect = RuntimeError("down")
    assert health_check(conn) is False


def test_check_database_unreachable():
    pool = MagicMock()
    pool.get_connection.side_effect = OSError("refused")
    assert check_database(pool) is False


def test_check_database_releases_connection():
    pool = MagicMock()
    assert check_database(pool) is True
    pool.release.assert_called_once_with(pool.get_connection.return_value)
