"""
DB connection and connection pool for the configured datasource.

No driver layer: psycopg, pymysql and trino are installed via pip; the
DB_* settings are enough.
"""

from .connect import DataSource, ProductTypeEnum, connect, cursor_to_dicts, execute
from .health import check_database, health_check
from .manager import PoolManager, get_pool_manager

__all__ = [
    "DataSource",
    "ProductTypeEnum",
    "connect",
    "execute",
    "cursor_to_dicts",
    "check_database",
    "health_check",
    "PoolManager",
    "get_pool_manager",
]
