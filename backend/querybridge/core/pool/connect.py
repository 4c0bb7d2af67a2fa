"""
DB connection helpers for the configured datasource.

DB_PRODUCT_TYPE picks the driver: psycopg, pymysql or trino.
"""

from enum import Enum
from typing import Any

import psycopg
import pymysql
from pydantic import BaseModel, ConfigDict, Field
from trino.auth import BasicAuthentication
from trino.dbapi import connect as trino_connect

from querybridge.core.config import Settings, settings


class ProductTypeEnum(str, Enum):
    """Supported database product types (postgres, mysql, trino)."""

    POSTGRES = "postgres"
    MYSQL = "mysql"
    TRINO = "trino"


class DataSource(BaseModel):
    """Connection parameters of the target database."""

    model_config = ConfigDict(frozen=True)

    product_type: ProductTypeEnum
    host: str
    port: int = Field(default=5432, ge=1, le=65535)
    database: str
    username: str
    password: str = ""
    use_ssl: bool = False

    @classmethod
    def from_settings(cls, s: Settings | None = None) -> "DataSource":
        s = s or settings
        return cls(
            product_type=ProductTypeEnum(s.DB_PRODUCT_TYPE),
            host=s.DB_HOST,
            port=s.DB_PORT,
            database=s.DB_DATABASE,
            username=s.DB_USERNAME,
            password=s.DB_PASSWORD,
            use_ssl=s.DB_USE_SSL,
        )

    def describe(self) -> str:
        """Connection target without credentials, for logs."""
        return f"{self.product_type.value}://{self.host}:{self.port}/{self.database}"


def connect(datasource: DataSource) -> Any:
    """Open a connection to the datasource."""
    pt = datasource.product_type
    timeout = settings.EXTERNAL_DB_CONNECT_TIMEOUT

    if pt == ProductTypeEnum.POSTGRES:
        return psycopg.connect(
            host=datasource.host,
            port=datasource.port,
            dbname=datasource.database,
            user=datasource.username,
            password=datasource.password,
            connect_timeout=timeout,
        )
    if pt == ProductTypeEnum.MYSQL:
        return pymysql.connect(
            host=datasource.host,
            port=datasource.port,
            database=datasource.database,
            user=datasource.username,
            password=datasource.password,
            connect_timeout=timeout,
        )
    if pt == ProductTypeEnum.TRINO:
        if datasource.use_ssl and not datasource.password.strip():
            raise ValueError("Password is required for Trino when using SSL/HTTPS.")
        return trino_connect(
            host=datasource.host,
            port=datasource.port,
            user=datasource.username,
            auth=BasicAuthentication(datasource.username, datasource.password),
            catalog=datasource.database,
            schema="default",
            source=settings.PROJECT_NAME,
            http_scheme="https" if datasource.use_ssl else "http",
            request_timeout=timeout,
        )
    raise ValueError(f"Unsupported product_type: {pt}")


def execute(conn: Any, sql: str) -> Any:
    """
    Run *sql* on a fresh cursor and return it for cursor_to_dicts().

    No statement timeout is applied; a hung query holds its connection until
    the driver gives up.
    """
    cur = conn.cursor()
    cur.execute(sql)
    return cur


def cursor_to_dicts(cursor: Any) -> list[dict[str, Any]]:
    """Convert cursor result to list of dicts. Works for psycopg, pymysql and trino."""
    desc = cursor.description
    if not desc:
        return []
    names = [d[0] for d in desc]
    return [dict(zip(names, row, strict=True)) for row in cursor.fetchall()]
