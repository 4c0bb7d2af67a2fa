import os
from collections.abc import Mapping
from typing import Annotated, Any, Literal

from dotenv import dotenv_values
from pydantic import AnyUrl, BeforeValidator, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"

# Prefix of the environment keys holding raw query definitions.
QUERY_ENTRY_PREFIX = "QUERY_"


def parse_cors(v: Any) -> list[str] | str:
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "querybridge"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    LOG_DIR: str | None = None

    SENTRY_DSN: AnyUrl | None = None

    BACKEND_CORS_ORIGINS: Annotated[
        list[AnyUrl] | str, BeforeValidator(parse_cors)
    ] = []
    CORS_CREDENTIALS: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS]

    # Auth: tokens are RS256 JWTs; verification is enabled by the public key.
    SECRET_KEY: str = "querybridge"
    JWT_PRIVATE_KEY_PATH: str | None = None
    JWT_PUBLIC_KEY_PATH: str | None = None

    # Reject caller values carrying SQL injection signatures.
    SQL_INJECTION: bool = False

    # Folder holding MyBatis-style XML mapper files.
    MAPPER_DIR: str | None = None

    # Target database
    DB_PRODUCT_TYPE: Literal["postgres", "mysql", "trino"] = "postgres"
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_DATABASE: str = "app"
    DB_USERNAME: str = "postgres"
    DB_PASSWORD: str = ""
    DB_USE_SSL: bool = False

    EXTERNAL_DB_CONNECT_TIMEOUT: int = 10
    EXTERNAL_DB_POOL_SIZE: int = 10
    EXTERNAL_DB_MAX_CONNECTIONS: int = 10
    EXTERNAL_DB_POOL_MAX_AGE_SEC: int = 600

    # Publish transport for scheduled definitions
    PUBLISH_TRANSPORT: Literal["mqtt", "redis"] = "mqtt"
    MQTT_HOST: str = "localhost"
    MQTT_PORT: int = 1883
    MQTT_CLIENT_ID: str = ""
    MQTT_USERNAME: str | None = None
    MQTT_PASSWORD: str | None = None
    MQTT_KEEPALIVE: int = 60
    # Base prefix prepended to every scheduled definition's topic suffix.
    MQTT_TOPIC: str = ""
    REDIS_URL: str = "redis://localhost:6379/0"


settings = Settings()  # type: ignore


def collect_query_entries(
    environ: Mapping[str, str] | None = None,
) -> list[tuple[str, str]]:
    """Return ``(key, raw entry)`` for every ``QUERY_*`` key, ordered by key.

    Process environment wins over the ``.env`` file. Pass *environ* to read
    from an explicit mapping instead of both.
    """
    if environ is None:
        file_values = {
            k: v for k, v in dotenv_values(ENV_FILE).items() if v is not None
        }
        environ = {**file_values, **os.environ}
    keys = sorted(k for k in environ if k.startswith(QUERY_ENTRY_PREFIX))
    return [(k, environ[k]) for k in keys]
