import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from querybridge.api.main import build_api_router
from querybridge.core.config import collect_query_entries, settings
from querybridge.core.exceptions import QueryExecutionError
from querybridge.core.logging import setup_logging
from querybridge.core.pool import check_database, get_pool_manager
from querybridge.core.security import log_operator_token
from querybridge.definitions import Registry
from querybridge.engines import MapperRegistry, QueryExecutor
from querybridge.publish import PublishScheduler, PublishTransport, build_transport

_logger = logging.getLogger(__name__)

_SHUTDOWN_TIMEOUT_SEC = 5.0


def custom_generate_unique_id(route: APIRoute) -> str:
    return f"{route.tags[0]}-{route.name}" if route.tags else route.name


if settings.SENTRY_DSN and settings.ENVIRONMENT != "local":
    sentry_sdk.init(dsn=str(settings.SENTRY_DSN), enable_tracing=True)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    setup_logging()
    _logger.info("=================================")
    _logger.info("ENVIRONMENT: %s", settings.ENVIRONMENT)
    _logger.info("LOG_DIR: %s", settings.LOG_DIR)
    _logger.info("DB: %s://%s:%s/%s", settings.DB_PRODUCT_TYPE, settings.DB_HOST, settings.DB_PORT, settings.DB_DATABASE)
    _logger.info("PUBLISH_TRANSPORT: %s", settings.PUBLISH_TRANSPORT)
    _logger.info("MQTT_TOPIC: %s", settings.MQTT_TOPIC)
    _logger.info("SQL_INJECTION: %s", settings.SQL_INJECTION)
    log_operator_token()

    if await asyncio.to_thread(check_database):
        _logger.info("DB Connection success")
    else:
        _logger.error("DB Connection failed; queries will fail until it is reachable")

    scheduler: PublishScheduler | None = app.state.scheduler
    if scheduler is not None:
        scheduler.transport.start()
        scheduler.start()
    try:
        yield
    finally:
        if scheduler is not None:
            try:
                await asyncio.wait_for(scheduler.stop(), timeout=_SHUTDOWN_TIMEOUT_SEC)
            except asyncio.TimeoutError:
                _logger.warning("Scheduled queries did not stop within %ss", _SHUTDOWN_TIMEOUT_SEC)
            scheduler.transport.close()
        get_pool_manager().dispose()


def create_app(
    registry: Registry | None = None,
    *,
    mappers: MapperRegistry | None = None,
    executor: QueryExecutor | None = None,
    transport: PublishTransport | None = None,
) -> FastAPI:
    """Build the application from a registry (default: ``QUERY_*`` env).

    The scheduler (and its transport) only exists when the registry holds
    scheduled definitions.
    """
    if registry is None:
        registry = Registry.load(collect_query_entries())
    if executor is None:
        executor = QueryExecutor(
            mappers if mappers is not None else MapperRegistry.load_dir(settings.MAPPER_DIR),
            screen_injection=settings.SQL_INJECTION,
        )

    scheduler: PublishScheduler | None = None
    if registry.scheduled():
        scheduler = PublishScheduler(
            registry,
            executor,
            transport if transport is not None else build_transport(),
            topic_prefix=settings.MQTT_TOPIC,
        )

    app = FastAPI(
        title=settings.PROJECT_NAME,
        docs_url="/api-docs",
        redoc_url=None,
        generate_unique_id_function=custom_generate_unique_id,
        lifespan=lifespan,
    )
    app.state.registry = registry
    app.state.executor = executor
    app.state.scheduler = scheduler

    # -----------------------------------------------------------------------
    # Exception handlers: {"message": ...} error body
    # -----------------------------------------------------------------------

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(QueryExecutionError)
    async def query_execution_exception_handler(
        request: Request, exc: QueryExecutionError
    ) -> JSONResponse:
        """Data-store failure on a query endpoint: report and return 500."""
        _logger.error("Query failed on %s %s: %s", request.method, request.url.path, exc)
        sentry_sdk.capture_exception(exc)
        return JSONResponse(status_code=500, content={"message": str(exc)})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all for unhandled exceptions: log and return 500 with a safe message."""
        _logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        sentry_sdk.capture_exception(exc)
        message = "Internal server error"
        if settings.ENVIRONMENT == "local":
            message = f"Internal server error: {exc}"
        return JSONResponse(status_code=500, content={"message": message})

    # Set all CORS enabled origins
    if settings.all_cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.all_cors_origins,
            allow_credentials=settings.CORS_CREDENTIALS,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(build_api_router(registry))
    return app


def run() -> None:
    import uvicorn

    setup_logging()
    uvicorn.run(create_app(), host=settings.HOST, port=settings.PORT, log_config=None)


if __name__ == "__main__":
    run()
