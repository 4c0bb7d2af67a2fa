"""
Query endpoints: one ``GET`` route per api / mybatis definition.

Flow: verify token -> query string -> QueryExecutor.execute -> {"rows": [...]}.

- 400 {"message"}: injection detected or mapper resolution failed.
- 500 {"message"}: definition has no template / namespace.
- QueryExecutionError propagates to the app's exception handlers.

Execution is blocking; it runs in a worker thread so the event loop keeps
accepting requests.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from querybridge.api.deps import ExecutorDep, verify_token
from querybridge.core.exceptions import (
    DefinitionError,
    InjectionDetectedError,
    MapperResolutionError,
)
from querybridge.definitions import EndpointDefinition, MappedQuery, Registry

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


def make_endpoint(
    definition: EndpointDefinition,
) -> Callable[..., Awaitable[JSONResponse]]:
    async def query_endpoint(request: Request, executor: ExecutorDep) -> JSONResponse:
        params = dict(request.query_params)
        try:
            rows = await asyncio.to_thread(executor.execute, definition, params)
        except DefinitionError as e:
            logger.error("Definition %s is misconfigured: %s", definition.name, e)
            return _error(500, str(e))
        except InjectionDetectedError as e:
            logger.warning(
                "SQL inject detected: %s, %s, %s", e.name, e.value, definition.endpoint
            )
            return _error(400, "SQL inject data detected.")
        except MapperResolutionError as e:
            return _error(400, str(e))
        return JSONResponse(content={"rows": rows})

    return query_endpoint


def build_query_router(registry: Registry) -> APIRouter:
    """Register every endpoint definition in registration order.

    Duplicate paths are registered too; the first one answers.
    """
    router = APIRouter(tags=["queries"], dependencies=[Depends(verify_token)])
    for definition in registry.endpoints():
        router.add_api_route(
            definition.endpoint,
            make_endpoint(definition),
            methods=["GET"],
            name=definition.name or definition.endpoint,
            response_model=None,
        )
        if isinstance(definition, MappedQuery):
            logger.info(
                "MYBATIS query end point generated: %s Namespace: %s Query ID: %s",
                definition.endpoint,
                definition.namespace,
                definition.statement_id,
            )
        else:
            logger.info(
                "API query end point generated: %s SQL: %s",
                definition.endpoint,
                definition.template,
            )
    return router
