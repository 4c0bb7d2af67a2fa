from fastapi import APIRouter

from querybridge.api.routes import utils
from querybridge.api.routes.queries import build_query_router
from querybridge.definitions import Registry


def build_api_router(registry: Registry) -> APIRouter:
    api_router = APIRouter()
    api_router.include_router(utils.router)
    # Query endpoints last so fixed routes take priority
    api_router.include_router(build_query_router(registry))
    return api_router
