import asyncio

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from querybridge.core.pool import check_database

router = APIRouter(prefix="/utils", tags=["utils"])


@router.get("/liveness/", response_model=None)
async def liveness() -> bool:
    """
    Liveness check: is the process alive and responsive? No I/O.
    """
    return True


@router.get("/health-check/", response_model=None)
async def health_check(request: Request) -> bool | JSONResponse:
    """
    Readiness check: can the service handle traffic?

    Checks: database reachable + publish transport connected (only when
    scheduled definitions exist). Returns 200 with true when all are up;
    503 with the failing checks otherwise.
    """
    failures: list[str] = []
    if not await asyncio.to_thread(check_database):
        failures.append("database")
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is not None and scheduler.tasks and not scheduler.transport.connected:
        failures.append("transport")
    if failures:
        return JSONResponse(
            status_code=503,
            content={"message": "Service Unavailable", "failures": failures},
        )
    return True
