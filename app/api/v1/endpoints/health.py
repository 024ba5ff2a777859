"""Health check endpoints."""

from fastapi import APIRouter, status
from pydantic import BaseModel

from app.config import settings
from app.core.redis_client import check_redis_connection
from app.database import check_database_connection, check_overlap_guard

router = APIRouter()


def _state(healthy: bool | None) -> str:
    if healthy is None:
        return "disabled"
    return "healthy" if healthy else "unhealthy"


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    """Detailed health check response model."""

    database: str
    redis: str
    booking_guard: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    """
    Basic health check endpoint.

    Returns:
        Basic health status
    """
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Detailed health check",
)
async def detailed_health_check() -> DetailedHealthResponse:
    """
    Detailed health check with database, cache and booking guard status.

    The cache is optional, so an unconfigured Redis reports ``disabled``
    without degrading the overall status. The booking guard is the
    exclusion constraint that keeps a doctor's appointments from
    overlapping; without it concurrent bookings are only serialized by
    the advisory lock.

    Returns:
        Detailed health status including dependencies
    """
    db_healthy = await check_database_connection()
    redis_healthy = await check_redis_connection()
    guard_installed = await check_overlap_guard() if db_healthy else False

    degraded = not db_healthy or not guard_installed or redis_healthy is False
    return DetailedHealthResponse(
        status="degraded" if degraded else "healthy",
        version=settings.app_version,
        environment=settings.environment,
        database=_state(db_healthy),
        redis=_state(redis_healthy),
        booking_guard="installed" if guard_installed else "missing",
    )


@router.get(
    "/ping",
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Simple ping",
)
async def ping() -> dict[str, str]:
    """
    Simple ping endpoint.

    Returns:
        Pong response
    """
    return {"message": "pong"}
