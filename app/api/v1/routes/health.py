"""
Liveness and readiness probes.

/health only proves the process answers; /health/ready also PINGs the
Upstash store, since every data route depends on it.

Reference: https://kubernetes.io/docs/tasks/configure-pod-container/configure-liveness-readiness-startup-probes/
"""
import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from app.core.exceptions import StoreException
from app.core.redis import RedisClient, get_redis_client

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/health",
    tags=["health"],
)


class HealthResponse(BaseModel):
    status: str
    message: str
    store_latency_ms: Optional[float] = None


@router.get(
    "",
    response_model=HealthResponse,
    summary="Liveness probe",
    description="Returns 200 while the process is up. Does not touch the store.",
    status_code=status.HTTP_200_OK,
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="healthy", message="Service is running")


@router.get(
    "/ready",
    response_model=HealthResponse,
    summary="Readiness probe",
    description="PINGs the key-value store and reports the round trip.",
    status_code=status.HTTP_200_OK,
    responses={
        200: {"description": "Store reachable"},
        503: {"description": "Store unreachable or misconfigured"},
    },
)
async def readiness_check(client: RedisClient = Depends(get_redis_client)) -> HealthResponse:
    """
    Ready once the store answers PING.

    **Raises:**
        HTTPException: 503 when the PING fails
    """
    started = time.perf_counter()
    try:
        await client.ping()
    except StoreException as e:
        logger.warning(f"Readiness check failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is not ready - store unavailable",
        )
    return HealthResponse(
        status="ready",
        message="Store reachable",
        store_latency_ms=round((time.perf_counter() - started) * 1000, 2),
    )
