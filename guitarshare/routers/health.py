# guitarshare/routers/health.py
# Health check endpoints for monitoring and load balancers
# Provides liveness and readiness probes

import time
import asyncio
import logging
from typing import Dict, Any
from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from guitarshare.repositories.share_repository import ShareRepository

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

STORE_CHECK_TIMEOUT = 2.0


class HealthStatus(BaseModel):
    """Health check response model."""
    status: str  # "healthy" or "unhealthy"
    timestamp: float
    version: str = "1.0.0"
    checks: Dict[str, Dict[str, Any]] = {}


class ComponentHealth(BaseModel):
    """Individual component health."""
    status: str
    latency_ms: float = 0.0
    message: str = ""


def get_share_repository() -> ShareRepository:
    return ShareRepository()


async def check_record_store_health(repo: ShareRepository) -> ComponentHealth:
    """Ping the record store."""
    start = time.time()

    try:
        await asyncio.wait_for(repo.ping(), timeout=STORE_CHECK_TIMEOUT)
        return ComponentHealth(
            status="healthy",
            latency_ms=(time.time() - start) * 1000,
            message="Record store reachable",
        )
    except asyncio.TimeoutError:
        return ComponentHealth(
            status="unhealthy",
            latency_ms=(time.time() - start) * 1000,
            message="Record store timeout",
        )
    except Exception as e:
        logger.error(f"Record store health check failed: {e}")
        return ComponentHealth(
            status="unhealthy",
            latency_ms=(time.time() - start) * 1000,
            message=f"Record store error: {type(e).__name__}",
        )


@router.get("/health", response_model=HealthStatus)
async def health_check(response: Response, repo: ShareRepository = Depends(get_share_repository)):
    """
    Full health check endpoint.
    Returns status of all components.
    """
    store = await check_record_store_health(repo)
    checks = {
        "record_store": {
            "status": store.status,
            "latency_ms": round(store.latency_ms, 2),
            "message": store.message,
        }
    }

    overall_status = "healthy"
    if any(c["status"] == "unhealthy" for c in checks.values()):
        overall_status = "unhealthy"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthStatus(status=overall_status, timestamp=time.time(), checks=checks)


@router.get("/health/live")
async def liveness_probe():
    """
    Kubernetes liveness probe.
    Does NOT check external dependencies.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_probe(response: Response, repo: ShareRepository = Depends(get_share_repository)):
    """
    Kubernetes readiness probe.
    Returns 200 only if the record store answers.
    """
    store = await check_record_store_health(repo)

    if store.status == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not_ready", "reason": store.message}

    return {"status": "ready"}
