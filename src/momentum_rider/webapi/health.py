"""Liveness and readiness probes."""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from ..config.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()

# Track application start time for uptime calculation
_app_start_time = time.time()


@router.get("/health/live", summary="Liveness Probe")
async def liveness_probe():
    """
    Liveness probe endpoint.

    Returns 200 if the application is running and can serve requests.
    This is a lightweight check that doesn't touch the cache tiers.
    """
    return {
        "status": "alive",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime_seconds": round(time.time() - _app_start_time, 3),
    }


@router.get("/health/ready", summary="Readiness Probe")
async def readiness_probe(request: Request):
    """
    Readiness probe endpoint.

    The service can always answer from the in-process cache, so it is ready
    once its services exist; the last cache health report is included.
    """
    cache = getattr(request.app.state, "cache", None)
    if cache is None:
        return {"status": "not_ready", "reason": "Services not initialized"}

    last_health = cache.last_health
    return {
        "status": "ready",
        "cacheMode": cache.mode.value,
        "cacheHealth": last_health.to_dict() if last_health is not None else None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
