"""
API routers.

- momentum: momentum scores per ticker
- cache: cache health and administration
"""

from fastapi import APIRouter

from . import cache, momentum

router = APIRouter()

# /api/momentum/{ticker}, /api/momentum
router.include_router(momentum.router, prefix="/momentum", tags=["Momentum"])

# /api/cache/health, /api/cache/stats, /api/cache/keys, ...
router.include_router(cache.router, prefix="/cache", tags=["Cache"])

__all__ = ["router"]
