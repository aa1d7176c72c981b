"""Tiered cache: distributed Redis tier with an in-process fallback."""

from .memory import FallbackCache
from .models import CacheEntry, CacheTier, HealthReport, HealthStatus, TierMode
from .redis_client import DistributedCacheClient, RedisCacheClient
from .service import MISS, CacheService

__all__ = [
    "CacheEntry",
    "CacheService",
    "CacheTier",
    "DistributedCacheClient",
    "FallbackCache",
    "HealthReport",
    "HealthStatus",
    "MISS",
    "RedisCacheClient",
    "TierMode",
]
