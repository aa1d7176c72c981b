"""Two-tier cache service: distributed cache with an in-process fallback."""

import asyncio
import functools
import json
import time
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from ..config.logging import get_logger
from ..config.settings import Settings
from ..core.errors import OperationalError
from .memory import FallbackCache
from .models import CacheTier, HealthReport, HealthStatus, TierMode
from .redis_client import DistributedCacheClient, RedisCacheClient

logger = get_logger(__name__)


class _Miss:
    """Sentinel for a cache miss (distinct from a cached ``None``)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISS"


MISS = _Miss()

HEALTH_PROBE_VALUE = "ok"


class CacheService:
    """
    Tiered key/value cache.

    The distributed tier is consulted first while it is configured and
    considered reachable; otherwise only the fallback tier is used. Reads
    from the distributed tier are never mirrored into the fallback tier.
    A failing distributed operation falls back for that operation only;
    only an unreachable health check switches the service to fallback-only
    mode, and only a later successful health check switches it back.
    """

    def __init__(
        self,
        fallback: FallbackCache,
        distributed: Optional[DistributedCacheClient] = None,
        default_ttl_seconds: int = 86400,
        health_probe_key: str = "momentum:health:probe",
        clock: Callable[[], float] = time.time,
    ):
        if default_ttl_seconds < 1:
            raise ValueError("default_ttl_seconds must be positive")
        self._fallback = fallback
        self._distributed = distributed
        self._distributed_active = distributed is not None
        self.default_ttl_seconds = default_ttl_seconds
        self.health_probe_key = health_probe_key
        self._clock = clock
        self._inflight: Dict[str, asyncio.Future] = {}
        self._last_health: Optional[HealthReport] = None
        self._stats = {
            "hits": 0,
            "misses": 0,
            "sets": 0,
            "computations": 0,
            "distributed_errors": 0,
            "fallback_errors": 0,
        }
        self.logger = logger.bind(component="cache_service")

    @classmethod
    def from_settings(cls, settings: Settings) -> "CacheService":
        """Build the service once at process start from configuration."""
        distributed = None
        if settings.is_redis_configured():
            distributed = RedisCacheClient(
                host=settings.redis_host,
                port=settings.redis_port,
                password=settings.redis_password,
                db=settings.redis_db,
                timeout_seconds=settings.redis_timeout_seconds,
            )
        else:
            logger.info("Distributed cache not configured, using in-process cache only")

        return cls(
            fallback=FallbackCache(max_entries=settings.fallback_cache_max_entries),
            distributed=distributed,
            default_ttl_seconds=settings.cache_ttl_seconds,
            health_probe_key=f"{settings.cache_key_prefix}:health:probe",
        )

    # Tier state

    def is_configured(self) -> bool:
        """Whether a distributed tier exists at all."""
        return self._distributed is not None

    @property
    def mode(self) -> TierMode:
        if self._distributed is not None and self._distributed_active:
            return TierMode.DISTRIBUTED
        return TierMode.FALLBACK_ONLY

    @property
    def active_tier(self) -> CacheTier:
        if self.mode is TierMode.DISTRIBUTED:
            return CacheTier.DISTRIBUTED
        return CacheTier.FALLBACK

    # Serialization

    def _encode(self, value: Any, ttl_seconds: int) -> str:
        return json.dumps(
            {"data": value, "storedAt": self._clock(), "ttlSeconds": ttl_seconds}
        )

    def _decode(self, raw: str) -> Any:
        """Return the stored value, or MISS if the envelope has expired."""
        envelope = json.loads(raw)
        if not isinstance(envelope, dict) or "data" not in envelope:
            raise ValueError("cache envelope missing 'data'")
        stored_at = float(envelope["storedAt"])
        ttl_seconds = float(envelope["ttlSeconds"])
        if self._clock() - stored_at >= ttl_seconds:
            return MISS
        return envelope["data"]

    def _record_tier_error(self, error: OperationalError, tier: CacheTier) -> None:
        key = "distributed_errors" if tier is CacheTier.DISTRIBUTED else "fallback_errors"
        self._stats[key] += 1
        self.logger.warning(
            "Cache tier operation failed",
            tier=tier.value,
            code=error.code,
            error=error.message,
        )

    # Reads

    async def get(self, key: str) -> Any:
        """Get a cached value or ``MISS``."""
        return self._count(await self._lookup(key))

    async def _lookup(self, key: str) -> Any:
        """Read the active tier without touching hit/miss counters."""
        if self.mode is TierMode.DISTRIBUTED:
            try:
                raw = await self._distributed.get(key)
            except OperationalError as e:
                self._record_tier_error(e, CacheTier.DISTRIBUTED)
                return await self._fallback_get(key)
            return self._decode_or_miss(key, raw, CacheTier.DISTRIBUTED)

        return await self._fallback_get(key)

    async def _fallback_get(self, key: str) -> Any:
        try:
            entry = await self._fallback.get(key)
        except Exception as e:
            self._record_tier_error(
                OperationalError.cache_tier("fallback", "get", str(e)), CacheTier.FALLBACK
            )
            return MISS

        if entry is None:
            return MISS

        value = self._decode_or_miss(key, entry.value, CacheTier.FALLBACK)
        if value is MISS:
            await self._fallback.delete(key)
        return value

    def _decode_or_miss(self, key: str, raw: Optional[str], tier: CacheTier) -> Any:
        if raw is None:
            return MISS
        try:
            return self._decode(raw)
        except (ValueError, TypeError, KeyError) as e:
            self._record_tier_error(
                OperationalError.cache_tier(tier.value, "decode", f"{key}: {e}"), tier
            )
            return MISS

    def _count(self, value: Any) -> Any:
        self._stats["misses" if value is MISS else "hits"] += 1
        return value

    # Writes

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> Optional[CacheTier]:
        """
        Store a JSON-serializable value in the active tier.

        Returns the tier written, or None when no tier accepted the write.
        Tier failures are logged and never raised.
        """
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl < 1:
            raise ValueError("ttl_seconds must be positive")
        payload = self._encode(value, ttl)

        if self.mode is TierMode.DISTRIBUTED:
            try:
                await self._distributed.set(key, payload, ttl)
                self._stats["sets"] += 1
                return CacheTier.DISTRIBUTED
            except OperationalError as e:
                self._record_tier_error(e, CacheTier.DISTRIBUTED)

        try:
            await self._fallback.set(key, payload, ttl)
        except Exception as e:
            self._record_tier_error(
                OperationalError.cache_tier("fallback", "set", str(e)), CacheTier.FALLBACK
            )
            return None
        self._stats["sets"] += 1
        return CacheTier.FALLBACK

    async def delete(self, key: str) -> bool:
        """Invalidate a key in both tiers."""
        removed = False
        if self.mode is TierMode.DISTRIBUTED:
            try:
                removed = await self._distributed.delete(key) > 0
            except OperationalError as e:
                self._record_tier_error(e, CacheTier.DISTRIBUTED)
        return await self._fallback.delete(key) or removed

    async def invalidate(self, pattern: str) -> int:
        """Invalidate every key matching a glob pattern in both tiers."""
        removed = 0
        if self.mode is TierMode.DISTRIBUTED:
            try:
                keys = await self._distributed.keys(pattern)
                removed += await self._distributed.delete(*keys)
            except OperationalError as e:
                self._record_tier_error(e, CacheTier.DISTRIBUTED)
        removed += await self._fallback.delete_pattern(pattern)
        self.logger.info("Cache pattern invalidated", pattern=pattern, removed=removed)
        return removed

    async def clear(self, prefix: str = "") -> int:
        """Remove all entries under a key prefix from both tiers."""
        return await self.invalidate(f"{prefix}*")

    async def keys(self, pattern: str = "*") -> List[str]:
        if self.mode is TierMode.DISTRIBUTED:
            try:
                return sorted(await self._distributed.keys(pattern))
            except OperationalError as e:
                self._record_tier_error(e, CacheTier.DISTRIBUTED)
        return sorted(await self._fallback.keys(pattern))

    # Read-or-compute

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[Any]],
        ttl_seconds: Optional[int] = None,
        force_refresh: bool = False,
    ) -> Any:
        """
        Return the cached value, computing and storing it on a miss.

        At most one computation per key is outstanding: concurrent misses
        wait on the same in-flight fill. The fill is shielded from caller
        cancellation so its write still lands for the other waiters.
        """
        if not force_refresh:
            cached = await self.get(key)
            if cached is not MISS:
                return cached

        fill = self._inflight.get(key)
        if fill is None:
            fill = asyncio.ensure_future(
                self._fill(key, compute, ttl_seconds, recheck=not force_refresh)
            )
            self._inflight[key] = fill
            fill.add_done_callback(functools.partial(self._fill_done, key))
        return await asyncio.shield(fill)

    async def _fill(
        self,
        key: str,
        compute: Callable[[], Awaitable[Any]],
        ttl_seconds: Optional[int],
        recheck: bool,
    ) -> Any:
        # A fill that finished just before this one started already wrote the key
        if recheck:
            cached = await self._lookup(key)
            if cached is not MISS:
                return cached

        value = await compute()
        self._stats["computations"] += 1
        await self.set(key, value, ttl_seconds)
        return value

    def _fill_done(self, key: str, fill: asyncio.Future) -> None:
        if self._inflight.get(key) is fill:
            del self._inflight[key]
        if not fill.cancelled() and fill.exception() is not None:
            self.logger.debug("Cache fill failed", key=key, error=str(fill.exception()))

    async def warm(
        self,
        keys: Iterable[str],
        loader: Callable[[str], Awaitable[Any]],
        ttl_seconds: Optional[int] = None,
    ) -> int:
        """
        Compute and store entries for the given keys.

        Existing entries are recomputed, which refreshes their TTL. Failures
        are logged per key and never raised. Returns the number warmed.
        """
        keys = list(dict.fromkeys(keys))

        async def _warm_one(key: str) -> bool:
            try:
                await self.get_or_compute(
                    key, functools.partial(loader, key), ttl_seconds, force_refresh=True
                )
                return True
            except Exception as e:
                self.logger.warning("Cache warm-up failed for key", key=key, error=str(e))
                return False

        results = await asyncio.gather(*(_warm_one(key) for key in keys))
        warmed = sum(1 for ok in results if ok)
        self.logger.info(
            "Cache warming completed",
            total=len(keys),
            warmed=warmed,
            errors=len(keys) - warmed,
            tier=self.active_tier.value,
        )
        return warmed

    # Health

    async def health_check(self) -> HealthReport:
        """
        Probe the distributed tier and update the tier mode.

        Without a configured distributed tier no network call is made and the
        service reports healthy in fallback-only mode.
        """
        if self._distributed is None:
            report = HealthReport(
                status=HealthStatus.HEALTHY,
                mode=TierMode.FALLBACK_ONLY,
                distributed_configured=False,
                detail="Distributed cache not configured; serving from in-process cache",
            )
            self._last_health = report
            return report

        start = time.perf_counter()
        try:
            await self._distributed.ping()
        except OperationalError as e:
            was_active = self._distributed_active
            self._distributed_active = False
            self._stats["distributed_errors"] += 1
            if was_active:
                self.logger.warning(
                    "Distributed cache unreachable, switching to fallback-only mode",
                    error=e.message,
                )
            report = HealthReport(
                status=HealthStatus.UNREACHABLE,
                mode=TierMode.FALLBACK_ONLY,
                distributed_configured=True,
                detail=e.message,
            )
            self._last_health = report
            return report

        if not self._distributed_active:
            self.logger.info("Distributed cache reachable again, leaving fallback-only mode")
        self._distributed_active = True

        status = HealthStatus.HEALTHY
        detail = None
        try:
            await self._distributed.set(self.health_probe_key, HEALTH_PROBE_VALUE, 30)
            probe = await self._distributed.get(self.health_probe_key)
            if probe != HEALTH_PROBE_VALUE:
                status = HealthStatus.DEGRADED
                detail = "Health probe read back an unexpected value"
        except OperationalError as e:
            self._stats["distributed_errors"] += 1
            status = HealthStatus.DEGRADED
            detail = e.message

        report = HealthReport(
            status=status,
            mode=self.mode,
            distributed_configured=True,
            latency_ms=round((time.perf_counter() - start) * 1000, 2),
            detail=detail,
        )
        if status is HealthStatus.DEGRADED:
            self.logger.warning("Distributed cache degraded", detail=detail)
        self._last_health = report
        return report

    @property
    def last_health(self) -> Optional[HealthReport]:
        return self._last_health

    def stats(self) -> Dict[str, Any]:
        return {
            "backend": self.active_tier.value,
            "mode": self.mode.value,
            "distributedConfigured": self.is_configured(),
            "fallbackEntries": len(self._fallback),
            "fallbackCapacity": self._fallback.max_entries,
            "fallbackEvictions": self._fallback.evictions,
            "inflight": len(self._inflight),
            "hits": self._stats["hits"],
            "misses": self._stats["misses"],
            "sets": self._stats["sets"],
            "computations": self._stats["computations"],
            "distributedErrors": self._stats["distributed_errors"],
            "fallbackErrors": self._stats["fallback_errors"],
            "defaultTtlSeconds": self.default_ttl_seconds,
        }

    async def close(self) -> None:
        """Cancel pending fills and release the distributed connection."""
        for fill in list(self._inflight.values()):
            fill.cancel()
        self._inflight.clear()
        if self._distributed is not None:
            await self._distributed.close()
