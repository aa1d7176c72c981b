"""Data models for the tiered cache."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class CacheTier(str, Enum):
    """Backing store an entry lives in."""

    DISTRIBUTED = "distributed"
    FALLBACK = "fallback"


class TierMode(str, Enum):
    """Which tiers the cache service currently consults."""

    DISTRIBUTED = "distributed"
    FALLBACK_ONLY = "fallback_only"


class HealthStatus(str, Enum):
    """Distributed tier health classification."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNREACHABLE = "unreachable"


@dataclass(frozen=True)
class CacheEntry:
    """A serialized value held by one tier until ``expires_at``."""

    key: str
    value: str
    ttl_seconds: int
    tier: CacheTier
    stored_at: float
    expires_at: float

    def __post_init__(self):
        if self.ttl_seconds < 1:
            raise ValueError("ttl_seconds must be a positive integer")

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass
class HealthReport:
    """Outcome of a cache health check."""

    status: HealthStatus
    mode: TierMode
    distributed_configured: bool
    latency_ms: Optional[float] = None
    detail: Optional[str] = None
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "mode": self.mode.value,
            "distributedConfigured": self.distributed_configured,
            "latencyMs": self.latency_ms,
            "detail": self.detail,
            "checkedAt": self.checked_at.isoformat(),
        }
