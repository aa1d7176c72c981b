"""Fixed-window admission control with combined global and per-endpoint quotas."""

import math
import threading
import time
from contextlib import ExitStack
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Mapping, Optional, Tuple

from ..config.logging import get_logger
from ..config.settings import Settings

logger = get_logger(__name__)

GLOBAL_SCOPE = "global"


class EndpointClass(str, Enum):
    """Endpoint cost classes, each with its own quota."""

    READ = "read"
    COMPUTE = "compute"
    ADMIN = "admin"


@dataclass(frozen=True)
class Quota:
    limit: int
    window_seconds: int

    def __post_init__(self):
        if self.limit < 1 or self.window_seconds < 1:
            raise ValueError("Quota limit and window must be positive")


@dataclass
class RateLimitWindow:
    """Request count for one (client, scope) pair within one window."""

    client_key: str
    scope: str
    window_start: float
    count: int
    limit: int
    window_seconds: int

    def rolled_over(self, now: float) -> bool:
        return now - self.window_start >= self.window_seconds

    def reset_after(self, now: float) -> float:
        return max(0.0, self.window_start + self.window_seconds - now)


@dataclass(frozen=True)
class AdmissionDecision:
    """Result of an admission check."""

    allowed: bool
    endpoint_class: EndpointClass
    limit: int
    remaining: int
    reset_after_seconds: int
    retry_after_seconds: Optional[int] = None
    exhausted_scope: Optional[str] = None

    def headers(self) -> Dict[str, str]:
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_after_seconds),
        }
        if self.retry_after_seconds is not None:
            headers["Retry-After"] = str(self.retry_after_seconds)
        return headers


class RateLimiter:
    """
    Admits a request only if both the client's global quota and the quota of
    the endpoint class have headroom.

    Each (client, scope) pair has exactly one window. The rollover, the
    check and the increment of both windows happen under the locks of those
    two windows only, so concurrent requests from one client cannot all see
    stale headroom while unrelated clients never contend.
    """

    def __init__(
        self,
        global_quota: Quota,
        endpoint_quotas: Mapping[EndpointClass, Quota],
        clock: Callable[[], float] = time.monotonic,
        prune_every: int = 1000,
        lock_stripes: int = 64,
    ):
        missing = [c.value for c in EndpointClass if c not in endpoint_quotas]
        if missing:
            raise ValueError(f"Missing quotas for endpoint classes: {missing}")
        self.global_quota = global_quota
        self.endpoint_quotas = dict(endpoint_quotas)
        self._clock = clock
        self._windows: Dict[Tuple[str, str], RateLimitWindow] = {}
        self._locks = [threading.Lock() for _ in range(lock_stripes)]
        self._prune_lock = threading.Lock()
        self._prune_every = prune_every
        self._admissions_since_prune = 0
        self.logger = logger.bind(component="rate_limiter")

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateLimiter":
        return cls(
            global_quota=Quota(settings.rate_limit_global_per_minute, 60),
            endpoint_quotas={
                EndpointClass.READ: Quota(settings.rate_limit_read_per_minute, 60),
                EndpointClass.COMPUTE: Quota(settings.rate_limit_compute_per_minute, 60),
                EndpointClass.ADMIN: Quota(
                    settings.rate_limit_admin_requests,
                    settings.rate_limit_admin_window_seconds,
                ),
            },
        )

    def _stripe(self, window_key: Tuple[str, str]) -> int:
        return hash(window_key) % len(self._locks)

    def _locked(self, *window_keys: Tuple[str, str]) -> ExitStack:
        """Hold the locks guarding the given windows, in stripe order."""
        stack = ExitStack()
        for stripe in sorted({self._stripe(k) for k in window_keys}):
            stack.enter_context(self._locks[stripe])
        return stack

    def _current_window(
        self, client_key: str, scope: str, quota: Quota, now: float
    ) -> RateLimitWindow:
        window = self._windows.get((client_key, scope))
        if window is None or window.rolled_over(now):
            window = RateLimitWindow(
                client_key=client_key,
                scope=scope,
                window_start=now,
                count=0,
                limit=quota.limit,
                window_seconds=quota.window_seconds,
            )
            self._windows[(client_key, scope)] = window
        return window

    def admit(self, client_key: str, endpoint_class: EndpointClass) -> AdmissionDecision:
        """
        Check and consume one request from both quotas.

        A denied request consumes neither quota. ``retry_after_seconds`` is
        the time until the exhausted window rolls over.
        """
        endpoint_class = EndpointClass(endpoint_class)
        endpoint_quota = self.endpoint_quotas[endpoint_class]
        global_key = (client_key, GLOBAL_SCOPE)
        endpoint_key = (client_key, endpoint_class.value)

        with self._locked(global_key, endpoint_key):
            now = self._clock()
            global_window = self._current_window(
                client_key, GLOBAL_SCOPE, self.global_quota, now
            )
            endpoint_window = self._current_window(
                client_key, endpoint_class.value, endpoint_quota, now
            )

            exhausted = [
                w for w in (global_window, endpoint_window) if w.count >= w.limit
            ]
            if exhausted:
                retry_after = max(
                    1, math.ceil(max(w.reset_after(now) for w in exhausted))
                )
                decision = AdmissionDecision(
                    allowed=False,
                    endpoint_class=endpoint_class,
                    limit=exhausted[0].limit,
                    remaining=0,
                    reset_after_seconds=retry_after,
                    retry_after_seconds=retry_after,
                    exhausted_scope=exhausted[0].scope,
                )
            else:
                global_window.count += 1
                endpoint_window.count += 1
                decision = AdmissionDecision(
                    allowed=True,
                    endpoint_class=endpoint_class,
                    limit=endpoint_window.limit,
                    remaining=min(
                        endpoint_window.limit - endpoint_window.count,
                        global_window.limit - global_window.count,
                    ),
                    reset_after_seconds=math.ceil(endpoint_window.reset_after(now)),
                )

        if not decision.allowed:
            self.logger.warning(
                "Rate limit exceeded",
                client_key=client_key,
                endpoint_class=endpoint_class.value,
                scope=decision.exhausted_scope,
                retry_after_seconds=decision.retry_after_seconds,
            )

        self._maybe_prune()
        return decision

    def window(self, client_key: str, scope: str) -> Optional[RateLimitWindow]:
        """Current window for a (client, scope) pair, if any."""
        return self._windows.get((client_key, scope))

    def _maybe_prune(self) -> None:
        with self._prune_lock:
            self._admissions_since_prune += 1
            if self._admissions_since_prune < self._prune_every:
                return
            self._admissions_since_prune = 0
        self.prune()

    def prune(self) -> int:
        """Drop windows that have rolled over; returns the number removed."""
        now = self._clock()
        removed = 0
        for window_key in list(self._windows):
            with self._locked(window_key):
                window = self._windows.get(window_key)
                if window is not None and window.rolled_over(now):
                    del self._windows[window_key]
                    removed += 1
        if removed:
            self.logger.debug("Pruned expired rate limit windows", removed=removed)
        return removed

    def reset(self) -> None:
        with ExitStack() as stack:
            for lock in self._locks:
                stack.enter_context(lock)
            self._windows.clear()


def client_key_for(user_id: Optional[str], remote_addr: Optional[str]) -> str:
    """Identified callers are limited per user; everyone else per address."""
    if user_id:
        return f"user:{user_id}"
    return f"ip:{remote_addr or 'unknown'}"
