"""Per-client admission control."""

from .limiter import (
    AdmissionDecision,
    EndpointClass,
    Quota,
    RateLimiter,
    RateLimitWindow,
    client_key_for,
)

__all__ = [
    "AdmissionDecision",
    "EndpointClass",
    "Quota",
    "RateLimitWindow",
    "RateLimiter",
    "client_key_for",
]
