"""API response models."""

from .responses import (
    ERROR_RESPONSES,
    CacheHealthResponse,
    CacheInvalidateResponse,
    CacheKeysResponse,
    CacheWarmResponse,
    ErrorResponse,
    MomentumResponse,
)

__all__ = [
    "ERROR_RESPONSES",
    "CacheHealthResponse",
    "CacheInvalidateResponse",
    "CacheKeysResponse",
    "CacheWarmResponse",
    "ErrorResponse",
    "MomentumResponse",
]
