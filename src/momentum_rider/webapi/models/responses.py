"""Response models for the Momentum Rider API (used for the OpenAPI schema)."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error body shared by every error kind."""

    error: str = Field(..., description="Stable machine-readable error code")
    message: str = Field(..., description="Human-readable message")
    fieldErrors: Optional[Dict[str, str]] = Field(
        None, description="Per-field validation messages"
    )
    retryAfterSeconds: Optional[int] = Field(
        None, description="Seconds until the exhausted quota resets"
    )


class MomentumResponse(BaseModel):
    """Momentum figures for one ticker."""

    ticker: str
    horizonReturns: Dict[str, float] = Field(
        ..., description="Percentage return per horizon, rounded to 2 places"
    )
    compositeScore: float = Field(..., description="Weighted average of horizon returns")
    absoluteMomentum: bool = Field(..., description="Whether the composite is positive")
    computedAt: str = Field(..., description="ISO timestamp of the computation")
    currentPrice: Optional[float] = None
    name: Optional[str] = None
    approximateHorizons: Optional[List[str]] = Field(
        None, description="Horizons longer than the available history"
    )


class CacheHealthResponse(BaseModel):
    status: str = Field(..., description="healthy, degraded or unreachable")
    mode: str = Field(..., description="distributed or fallback_only")
    distributedConfigured: bool
    latencyMs: Optional[float] = None
    detail: Optional[str] = None
    checkedAt: str


class CacheKeysResponse(BaseModel):
    pattern: str
    count: int
    keys: List[str]


class CacheWarmResponse(BaseModel):
    requested: int
    warmed: int
    failed: int
    skipped: List[str]


class CacheInvalidateResponse(BaseModel):
    pattern: str
    removed: int


ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Validation error"},
    429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
    500: {"model": ErrorResponse, "description": "Internal server error"},
}
