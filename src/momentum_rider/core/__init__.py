"""Core domain: errors, validation, models and momentum calculations."""

from .calculations import (
    composite_score,
    compute_momentum_score,
    compute_return,
    find_point_on_or_before,
    find_price_on_or_before,
)
from .errors import ErrorKind, OperationalError, Result, is_error
from .models import Horizon, MomentumScore, PricePoint, WeeklyPriceSeries
from .validation import FieldSpec, Schema, validate

__all__ = [
    "ErrorKind",
    "FieldSpec",
    "Horizon",
    "MomentumScore",
    "OperationalError",
    "PricePoint",
    "Result",
    "Schema",
    "WeeklyPriceSeries",
    "composite_score",
    "compute_momentum_score",
    "compute_return",
    "find_point_on_or_before",
    "find_price_on_or_before",
    "is_error",
    "validate",
]
