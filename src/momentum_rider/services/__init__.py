"""Service layer for momentum scoring."""

from .momentum import MomentumService
from .pipeline import RequestContext, RequestPipeline, build_pipeline
from .prices import PriceHistoryFetcher

__all__ = [
    "MomentumService",
    "PriceHistoryFetcher",
    "RequestContext",
    "RequestPipeline",
    "build_pipeline",
]
