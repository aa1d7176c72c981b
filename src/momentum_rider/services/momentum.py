"""Momentum scoring service: cache lookup, upstream fetch and scoring."""

import time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ..cache import CacheService
from ..config.logging import get_logger, log_performance
from ..config.settings import Settings
from ..core.calculations import compute_momentum_score
from ..core.errors import OperationalError
from ..core.models import Horizon, horizon_set_id, horizons_from_weeks, weights_id
from .prices import PriceHistoryFetcher

logger = get_logger(__name__)


class MomentumService:
    """
    Serves momentum scores for a fixed instrument universe.

    Scores are cached per (ticker, horizon set, name flag) for a fixed TTL.
    A miss fetches weekly history and the latest quote, computes the score
    and writes it to the active cache tier before returning it.
    """

    def __init__(
        self,
        cache: CacheService,
        fetcher: PriceHistoryFetcher,
        tickers: Iterable[str],
        horizons: Sequence[Horizon],
        ttl_seconds: int,
        key_prefix: str = "momentum",
        hot_tickers: Iterable[str] = (),
        weights: Optional[Mapping[str, float]] = None,
    ):
        self.cache = cache
        self.fetcher = fetcher
        self.tickers = frozenset(t.upper() for t in tickers)
        self.horizons = tuple(sorted(horizons, key=lambda h: h.weeks))
        self.weights = dict(weights) if weights else None
        # A weighting table adds its digest to the key, e.g. 1w-4w:w1a2b3c4d
        self.horizon_set = ":".join(
            part for part in (horizon_set_id(self.horizons), weights_id(self.weights)) if part
        )
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix
        self.hot_tickers = [t.upper() for t in hot_tickers]
        self.logger = logger.bind(component="momentum_service")

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        cache: CacheService,
        fetcher: PriceHistoryFetcher,
    ) -> "MomentumService":
        return cls(
            cache=cache,
            fetcher=fetcher,
            tickers=settings.momentum_tickers,
            horizons=horizons_from_weeks(settings.momentum_horizon_weeks),
            ttl_seconds=settings.cache_ttl_seconds,
            key_prefix=settings.cache_key_prefix,
            hot_tickers=settings.hot_tickers,
            weights=settings.momentum_weights,
        )

    def cache_key(self, ticker: str, include_name: bool = False) -> str:
        """Deterministic cache key, e.g. ``momentum:SPY:1w-4w-12w-26w-52w``."""
        key = f"{self.key_prefix}:{ticker.upper()}:{self.horizon_set}"
        return f"{key}:named" if include_name else key

    def is_supported(self, ticker: str) -> bool:
        return ticker.upper() in self.tickers

    async def get_momentum(
        self, ticker: str, include_name: bool = False, refresh: bool = False
    ) -> Dict[str, Any]:
        """
        Get the momentum payload for a ticker.

        Raises:
            OperationalError: NOT_FOUND for tickers outside the universe or
                without upstream data, INTERNAL for upstream failures
        """
        ticker = ticker.upper()
        if not self.is_supported(ticker):
            raise OperationalError.not_found("Ticker", ticker)

        async def _compute() -> Dict[str, Any]:
            return await self.compute(ticker, include_name=include_name)

        return await self.cache.get_or_compute(
            self.cache_key(ticker, include_name),
            _compute,
            ttl_seconds=self.ttl_seconds,
            force_refresh=refresh,
        )

    async def compute(self, ticker: str, include_name: bool = False) -> Dict[str, Any]:
        """Fetch upstream data and score it, bypassing the cache."""
        start = time.perf_counter()
        series = await self.fetcher.fetch_weekly_series(ticker)

        current_price = await self.fetcher.fetch_current_price(ticker)
        if current_price is None:
            latest = series.latest
            current_price = latest.close if latest is not None else None
            self.logger.debug("Using latest weekly close as current price", ticker=ticker)
        if current_price is None or current_price <= 0:
            raise OperationalError.internal(
                f"Invalid current price for {ticker}", code="ERR_INVALID_PRICE"
            )

        name = await self.fetcher.fetch_name(ticker) if include_name else None

        score = compute_momentum_score(
            ticker,
            series,
            self.horizons,
            current_price=current_price,
            weights=self.weights,
            name=name,
        )
        if score.approximate_horizons:
            self.logger.info(
                "History shorter than some horizons",
                ticker=ticker,
                approximate_horizons=list(score.approximate_horizons),
            )

        log_performance(
            "momentum_compute",
            round((time.perf_counter() - start) * 1000, 2),
            ticker=ticker,
            points=len(series),
        )
        return score.to_dict()

    async def warm(self, tickers: Optional[Iterable[str]] = None) -> Dict[str, Any]:
        """
        Precompute scores for the given tickers (the hot set by default).

        Tickers outside the universe are skipped and reported.
        """
        requested: List[str] = [
            t.upper() for t in (self.hot_tickers if tickers is None else tickers)
        ]
        supported = [t for t in dict.fromkeys(requested) if self.is_supported(t)]
        skipped = [t for t in dict.fromkeys(requested) if not self.is_supported(t)]
        if skipped:
            self.logger.warning("Skipping unsupported tickers during warm-up", tickers=skipped)

        by_key = {self.cache_key(t): t for t in supported}

        async def _load(key: str) -> Dict[str, Any]:
            return await self.compute(by_key[key])

        warmed = await self.cache.warm(by_key, _load, ttl_seconds=self.ttl_seconds)
        return {
            "requested": len(requested),
            "warmed": warmed,
            "failed": len(supported) - warmed,
            "skipped": skipped,
        }
