"""Tests for the momentum scoring service."""

import sys
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, Mock

import pytest

sys.path.append("src")

from momentum_rider.cache import CacheService, FallbackCache
from momentum_rider.config.settings import Settings
from momentum_rider.core.errors import ErrorKind, OperationalError
from momentum_rider.core.models import horizons_from_weeks
from momentum_rider.services.momentum import MomentumService


@pytest.fixture
def series(make_series):
    today = datetime.now(timezone.utc).date()
    return make_series("SPY", [400 + i for i in range(53)], end=today)


@pytest.fixture
def fetcher(series):
    fetcher = Mock()
    fetcher.fetch_weekly_series = AsyncMock(return_value=series)
    fetcher.fetch_current_price = AsyncMock(return_value=Decimal("460"))
    fetcher.fetch_name = AsyncMock(return_value="SPDR S&P 500 ETF Trust")
    return fetcher


@pytest.fixture
def service(fetcher):
    return MomentumService(
        cache=CacheService(FallbackCache(), default_ttl_seconds=60),
        fetcher=fetcher,
        tickers=["SPY", "QQQ"],
        horizons=horizons_from_weeks([1, 4, 12, 26, 52]),
        ttl_seconds=60,
        hot_tickers=["SPY", "QQQ"],
    )


class TestMomentumService:
    """Test scoring through the cache."""

    def test_cache_key_is_deterministic(self, service):
        assert service.cache_key("spy") == "momentum:SPY:1w-4w-12w-26w-52w"
        assert service.cache_key("SPY", include_name=True).endswith(":named")

    @pytest.mark.asyncio
    async def test_get_momentum_computes_then_caches(self, service, fetcher):
        first = await service.get_momentum("spy")
        second = await service.get_momentum("SPY")

        assert first == second
        assert first["ticker"] == "SPY"
        assert list(first["horizonReturns"]) == ["1w", "4w", "12w", "26w", "52w"]
        assert first["currentPrice"] == 460.0
        assert first["absoluteMomentum"] is True
        assert "name" not in first
        fetcher.fetch_weekly_series.assert_awaited_once_with("SPY")
        fetcher.fetch_name.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_ticker_is_not_found(self, service, fetcher):
        with pytest.raises(OperationalError) as exc_info:
            await service.get_momentum("XYZ")

        assert exc_info.value.kind is ErrorKind.NOT_FOUND
        fetcher.fetch_weekly_series.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_include_name(self, service):
        payload = await service.get_momentum("SPY", include_name=True)
        assert payload["name"] == "SPDR S&P 500 ETF Trust"

    @pytest.mark.asyncio
    async def test_current_price_falls_back_to_latest_close(self, service, fetcher):
        fetcher.fetch_current_price.return_value = None

        payload = await service.get_momentum("SPY")

        assert payload["currentPrice"] == 452.0
        assert payload["horizonReturns"]["1w"] == pytest.approx(0.22)

    @pytest.mark.asyncio
    async def test_refresh_recomputes(self, service, fetcher):
        await service.get_momentum("SPY")
        await service.get_momentum("SPY", refresh=True)

        assert fetcher.fetch_weekly_series.await_count == 2

    @pytest.mark.asyncio
    async def test_upstream_not_found_is_not_cached(self, service, fetcher):
        fetcher.fetch_weekly_series.side_effect = OperationalError.not_found("Ticker", "QQQ")

        with pytest.raises(OperationalError):
            await service.get_momentum("QQQ")

        assert await service.cache.keys() == []

    @pytest.mark.asyncio
    async def test_warm_hot_tickers(self, service, fetcher):
        summary = await service.warm()

        assert summary == {"requested": 2, "warmed": 2, "failed": 0, "skipped": []}
        assert await service.cache.keys() == [
            "momentum:QQQ:1w-4w-12w-26w-52w",
            "momentum:SPY:1w-4w-12w-26w-52w",
        ]

    @pytest.mark.asyncio
    async def test_warm_skips_unsupported(self, service):
        summary = await service.warm(["spy", "XYZ"])

        assert summary["warmed"] == 1
        assert summary["skipped"] == ["XYZ"]

    @pytest.mark.asyncio
    async def test_settings_weights_shape_composite_and_key(self, fetcher):
        settings = Settings(
            redis_host="",
            momentum_tickers=["SPY"],
            momentum_horizon_weeks=[12, 52],
            momentum_weights={"12w": 1.0, "52w": 0.0},
        )
        cache = CacheService(FallbackCache(), default_ttl_seconds=60)
        weighted = MomentumService.from_settings(settings, cache, fetcher)
        equal = MomentumService.from_settings(
            settings.model_copy(update={"momentum_weights": None}), cache, fetcher
        )

        assert weighted.weights == {"12w": 1.0, "52w": 0.0}
        assert weighted.cache_key("SPY") != equal.cache_key("SPY")
        assert weighted.cache_key("SPY").startswith("momentum:SPY:12w-52w:w")

        weighted_result = await weighted.get_momentum("SPY")
        equal_result = await equal.get_momentum("SPY")

        returns = weighted_result["horizonReturns"]
        assert weighted_result["compositeScore"] == returns["12w"]
        assert equal_result["compositeScore"] != weighted_result["compositeScore"]
        assert fetcher.fetch_weekly_series.await_count == 2

    @pytest.mark.asyncio
    async def test_warm_is_repeatable(self, service, fetcher):
        await service.warm()
        summary = await service.warm()

        assert summary["warmed"] == 2
        assert fetcher.fetch_weekly_series.await_count == 4
