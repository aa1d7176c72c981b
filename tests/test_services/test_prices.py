"""Tests for the Yahoo Finance price fetcher."""

import sys
import time
from decimal import Decimal
from unittest.mock import Mock, patch

import pandas as pd
import pytest

sys.path.append("src")

from momentum_rider.core.errors import ErrorKind, OperationalError
from momentum_rider.services.prices import PriceHistoryFetcher, series_from_history


def weekly_frame(closes, start="2024-01-05"):
    index = pd.date_range(start=start, periods=len(closes), freq="7D", tz="America/New_York")
    return pd.DataFrame({"Close": closes}, index=index)


class TestSeriesFromHistory:
    """Test DataFrame conversion."""

    def test_skips_missing_and_non_positive_closes(self):
        frame = weekly_frame([400.0, float("nan"), 0.0, 420.0])

        series = series_from_history("SPY", frame)

        assert [p.close for p in series] == [Decimal("400.0"), Decimal("420.0")]
        assert str(series.dates[0]) == "2024-01-05"

    def test_empty_frame(self):
        assert len(series_from_history("SPY", pd.DataFrame())) == 0


class TestPriceHistoryFetcher:
    """Test upstream calls with yfinance mocked out."""

    @pytest.mark.asyncio
    @patch("momentum_rider.services.prices.yf")
    async def test_fetch_weekly_series(self, mock_yf):
        mock_ticker = Mock()
        mock_ticker.history.return_value = weekly_frame([400.0, 410.0, 420.0])
        mock_yf.Ticker.return_value = mock_ticker

        series = await PriceHistoryFetcher(history_years=2).fetch_weekly_series("SPY")

        assert len(series) == 3
        assert series.latest.close == Decimal("420.0")
        mock_yf.Ticker.assert_called_once_with("SPY")
        mock_ticker.history.assert_called_once_with(
            period="2y", interval="1wk", auto_adjust=False
        )

    @pytest.mark.asyncio
    @patch("momentum_rider.services.prices.yf")
    async def test_empty_history_is_not_found(self, mock_yf):
        mock_yf.Ticker.return_value.history.return_value = pd.DataFrame()

        with pytest.raises(OperationalError) as exc_info:
            await PriceHistoryFetcher().fetch_weekly_series("NOPE")

        assert exc_info.value.kind is ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    @patch("momentum_rider.services.prices.yf")
    async def test_upstream_failure_is_internal(self, mock_yf):
        mock_yf.Ticker.return_value.history.side_effect = RuntimeError("HTTP 503")

        with pytest.raises(OperationalError) as exc_info:
            await PriceHistoryFetcher().fetch_weekly_series("SPY")

        assert exc_info.value.kind is ErrorKind.INTERNAL
        assert exc_info.value.code == "ERR_UPSTREAM"

    @pytest.mark.asyncio
    @patch("momentum_rider.services.prices.yf")
    async def test_upstream_timeout(self, mock_yf):
        mock_yf.Ticker.return_value.history.side_effect = lambda **kwargs: time.sleep(0.5)

        with pytest.raises(OperationalError) as exc_info:
            await PriceHistoryFetcher(timeout_seconds=0.05).fetch_weekly_series("SPY")

        assert exc_info.value.code == "ERR_UPSTREAM_TIMEOUT"
        assert exc_info.value.http_status == 500

    @pytest.mark.asyncio
    @patch("momentum_rider.services.prices.yf")
    async def test_fetch_current_price(self, mock_yf):
        mock_yf.Ticker.return_value.fast_info.last_price = 420.5

        assert await PriceHistoryFetcher().fetch_current_price("SPY") == Decimal("420.5")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("price", [None, 0, float("nan")])
    @patch("momentum_rider.services.prices.yf")
    async def test_unusable_current_price(self, mock_yf, price):
        mock_yf.Ticker.return_value.fast_info.last_price = price

        assert await PriceHistoryFetcher().fetch_current_price("SPY") is None

    @pytest.mark.asyncio
    @patch("momentum_rider.services.prices.yf")
    async def test_fetch_name_prefers_long_name(self, mock_yf):
        mock_yf.Ticker.return_value.info = {
            "longName": "SPDR S&P 500 ETF Trust",
            "shortName": "SPDR S&P 500",
        }

        assert await PriceHistoryFetcher().fetch_name("SPY") == "SPDR S&P 500 ETF Trust"

    @pytest.mark.asyncio
    @patch("momentum_rider.services.prices.yf")
    async def test_fetch_name_falls_back_to_ticker(self, mock_yf):
        mock_yf.Ticker.side_effect = RuntimeError("boom")

        assert await PriceHistoryFetcher().fetch_name("SPY") == "SPY"
