"""Upstream price data via Yahoo Finance."""

import asyncio
import math
from decimal import Decimal
from typing import Any, Callable, Optional

import pandas as pd
import yfinance as yf

from ..config.logging import get_logger
from ..config.settings import Settings
from ..core.errors import OperationalError
from ..core.models import PricePoint, WeeklyPriceSeries

logger = get_logger(__name__)


def series_from_history(ticker: str, history: pd.DataFrame) -> WeeklyPriceSeries:
    """
    Convert a yfinance history frame into a weekly series.

    Rows without a positive close are skipped.
    """
    if history is None or history.empty or "Close" not in history:
        return WeeklyPriceSeries(ticker=ticker)

    points = []
    for timestamp, close in history["Close"].dropna().items():
        close = float(close)
        if close <= 0 or math.isnan(close):
            continue
        points.append(PricePoint(date=pd.Timestamp(timestamp).date(), close=close))
    return WeeklyPriceSeries.from_points(ticker, points)


class PriceHistoryFetcher:
    """
    Fetches weekly closes, the latest quote and display names.

    yfinance is blocking, so every call runs in a worker thread and is bounded
    by ``timeout_seconds``.
    """

    def __init__(self, history_years: int = 2, timeout_seconds: float = 15.0):
        self.history_years = history_years
        self.timeout_seconds = timeout_seconds
        self.logger = logger.bind(component="price_fetcher")

    @classmethod
    def from_settings(cls, settings: Settings) -> "PriceHistoryFetcher":
        return cls(
            history_years=settings.history_years,
            timeout_seconds=settings.upstream_timeout_seconds,
        )

    async def _run(self, operation: str, ticker: str, func: Callable[[], Any]) -> Any:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            self.logger.warning(
                "Upstream request timed out",
                operation=operation,
                ticker=ticker,
                timeout_seconds=self.timeout_seconds,
            )
            raise OperationalError.internal(
                f"Upstream {operation} for {ticker} timed out after {self.timeout_seconds}s",
                code="ERR_UPSTREAM_TIMEOUT",
            )

    async def fetch_weekly_series(self, ticker: str) -> WeeklyPriceSeries:
        """
        Weekly closes covering ``history_years`` years.

        Raises:
            OperationalError: NOT_FOUND when upstream has no data for the ticker,
                INTERNAL when the upstream call fails or times out
        """

        def _history() -> pd.DataFrame:
            return yf.Ticker(ticker).history(
                period=f"{self.history_years}y", interval="1wk", auto_adjust=False
            )

        try:
            history = await self._run("history", ticker, _history)
        except OperationalError:
            raise
        except Exception as e:
            self.logger.error(
                "Failed to fetch price history", ticker=ticker, error=str(e), exc_info=True
            )
            raise OperationalError.internal(
                f"Failed to fetch price history for {ticker}: {e}", code="ERR_UPSTREAM"
            )

        series = series_from_history(ticker, history)
        if not series.points:
            raise OperationalError.not_found("Ticker", ticker)

        self.logger.debug("Fetched weekly history", ticker=ticker, points=len(series))
        return series

    async def fetch_current_price(self, ticker: str) -> Optional[Decimal]:
        """Latest quoted price, or None when the quote is unavailable."""

        def _quote() -> Optional[float]:
            return yf.Ticker(ticker).fast_info.last_price

        try:
            price = await self._run("quote", ticker, _quote)
        except OperationalError:
            return None
        except Exception as e:
            self.logger.warning("Quote unavailable", ticker=ticker, error=str(e))
            return None

        if price is None:
            return None
        price = float(price)
        if math.isnan(price) or price <= 0:
            return None
        return Decimal(str(price))

    async def fetch_name(self, ticker: str) -> str:
        """Long or short display name, falling back to the ticker itself."""

        def _info() -> dict:
            return yf.Ticker(ticker).info or {}

        try:
            info = await self._run("info", ticker, _info)
        except OperationalError:
            return ticker
        except Exception as e:
            self.logger.warning("Name lookup failed", ticker=ticker, error=str(e))
            return ticker

        return info.get("longName") or info.get("shortName") or ticker
