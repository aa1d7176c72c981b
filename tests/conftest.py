"""Shared test configuration and fixtures."""

import os
import sys
from datetime import date, timedelta
from decimal import Decimal

import pytest

sys.path.append("src")

from momentum_rider.core.models import PricePoint, WeeklyPriceSeries


class FakeClock:
    """Manually advanced clock for TTL and window tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def test_env_vars():
    """Keep tests off any real Redis and disable startup jobs."""
    test_vars = {
        "ENVIRONMENT": "testing",
        "REDIS_HOST": "",
        "CACHE_WARM_ON_STARTUP": "false",
        "HEALTH_CHECK_INTERVAL_SECONDS": "0",
        "CACHE_WARM_INTERVAL_MINUTES": "0",
    }

    original_values = {}
    for key, value in test_vars.items():
        original_values[key] = os.environ.get(key)
        os.environ[key] = value

    from momentum_rider.config.settings import get_settings

    get_settings.cache_clear()

    yield test_vars

    for key, original_value in original_values.items():
        if original_value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = original_value
    get_settings.cache_clear()


@pytest.fixture
def make_series():
    """Factory for weekly series ending on a fixed Friday, oldest close first."""

    def _make(ticker, closes, end=date(2024, 6, 28)):
        closes = list(closes)
        start = end - timedelta(weeks=len(closes) - 1)
        return WeeklyPriceSeries.from_points(
            ticker,
            [
                PricePoint(date=start + timedelta(weeks=i), close=Decimal(str(c)))
                for i, c in enumerate(closes)
            ],
        )

    return _make
