"""Tests for return and momentum calculations."""

import sys
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

sys.path.append("src")

from momentum_rider.core.calculations import (
    composite_score,
    compute_momentum_score,
    compute_return,
    find_point_on_or_before,
    find_price_on_or_before,
)
from momentum_rider.core.models import (
    Horizon,
    PricePoint,
    WeeklyPriceSeries,
    horizon_set_id,
    horizons_from_weeks,
    weights_id,
)

DEFAULT_HORIZONS = horizons_from_weeks([1, 4, 12, 26, 52])


class TestComputeReturn:
    """Test percentage return calculation."""

    @pytest.mark.parametrize("historical", [0, None, Decimal("0")])
    def test_missing_or_zero_historical_yields_zero(self, historical):
        """Test that no historical price means no return rather than an error."""
        assert compute_return(historical, 123.45) == Decimal("0.00")
        assert compute_return(historical, 0) == Decimal("0.00")

    def test_gain_and_loss(self):
        """Test basic gains and losses."""
        assert compute_return(100, 110) == Decimal("10.00")
        assert compute_return(100, 95) == Decimal("-5.00")

    def test_result_has_two_decimal_places(self):
        """Test results are always quantized to exactly 2 places."""
        result = compute_return(3, Decimal("3.1"))
        assert result == Decimal("3.33")
        assert result.as_tuple().exponent == -2
        assert compute_return(100, 100).as_tuple().exponent == -2

    def test_rounds_half_away_from_zero(self):
        """Test halves round away from zero in both directions."""
        assert compute_return(200, Decimal("200.01")) == Decimal("0.01")
        assert compute_return(200, Decimal("199.99")) == Decimal("-0.01")

    def test_float_inputs_do_not_leak_binary_noise(self):
        """Test float prices are converted through their string form."""
        assert compute_return(0.1, 0.3) == Decimal("200.00")


class TestFindPriceOnOrBefore:
    """Test the as-of join over weekly samples."""

    @pytest.fixture
    def series(self):
        return WeeklyPriceSeries.from_points(
            "SPY",
            [
                PricePoint(date(2024, 1, 5), Decimal("100")),
                PricePoint(date(2024, 1, 12), Decimal("110")),
                PricePoint(date(2024, 1, 19), Decimal("120")),
            ],
        )

    def test_between_samples_returns_earlier(self, series):
        """Test a date between two samples resolves to the earlier one."""
        assert find_price_on_or_before(series, date(2024, 1, 10)) == Decimal("100")
        assert find_price_on_or_before(series, date(2024, 1, 18)) == Decimal("110")

    def test_exact_date_matches(self, series):
        """Test a sample dated exactly on the target is used."""
        assert find_price_on_or_before(series, date(2024, 1, 12)) == Decimal("110")

    def test_after_last_sample_returns_last(self, series):
        assert find_price_on_or_before(series, date(2024, 3, 1)) == Decimal("120")

    def test_before_first_sample_returns_first(self, series):
        """Test the documented fallback to the earliest sample."""
        assert find_price_on_or_before(series, date(2023, 6, 1)) == Decimal("100")

    def test_empty_series_returns_zero(self):
        """Test an empty series yields 0 without raising."""
        assert find_price_on_or_before([], date(2024, 1, 1)) == Decimal("0")
        assert find_point_on_or_before(WeeklyPriceSeries("SPY"), date(2024, 1, 1)) is None

    def test_accepts_datetime_targets(self, series):
        target = datetime(2024, 1, 12, 23, 59, tzinfo=timezone.utc)
        assert find_price_on_or_before(series, target) == Decimal("110")

    def test_unsorted_input_is_ordered(self):
        """Test series construction sorts samples by date."""
        series = WeeklyPriceSeries.from_points(
            "QQQ",
            [
                PricePoint(date(2024, 1, 19), Decimal("3")),
                PricePoint(date(2024, 1, 5), Decimal("1")),
                PricePoint(date(2024, 1, 12), Decimal("2")),
            ],
        )
        assert series.dates == [date(2024, 1, 5), date(2024, 1, 12), date(2024, 1, 19)]
        assert find_price_on_or_before(series, date(2024, 1, 13)) == Decimal("2")


class TestCompositeScore:
    """Test composite score aggregation."""

    def test_equal_weight_average(self):
        returns = {"1w": Decimal("10.00"), "4w": Decimal("20.00"), "12w": Decimal("5.00")}
        assert composite_score(returns) == Decimal("11.67")

    def test_weighted_average(self):
        returns = {"1w": Decimal("10.00"), "4w": Decimal("20.00")}
        assert composite_score(returns, {"1w": 1, "4w": 3}) == Decimal("17.50")

    def test_missing_weight_counts_as_zero(self):
        returns = {"1w": Decimal("10.00"), "4w": Decimal("20.00")}
        assert composite_score(returns, {"4w": 2}) == Decimal("20.00")

    def test_invalid_weights(self):
        returns = {"1w": Decimal("10.00")}
        with pytest.raises(ValueError):
            composite_score(returns, {"1w": 0})
        with pytest.raises(ValueError):
            composite_score(returns, {"1w": -1})

    def test_empty_returns(self):
        assert composite_score({}) == Decimal("0.00")


class TestComputeMomentumScore:
    """Test end-to-end momentum scoring."""

    AS_OF = datetime(2024, 6, 28, 16, 0, tzinfo=timezone.utc)

    def test_spy_twelve_week_scenario(self):
        """Test 400.00 twelve weeks ago and 420.00 now gives 5.00 at 12w."""
        series = WeeklyPriceSeries.from_points(
            "SPY",
            [
                PricePoint(date(2024, 4, 5), Decimal("400.00")),
                PricePoint(date(2024, 6, 28), Decimal("420.00")),
            ],
        )

        score = compute_momentum_score(
            "SPY", series, DEFAULT_HORIZONS, current_price=Decimal("420.00"), as_of=self.AS_OF
        )

        assert score.horizon_returns["12w"] == Decimal("5.00")
        assert list(score.horizon_returns) == ["1w", "4w", "12w", "26w", "52w"]
        assert score.composite_score == Decimal("5.00")
        assert score.absolute_momentum is True
        assert score.current_price == Decimal("420.00")

    def test_long_horizons_beyond_history_are_flagged(self):
        """Test horizons whose target predates the history use the earliest sample."""
        series = WeeklyPriceSeries.from_points(
            "SPY",
            [
                PricePoint(date(2024, 4, 5), Decimal("400.00")),
                PricePoint(date(2024, 6, 28), Decimal("420.00")),
            ],
        )

        score = compute_momentum_score(
            "SPY", series, DEFAULT_HORIZONS, current_price=420, as_of=self.AS_OF
        )

        assert score.approximate_horizons == ("26w", "52w")
        assert score.horizon_returns["52w"] == Decimal("5.00")

    def test_defaults_current_price_to_latest_close(self, make_series):
        series = make_series("QQQ", [100] * 52 + [90])

        score = compute_momentum_score("QQQ", series, [Horizon(1)], as_of=self.AS_OF)

        assert score.current_price == Decimal("90")
        assert score.horizon_returns == {"1w": Decimal("-10.00")}
        assert score.absolute_momentum is False

    def test_empty_series_scores_zero(self):
        score = compute_momentum_score(
            "SPY", WeeklyPriceSeries("SPY"), DEFAULT_HORIZONS, as_of=self.AS_OF
        )

        assert all(v == Decimal("0.00") for v in score.horizon_returns.values())
        assert score.current_price is None
        assert score.approximate_horizons == ()

    def test_to_dict_and_back(self, make_series):
        """Test the serialized payload shape and that it restores the score."""
        series = make_series("SPY", [400 + i for i in range(53)])
        score = compute_momentum_score(
            "SPY", series, DEFAULT_HORIZONS, as_of=self.AS_OF, name="SPDR S&P 500"
        )

        payload = score.to_dict()

        assert set(payload) >= {
            "ticker",
            "horizonReturns",
            "compositeScore",
            "absoluteMomentum",
            "computedAt",
            "currentPrice",
            "name",
        }
        assert payload["computedAt"] == "2024-06-28T16:00:00+00:00"
        assert isinstance(payload["compositeScore"], float)

        restored = type(score).from_dict(payload)
        assert restored.horizon_returns == score.horizon_returns
        assert restored.composite_score == score.composite_score
        assert restored.name == "SPDR S&P 500"


class TestHorizons:
    """Test horizon helpers."""

    def test_horizon_names_and_set_id(self):
        horizons = horizons_from_weeks([12, 1, 4, 4])
        assert [h.name for h in horizons] == ["1w", "4w", "12w"]
        assert horizon_set_id(horizons) == "1w-4w-12w"

    def test_weights_id_is_stable_and_order_independent(self):
        assert weights_id(None) == ""
        assert weights_id({}) == ""
        first = weights_id({"12w": 0.6, "52w": 0.4})
        assert first == weights_id({"52w": 0.4, "12w": 0.6})
        assert first != weights_id({"12w": 0.4, "52w": 0.6})
        assert first.startswith("w") and len(first) == 9

    def test_price_point_rejects_non_positive_close(self):
        with pytest.raises(ValueError):
            PricePoint(date(2024, 1, 5), Decimal("0"))
