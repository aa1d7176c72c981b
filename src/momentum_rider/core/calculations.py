"""Return and momentum calculations over weekly price samples."""

from bisect import bisect_right
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping, Optional, Sequence, Union

from .models import Horizon, MomentumScore, PricePoint, WeeklyPriceSeries

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")

Number = Union[Decimal, int, float, str]


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps binary float noise out of the decimal value
    return Decimal(str(value))


def round_percentage(value: Decimal) -> Decimal:
    """Round to 2 places, half away from zero."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def compute_return(
    historical_price: Optional[Number], current_price: Number
) -> Decimal:
    """
    Calculate the percentage return from a historical price to the current one.

    A missing or zero historical price yields ``0.00`` rather than an error.

    Args:
        historical_price: Price at the start of the period (may be None)
        current_price: Latest price

    Returns:
        Percentage return rounded to 2 decimal places
    """
    if historical_price is None:
        return round_percentage(ZERO)

    historical = _to_decimal(historical_price)
    if historical == 0:
        return round_percentage(ZERO)

    current = _to_decimal(current_price)
    return round_percentage((current - historical) / historical * 100)


def _as_date(value: Union[date, datetime]) -> date:
    return value.date() if isinstance(value, datetime) else value


def find_point_on_or_before(
    series: Union[WeeklyPriceSeries, Sequence[PricePoint]],
    target_date: Union[date, datetime],
) -> Optional[PricePoint]:
    """
    As-of join: the latest sample dated on or before ``target_date``.

    When the target predates every sample, the earliest sample is returned
    instead, so results for very long horizons are approximate.
    Returns None only for an empty series.
    """
    points = series.points if isinstance(series, WeeklyPriceSeries) else tuple(series)
    if not points:
        return None

    target = _as_date(target_date)
    index = bisect_right([point.date for point in points], target)
    if index == 0:
        return points[0]
    return points[index - 1]


def find_price_on_or_before(
    series: Union[WeeklyPriceSeries, Sequence[PricePoint]],
    target_date: Union[date, datetime],
) -> Decimal:
    """Close price of the as-of sample, or ``0`` for an empty series."""
    point = find_point_on_or_before(series, target_date)
    return point.close if point is not None else ZERO


def composite_score(
    horizon_returns: Mapping[str, Decimal],
    weights: Optional[Mapping[str, Number]] = None,
) -> Decimal:
    """
    Weighted average of already-rounded horizon returns.

    Without a weighting table every horizon counts equally. Horizons missing
    from a supplied table get zero weight.
    """
    if not horizon_returns:
        return round_percentage(ZERO)

    if weights is None:
        total = sum(horizon_returns.values(), ZERO)
        return round_percentage(total / len(horizon_returns))

    weighted_sum = ZERO
    weight_total = ZERO
    for name, value in horizon_returns.items():
        weight = _to_decimal(weights.get(name, 0))
        if weight < 0:
            raise ValueError(f"Weight for horizon {name} must not be negative")
        weighted_sum += value * weight
        weight_total += weight

    if weight_total == 0:
        raise ValueError("Weighting table assigns no weight to requested horizons")
    return round_percentage(weighted_sum / weight_total)


def compute_momentum_score(
    ticker: str,
    series: WeeklyPriceSeries,
    horizons: Sequence[Horizon],
    current_price: Optional[Number] = None,
    as_of: Optional[datetime] = None,
    weights: Optional[Mapping[str, Number]] = None,
    name: Optional[str] = None,
) -> MomentumScore:
    """
    Compute per-horizon returns and the composite momentum score.

    Args:
        ticker: Instrument identifier
        series: Weekly closes, ascending
        horizons: Lookback horizons to evaluate
        current_price: Latest price; defaults to the most recent weekly close
        as_of: Reference timestamp; defaults to now (UTC)
        weights: Optional weighting table keyed by horizon name
        name: Optional display name

    Returns:
        MomentumScore with returns keyed by horizon name
    """
    computed_at = as_of or datetime.now(timezone.utc)
    reference = computed_at.date()

    if current_price is None:
        latest = series.latest
        current = latest.close if latest is not None else ZERO
    else:
        current = _to_decimal(current_price)

    first_date = series.points[0].date if series.points else None
    horizon_returns = {}
    approximate = []
    for horizon in sorted(horizons, key=lambda h: h.weeks):
        target = reference - horizon.delta
        historical = find_price_on_or_before(series, target)
        horizon_returns[horizon.name] = compute_return(historical, current)
        if first_date is not None and target < first_date:
            approximate.append(horizon.name)

    return MomentumScore(
        ticker=ticker,
        horizon_returns=horizon_returns,
        composite_score=composite_score(horizon_returns, weights),
        computed_at=computed_at,
        current_price=current if current > 0 else None,
        name=name,
        approximate_horizons=tuple(approximate),
    )
