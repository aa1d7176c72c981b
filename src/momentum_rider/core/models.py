"""Data models for momentum scoring."""

import hashlib
import json
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple


@dataclass(frozen=True)
class PricePoint:
    """One weekly closing price."""

    date: date
    close: Decimal

    def __post_init__(self):
        if not isinstance(self.close, Decimal):
            object.__setattr__(self, "close", Decimal(str(self.close)))
        if self.close <= 0:
            raise ValueError(f"Close price must be positive, got {self.close}")


@dataclass(frozen=True)
class WeeklyPriceSeries:
    """Weekly closes for one ticker, ascending by date, gaps allowed."""

    ticker: str
    points: Tuple[PricePoint, ...] = ()

    @classmethod
    def from_points(cls, ticker: str, points: Iterable[PricePoint]) -> "WeeklyPriceSeries":
        """Build a series, sorting by date and keeping the last point per date."""
        by_date: Dict[date, PricePoint] = {}
        for point in points:
            by_date[point.date] = point
        ordered = tuple(by_date[d] for d in sorted(by_date))
        return cls(ticker=ticker, points=ordered)

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self):
        return iter(self.points)

    @property
    def dates(self) -> List[date]:
        return [point.date for point in self.points]

    @property
    def latest(self) -> Optional[PricePoint]:
        return self.points[-1] if self.points else None


@dataclass(frozen=True)
class Horizon:
    """A lookback duration measured in weeks, named like ``12w``."""

    weeks: int

    @property
    def name(self) -> str:
        return f"{self.weeks}w"

    @property
    def delta(self) -> timedelta:
        return timedelta(weeks=self.weeks)


def horizons_from_weeks(weeks: Sequence[int]) -> Tuple[Horizon, ...]:
    return tuple(Horizon(w) for w in sorted(set(weeks)))


def horizon_set_id(horizons: Sequence[Horizon]) -> str:
    """Deterministic identifier for a horizon set, e.g. ``1w-4w-12w``."""
    return "-".join(h.name for h in sorted(horizons, key=lambda h: h.weeks))


def weights_id(weights: Optional[Mapping[str, float]]) -> str:
    """Short stable digest of a weighting table; empty for equal weighting."""
    if not weights:
        return ""
    canonical = json.dumps({k: float(v) for k, v in sorted(weights.items())})
    return "w" + hashlib.sha1(canonical.encode("utf-8")).hexdigest()[:8]


@dataclass(frozen=True)
class MomentumScore:
    """Momentum figures for one ticker; replaced, never mutated."""

    ticker: str
    horizon_returns: Dict[str, Decimal]
    composite_score: Decimal
    computed_at: datetime
    current_price: Optional[Decimal] = None
    name: Optional[str] = None
    approximate_horizons: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def absolute_momentum(self) -> bool:
        return self.composite_score > 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the JSON shape served to clients and stored in cache."""
        payload: Dict[str, Any] = {
            "ticker": self.ticker,
            "horizonReturns": {k: float(v) for k, v in self.horizon_returns.items()},
            "compositeScore": float(self.composite_score),
            "absoluteMomentum": self.absolute_momentum,
            "computedAt": self.computed_at.isoformat(),
        }
        if self.current_price is not None:
            payload["currentPrice"] = float(self.current_price)
        if self.name is not None:
            payload["name"] = self.name
        if self.approximate_horizons:
            payload["approximateHorizons"] = list(self.approximate_horizons)
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "MomentumScore":
        current_price = payload.get("currentPrice")
        return cls(
            ticker=payload["ticker"],
            horizon_returns={
                k: Decimal(str(v)) for k, v in payload["horizonReturns"].items()
            },
            composite_score=Decimal(str(payload["compositeScore"])),
            computed_at=datetime.fromisoformat(payload["computedAt"]),
            current_price=(
                Decimal(str(current_price)) if current_price is not None else None
            ),
            name=payload.get("name"),
            approximate_horizons=tuple(payload.get("approximateHorizons", ())),
        )
