"""Exponential moving average trend filter."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import pandas as pd

from ..data.schemas import CandleFrame
from ..exceptions import InsufficientData


def calculate_ema(closes: Sequence[float], period: int) -> float:
    """Return the most recent EMA of ``closes``.

    The EMA is seeded with the simple average of the first ``period`` closes,
    then updated for every later close with
    ``ema = close * alpha + ema * (1 - alpha)`` where ``alpha = 2 / (period + 1)``.
    """

    if period <= 0:
        raise ValueError("period must be positive")
    if len(closes) < period:
        raise InsufficientData(
            f"Need at least {period} closes for EMA({period}); got {len(closes)}"
        )

    alpha = 2.0 / (period + 1)
    ema = sum(float(value) for value in closes[:period]) / period
    for price in closes[period:]:
        ema = float(price) * alpha + ema * (1 - alpha)
    return ema


@dataclass(slots=True)
class EMATrendConfig:
    """Configuration for :class:`EMATrendStrategy`."""

    period: int = 200


@dataclass(frozen=True, slots=True)
class TrendReading:
    last_price: float
    ema: float
    distance_pct: float

    @property
    def in_uptrend(self) -> bool:
        return self.last_price > self.ema


class EMATrendStrategy:
    """Measures how far the last close sits above or below its EMA."""

    def __init__(self, config: EMATrendConfig | None = None) -> None:
        config = config or EMATrendConfig()
        if config.period <= 0:
            raise ValueError("period must be positive")
        self.config = config

    def evaluate(self, series: pd.DataFrame) -> TrendReading:
        closes = CandleFrame.closes(series)
        ema = calculate_ema(closes, self.config.period)
        if ema <= 0:
            raise ValueError(f"EMA({self.config.period}) is not positive: {ema}")
        last_price = closes[-1]
        distance_pct = (last_price - ema) / ema * 100.0
        return TrendReading(last_price=last_price, ema=ema, distance_pct=distance_pct)
