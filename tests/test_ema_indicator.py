from datetime import datetime

import pandas as pd
import pytest

from autotrader.data.schemas import CandleFrame
from autotrader.exceptions import InsufficientData
from autotrader.strategies import EMATrendConfig, EMATrendStrategy, calculate_ema


def _frame(closes) -> pd.DataFrame:
    values = [float(value) for value in closes]
    timestamps = pd.date_range(start=datetime(2024, 1, 1), periods=len(values), freq="D")
    return pd.DataFrame(
        {"timestamp": timestamps, "open": values, "high": values, "low": values,
         "close": values, "volume": [0.0] * len(values)},
        columns=CandleFrame.columns,
    )


def test_ema_is_seeded_with_simple_average() -> None:
    assert calculate_ema([1.0, 2.0, 3.0], 3) == pytest.approx(2.0)


def test_ema_applies_smoothing_after_seed() -> None:
    # alpha = 2 / (3 + 1) = 0.5, seed = 2.0
    assert calculate_ema([1.0, 2.0, 3.0, 4.0], 3) == pytest.approx(3.0)
    assert calculate_ema([1.0, 2.0, 3.0, 4.0, 2.0], 3) == pytest.approx(2.5)


def test_ema_of_constant_series_is_constant() -> None:
    assert calculate_ema([250.0] * 300, 200) == pytest.approx(250.0)


def test_ema_requires_full_window() -> None:
    with pytest.raises(InsufficientData):
        calculate_ema([100.0] * 199, 200)


def test_ema_rejects_non_positive_period() -> None:
    with pytest.raises(ValueError):
        calculate_ema([1.0, 2.0], 0)


def test_strategy_reports_distance_above_ema() -> None:
    series = _frame([100.0] * 200 + [110.0])
    reading = EMATrendStrategy(EMATrendConfig(period=200)).evaluate(series)

    alpha = 2.0 / 201
    expected_ema = 110.0 * alpha + 100.0 * (1 - alpha)
    assert reading.last_price == pytest.approx(110.0)
    assert reading.ema == pytest.approx(expected_ema)
    assert reading.distance_pct == pytest.approx((110.0 - expected_ema) / expected_ema * 100.0)
    assert reading.in_uptrend


def test_strategy_flags_close_at_ema_as_not_uptrend() -> None:
    series = _frame([100.0] * 201)
    reading = EMATrendStrategy().evaluate(series)

    assert reading.distance_pct == pytest.approx(0.0)
    assert not reading.in_uptrend


def test_strategy_rejects_non_positive_ema() -> None:
    series = _frame([0.0] * 5)
    with pytest.raises(ValueError):
        EMATrendStrategy(EMATrendConfig(period=3)).evaluate(series)


def test_ema_matches_pandas_recurrence_from_same_seed() -> None:
    closes = [100.0 + 0.3 * idx + (idx % 7) for idx in range(260)]
    period = 200
    seed = sum(closes[:period]) / period

    expected = (
        pd.Series([seed] + closes[period:])
        .ewm(alpha=2.0 / (period + 1), adjust=False)
        .mean()
        .iloc[-1]
    )

    assert calculate_ema(closes, period) == pytest.approx(expected)
