from datetime import datetime, timezone

import pandas as pd
import pytest

from autotrader.data.schemas import CANDLE_COLUMNS, Candle, CandleFrame


def test_candle_from_kite_record_to_dataframe() -> None:
    record = {
        "date": datetime(2024, 1, 2, 9, 15, tzinfo=timezone.utc),
        "open": 100,
        "high": 101.5,
        "low": 99.5,
        "close": 100.5,
        "volume": 12_000,
    }

    candle = Candle.from_kite_record(record)
    df = CandleFrame.from_candles([candle])

    assert list(df.columns) == list(CANDLE_COLUMNS)
    assert len(df) == 1
    loaded = CandleFrame.ensure_schema(df)
    assert isinstance(loaded, pd.DataFrame)
    assert loaded.iloc[0]["close"] == 100.5
    assert loaded.iloc[0]["volume"] == 12_000


def test_candle_frame_keeps_broker_order() -> None:
    closes = [10.0, 12.0, 11.0]
    candles = [
        Candle(timestamp=datetime(2024, 1, day, tzinfo=timezone.utc),
               open=value, high=value, low=value, close=value)
        for day, value in zip((3, 1, 2), closes)
    ]

    df = CandleFrame.from_candles(candles)

    assert CandleFrame.closes(df) == closes


def test_ensure_schema_rejects_missing_columns() -> None:
    with pytest.raises(ValueError):
        CandleFrame.ensure_schema(pd.DataFrame({"close": [1.0]}))


def test_closes_requires_close_column() -> None:
    with pytest.raises(ValueError):
        CandleFrame.closes(pd.DataFrame({"open": [1.0]}))
