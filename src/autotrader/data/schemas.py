"""Data schemas for Kite historical candles and instruments."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar, Iterable

import pandas as pd
from pydantic import BaseModel, Field

CANDLE_COLUMNS: tuple[str, ...] = (
    "timestamp",
    "open",
    "high",
    "low",
    "close",
    "volume",
)


@dataclass(frozen=True, slots=True)
class Instrument:
    """One row of an exchange instrument catalog."""

    symbol: str
    instrument_token: str
    exchange: str | None = None


class Candle(BaseModel):
    """Canonical representation of one OHLC candle."""

    timestamp: datetime = Field(..., description="Candle start timestamp.")
    open: float = Field(..., ge=0)
    high: float = Field(..., ge=0)
    low: float = Field(..., ge=0)
    close: float = Field(..., ge=0)
    volume: float = Field(0.0, ge=0)

    model_config = {
        "populate_by_name": True,
    }

    @classmethod
    def from_kite_record(cls, record: dict) -> "Candle":
        """Create a :class:`Candle` from a ``kiteconnect`` historical data row."""

        return cls(
            timestamp=record["date"],
            open=float(record["open"]),
            high=float(record["high"]),
            low=float(record["low"]),
            close=float(record["close"]),
            volume=float(record.get("volume") or 0.0),
        )

    def to_row(self) -> dict[str, float | datetime]:
        """Return the candle as a dictionary matching :data:`CANDLE_COLUMNS`."""

        return {
            "timestamp": self.timestamp,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


@dataclass(slots=True)
class CandleFrame:
    """Helper to construct :class:`pandas.DataFrame` candle series.

    Rows keep the order in which the broker delivered them (oldest first).
    """

    columns: ClassVar[tuple[str, ...]] = CANDLE_COLUMNS

    @classmethod
    def from_candles(cls, candles: Iterable[Candle]) -> pd.DataFrame:
        """Convert an iterable of candles to a DataFrame."""

        return pd.DataFrame([candle.to_row() for candle in candles], columns=cls.columns)

    @classmethod
    def ensure_schema(cls, df: pd.DataFrame) -> pd.DataFrame:
        """Ensure the DataFrame contains the expected columns in correct order."""

        missing = set(cls.columns) - set(df.columns)
        if missing:
            raise ValueError(
                f"DataFrame missing required columns: {sorted(missing)}")
        return df.loc[:, cls.columns].copy()

    @classmethod
    def closes(cls, df: pd.DataFrame) -> list[float]:
        """Return closing prices in series order."""

        if "close" not in df.columns:
            raise ValueError("Candle series has no close column")
        return [float(value) for value in df["close"].tolist()]
