"""Data layer exports for the autonomous-trader project."""

from .schemas import CANDLE_COLUMNS, Candle, CandleFrame, Instrument
from .universe import NIFTY_50, UniverseConfig, default_universe, normalize_symbols

__all__ = [
    "CANDLE_COLUMNS",
    "Candle",
    "CandleFrame",
    "Instrument",
    "NIFTY_50",
    "UniverseConfig",
    "default_universe",
    "normalize_symbols",
]
