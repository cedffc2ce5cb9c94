"""Strategy building blocks: the EMA trend filter and the strategy manifest."""

from .ema_trend import EMATrendConfig, EMATrendStrategy, calculate_ema
from .manifest import RiskParameters, TradingStrategy, default_strategy

__all__ = [
    "EMATrendConfig",
    "EMATrendStrategy",
    "RiskParameters",
    "TradingStrategy",
    "calculate_ema",
    "default_strategy",
]
