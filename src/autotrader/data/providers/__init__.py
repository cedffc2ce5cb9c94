"""Broker provider implementations for market data and portfolio state."""

from .base import MarketDataProvider, PortfolioProvider
from .kite import KiteBroker

__all__ = [
    "KiteBroker",
    "MarketDataProvider",
    "PortfolioProvider",
]
