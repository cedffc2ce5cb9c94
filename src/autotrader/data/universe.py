"""Universe membership utilities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

# Nifty 50 NSE trading symbols.
NIFTY_50: tuple[str, ...] = (
    "RELIANCE", "TCS", "HDFCBANK", "INFY", "ICICIBANK",
    "HINDUNILVR", "ITC", "SBIN", "BHARTIARTL", "KOTAKBANK",
    "LT", "AXISBANK", "ASIANPAINT", "MARUTI", "TITAN",
    "SUNPHARMA", "ULTRACEMCO", "BAJFINANCE", "WIPRO", "NESTLEIND",
    "POWERGRID", "NTPC", "TECHM", "HCLTECH", "ONGC",
    "TATAMOTORS", "TATASTEEL", "JSWSTEEL", "ADANIENT", "ADANIPORTS",
    "COALINDIA", "DIVISLAB", "DRREDDY", "CIPLA", "APOLLOHOSP",
    "BAJAJFINSV", "BAJAJ-AUTO", "EICHERMOT", "HEROMOTOCO", "M&M",
    "BRITANNIA", "GRASIM", "HINDALCO", "INDUSINDBK", "SBILIFE",
    "HDFCLIFE", "BPCL", "IOC", "UPL", "TATACONSUM",
)


def normalize_symbols(symbols: Iterable[str]) -> list[str]:
    """Upper-case and de-duplicate ``symbols`` while preserving order."""

    normalized: list[str] = []
    seen: set[str] = set()
    for symbol in symbols:
        candidate = str(symbol).strip().upper()
        if candidate and candidate not in seen:
            normalized.append(candidate)
            seen.add(candidate)
    return normalized


@dataclass(frozen=True, slots=True)
class UniverseConfig:
    """Fixed, ordered set of symbols scanned on a single exchange."""

    name: str
    exchange: str
    symbols: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.exchange.strip():
            raise ValueError("Universe exchange must not be blank.")
        object.__setattr__(self, "exchange", self.exchange.strip().upper())
        object.__setattr__(self, "symbols", tuple(
            normalize_symbols(self.symbols)))


def default_universe() -> UniverseConfig:
    return UniverseConfig(name="NIFTY_50", exchange="NSE", symbols=NIFTY_50)
