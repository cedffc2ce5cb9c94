"""Rate-limited, retrying historical candle fetcher."""

from __future__ import annotations

import threading
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Callable, Iterable

import pandas as pd
from loguru import logger

from ..exceptions import AuthorizationExpired, DataUnavailable, ResolutionError
from .providers.base import MarketDataProvider
from .schemas import CandleFrame
from .universe import normalize_symbols

if TYPE_CHECKING:
    from ..config import AppSettings

# Kite allows 3 historical data requests per second.
DEFAULT_THROTTLE_SECONDS = 0.35
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS = 0.5

Sleeper = Callable[[float], "bool | None"]


def _window(today: date, lookback_days: int) -> tuple[datetime, datetime]:
    if lookback_days < 0:
        raise ValueError("lookback_days cannot be negative")
    start = today - timedelta(days=lookback_days)
    return (
        datetime.combine(start, datetime.min.time()),
        datetime.combine(today, datetime.min.time()),
    )


class BatchCandleFetcher:
    """Resolve instrument tokens and fetch candle series for many symbols.

    Parameters
    ----------
    provider:
        Market data collaborator used for instrument catalogs and candles.
    default_exchange:
        Exchange used by :meth:`fetch_series` when none is given.
    throttle_seconds:
        Pause before every fetch except the first in a batch.
    max_attempts:
        Attempts per symbol before it is dropped from a batch.
    backoff_seconds:
        Linear backoff unit; attempt ``n`` failing waits ``n * backoff_seconds``.
    sleeper:
        Callable performing a timed wait. It returns ``True`` when the wait was
        interrupted. Defaults to waiting on the fetcher's cancel event.
    today:
        Callable returning the current date for the lookback window.
    """

    def __init__(
        self,
        provider: MarketDataProvider,
        *,
        default_exchange: str = "NSE",
        throttle_seconds: float = DEFAULT_THROTTLE_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        sleeper: Sleeper | None = None,
        today: Callable[[], date] | None = None,
    ) -> None:
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        if throttle_seconds < 0 or backoff_seconds < 0:
            raise ValueError("throttle_seconds and backoff_seconds cannot be negative")
        self._provider = provider
        self.default_exchange = default_exchange.strip().upper()
        self.throttle_seconds = throttle_seconds
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._cancel_event = threading.Event()
        self._sleep = sleeper or self._cancel_event.wait
        self._today = today or date.today
        self._cache_lock = threading.Lock()
        self._catalogs: dict[str, dict[str, str]] = {}

    @classmethod
    def from_settings(
        cls, provider: MarketDataProvider, settings: "AppSettings"
    ) -> "BatchCandleFetcher":
        return cls(
            provider,
            default_exchange=settings.universe_exchange,
            throttle_seconds=settings.fetch_throttle_seconds,
            max_attempts=settings.fetch_max_attempts,
            backoff_seconds=settings.fetch_backoff_seconds,
        )

    # Instrument tokens ------------------------------------------------

    def resolve_tokens(self, symbols: Iterable[str], exchange: str) -> dict[str, str]:
        """Map ``symbols`` to instrument tokens, omitting unknown symbols.

        The exchange catalog is downloaded once and cached until
        :meth:`clear_cache` is called.
        """

        exchange = exchange.strip().upper()
        requested = normalize_symbols(symbols)
        with self._cache_lock:
            catalog = self._catalogs.get(exchange)
            if catalog is None:
                logger.info(f"Fetching instruments from Kite for exchange: {exchange}")
                catalog = {}
                for instrument in self._provider.list_instruments(exchange):
                    catalog.setdefault(instrument.symbol.strip().upper(),
                                       instrument.instrument_token)
                self._catalogs[exchange] = catalog
                logger.info(f"Cached {len(catalog)} instrument tokens for {exchange}")

        resolved = {symbol: catalog[symbol] for symbol in requested if symbol in catalog}
        if not resolved:
            raise ResolutionError(
                f"None of the requested symbols are listed on {exchange}: {', '.join(requested)}"
            )
        return resolved

    def clear_cache(self) -> None:
        """Drop every cached instrument catalog."""

        with self._cache_lock:
            self._catalogs = {}
        logger.info("Cleared instrument token cache")

    # Candles ------------------------------------------------------------

    def cancel(self) -> None:
        """Interrupt the batch in progress; fetched series are kept."""

        self._cancel_event.set()

    def fetch_series(
        self,
        symbol: str,
        interval: str,
        lookback_days: int,
        *,
        exchange: str | None = None,
    ) -> pd.DataFrame:
        """Fetch one candle series with a single attempt."""

        exchange = exchange or self.default_exchange
        normalized = symbol.strip().upper()
        token = self.resolve_tokens([normalized], exchange)[normalized]
        return self._fetch_once(normalized, token, interval, lookback_days)

    def fetch_series_for_many(
        self,
        symbols: Iterable[str],
        exchange: str,
        interval: str,
        lookback_days: int,
    ) -> dict[str, pd.DataFrame]:
        """Fetch candle series for ``symbols`` sequentially under the rate limit.

        Symbols that cannot be resolved or that fail every attempt are missing
        from the result. A cancelled wait returns what was fetched so far.
        """

        self._cancel_event.clear()
        normalized = normalize_symbols(symbols)
        try:
            tokens = self.resolve_tokens(normalized, exchange)
        except ResolutionError as exc:
            logger.warning(str(exc))
            return {}

        pending: list[tuple[str, str]] = []
        for symbol in normalized:
            token = tokens.get(symbol)
            if token is None:
                logger.warning(f"No instrument token found for symbol: {symbol}")
                continue
            pending.append((symbol, token))

        result: dict[str, pd.DataFrame] = {}
        for index, (symbol, token) in enumerate(pending):
            if index > 0 and not self._pause(self.throttle_seconds):
                logger.info(
                    f"Batch fetch cancelled; returning {len(result)} of {len(pending)} series")
                break
            series, cancelled = self._fetch_with_retry(symbol, token, interval, lookback_days)
            if series is not None:
                result[symbol] = series
            if cancelled:
                logger.info(
                    f"Batch fetch cancelled; returning {len(result)} of {len(pending)} series")
                break

        return result

    # Internal helpers -------------------------------------------------

    def _pause(self, seconds: float) -> bool:
        """Wait ``seconds``; return ``False`` when the wait was interrupted."""

        if seconds <= 0:
            return True
        return not self._sleep(seconds)

    def _fetch_with_retry(
        self,
        symbol: str,
        token: str,
        interval: str,
        lookback_days: int,
    ) -> tuple[pd.DataFrame | None, bool]:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return self._fetch_once(symbol, token, interval, lookback_days), False
            except DataUnavailable as exc:
                if attempt >= self.max_attempts:
                    logger.error(
                        f"Failed to fetch candles for symbol {symbol} after {attempt} attempts: {exc}")
                    return None, False
                wait = attempt * self.backoff_seconds
                logger.warning(
                    f"Candle fetch for {symbol} failed (attempt {attempt}/{self.max_attempts}), "
                    f"retrying in {wait:.2f}s: {exc}"
                )
                if not self._pause(wait):
                    return None, True
        return None, False

    def _fetch_once(
        self,
        symbol: str,
        token: str,
        interval: str,
        lookback_days: int,
    ) -> pd.DataFrame:
        start, end = _window(self._today(), lookback_days)
        logger.debug(f"Fetching {interval} candles for {symbol} ({token}) from {start:%Y-%m-%d} to {end:%Y-%m-%d}")
        try:
            series = self._provider.get_candles(token, interval, start, end)
        except AuthorizationExpired:
            raise
        except Exception as exc:
            raise DataUnavailable(f"Candle request for {symbol} failed: {exc}") from exc
        if series is None or series.empty:
            raise DataUnavailable(f"No candles returned for {symbol}")
        try:
            series = CandleFrame.ensure_schema(series)
        except ValueError as exc:
            raise DataUnavailable(f"Malformed candles for {symbol}: {exc}") from exc
        logger.debug(f"Retrieved {len(series)} candles for {symbol}")
        return series


__all__ = ["BatchCandleFetcher"]
