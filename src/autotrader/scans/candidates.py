"""EMA-200 candidate scan over a fixed universe."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, Dict, List

from loguru import logger

from ..data.fetcher import BatchCandleFetcher
from ..data.universe import UniverseConfig
from ..exceptions import InsufficientData
from ..strategies.ema_trend import EMATrendConfig, EMATrendStrategy

if TYPE_CHECKING:
    from ..config import AppSettings
    from ..portfolio.store import StrategyStore

FALLBACK_TOP_K = 10
# Calendar days; leaves at least 200 trading sessions after weekends and holidays.
DEFAULT_LOOKBACK_DAYS = 400
DEFAULT_INTERVAL = "day"


@dataclass(frozen=True, slots=True)
class Candidate:
    symbol: str
    last_price: float
    ema: float
    distance_pct: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def summarize_candidates(candidates: List[Candidate], ema_period: int) -> str:
    """Render a ranked scan as a short plain-text report."""

    if not candidates:
        return f"No candidates found meeting the EMA {ema_period} criteria at this time."

    lines = [f"Top {len(candidates)} candidates near EMA {ema_period}:", ""]
    for rank, candidate in enumerate(candidates, start=1):
        lines.append(f"{rank}. {describe_candidate(candidate, ema_period)}")
    lines.append("")
    lines.append(f"All candidates are in uptrend (Price > EMA {ema_period}).")
    lines.append(f"Closer to EMA {ema_period} indicates potential bounce opportunity.")
    return "\n".join(lines) + "\n"


def describe_candidate(candidate: Candidate, ema_period: int) -> str:
    return (
        f"{candidate.symbol} at ₹{candidate.last_price:.2f} "
        f"({candidate.distance_pct:.2f}% from EMA {ema_period})"
    )


class CandidateScanner:
    """Rank universe symbols trading just above their EMA.

    Symbols whose last close is at or below the EMA are excluded. The rest are
    sorted by ascending distance to the EMA, so the smallest positive distance
    ranks first.
    """

    def __init__(
        self,
        fetcher: BatchCandleFetcher,
        universe: UniverseConfig,
        *,
        strategy_store: "StrategyStore | None" = None,
        ema_period: int = 200,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
        interval: str = DEFAULT_INTERVAL,
        default_top_k: int | None = None,
    ) -> None:
        if default_top_k is not None and default_top_k <= 0:
            raise ValueError("default_top_k must be positive")
        self._fetcher = fetcher
        self.universe = universe
        self._strategy_store = strategy_store
        self._strategy = EMATrendStrategy(EMATrendConfig(period=ema_period))
        self.lookback_days = lookback_days
        self.interval = interval
        self.default_top_k = default_top_k

    @classmethod
    def from_settings(
        cls,
        fetcher: BatchCandleFetcher,
        settings: "AppSettings",
        *,
        strategy_store: "StrategyStore | None" = None,
    ) -> "CandidateScanner":
        return cls(
            fetcher,
            settings.universe(),
            strategy_store=strategy_store,
            ema_period=settings.scan_ema_period,
            lookback_days=settings.scan_lookback_days,
            interval=settings.scan_interval,
            default_top_k=settings.scan_top_k,
        )

    @property
    def ema_period(self) -> int:
        return self._strategy.config.period

    def scan(self, top_k: int | None = None) -> List[Candidate]:
        limit = self._resolve_top_k(top_k)
        logger.info(
            f"Starting technical scan for {self.universe.name} "
            f"({len(self.universe.symbols)} symbols, topK={limit})"
        )

        series_by_symbol = self._fetcher.fetch_series_for_many(
            self.universe.symbols,
            self.universe.exchange,
            self.interval,
            self.lookback_days,
        )

        candidates: List[Candidate] = []
        for symbol in self.universe.symbols:
            series = series_by_symbol.get(symbol)
            if series is None or series.empty:
                logger.warning(f"No candle data for symbol: {symbol}")
                continue

            try:
                reading = self._strategy.evaluate(series)
            except InsufficientData as exc:
                logger.warning(f"Skipping {symbol}: {exc}")
                continue
            except (ValueError, KeyError, TypeError) as exc:
                logger.error(f"Failed to calculate EMA for {symbol}: {exc}")
                continue

            if not reading.in_uptrend:
                continue

            candidates.append(
                Candidate(
                    symbol=symbol,
                    last_price=reading.last_price,
                    ema=reading.ema,
                    distance_pct=reading.distance_pct,
                )
            )
            logger.debug(
                f"Candidate found: {symbol} at {reading.last_price:.2f} "
                f"(EMA{self.ema_period}: {reading.ema:.2f}, distance: {reading.distance_pct:.2f}%)"
            )

        candidates.sort(key=lambda item: item.distance_pct)
        top = candidates[:limit]
        logger.info(
            f"Technical scan complete: {len(candidates)} candidates found, returning top {len(top)}")
        return top

    def scan_with_strategy_parameters(self) -> List[Candidate]:
        """Scan using ``risk_parameters.max_open_positions`` as the result size."""

        top_k: int | None = None
        if self._strategy_store is not None:
            try:
                strategy = self._strategy_store.load_strategy()
            except (OSError, ValueError) as exc:
                logger.error(f"Failed to load strategy manifest, using default topK: {exc}")
            else:
                if strategy.risk_parameters is not None:
                    top_k = strategy.risk_parameters.max_open_positions
        logger.info(f"Using strategy parameters: topK={top_k if top_k is not None else 'default'}")
        return self.scan(top_k)

    def _resolve_top_k(self, top_k: int | None) -> int:
        if top_k is None:
            top_k = self.default_top_k if self.default_top_k is not None else FALLBACK_TOP_K
        if top_k <= 0:
            raise ValueError("top_k must be positive")
        return top_k
