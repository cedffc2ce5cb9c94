import json
from datetime import datetime

import pandas as pd
import pytest

from autotrader.data.fetcher import BatchCandleFetcher
from autotrader.data.schemas import CandleFrame, Instrument
from autotrader.data.universe import UniverseConfig
from autotrader.portfolio.store import StrategyStore
from autotrader.scans import CandidateScanner


def _frame(closes) -> pd.DataFrame:
    values = [float(value) for value in closes]
    timestamps = pd.date_range(start=datetime(2024, 1, 1), periods=len(values), freq="D")
    return pd.DataFrame(
        {"timestamp": timestamps, "open": values, "high": values, "low": values,
         "close": values, "volume": [0.0] * len(values)},
        columns=CandleFrame.columns,
    )


class StubFetcher:
    def __init__(self, series_by_symbol):
        self.series_by_symbol = series_by_symbol
        self.calls: list[tuple] = []

    def fetch_series_for_many(self, symbols, exchange, interval, lookback_days):
        self.calls.append((tuple(symbols), exchange, interval, lookback_days))
        return {symbol: self.series_by_symbol[symbol]
                for symbol in symbols if symbol in self.series_by_symbol}


class DummyMarketData:
    def __init__(self, closes_by_symbol):
        self.closes_by_symbol = closes_by_symbol

    def list_instruments(self, exchange):
        return [Instrument(symbol=symbol, instrument_token=symbol.lower(), exchange=exchange)
                for symbol in self.closes_by_symbol]

    def get_candles(self, instrument_token, interval, start, end):
        return _frame(self.closes_by_symbol[instrument_token.upper()])


def _closes(last: float, base: float = 100.0, length: int = 200) -> list[float]:
    return [base] * length + [last]


def _universe(*symbols: str) -> UniverseConfig:
    return UniverseConfig(name="TEST", exchange="NSE", symbols=symbols)


def _scanner(series: dict[str, list[float]], symbols=None, **kwargs) -> CandidateScanner:
    frames = {symbol: _frame(closes) for symbol, closes in series.items()}
    return CandidateScanner(
        StubFetcher(frames),
        _universe(*(symbols or series.keys())),
        **kwargs,
    )


def test_scan_ranks_uptrend_symbols_by_distance() -> None:
    scanner = _scanner({"A": _closes(110.0), "B": _closes(95.0), "C": _closes(101.0)})

    result = scanner.scan(2)

    assert [candidate.symbol for candidate in result] == ["C", "A"]
    alpha = 2.0 / 201
    ema_c = 101.0 * alpha + 100.0 * (1 - alpha)
    assert result[0].ema == pytest.approx(ema_c)
    assert result[0].last_price == pytest.approx(101.0)
    assert result[0].distance_pct == pytest.approx((101.0 - ema_c) / ema_c * 100.0)
    assert all(candidate.distance_pct > 0 for candidate in result)


def test_scan_truncates_to_top_k() -> None:
    scanner = _scanner({"A": _closes(110.0), "B": _closes(95.0), "C": _closes(101.0)})

    assert [candidate.symbol for candidate in scanner.scan(1)] == ["C"]


def test_scan_skips_missing_and_short_series() -> None:
    scanner = _scanner(
        {"A": _closes(110.0), "SHORT": [100.0] * 150 + [120.0]},
        symbols=["A", "SHORT", "MISSING"],
    )

    result = scanner.scan(5)

    assert [candidate.symbol for candidate in result] == ["A"]


def test_scan_keeps_universe_order_for_ties() -> None:
    scanner = _scanner({"Z": _closes(105.0), "Y": _closes(105.0), "X": _closes(105.0)})

    assert [candidate.symbol for candidate in scanner.scan(3)] == ["Z", "Y", "X"]


def test_scan_excludes_symbols_at_their_ema() -> None:
    scanner = _scanner({"FLAT": _closes(100.0)})

    assert scanner.scan(5) == []


def test_scan_uses_configured_default_top_k() -> None:
    series = {f"S{idx}": _closes(100.0 + idx) for idx in range(1, 13)}

    assert len(_scanner(series).scan()) == 10
    assert len(_scanner(series, default_top_k=3).scan()) == 3


def test_scan_rejects_non_positive_top_k() -> None:
    scanner = _scanner({"A": _closes(110.0)})

    with pytest.raises(ValueError):
        scanner.scan(0)


def test_scan_forwards_universe_and_lookback_to_fetcher() -> None:
    fetcher = StubFetcher({})
    scanner = CandidateScanner(
        fetcher,
        _universe("infy", "tcs"),
        lookback_days=500,
        interval="day",
    )

    scanner.scan(1)

    assert fetcher.calls == [(("INFY", "TCS"), "NSE", "day", 500)]


def test_scan_with_strategy_parameters_uses_max_open_positions(tmp_path) -> None:
    strategy_path = tmp_path / "strategy.json"
    strategy_path.write_text(
        json.dumps({"strategy_version": "1.0", "risk_parameters": {"max_open_positions": 1}}),
        encoding="utf-8",
    )
    scanner = _scanner(
        {"A": _closes(110.0), "C": _closes(101.0)},
        strategy_store=StrategyStore(strategy_path),
    )

    result = scanner.scan_with_strategy_parameters()

    assert [candidate.symbol for candidate in result] == ["C"]


def test_scan_with_strategy_parameters_falls_back_on_unreadable_manifest(tmp_path) -> None:
    strategy_path = tmp_path / "strategy.json"
    strategy_path.write_text("{not json", encoding="utf-8")
    scanner = _scanner(
        {"A": _closes(110.0), "C": _closes(101.0)},
        strategy_store=StrategyStore(strategy_path),
        default_top_k=2,
    )

    assert len(scanner.scan_with_strategy_parameters()) == 2


def test_scan_end_to_end_with_batch_fetcher() -> None:
    provider = DummyMarketData({"A": _closes(110.0), "B": _closes(95.0), "C": _closes(101.0)})
    fetcher = BatchCandleFetcher(provider, sleeper=lambda seconds: False)
    scanner = CandidateScanner(fetcher, _universe("A", "B", "C"))

    result = scanner.scan(2)

    assert [candidate.to_dict()["symbol"] for candidate in result] == ["C", "A"]
