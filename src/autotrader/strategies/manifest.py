"""Read-only trading strategy manifest (``strategy.json``)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from ..data.universe import NIFTY_50


class _Manifest(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class UniverseSection(_Manifest):
    name: str = "NIFTY_50"
    exchange: str = "NSE"
    symbols: tuple[str, ...] = NIFTY_50


class IndicatorSection(_Manifest):
    type: str
    period: int = Field(..., gt=0)
    source: str = "close"


class TechnicalStrategySection(_Manifest):
    name: str
    description: str = ""
    indicators: tuple[IndicatorSection, ...] = ()
    entry_conditions: tuple[str, ...] = ()
    exit_conditions: tuple[str, ...] = ()


class RiskParameters(_Manifest):
    max_capital_per_trade_pct: float = Field(5.0, ge=0)
    max_open_positions: int = Field(10, gt=0)
    stop_loss_pct: float = Field(2.0, ge=0)
    target_pct: float = Field(3.0, ge=0)


class TradingStrategy(_Manifest):
    """The rules: universe, technical strategy and risk parameters."""

    strategy_version: str = "1.0"
    last_updated: str | None = None
    universe: UniverseSection | None = None
    technical_strategy: TechnicalStrategySection | None = None
    risk_parameters: RiskParameters | None = None


def default_strategy() -> TradingStrategy:
    """Return the manifest seeded when ``strategy.json`` does not exist."""

    return TradingStrategy(
        strategy_version="1.0",
        universe=UniverseSection(),
        technical_strategy=TechnicalStrategySection(
            name="EMA 200 Pullback",
            description="Buy liquid large caps trading just above their 200-day EMA.",
            indicators=(IndicatorSection(type="EMA", period=200, source="close"),),
            entry_conditions=(
                "close > EMA(200)",
                "distance to EMA(200) among the smallest in the universe",
            ),
            exit_conditions=(
                "close < EMA(200)",
                "target_pct reached",
                "stop_loss_pct breached",
            ),
        ),
        risk_parameters=RiskParameters(),
    )
