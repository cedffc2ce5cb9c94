"""Portfolio models synced from the broker."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Holding(BaseModel):
    """A delivery holding in the demat account."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    exchange: str
    product: str
    quantity: int = 0
    t1_quantity: int = 0
    average_price: float = 0.0
    last_price: float = 0.0
    pnl: float = 0.0

    @property
    def cost(self) -> float:
        return self.average_price * self.quantity


class Position(BaseModel):
    """An open net position for the trading day."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    exchange: str
    product: str
    net_quantity: int = 0
    average_price: float = 0.0
    last_price: float = 0.0
    close_price: float = 0.0
    pnl: float = 0.0
    unrealised: float = 0.0
    realised: float = 0.0
    mark_to_market: float = 0.0


class PortfolioSnapshot(BaseModel):
    """Holdings and net positions captured by one successful sync tick.

    ``timestamp`` is ``None`` for the empty snapshot returned before the first
    sync has been persisted.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime | None = None
    holdings: tuple[Holding, ...] = Field(default_factory=tuple)
    positions: tuple[Position, ...] = Field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return self.timestamp is None

    @classmethod
    def empty(cls) -> "PortfolioSnapshot":
        return cls()
