"""Interfaces for the broker market-data and portfolio collaborators."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Protocol

import pandas as pd

from ..schemas import Instrument

if TYPE_CHECKING:
    from ...portfolio.models import Holding, Position


class MarketDataProvider(Protocol):
    """Instrument catalog and historical candle source."""

    def list_instruments(self, exchange: str) -> list[Instrument]:
        """Return every instrument listed on ``exchange``."""

        raise NotImplementedError

    def get_candles(
        self,
        instrument_token: str,
        interval: str,
        start: datetime,
        end: datetime,
    ) -> pd.DataFrame:
        """Return candles for ``instrument_token`` in :data:`CANDLE_COLUMNS` order."""

        raise NotImplementedError


class PortfolioProvider(Protocol):
    """Live holdings and net positions source.

    Implementations raise :class:`~autotrader.exceptions.AuthorizationExpired`
    when the broker rejects the access token and
    :class:`~autotrader.exceptions.TransientFetchError` otherwise.
    """

    def has_access_token(self) -> bool:
        raise NotImplementedError

    def get_holdings(self) -> list["Holding"]:
        raise NotImplementedError

    def get_net_positions(self) -> list["Position"]:
        raise NotImplementedError
