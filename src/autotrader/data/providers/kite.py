"""Zerodha Kite Connect broker adapter."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, TypeVar

import pandas as pd
import requests
from kiteconnect import KiteConnect
from kiteconnect import exceptions as kite_exceptions
from loguru import logger

from ...config import is_usable_access_token
from ...exceptions import AuthorizationExpired, TransientFetchError
from ...portfolio.models import Holding, Position
from ..schemas import Candle, CandleFrame, Instrument
from .base import MarketDataProvider, PortfolioProvider

KITE_LOGIN_URL = "https://kite.trade/connect/login"

_T = TypeVar("_T")


def _is_authorization_failure(exc: BaseException) -> bool:
    if isinstance(exc, (kite_exceptions.TokenException, kite_exceptions.PermissionException)):
        return True
    return getattr(exc, "code", None) == 403


def _coerce_float(value: Any) -> float:
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _coerce_int(value: Any) -> int:
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(_coerce_float(value))


class KiteBroker(MarketDataProvider, PortfolioProvider):
    """Fetch instruments, candles, holdings and positions through ``KiteConnect``.

    Every broker failure is translated into :class:`AuthorizationExpired`
    (HTTP 403, token or permission errors) or :class:`TransientFetchError`.
    """

    def __init__(
        self,
        api_key: str,
        *,
        access_token: str | None = None,
        client: KiteConnect | None = None,
        timeout: int = 30,
    ) -> None:
        if not api_key:
            raise ValueError("KiteBroker requires an api_key.")
        self.api_key = api_key
        self._client = client or KiteConnect(api_key=api_key, timeout=timeout)
        if access_token:
            self._client.set_access_token(access_token)

    # Session -----------------------------------------------------------

    @property
    def access_token(self) -> str | None:
        return getattr(self._client, "access_token", None)

    def has_access_token(self) -> bool:
        return is_usable_access_token(self.access_token)

    def set_access_token(self, access_token: str, public_token: str | None = None) -> None:
        self._client.set_access_token(access_token)
        if public_token and hasattr(self._client, "set_public_token"):
            self._client.set_public_token(public_token)

    def login_url(self) -> str:
        return f"{KITE_LOGIN_URL}?v=3&api_key={self.api_key}"

    def generate_session(self, request_token: str, api_secret: str) -> dict[str, str | None]:
        """Exchange ``request_token`` for an access token."""

        data = self._call(
            "generate_session",
            self._client.generate_session,
            request_token,
            api_secret=api_secret,
        )
        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            raise TransientFetchError("Kite session response missing access_token")
        return {
            "access_token": str(access_token),
            "public_token": data.get("public_token"),
        }

    # Market data -------------------------------------------------------

    def list_instruments(self, exchange: str) -> list[Instrument]:
        rows = self._call("instruments", self._client.instruments, exchange)
        instruments: list[Instrument] = []
        for row in rows or []:
            symbol = str(row.get("tradingsymbol") or "").strip().upper()
            token = row.get("instrument_token")
            if not symbol or token is None:
                continue
            instruments.append(
                Instrument(symbol=symbol, instrument_token=str(token),
                           exchange=row.get("exchange") or exchange)
            )
        return instruments

    def get_candles(
        self,
        instrument_token: str,
        interval: str,
        start: datetime,
        end: datetime,
    ) -> pd.DataFrame:
        rows = self._call(
            "historical_data",
            self._client.historical_data,
            instrument_token,
            start,
            end,
            interval,
            continuous=False,
            oi=False,
        )
        try:
            candles = [Candle.from_kite_record(row) for row in rows or []]
        except (KeyError, TypeError, ValueError) as exc:
            raise TransientFetchError(
                f"Malformed candle payload for instrument {instrument_token}: {exc}"
            ) from exc
        return CandleFrame.from_candles(candles)

    # Portfolio ---------------------------------------------------------

    def get_holdings(self) -> list[Holding]:
        rows = self._call("holdings", self._client.holdings)
        holdings = [
            Holding(
                symbol=str(row.get("tradingsymbol") or ""),
                exchange=str(row.get("exchange") or ""),
                product=str(row.get("product") or ""),
                quantity=_coerce_int(row.get("quantity")),
                t1_quantity=_coerce_int(row.get("t1_quantity")),
                average_price=_coerce_float(row.get("average_price")),
                last_price=_coerce_float(row.get("last_price")),
                pnl=_coerce_float(row.get("pnl")),
            )
            for row in rows or []
        ]
        logger.info(f"Fetched {len(holdings)} holdings from Kite")
        return holdings

    def get_net_positions(self) -> list[Position]:
        payload = self._call("positions", self._client.positions)
        net_rows = payload.get("net") if isinstance(payload, dict) else None
        if net_rows is None:
            logger.warning("No net positions returned from Kite")
            return []
        positions = [
            Position(
                symbol=str(row.get("tradingsymbol") or ""),
                exchange=str(row.get("exchange") or ""),
                product=str(row.get("product") or ""),
                net_quantity=_coerce_int(row.get("quantity")),
                average_price=_coerce_float(row.get("average_price")),
                last_price=_coerce_float(row.get("last_price")),
                close_price=_coerce_float(row.get("close_price")),
                pnl=_coerce_float(row.get("pnl")),
                unrealised=_coerce_float(row.get("unrealised")),
                realised=_coerce_float(row.get("realised")),
                mark_to_market=_coerce_float(row.get("m2m")),
            )
            for row in net_rows
        ]
        logger.info(f"Fetched {len(positions)} net positions from Kite")
        return positions

    # Internal helpers -------------------------------------------------

    def _call(self, label: str, fn: Callable[..., _T], *args: Any, **kwargs: Any) -> _T:
        try:
            return fn(*args, **kwargs)
        except kite_exceptions.KiteException as exc:
            code = getattr(exc, "code", None)
            if _is_authorization_failure(exc):
                raise AuthorizationExpired(
                    f"Kite rejected the access token during {label}: {exc}",
                    status_code=403,
                ) from exc
            raise TransientFetchError(
                f"Kite {label} failed ({type(exc).__name__}): {exc}",
                status_code=code,
            ) from exc
        except requests.RequestException as exc:
            raise TransientFetchError(
                f"Network error during Kite {label}: {exc}"
            ) from exc
        except (KeyError, TypeError, ValueError) as exc:
            raise TransientFetchError(
                f"Unexpected Kite {label} payload: {exc}"
            ) from exc


__all__ = ["KITE_LOGIN_URL", "KiteBroker"]
