from datetime import datetime, timezone

import pytest
import requests
from kiteconnect import exceptions as kite_exceptions

from autotrader.data.providers import KiteBroker
from autotrader.data.schemas import CANDLE_COLUMNS
from autotrader.exceptions import AuthorizationExpired, TransientFetchError


class DummyKiteClient:
    def __init__(self, *, error: Exception | None = None, **payloads):
        self.access_token = None
        self.public_token = None
        self.error = error
        self.payloads = payloads
        self.calls: list[tuple] = []

    def set_access_token(self, access_token):
        self.access_token = access_token

    def set_public_token(self, public_token):
        self.public_token = public_token

    def _respond(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs))
        if self.error is not None:
            raise self.error
        return self.payloads.get(name)

    def instruments(self, exchange=None):
        return self._respond("instruments", exchange)

    def historical_data(self, instrument_token, from_date, to_date, interval,
                        continuous=False, oi=False):
        return self._respond("historical_data", instrument_token, from_date, to_date,
                             interval, continuous=continuous, oi=oi)

    def holdings(self):
        return self._respond("holdings")

    def positions(self):
        return self._respond("positions")

    def generate_session(self, request_token, api_secret):
        return self._respond("generate_session", request_token, api_secret=api_secret)


def _broker(client: DummyKiteClient, access_token: str | None = "token") -> KiteBroker:
    return KiteBroker("api-key", access_token=access_token, client=client)


def test_list_instruments_maps_trading_symbols() -> None:
    client = DummyKiteClient(instruments=[
        {"tradingsymbol": "INFY", "instrument_token": 408065, "exchange": "NSE"},
        {"tradingsymbol": "", "instrument_token": 1},
        {"tradingsymbol": "TCS", "instrument_token": 2953217},
    ])

    instruments = _broker(client).list_instruments("NSE")

    assert [(item.symbol, item.instrument_token) for item in instruments] == [
        ("INFY", "408065"),
        ("TCS", "2953217"),
    ]
    assert instruments[1].exchange == "NSE"
    assert client.calls[0] == ("instruments", ("NSE",), {})


def test_get_candles_returns_ordered_frame() -> None:
    rows = [
        {"date": datetime(2024, 1, day, tzinfo=timezone.utc), "open": 10 + day,
         "high": 11 + day, "low": 9 + day, "close": 10.5 + day, "volume": 1000}
        for day in (2, 3, 4)
    ]
    client = DummyKiteClient(historical_data=rows)
    start, end = datetime(2024, 1, 1), datetime(2024, 1, 5)

    df = _broker(client).get_candles("408065", "day", start, end)

    assert list(df.columns) == list(CANDLE_COLUMNS)
    assert df["close"].tolist() == [12.5, 13.5, 14.5]
    name, args, kwargs = client.calls[0]
    assert name == "historical_data"
    assert args == ("408065", start, end, "day")
    assert kwargs == {"continuous": False, "oi": False}


def test_malformed_candles_are_transient() -> None:
    client = DummyKiteClient(historical_data=[{"date": datetime(2024, 1, 2), "open": 1.0}])

    with pytest.raises(TransientFetchError):
        _broker(client).get_candles("1", "day", datetime(2024, 1, 1), datetime(2024, 1, 3))


def test_get_holdings_defaults_missing_numbers_to_zero() -> None:
    client = DummyKiteClient(holdings=[
        {"tradingsymbol": "INFY", "exchange": "NSE", "product": "CNC", "quantity": 10,
         "t1_quantity": 1, "average_price": 1500.0, "last_price": 1550.5, "pnl": 505.0},
        {"tradingsymbol": "TCS", "exchange": "NSE", "product": "CNC", "quantity": 3,
         "average_price": None},
    ])

    holdings = _broker(client).get_holdings()

    assert holdings[0].quantity == 10
    assert holdings[0].t1_quantity == 1
    assert holdings[0].pnl == pytest.approx(505.0)
    assert holdings[1].average_price == 0.0
    assert holdings[1].last_price == 0.0
    assert holdings[1].pnl == 0.0


def test_get_net_positions_reads_net_bucket() -> None:
    client = DummyKiteClient(positions={
        "day": [{"tradingsymbol": "IGNORED"}],
        "net": [{"tradingsymbol": "SBIN", "exchange": "NSE", "product": "MIS",
                 "quantity": -20, "average_price": 600.0, "last_price": 598.0,
                 "close_price": 602.0, "pnl": 40.0, "unrealised": 40.0,
                 "realised": 0.0, "m2m": 40.0}],
    })

    positions = _broker(client).get_net_positions()

    assert len(positions) == 1
    assert positions[0].symbol == "SBIN"
    assert positions[0].net_quantity == -20
    assert positions[0].mark_to_market == pytest.approx(40.0)


def test_missing_net_bucket_yields_no_positions() -> None:
    client = DummyKiteClient(positions={"day": []})

    assert _broker(client).get_net_positions() == []


@pytest.mark.parametrize(
    "error",
    [
        kite_exceptions.TokenException("Incorrect api_key or access_token."),
        kite_exceptions.PermissionException("Insufficient permission"),
        kite_exceptions.GeneralException("Forbidden", code=403),
    ],
)
def test_authorization_failures_are_translated(error) -> None:
    broker = _broker(DummyKiteClient(error=error))

    with pytest.raises(AuthorizationExpired) as excinfo:
        broker.get_holdings()
    assert excinfo.value.status_code == 403


@pytest.mark.parametrize(
    "error",
    [
        kite_exceptions.NetworkException("Gateway timed out"),
        kite_exceptions.DataException("Unparsable response"),
        kite_exceptions.GeneralException("Too many requests", code=429),
        requests.ConnectionError("connection reset"),
    ],
)
def test_other_failures_are_transient(error) -> None:
    broker = _broker(DummyKiteClient(error=error))

    with pytest.raises(TransientFetchError):
        broker.get_net_positions()


def test_access_token_placeholders_are_not_usable() -> None:
    assert _broker(DummyKiteClient(), access_token=None).has_access_token() is False
    assert _broker(DummyKiteClient(), access_token="placeholder").has_access_token() is False
    assert _broker(DummyKiteClient(), access_token="real").has_access_token() is True


def test_login_url_and_session_exchange() -> None:
    client = DummyKiteClient(
        generate_session={"access_token": "new-token", "public_token": "pub", "user_id": "AB1234"})
    broker = _broker(client, access_token=None)

    assert broker.login_url() == "https://kite.trade/connect/login?v=3&api_key=api-key"
    tokens = broker.generate_session("request-token", "secret")
    assert tokens == {"access_token": "new-token", "public_token": "pub"}

    broker.set_access_token(tokens["access_token"], tokens["public_token"])
    assert broker.access_token == "new-token"
    assert client.public_token == "pub"


def test_session_exchange_without_token_is_transient() -> None:
    broker = _broker(DummyKiteClient(generate_session={"user_id": "AB1234"}))

    with pytest.raises(TransientFetchError):
        broker.generate_session("request-token", "secret")


def test_broker_requires_api_key() -> None:
    with pytest.raises(ValueError):
        KiteBroker("", client=DummyKiteClient())
