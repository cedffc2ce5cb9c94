"""
Exceptions raised by the fetcher, scanner and portfolio sync loop.

Per-symbol errors (resolution, data, indicator) are absorbed by the batch
fetcher and the scanner. Broker errors split into authorization failures,
which mark the session expired, and transient failures, which do not.
"""


class AutoTraderError(Exception):
    """Base exception for all autonomous-trader errors."""


class ResolutionError(AutoTraderError):
    """None of the requested symbols are known to the exchange."""


class DataUnavailable(AutoTraderError):
    """A candle fetch failed or returned no rows."""


class InsufficientData(AutoTraderError):
    """A candle series is shorter than the indicator window."""


class BrokerError(AutoTraderError):
    """Base class for errors reported by the broker collaborator."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AuthorizationExpired(BrokerError):
    """The broker rejected the access token (HTTP 403)."""


class TransientFetchError(BrokerError):
    """Network, parsing or other non-authorization broker failure."""
