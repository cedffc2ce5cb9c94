"""Kite Connect login handshake."""

from __future__ import annotations

from loguru import logger

from .config import is_usable_access_token
from .data.providers.kite import KiteBroker
from .portfolio.session import SessionMonitor
from .portfolio.store import SessionTokenStore


class KiteAuthenticator:
    """Drives the Kite login redirect and keeps the broker's token current.

    Besides a completed sync tick, a successful login is the only thing that
    clears the shared session-expired flag.
    """

    def __init__(
        self,
        broker: KiteBroker,
        session: SessionMonitor,
        token_store: SessionTokenStore,
        *,
        api_secret: str | None = None,
    ) -> None:
        self._broker = broker
        self._session = session
        self._token_store = token_store
        self._api_secret = api_secret

    def login_url(self) -> str:
        return self._broker.login_url()

    def has_access_token(self) -> bool:
        return self._broker.has_access_token()

    def is_session_usable(self) -> bool:
        return self.has_access_token() and not self._session.expired

    def restore_session(self) -> bool:
        """Load a previously persisted token into the broker.

        A stored token wins over the one configured through the environment.
        Returns ``True`` when the broker holds a usable token afterwards.
        """

        stored = self._token_store.load()
        if stored and is_usable_access_token(stored["access_token"]):
            self._broker.set_access_token(
                stored["access_token"], stored.get("public_token"))
            logger.info("Restored Kite access token from stored session")
            return self.has_access_token()
        if stored:
            logger.warning("Stored Kite session holds a placeholder token; discarding it")
            self._token_store.clear()
        if self.has_access_token():
            logger.info("Using Kite access token from configuration")
        else:
            logger.warning(
                "No Kite access token available - open /api/auth/login to sign in")
        return self.has_access_token()

    def complete_login(self, request_token: str) -> str:
        """Exchange ``request_token`` for an access token and activate it."""

        if not request_token or not request_token.strip():
            raise ValueError("request_token is required")
        if not self._api_secret:
            raise RuntimeError(
                "Missing Kite API secret. Set KITE_API_SECRET in your environment or .env file."
            )

        tokens = self._broker.generate_session(request_token.strip(), self._api_secret)
        access_token = tokens["access_token"]
        self._broker.set_access_token(access_token, tokens.get("public_token"))
        self._session.clear_expired()
        if not self._token_store.save(access_token, tokens.get("public_token")):
            logger.warning("Kite login is active but will not survive a restart")
        logger.info("Kite login completed")
        return access_token


__all__ = ["KiteAuthenticator"]
