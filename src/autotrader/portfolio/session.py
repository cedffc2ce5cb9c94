"""Shared session-expiry flag."""

from __future__ import annotations

import threading

from loguru import logger


class SessionMonitor:
    """Holds the process-wide "session expired" flag.

    One instance is handed to the portfolio sync loop, which sets the flag on
    an authorization failure, and to the authentication collaborator, which
    clears it after a successful login.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._expired = False

    @property
    def expired(self) -> bool:
        with self._lock:
            return self._expired

    def mark_expired(self) -> None:
        with self._lock:
            already = self._expired
            self._expired = True
        if not already:
            logger.warning("Kite session marked as expired")

    def clear_expired(self) -> None:
        with self._lock:
            was_expired = self._expired
            self._expired = False
        if was_expired:
            logger.info("Session-expired flag cleared")
