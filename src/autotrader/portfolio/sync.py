"""Scheduled portfolio sync: holdings and net positions into ``positions.json``."""

from __future__ import annotations

import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, TypeVar
from uuid import uuid4

from loguru import logger

from ..data.providers.base import PortfolioProvider
from ..exceptions import AuthorizationExpired
from .models import Holding, PortfolioSnapshot, Position
from .session import SessionMonitor
from .store import SnapshotStore

DEFAULT_INTERVAL_SECONDS = 60.0

_T = TypeVar("_T")


def _to_iso(value: datetime | None) -> str:
    return value.isoformat() if value is not None else ""


@dataclass
class SyncRun:
    run_id: str
    started_at: datetime
    completed_at: datetime | None
    status: str
    holdings: int = 0
    positions: int = 0
    error: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        duration = None
        if self.completed_at is not None:
            duration = (self.completed_at - self.started_at).total_seconds()
        return {
            "run_id": self.run_id,
            "status": self.status,
            "error": self.error,
            "started_at": _to_iso(self.started_at),
            "completed_at": _to_iso(self.completed_at),
            "duration_seconds": duration,
            "holdings": self.holdings,
            "positions": self.positions,
        }


class PortfolioSyncLoop:
    """Keeps the persisted portfolio snapshot fresh on a fixed-delay timer.

    Each tick fetches holdings and net positions in parallel, then replaces the
    stored snapshot. An authorization failure marks the session expired and
    skips the write; any other failure of one fetch leaves that side empty.
    Ticks never overlap: the next one starts ``interval_seconds`` after the
    previous one finished.
    """

    def __init__(
        self,
        provider: PortfolioProvider,
        store: SnapshotStore,
        session: SessionMonitor,
        *,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        max_history: int = 100,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._provider = provider
        self._store = store
        self._session = session
        self.interval_seconds = float(interval_seconds)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.RLock()
        self._tick_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="portfolio-sync")
        self._history: deque[SyncRun] = deque(maxlen=max_history)
        self._thread: threading.Thread | None = None
        self._stop_event: threading.Event | None = None
        self._max_ticks: int | None = None
        self._iterations = 0
        self._running = False
        self._status_message = "idle"
        self._started_at: datetime | None = None
        self._last_run_completed_at: datetime | None = None

    # Session flag -------------------------------------------------------

    def is_session_expired(self) -> bool:
        return self._session.expired

    def clear_session_expired(self) -> None:
        """Reset the expired flag; the next scheduled tick is not brought forward."""

        self._session.clear_expired()

    # Lifecycle ----------------------------------------------------------

    def start(self, *, max_ticks: int | None = None) -> Dict[str, Any]:
        with self._lock:
            if self._running:
                raise RuntimeError("Portfolio sync loop is already running.")
            if max_ticks is not None and max_ticks <= 0:
                raise ValueError("max_ticks must be positive")
            self._max_ticks = max_ticks
            self._iterations = 0
            self._running = True
            self._status_message = "running"
            self._started_at = self._clock()
            self._last_run_completed_at = None
            stop_event = threading.Event()
            self._stop_event = stop_event
            thread = threading.Thread(
                target=self._run_loop,
                args=(stop_event,),
                name="PortfolioSyncLoop",
                daemon=True,
            )
            self._thread = thread

        logger.info(
            f"Portfolio sync loop started (every {self.interval_seconds:.0f}s after each tick)")
        thread.start()
        return self.status()

    def stop(self, timeout: float = 10.0) -> Dict[str, Any]:
        thread: threading.Thread | None
        with self._lock:
            if not self._running:
                return self.status()
            if self._stop_event:
                self._stop_event.set()
            thread = self._thread

        if thread:
            thread.join(timeout=timeout)

        with self._lock:
            self._running = False
            self._status_message = "stopped"
            self._thread = None
            self._stop_event = None

        logger.info("Portfolio sync loop stopped")
        return self.status()

    def join(self, timeout: float | None = None) -> None:
        """Block until the loop thread exits (e.g. after ``max_ticks``)."""

        with self._lock:
            thread = self._thread
        if thread:
            thread.join(timeout=timeout)

    def close(self) -> None:
        self.stop()
        self._executor.shutdown(wait=True)

    def status(self) -> Dict[str, Any]:
        with self._lock:
            next_run_at = None
            if self._running and self._last_run_completed_at is not None:
                next_run_at = self._last_run_completed_at + \
                    timedelta(seconds=self.interval_seconds)
            last_run = self._history[-1] if self._history else None
            return {
                "running": self._running,
                "status": self._status_message,
                "iterations": self._iterations,
                "interval_seconds": self.interval_seconds,
                "started_at": _to_iso(self._started_at),
                "last_run_at": _to_iso(self._last_run_completed_at),
                "next_run_at": _to_iso(next_run_at),
                "last_run_status": last_run.status if last_run else None,
                "session_expired": self._session.expired,
            }

    def history(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [run.to_dict() for run in self._history]

    def latest_snapshot(self) -> PortfolioSnapshot:
        return self._store.read_snapshot()

    # Ticks ---------------------------------------------------------------

    def run_once(self) -> SyncRun:
        """Run one tick now, waiting for any tick already in flight."""

        with self._tick_lock:
            run = self._execute_tick()
        with self._lock:
            self._history.append(run)
            self._iterations += 1
            self._last_run_completed_at = run.completed_at or run.started_at
            if self._running:
                self._status_message = "error" if run.status == "error" else "running"
        return run

    def _run_loop(self, stop_event: threading.Event) -> None:
        try:
            while not stop_event.is_set():
                self.run_once()
                with self._lock:
                    should_stop = (
                        self._max_ticks is not None and self._iterations >= self._max_ticks
                    )
                if should_stop:
                    break
                if stop_event.wait(self.interval_seconds):
                    break
        finally:
            with self._lock:
                # A restart after a timed-out stop owns the state now.
                if self._stop_event is stop_event:
                    self._running = False
                    self._status_message = "idle"
                    self._thread = None
                    self._stop_event = None

    def _execute_tick(self) -> SyncRun:
        run_id = str(uuid4())
        started_at = self._clock()

        if not self._provider.has_access_token():
            logger.warning(
                "Skipping portfolio sync - access token is not set. Complete the Kite login flow.")
            return SyncRun(run_id, started_at, self._clock(), "skipped")

        logger.info("Starting Kite portfolio sync...")
        try:
            holdings, positions = self._fetch_portfolio()
            snapshot = PortfolioSnapshot(
                timestamp=self._clock(),
                holdings=tuple(holdings),
                positions=tuple(positions),
            )
            self._store.write_snapshot(snapshot)
        except AuthorizationExpired as exc:
            self._session.mark_expired()
            logger.warning(f"Kite session expired (HTTP 403) - login required: {exc}")
            return SyncRun(run_id, started_at, self._clock(), "session_expired", error=str(exc))
        except Exception as exc:
            logger.exception(f"Portfolio sync failed: {exc}")
            return SyncRun(run_id, started_at, self._clock(), "error", error=str(exc))

        self._session.clear_expired()
        logger.info(
            f"Portfolio sync complete - {len(holdings)} holdings, {len(positions)} net positions")
        return SyncRun(
            run_id,
            started_at,
            self._clock(),
            "completed",
            holdings=len(holdings),
            positions=len(positions),
        )

    def _fetch_portfolio(self) -> tuple[List[Holding], List[Position]]:
        holdings_future = self._executor.submit(
            self._fetch_side, "holdings", self._provider.get_holdings)
        positions_future = self._executor.submit(
            self._fetch_side, "net positions", self._provider.get_net_positions)
        wait([holdings_future, positions_future])

        for future in (holdings_future, positions_future):
            error = future.exception()
            if isinstance(error, AuthorizationExpired):
                raise error
        return holdings_future.result(), positions_future.result()

    @staticmethod
    def _fetch_side(label: str, fetch: Callable[[], List[_T]]) -> List[_T]:
        try:
            return list(fetch())
        except AuthorizationExpired:
            raise
        except Exception as exc:
            logger.error(f"Failed to fetch {label} from Kite: {exc}")
            return []
