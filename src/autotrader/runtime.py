"""Wire settings, the Kite broker and the core services together."""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from .auth import KiteAuthenticator
from .config import AppSettings
from .data.fetcher import BatchCandleFetcher
from .data.providers.kite import KiteBroker
from .portfolio.session import SessionMonitor
from .portfolio.store import SessionTokenStore, SnapshotStore, StrategyStore
from .portfolio.sync import PortfolioSyncLoop
from .scans.candidates import CandidateScanner


@dataclass
class TraderRuntime:
    settings: AppSettings
    broker: KiteBroker
    session: SessionMonitor
    snapshot_store: SnapshotStore
    strategy_store: StrategyStore
    authenticator: KiteAuthenticator
    fetcher: BatchCandleFetcher
    scanner: CandidateScanner
    sync_loop: PortfolioSyncLoop

    def shutdown(self) -> None:
        self.fetcher.cancel()
        self.sync_loop.close()
        logger.info("Trader runtime shut down")


def build_runtime(
    settings: AppSettings | None = None,
    *,
    broker: KiteBroker | None = None,
) -> TraderRuntime:
    """Build every service from ``settings``.

    The stored Kite session, when present, is loaded into the broker before
    anything else runs.
    """

    settings = settings or AppSettings()
    paths = settings.data_paths
    paths.ensure()

    if broker is None:
        credentials = settings.require_kite_credentials()
        broker = KiteBroker(credentials.api_key, access_token=credentials.access_token)

    session = SessionMonitor()
    snapshot_store = SnapshotStore(paths.positions_file)
    strategy_store = StrategyStore(paths.strategy_file)
    authenticator = KiteAuthenticator(
        broker,
        session,
        SessionTokenStore(paths.session_file),
        api_secret=settings.kite_api_secret,
    )
    authenticator.restore_session()

    fetcher = BatchCandleFetcher.from_settings(broker, settings)
    scanner = CandidateScanner.from_settings(
        fetcher, settings, strategy_store=strategy_store)
    sync_loop = PortfolioSyncLoop(
        broker,
        snapshot_store,
        session,
        interval_seconds=settings.sync_interval_seconds,
    )
    return TraderRuntime(
        settings=settings,
        broker=broker,
        session=session,
        snapshot_store=snapshot_store,
        strategy_store=strategy_store,
        authenticator=authenticator,
        fetcher=fetcher,
        scanner=scanner,
        sync_loop=sync_loop,
    )


__all__ = ["TraderRuntime", "build_runtime"]
