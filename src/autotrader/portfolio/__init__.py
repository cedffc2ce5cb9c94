"""Live portfolio sync, persistence and session state."""

from .models import Holding, PortfolioSnapshot, Position
from .session import SessionMonitor
from .store import SessionTokenStore, SnapshotStore, StrategyStore
from .sync import PortfolioSyncLoop, SyncRun

__all__ = [
    "Holding",
    "PortfolioSnapshot",
    "PortfolioSyncLoop",
    "Position",
    "SessionMonitor",
    "SessionTokenStore",
    "SnapshotStore",
    "StrategyStore",
    "SyncRun",
]
