"""JSON persistence for the live portfolio snapshot and the strategy manifest."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from ..strategies.manifest import TradingStrategy, default_strategy
from .models import Holding, PortfolioSnapshot, Position


def _write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(
        json.dumps(payload, indent=2, sort_keys=True),
        encoding="utf-8",
    )
    tmp_path.replace(path)


def _read_json(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


class SnapshotStore:
    """Durable, wholesale-replace storage for :class:`PortfolioSnapshot`.

    The file layout is::

        {"last_updated": "...", "live_portfolio": {"holdings": [...], "positions": [...]}}
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def write_snapshot(self, snapshot: PortfolioSnapshot) -> Path:
        timestamp = snapshot.timestamp or datetime.now().astimezone()
        payload = {
            "last_updated": timestamp.isoformat(),
            "live_portfolio": {
                "holdings": [holding.model_dump(mode="json") for holding in snapshot.holdings],
                "positions": [position.model_dump(mode="json") for position in snapshot.positions],
            },
        }
        _write_json_atomic(self.path, payload)
        logger.info(
            f"Saved {len(snapshot.holdings)} holdings and {len(snapshot.positions)} positions "
            f"to {self.path.resolve()}"
        )
        return self.path

    def read_snapshot(self) -> PortfolioSnapshot:
        if not self.path.exists():
            logger.info(f"{self.path.name} missing - returning empty snapshot")
            return PortfolioSnapshot.empty()

        try:
            payload = _read_json(self.path)
        except (OSError, ValueError) as exc:
            logger.error(f"Failed to read {self.path}: {exc}")
            return PortfolioSnapshot.empty()

        if not isinstance(payload, dict):
            logger.error(f"{self.path} contained unexpected content; ignoring")
            return PortfolioSnapshot.empty()

        portfolio = payload.get("live_portfolio") or {}
        try:
            return PortfolioSnapshot(
                timestamp=payload.get("last_updated"),
                holdings=tuple(Holding.model_validate(item)
                               for item in portfolio.get("holdings") or []),
                positions=tuple(Position.model_validate(item)
                                for item in portfolio.get("positions") or []),
            )
        except (ValidationError, AttributeError, TypeError) as exc:
            logger.error(f"Failed to parse {self.path}, returning empty: {exc}")
            return PortfolioSnapshot.empty()


class StrategyStore:
    """Loads the read-only strategy manifest, seeding defaults when missing."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load_strategy(self) -> TradingStrategy:
        if not self.path.exists():
            logger.warning(
                f"Strategy file not found at {self.path}. Seeding built-in defaults...")
            self._seed_default_strategy()
        payload = _read_json(self.path)
        return TradingStrategy.model_validate(payload)

    def _seed_default_strategy(self) -> None:
        strategy = default_strategy().model_copy(
            update={"last_updated": datetime.now().astimezone().isoformat()}
        )
        _write_json_atomic(self.path, strategy.model_dump(mode="json"))
        logger.info(f"Seeded default strategy.json at {self.path.resolve()}")


class SessionTokenStore:
    """Stores ``{"access_token", "public_token"}`` in ``.kite_session.json``."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def save(self, access_token: str, public_token: str | None = None) -> bool:
        """Persist the tokens; a failed write is logged and reported as ``False``."""

        try:
            _write_json_atomic(
                self.path, {"access_token": access_token, "public_token": public_token})
        except OSError as exc:
            logger.error(f"Failed to save Kite session to {self.path}: {exc}")
            return False
        logger.info(f"Kite session tokens saved to {self.path}")
        return True

    def load(self) -> dict[str, str | None] | None:
        if not self.path.exists():
            return None
        try:
            payload = _read_json(self.path)
        except (OSError, ValueError) as exc:
            logger.error(f"Failed to read Kite session from {self.path}: {exc}")
            return None
        if not isinstance(payload, dict) or not payload.get("access_token"):
            return None
        return {
            "access_token": str(payload["access_token"]),
            "public_token": payload.get("public_token"),
        }

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
            logger.info(f"Removed stored Kite session at {self.path}")
