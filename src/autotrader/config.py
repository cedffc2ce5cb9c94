"""Application configuration helpers."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .data.universe import NIFTY_50, UniverseConfig

PLACEHOLDER_ACCESS_TOKENS = frozenset({"placeholder", "your_access_token_here"})


def is_usable_access_token(token: str | None) -> bool:
    """Return ``True`` when ``token`` looks like a real Kite access token."""

    if token is None:
        return False
    stripped = token.strip()
    return bool(stripped) and stripped not in PLACEHOLDER_ACCESS_TOKENS


class DataPaths(BaseModel):
    """Filesystem locations for persisted manifests and logs."""

    state: Path = Field(default=Path("data/state"))
    logs: Path = Field(default=Path("data/logs"))

    @property
    def positions_file(self) -> Path:
        return self.state / "positions.json"

    @property
    def strategy_file(self) -> Path:
        return self.state / "strategy.json"

    @property
    def session_file(self) -> Path:
        return self.state / ".kite_session.json"

    @property
    def log_file(self) -> Path:
        return self.logs / "autotrader.log"

    def ensure(self) -> None:
        """Create directories if they do not exist."""

        for path in (self.state, self.logs):
            path.mkdir(parents=True, exist_ok=True)


class KiteCredentials(BaseModel):
    """Credentials required for the Kite Connect API."""

    api_key: str
    api_secret: str | None = None
    access_token: str | None = None


class AppSettings(BaseSettings):
    """Project-wide settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    kite_api_key: str | None = Field(default=None, alias="KITE_API_KEY")
    kite_api_secret: str | None = Field(default=None, alias="KITE_API_SECRET")
    kite_access_token: str | None = Field(
        default=None, alias="KITE_ACCESS_TOKEN")
    ui_redirect_url: str = Field(
        default="http://localhost:5173", alias="UI_REDIRECT_URL")

    universe_name: str = Field(default="NIFTY_50", alias="UNIVERSE_NAME")
    universe_exchange: str = Field(default="NSE", alias="UNIVERSE_EXCHANGE")
    universe_symbols: list[str] = Field(
        default_factory=lambda: list(NIFTY_50), alias="UNIVERSE_SYMBOLS")

    sync_interval_seconds: float = Field(
        default=60.0, gt=0, alias="SYNC_INTERVAL_SECONDS")
    fetch_throttle_seconds: float = Field(
        default=0.35, ge=0, alias="FETCH_THROTTLE_SECONDS")
    fetch_max_attempts: int = Field(default=3, ge=1, alias="FETCH_MAX_ATTEMPTS")
    fetch_backoff_seconds: float = Field(
        default=0.5, ge=0, alias="FETCH_BACKOFF_SECONDS")

    scan_interval: str = Field(default="day", alias="SCAN_INTERVAL")
    scan_lookback_days: int = Field(default=400, gt=0, alias="SCAN_LOOKBACK_DAYS")
    scan_ema_period: int = Field(default=200, gt=0, alias="SCAN_EMA_PERIOD")
    scan_top_k: int | None = Field(default=None, gt=0, alias="SCAN_TOP_K")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    data_paths: DataPaths = Field(default_factory=DataPaths)

    def universe(self) -> UniverseConfig:
        """Return the configured scanning universe."""

        return UniverseConfig(
            name=self.universe_name,
            exchange=self.universe_exchange,
            symbols=tuple(self.universe_symbols),
        )

    def require_kite_credentials(self) -> KiteCredentials:
        """Return Kite credentials or raise a helpful error."""

        if not self.kite_api_key:
            raise RuntimeError(
                "Missing Kite API key. Set KITE_API_KEY in your environment or .env file."
            )
        return KiteCredentials(
            api_key=self.kite_api_key,
            api_secret=self.kite_api_secret,
            access_token=self.kite_access_token,
        )
