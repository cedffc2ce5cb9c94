"""FastAPI service exposing the live portfolio, dashboard and candidate scan."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List

from fastapi import FastAPI, HTTPException, Query, Response
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from loguru import logger
from pydantic import BaseModel

from ..exceptions import (
    AuthorizationExpired,
    AutoTraderError,
    BrokerError,
    TransientFetchError,
)
from ..portfolio.models import Holding, PortfolioSnapshot
from ..runtime import TraderRuntime, build_runtime
from ..scans.candidates import Candidate, describe_candidate, summarize_candidates
from ..strategies.manifest import TradingStrategy

DEFAULT_TARGET_PCT = 3.0
STRONG_MATCH = "STRONG MATCH"
PARTIAL_MATCH = "PARTIAL MATCH"
NO_MATCH = "NO MATCH"


class PerformanceStats(BaseModel):
    daily_pct: float = 0.0
    weekly_pct: float = 0.0
    monthly_pct: float = 0.0


class DashboardHolding(BaseModel):
    symbol: str
    pnl: float
    pnl_pct: float
    strategy_match: str


class StrategyViewer(BaseModel):
    name: str
    description: str
    indicators: List[Dict[str, Any]]
    entry_conditions: List[str]
    exit_conditions: List[str]


class DashboardResponse(BaseModel):
    performance: PerformanceStats
    holdings: List[DashboardHolding]
    strategy: StrategyViewer | None = None


def _strategy_match(pnl_pct: float, target_pct: float) -> str:
    if pnl_pct >= target_pct:
        return STRONG_MATCH
    if pnl_pct > 0:
        return PARTIAL_MATCH
    return NO_MATCH


def _dashboard_holding(holding: Holding, target_pct: float) -> DashboardHolding:
    cost = holding.cost
    pnl_pct = holding.pnl / cost * 100.0 if cost > 0 else 0.0
    return DashboardHolding(
        symbol=holding.symbol,
        pnl=holding.pnl,
        pnl_pct=pnl_pct,
        strategy_match=_strategy_match(pnl_pct, target_pct),
    )


def build_dashboard(snapshot: PortfolioSnapshot, strategy: TradingStrategy) -> DashboardResponse:
    """Summarise ``snapshot`` against the strategy's risk parameters.

    Only a daily figure is derived (total P&L over total cost); weekly and
    monthly figures stay at zero without historical snapshots.
    """

    target_pct = (
        strategy.risk_parameters.target_pct
        if strategy.risk_parameters is not None
        else DEFAULT_TARGET_PCT
    )
    holdings = [_dashboard_holding(item, target_pct) for item in snapshot.holdings]

    total_pnl = sum(item.pnl for item in snapshot.holdings)
    total_cost = sum(item.cost for item in snapshot.holdings)
    performance = PerformanceStats(
        daily_pct=total_pnl / total_cost * 100.0 if total_cost > 0 else 0.0
    )

    viewer = None
    technical = strategy.technical_strategy
    if technical is not None:
        viewer = StrategyViewer(
            name=technical.name,
            description=technical.description,
            indicators=[indicator.model_dump() for indicator in technical.indicators],
            entry_conditions=list(technical.entry_conditions),
            exit_conditions=list(technical.exit_conditions),
        )
    return DashboardResponse(performance=performance, holdings=holdings, strategy=viewer)


def _snapshot_payload(snapshot: PortfolioSnapshot) -> Dict[str, Any]:
    return {
        "last_updated": snapshot.timestamp.isoformat() if snapshot.timestamp else None,
        "holdings": [item.model_dump(mode="json") for item in snapshot.holdings],
        "positions": [item.model_dump(mode="json") for item in snapshot.positions],
    }


def _summary_payload(
    summary: str, top_pick: Candidate | None = None, total: int = 0
) -> Dict[str, Any]:
    return {
        "summary": summary,
        "top_pick": top_pick.to_dict() if top_pick is not None else None,
        "total_candidates": total,
    }


def create_app(runtime: TraderRuntime | None = None, start_sync: bool = False) -> FastAPI:
    """Create and configure the FastAPI application.

    When ``start_sync`` is true the portfolio sync loop runs for the lifetime
    of the app.
    """

    runtime = runtime or build_runtime()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if start_sync:
            runtime.sync_loop.start()
        try:
            yield
        finally:
            if start_sync:
                runtime.sync_loop.stop()

    app = FastAPI(title="Autonomous Trader", version="0.1.0", lifespan=lifespan)
    app.state.runtime = runtime

    @app.get("/api/session", response_class=JSONResponse)
    async def get_session() -> JSONResponse:
        authenticator = runtime.authenticator
        return JSONResponse(
            {
                "has_access_token": authenticator.has_access_token(),
                "session_expired": runtime.session.expired,
                "usable": authenticator.is_session_usable(),
            }
        )

    @app.get("/api/portfolio")
    async def get_portfolio() -> Response:
        snapshot = runtime.sync_loop.latest_snapshot()
        if snapshot.is_empty:
            logger.warning("Live portfolio not yet available - sync may not have run")
            return Response(status_code=204)
        return JSONResponse(_snapshot_payload(snapshot))

    @app.get("/api/dashboard", response_model=DashboardResponse)
    def get_dashboard() -> DashboardResponse:
        if not runtime.authenticator.is_session_usable():
            logger.warning("Dashboard request rejected - no active Kite session")
            raise HTTPException(status_code=401, detail="Kite session is not active.")
        try:
            strategy = runtime.strategy_store.load_strategy()
        except (OSError, ValueError) as exc:
            logger.error(f"Failed to load strategy manifest for dashboard: {exc}")
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        snapshot = runtime.snapshot_store.read_snapshot()
        if snapshot.is_empty:
            logger.warning("No live portfolio in positions.json - sync may not have run yet")
        return build_dashboard(snapshot, strategy)

    @app.get("/api/v1/advice/top-candidates", response_class=JSONResponse)
    def get_top_candidates(
        top_k: int | None = Query(
            default=None,
            alias="topK",
            description="Number of candidates to return; defaults to the strategy's max open positions.",
        ),
    ) -> JSONResponse:
        if top_k is not None and top_k <= 0:
            raise HTTPException(status_code=400, detail="topK must be a positive integer.")

        logger.info(f"Received request for top candidates (topK={top_k})")
        scanner = runtime.scanner
        try:
            if top_k is not None:
                candidates = scanner.scan(top_k)
            else:
                candidates = scanner.scan_with_strategy_parameters()
        except AuthorizationExpired as exc:
            runtime.session.mark_expired()
            logger.error(f"Kite session expired while scanning: {exc}")
            raise HTTPException(status_code=401, detail=str(exc)) from exc
        except TransientFetchError as exc:
            logger.error(f"Kite API error while scanning: {exc}")
            raise HTTPException(status_code=503, detail=str(exc)) from exc

        logger.info(f"Returning {len(candidates)} candidates")
        return JSONResponse([candidate.to_dict() for candidate in candidates])

    def _scan_for_summary() -> List[Candidate]:
        try:
            return runtime.scanner.scan_with_strategy_parameters()
        except AuthorizationExpired:
            runtime.session.mark_expired()
            raise

    @app.get("/api/v1/openclaw/summary", response_class=PlainTextResponse)
    def get_candidate_summary() -> PlainTextResponse:
        logger.info("Received request for candidate summary")
        try:
            candidates = _scan_for_summary()
        except BrokerError as exc:
            logger.error(f"Kite API error while building summary: {exc}")
            return PlainTextResponse(f"Error: Market data service unavailable. {exc}")
        except (AutoTraderError, OSError) as exc:
            logger.error(f"Failed to fetch market data for summary: {exc}")
            return PlainTextResponse(f"Error: Unable to fetch market data. {exc}")
        return PlainTextResponse(summarize_candidates(candidates, runtime.scanner.ema_period))

    @app.get("/api/v1/openclaw/summary-json", response_class=JSONResponse)
    def get_candidate_summary_json() -> JSONResponse:
        logger.info("Received request for candidate summary (JSON)")
        try:
            candidates = _scan_for_summary()
        except BrokerError as exc:
            logger.error(f"Kite API error while building summary: {exc}")
            return JSONResponse(_summary_payload(f"Error: Market data unavailable - {exc}"))
        except (AutoTraderError, OSError) as exc:
            logger.error(f"Failed to fetch market data for summary: {exc}")
            return JSONResponse(_summary_payload(f"Error: {exc}"))

        if not candidates:
            return JSONResponse(_summary_payload("No candidates found"))
        top = candidates[0]
        summary = f"Top pick is {describe_candidate(top, runtime.scanner.ema_period)}"
        return JSONResponse(_summary_payload(summary, top, len(candidates)))

    @app.post("/api/sync", response_class=JSONResponse)
    def run_sync_now() -> JSONResponse:
        run = runtime.sync_loop.run_once()
        return JSONResponse(run.to_dict())

    @app.get("/api/sync/status", response_class=JSONResponse)
    async def get_sync_status() -> JSONResponse:
        return JSONResponse(runtime.sync_loop.status())

    @app.get("/api/sync/history", response_class=JSONResponse)
    async def get_sync_history() -> JSONResponse:
        return JSONResponse(runtime.sync_loop.history())

    @app.get("/api/auth/login")
    async def login() -> RedirectResponse:
        logger.info("Redirecting to Kite login URL")
        return RedirectResponse(runtime.authenticator.login_url(), status_code=302)

    @app.get("/api/auth/callback")
    def handle_callback(
        request_token: str | None = Query(default=None),
    ) -> RedirectResponse:
        redirect_url = runtime.settings.ui_redirect_url
        try:
            runtime.authenticator.complete_login(request_token or "")
        except (BrokerError, RuntimeError, ValueError) as exc:
            logger.error(f"OAuth handshake failed: {exc}")
        else:
            logger.info("OAuth handshake successful - redirecting to UI")
        return RedirectResponse(redirect_url, status_code=302)

    return app


__all__ = ["DashboardResponse", "build_dashboard", "create_app"]
