# api/routes_agent.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from agent.supervisor_agent import SupervisorAgent
from agent.tools.base import ExecutionContext
from config.settings import Settings, get_settings
from core.credentials import configured_keys, key_status, resolve_credentials
from core.response import SSE_HEADERS, ok
from core.singleton import get_supervisor
from models.plan import check_seed_conflicts, load_plan
from models.schemas import AnalyzeRequest, NewsRequest, OpportunitiesRequest, PlanRequest, RebalanceRequest
from services.event_stream import EventStream

logger = logging.getLogger(__name__)

router = APIRouter()


def _context(user_id: str, settings: Settings) -> ExecutionContext:
    return ExecutionContext(
        credentials=resolve_credentials(user_id, settings),
        caller_id=user_id,
        http_timeout_ms=settings.HTTP_TIMEOUT_MS,
        http_max_retries=settings.HTTP_MAX_RETRIES,
    )


def _stream(name: str, producer) -> StreamingResponse:
    stream = EventStream(name)
    return StreamingResponse(stream.sse(producer), media_type="text/event-stream", headers=SSE_HEADERS)


def _symbols(raw: Optional[str]):
    return [s.strip().upper() for s in (raw or "").split(",") if s.strip()]


@router.post("/agent/plan")
async def run_plan(
    req: PlanRequest,
    settings: Settings = Depends(get_settings),
    supervisor: SupervisorAgent = Depends(get_supervisor),
):
    """Validate a submitted plan (400 on failure) and stream its execution."""
    plan = load_plan({"goal": req.goal, "steps": req.steps})
    check_seed_conflicts(plan, req.initial)
    ctx = _context(req.userId, settings)
    logger.info("Plan '%s' submitted by %s (%d steps)", plan.goal, req.userId, len(plan.steps))
    return _stream("plan", lambda s: supervisor.run_plan(s, plan, ctx, initial=req.initial))


@router.post("/agent/analyze")
async def analyze(
    req: AnalyzeRequest,
    settings: Settings = Depends(get_settings),
    supervisor: SupervisorAgent = Depends(get_supervisor),
):
    ctx = _context(req.userId, settings)
    return _stream("analyze", lambda s: supervisor.analyze(s, req.portfolio, ctx, user_id=req.userId))


@router.post("/analyze/rebalance")
async def rebalance(
    req: RebalanceRequest,
    settings: Settings = Depends(get_settings),
    supervisor: SupervisorAgent = Depends(get_supervisor),
):
    ctx = _context(req.userId, settings)
    return _stream(
        "rebalance",
        lambda s: supervisor.rebalance(s, req.portfolio, ctx, constraints=req.constraints, user_id=req.userId),
    )


@router.post("/opportunities")
async def opportunities(
    req: OpportunitiesRequest,
    settings: Settings = Depends(get_settings),
    supervisor: SupervisorAgent = Depends(get_supervisor),
):
    ctx = _context(req.userId, settings)
    return _stream("opportunities", lambda s: supervisor.opportunities(s, req.symbols, ctx))


@router.post("/news")
async def news(
    req: NewsRequest,
    settings: Settings = Depends(get_settings),
    supervisor: SupervisorAgent = Depends(get_supervisor),
):
    ctx = _context(req.userId, settings)
    return _stream("news", lambda s: supervisor.news(s, req.symbols, ctx, lookback_days=req.lookbackDays))


@router.get("/prices")
async def prices(
    symbols: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    supervisor: SupervisorAgent = Depends(get_supervisor),
):
    wanted = _symbols(symbols)
    if not wanted:
        raise HTTPException(status_code=400, detail="symbols query parameter is required")
    ctx = _context("default", settings)
    return ok(await supervisor.call_tool("prices", {"symbols": wanted}, ctx))


@router.get("/assets/resolve")
async def resolve_asset(
    symbol: Optional[str] = None,
    chain: Optional[str] = None,
    address: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    supervisor: SupervisorAgent = Depends(get_supervisor),
):
    if not symbol or not symbol.strip():
        raise HTTPException(status_code=400, detail="symbol query parameter is required")
    ctx = _context("default", settings)
    result = await supervisor.call_tool(
        "asset_resolver", {"symbol": symbol.strip().upper(), "chain": chain, "address": address}, ctx,
    )
    return ok(result)


@router.get("/keys")
async def keys(settings: Settings = Depends(get_settings)):
    """Which allow-listed credentials are configured. Values are masked."""
    return ok(configured_keys(settings))


@router.get("/keys/{name}")
async def key(name: str, settings: Settings = Depends(get_settings)):
    return ok(key_status(name.strip().upper(), settings))


@router.get("/tools")
async def tools(supervisor: SupervisorAgent = Depends(get_supervisor)):
    return ok(supervisor.registry.names())
