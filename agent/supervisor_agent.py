# agent/supervisor_agent.py
import logging
from typing import Any, Dict, List, Optional

from agent.executor_agent import PlanExecutor
from agent.llm_agent import analyze_with_fallback
from agent.planner_agent import (
    DEFAULT_CONSTRAINTS,
    PLAN_ANALYZE_PORTFOLIO,
    PLAN_FIND_OPPORTUNITIES,
    PLAN_REBALANCE_ADVISOR,
    build_blackboard,
)
from agent.tools.base import ExecutionContext
from agent.tools.registry import ToolRegistry, default_registry
from core.errors import AgentError, ValidationError
from models.events import EventType
from models.plan import Plan, Step
from models.portfolio import Holding, load_policy, normalize_holdings, validate_minimum_assets
from services.event_stream import EventStream

logger = logging.getLogger(__name__)

MIN_REBALANCE_ASSETS = 3
MIN_HISTORY_POINTS = 60


class SupervisorAgent:
    """
    Route-level orchestration. Every public coroutine is an EventStream
    producer: it writes progress events and finishes with exactly one
    complete or error event. Input problems found after the stream is open
    are reported as an error event with step "validation".
    """

    def __init__(self, registry: Optional[ToolRegistry] = None):
        self.registry = registry or default_registry()
        self.executor = PlanExecutor(self.registry)

    async def call_tool(self, name: str, input: Dict[str, Any], ctx: ExecutionContext) -> Any:
        return await self.executor.run_step(_adhoc_step(name, input), {}, ctx)

    async def _forward_plan(self, stream: EventStream, plan: Plan, ctx: ExecutionContext,
                            initial: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """
        Relay a plan run's progress events. Returns the result store on
        success; on failure the error event has already been emitted and
        None is returned.
        """
        async for event in self.executor.stream(plan, ctx, initial=initial):
            if event.type == EventType.COMPLETE.value:
                return event.data
            await stream.emit(event)
            if event.is_terminal:
                return None
        return None

    # ---------------------- generic plan ---------------------- #

    async def run_plan(self, stream: EventStream, plan: Plan, ctx: ExecutionContext,
                       initial: Optional[Dict[str, Any]] = None):
        await stream.progress("init", f"Starting plan '{plan.goal or 'untitled'}' ({len(plan.steps)} steps)")
        store = await self._forward_plan(stream, plan, ctx, initial)
        if store is not None:
            await stream.complete(f"Plan '{plan.goal}' complete" if plan.goal else "Plan complete", data=store)

    # ---------------------- analyze ---------------------- #

    async def analyze(self, stream: EventStream, holdings: List[Holding], ctx: ExecutionContext,
                      user_id: str = "default"):
        await stream.progress("init", "Starting portfolio analysis...")
        try:
            blackboard = self._blackboard(holdings, user_id=user_id)
        except ValidationError as e:
            await stream.fail(str(e), step="validation")
            return

        store = await self._forward_plan(stream, PLAN_ANALYZE_PORTFOLIO, ctx, blackboard)
        if store is None:
            return

        await stream.progress("llm", "Generating AI insights...")
        insights = await analyze_with_fallback(store, ctx.credentials)

        await stream.complete("Analysis complete", data={
            "risk": store.get("compute_risk"),
            "health": store.get("compute_health"),
            "alerts": store.get("check_alerts"),
            "weights": store.get("weights"),
            "insights": insights,
        })

    # ---------------------- rebalance ---------------------- #

    async def rebalance(self, stream: EventStream, holdings: List[Holding], ctx: ExecutionContext,
                        constraints: Optional[Dict[str, Any]] = None, user_id: str = "default"):
        await stream.progress("init", "Starting rebalance analysis...")
        try:
            blackboard = self._blackboard(holdings, constraints=constraints, user_id=user_id)
        except ValidationError as e:
            await stream.fail(str(e), step="validation")
            return
        symbols = blackboard["symbols"]

        await stream.progress("resolve", f"Resolving {len(symbols)} assets...")
        resolved = await self._resolve_assets(holdings, ctx)

        store = await self._forward_plan(stream, PLAN_REBALANCE_ADVISOR, ctx, blackboard)
        if store is None:
            return
        prices = store["fetch_prices"]
        history = store["fetch_history"]
        assessment = {"risk": store.get("compute_risk"), "alerts": store.get("check_alerts")}

        await stream.progress("validate", "Checking data quality...")
        eligible, notes = validate_minimum_assets(
            symbols, prices.get("data") or {}, history.get("data") or {},
            min_assets=MIN_REBALANCE_ASSETS, min_history_points=MIN_HISTORY_POINTS,
        )
        if len(eligible) < MIN_REBALANCE_ASSETS:
            notes.append(
                f"Rebalancing requires at least {MIN_REBALANCE_ASSETS} assets with price and history data"
            )
            await stream.complete("Insufficient data for rebalancing", data={
                "targetWeights": {},
                "actions": [],
                "notes": notes,
                "resolved": resolved,
                **assessment,
            })
            return

        await stream.progress("rebalance", f"Computing target weights for {len(eligible)} assets...")
        try:
            result = await self.call_tool("rebalance", {
                "holdings": {s: blackboard["holdings"][s] for s in eligible},
                "prices": prices,
                "history": history,
                "constraints": blackboard["constraints"],
            }, ctx)
        except AgentError as e:
            await stream.fail(str(e), step="rebalance")
            return

        result["notes"] = notes + list(result.get("notes") or [])
        result["stale"] = bool(prices.get("stale"))
        result["resolved"] = resolved
        result.update(assessment)
        await stream.complete("Rebalance complete", data=result)

    # ---------------------- opportunities / news ---------------------- #

    async def opportunities(self, stream: EventStream, symbols: List[str], ctx: ExecutionContext):
        await stream.progress("init", "Scanning for opportunities...")
        if not symbols:
            await stream.fail("At least one symbol is required", step="validation")
            return
        store = await self._forward_plan(
            stream, PLAN_FIND_OPPORTUNITIES, ctx, {"symbols": [s.strip().upper() for s in symbols]},
        )
        if store is not None:
            scan = store.get("scan_opportunities") or {}
            await stream.complete("Scan complete", data={
                "opportunities": scan.get("opportunities") or [],
                "news": (store.get("fetch_news") or {}).get("items") or [],
            })

    async def news(self, stream: EventStream, symbols: List[str], ctx: ExecutionContext, lookback_days: int = 7):
        await stream.progress("init", "Researching news...")
        if not symbols:
            await stream.fail("At least one symbol is required", step="validation")
            return
        try:
            result = await self.call_tool(
                "news_research",
                {"symbols": [s.strip().upper() for s in symbols], "lookbackDays": lookback_days},
                ctx,
            )
        except AgentError as e:
            await stream.fail(str(e), step="news_research")
            return
        await stream.complete(f"Found {len(result.get('items') or [])} news items", data=result)

    # ---------------------- helpers ---------------------- #

    def _blackboard(self, holdings: List[Holding], constraints: Optional[Dict[str, Any]] = None,
                    user_id: str = "default") -> Dict[str, Any]:
        if not holdings:
            raise ValidationError("Portfolio must contain at least one holding")
        amounts = normalize_holdings(holdings)
        if not any(amounts.values()):
            raise ValidationError("Portfolio has no non-zero holdings")
        merged = dict(DEFAULT_CONSTRAINTS)
        merged.update(constraints or {})
        return build_blackboard(holdings, policy=load_policy(user_id), constraints=merged, user_id=user_id)

    async def _resolve_assets(self, holdings: List[Holding], ctx: ExecutionContext) -> Dict[str, Any]:
        resolved: Dict[str, Any] = {}
        for h in holdings:
            symbol = h.symbol.strip().upper()
            try:
                resolved[symbol] = await self.call_tool(
                    "asset_resolver", {"symbol": symbol, "chain": h.chain, "address": h.address}, ctx,
                )
            except AgentError as e:
                logger.warning("Could not resolve %s: %s", symbol, e)
                resolved[symbol] = None
        return resolved


def _adhoc_step(tool: str, input: Dict[str, Any]) -> Step:
    return Step(name=tool, tool=tool, input=_escape_refs(input))


def _escape_refs(node):
    """Escape user strings so the plan parser treats them as literals."""
    if isinstance(node, str) and node.startswith("$"):
        return "$" + node
    if isinstance(node, dict):
        return {k: _escape_refs(v) for k, v in node.items()}
    if isinstance(node, list):
        return [_escape_refs(v) for v in node]
    return node
