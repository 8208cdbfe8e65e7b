"""
Price history tool.

Input:  {"symbols": ["BTC", "ETH"], "windowDays": 90}
Output: {"data": {"BTC": {"t": [ms, ...], "p": [price, ...]}, ...}}

Daily closes from CoinGecko market_chart. When a fetch fails the last cached
series is reused even if stale; otherwise the symbol gets an empty series.
All series are trimmed to the shortest length so they line up by index.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from agent.tools.asset_resolver import AssetResolverTool
from agent.tools.base import BaseTool, ExecutionContext
from agent.tools.series import align_history
from core.cache import cache
from core.http import fetch_with_retry

logger = logging.getLogger(__name__)

MARKET_CHART_URL = "https://api.coingecko.com/api/v3/coins/{cg_id}/market_chart"
HISTORY_TTL = 6 * 60 * 60

EMPTY = {"t": [], "p": []}


class HistoryTool(BaseTool):
    name = "history"

    def __init__(self, resolver: Optional[AssetResolverTool] = None):
        self.resolver = resolver or AssetResolverTool()

    async def run(self, input: Dict[str, Any], ctx: ExecutionContext) -> Dict[str, Any]:
        window_days = int(input.get("windowDays") or 90)
        cg_key = ctx.key("COINGECKO_API_KEY")
        history: Dict[str, dict] = {}

        for s in self.symbols(input):
            cache_key = f"history:{s}:{window_days}"
            cached = cache.get(cache_key)
            if cached and not cached.stale:
                history[s] = cached.data
                continue

            series = None
            try:
                asset = await self.resolver.run({"symbol": s}, ctx)
                cg_id = asset.get("cgId")
                if cg_id and cg_key:
                    series = await self._fetch(s, cg_id, cg_key, window_days, ctx)
            except (httpx.HTTPError, ValueError) as e:
                logger.error("History fetch failed for %s: %s", s, e)

            if series is not None:
                cache.set(cache_key, series, HISTORY_TTL)
                history[s] = series
            elif cached is not None:
                logger.info("Using stale cached history for %s", s)
                history[s] = cached.data
            else:
                history[s] = dict(EMPTY)

        return {"data": align_history(history)}

    async def _fetch(self, s: str, cg_id: str, api_key: str, window_days: int, ctx: ExecutionContext) -> Optional[dict]:
        resp = await fetch_with_retry(
            MARKET_CHART_URL.format(cg_id=cg_id),
            params={
                "vs_currency": "usd",
                "days": window_days,
                "interval": "daily",
                "x_cg_demo_api_key": api_key,
            },
            **ctx.http_options,
        )
        if resp.status_code != 200:
            logger.error("History fetch failed for %s: HTTP %s - %s", s, resp.status_code, resp.text[:100])
            return None
        if "application/json" not in resp.headers.get("content-type", ""):
            logger.error("History fetch failed for %s: non-JSON response - %s", s, resp.text[:100])
            return None
        points = resp.json().get("prices") or []
        return {"t": [p[0] for p in points], "p": [p[1] for p in points]}
