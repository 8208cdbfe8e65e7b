"""
Asset resolver tool.

Maps a ticker symbol to provider identifiers:
    {
        "symbol": "BTC",
        "name": "Bitcoin",
        "cgId": "bitcoin",        # CoinGecko id or None
        "cmcId": "1",             # CoinMarketCap id or None
        "contracts": {"ETH": "0x..."},
        "logoUrl": "...",
        "source": "search" | "manual"
    }

CoinGecko search is tried first, CoinMarketCap map second. Provider failures
are logged and the asset is returned with whatever was resolved.
"""
import logging
from typing import Any, Dict

import httpx

from agent.tools.base import BaseTool, ExecutionContext
from core.cache import cache
from core.http import fetch_with_retry

logger = logging.getLogger(__name__)

COINGECKO_SEARCH_URL = "https://api.coingecko.com/api/v3/search"
CMC_MAP_URL = "https://pro-api.coinmarketcap.com/v1/cryptocurrency/map"

RESOLVER_TTL = 7 * 24 * 60 * 60


def resolver_cache_key(symbol: str) -> str:
    return f"resolver:{symbol.upper()}"


class AssetResolverTool(BaseTool):
    name = "asset_resolver"

    async def run(self, input: Dict[str, Any], ctx: ExecutionContext) -> Dict[str, Any]:
        s = str(self.require(input, "symbol")).strip().upper()
        chain = input.get("chain")
        address = input.get("address")

        cached = cache.get(resolver_cache_key(s))
        if cached and not cached.stale:
            return cached.data

        asset = {
            "symbol": s,
            "name": s,
            "cgId": None,
            "cmcId": None,
            "contracts": {},
            "logoUrl": f"/logo/{s}.svg",
            "source": "manual",
        }
        if address and chain:
            asset["contracts"][str(chain).upper()] = address

        cg_key = ctx.key("COINGECKO_API_KEY")
        cmc_key = ctx.key("COINMARKETCAP_API_KEY")

        if cg_key:
            await self._search_coingecko(asset, cg_key, ctx)
        if not asset["cgId"] and cmc_key:
            await self._map_coinmarketcap(asset, cmc_key, ctx)

        cache.set(resolver_cache_key(s), asset, RESOLVER_TTL)
        return asset

    async def _search_coingecko(self, asset: dict, api_key: str, ctx: ExecutionContext):
        s = asset["symbol"]
        try:
            resp = await fetch_with_retry(
                COINGECKO_SEARCH_URL, params={"query": s, "x_cg_demo_api_key": api_key}, **ctx.http_options
            )
            if resp.status_code != 200:
                logger.error("CoinGecko search failed for %s: HTTP %s", s, resp.status_code)
                return
            coins = resp.json().get("coins") or []
            hit = next((c for c in coins if (c.get("symbol") or "").upper() == s), None)
            if hit:
                asset["cgId"] = hit.get("id")
                asset["name"] = hit.get("name") or s
                asset["logoUrl"] = hit.get("large") or hit.get("thumb") or asset["logoUrl"]
                asset["source"] = "search"
                logger.info("Resolved %s via CoinGecko: %s", s, asset["cgId"])
        except (httpx.HTTPError, ValueError) as e:
            logger.error("CoinGecko search error for %s: %s", s, e)

    async def _map_coinmarketcap(self, asset: dict, api_key: str, ctx: ExecutionContext):
        s = asset["symbol"]
        try:
            resp = await fetch_with_retry(
                CMC_MAP_URL,
                params={"symbol": s},
                headers={"X-CMC_PRO_API_KEY": api_key, "Accept": "application/json"},
                **ctx.http_options,
            )
            if resp.status_code != 200:
                logger.error("CMC map failed for %s: HTTP %s %s", s, resp.status_code, resp.text[:200])
                return
            data = resp.json().get("data")
            hit = next((x for x in data if x.get("symbol") == s), None) if isinstance(data, list) else None
            if hit:
                asset["cmcId"] = str(hit.get("id"))
                asset["name"] = hit.get("name") or s
                asset["source"] = "search"
                logger.info("Resolved %s via CMC: %s", s, asset["cmcId"])
        except (httpx.HTTPError, ValueError) as e:
            logger.error("CMC map error for %s: %s", s, e)
