"""
Spot price tool.

Input:  {"symbols": ["BTC", "SOL"]}
Output: {"data": {"BTC": 65000.0, "SOL": None}, "stale": False}

Provider order per symbol: Birdeye (Solana tokens only) -> CoinGecko ->
CoinMarketCap. A symbol no provider can price maps to None.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from agent.tools.asset_resolver import AssetResolverTool, resolver_cache_key
from agent.tools.base import BaseTool, ExecutionContext
from core.cache import cache
from core.http import fetch_with_retry

logger = logging.getLogger(__name__)

BIRDEYE_PRICE_URL = "https://public-api.birdeye.so/defi/price"
COINGECKO_PRICE_URL = "https://api.coingecko.com/api/v3/simple/price"
CMC_QUOTES_URL = "https://pro-api.coinmarketcap.com/v2/cryptocurrency/quotes/latest"

PRICE_TTL = 60

SOLANA_ADDRESSES = {
    "SOL": "So11111111111111111111111111111111111111112",
    "BONK": "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263",
    "JUP": "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN",
    "RAY": "4k3Dyjzvzp8eMZWUXbBCjEvwSkkk59S5iCNLY3QrkX6R",
    "ORCA": "orcaEKTdK7LKz57vaAYr9QeNsVEPfiu6QeMU1kektZE",
    "USDC": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
    "USDT": "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB",
}

COINGECKO_IDS = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "SOL": "solana",
    "BNB": "binancecoin",
    "USDC": "usd-coin",
    "USDT": "tether",
    "ADA": "cardano",
    "DOT": "polkadot",
    "MATIC": "matic-network",
    "AVAX": "avalanche-2",
    "LINK": "chainlink",
    "UNI": "uniswap",
    "ATOM": "cosmos",
    "XRP": "ripple",
    "DOGE": "dogecoin",
}


class PricesTool(BaseTool):
    name = "prices"

    def __init__(self, resolver: Optional[AssetResolverTool] = None):
        self.resolver = resolver or AssetResolverTool()

    async def run(self, input: Dict[str, Any], ctx: ExecutionContext) -> Dict[str, Any]:
        prices: Dict[str, Optional[float]] = {}
        stale = False

        for s in self.symbols(input):
            cached = cache.get(f"price:{s}")
            if cached and not cached.stale:
                prices[s] = cached.data
                continue

            price = await self._birdeye(s, ctx)
            if price is None:
                price = await self._coingecko(s, ctx)
            if price is None:
                price = await self._coinmarketcap(s, ctx)

            if price is not None:
                cache.set(f"price:{s}", price, PRICE_TTL)
            elif cached is not None:
                logger.info("Using stale cached price for %s", s)
                price = cached.data
                stale = True
            else:
                logger.warning("Failed to fetch price for %s from all sources", s)
            prices[s] = price

        return {"data": prices, "stale": stale}

    async def _birdeye(self, s: str, ctx: ExecutionContext) -> Optional[float]:
        key = ctx.key("BIRDEYE_API_KEY")
        address = SOLANA_ADDRESSES.get(s)
        if not key or not address:
            return None
        try:
            resp = await fetch_with_retry(
                BIRDEYE_PRICE_URL, params={"address": address}, headers={"X-API-KEY": key}, **ctx.http_options,
            )
            if resp.status_code != 200:
                logger.info("Birdeye returned %s for %s", resp.status_code, s)
                return None
            value = ((resp.json() or {}).get("data") or {}).get("value")
            return float(value) if value else None
        except (httpx.HTTPError, ValueError, TypeError) as e:
            logger.info("Birdeye price failed for %s: %s", s, e)
            return None

    async def _coingecko(self, s: str, ctx: ExecutionContext) -> Optional[float]:
        key = ctx.key("COINGECKO_API_KEY")
        if not key:
            return None
        try:
            cg_id = COINGECKO_IDS.get(s)
            if not cg_id:
                resolved = cache.get(resolver_cache_key(s))
                asset = resolved.data if resolved else await self.resolver.run({"symbol": s}, ctx)
                cg_id = asset.get("cgId")
            if not cg_id:
                return None
            resp = await fetch_with_retry(
                COINGECKO_PRICE_URL,
                params={"ids": cg_id, "vs_currencies": "usd", "x_cg_demo_api_key": key},
                **ctx.http_options,
            )
            if resp.status_code != 200:
                logger.info("CoinGecko returned %s for %s", resp.status_code, s)
                return None
            usd = (resp.json().get(cg_id) or {}).get("usd")
            return float(usd) if usd is not None else None
        except (httpx.HTTPError, ValueError, TypeError) as e:
            logger.info("CoinGecko price failed for %s: %s", s, e)
            return None

    async def _coinmarketcap(self, s: str, ctx: ExecutionContext) -> Optional[float]:
        key = ctx.key("COINMARKETCAP_API_KEY")
        if not key:
            return None
        try:
            resolved = cache.get(resolver_cache_key(s))
            asset = resolved.data if resolved else await self.resolver.run({"symbol": s}, ctx)
            cmc_id = asset.get("cmcId")
            if not cmc_id:
                return None
            resp = await fetch_with_retry(
                CMC_QUOTES_URL, params={"id": cmc_id}, headers={"X-CMC_PRO_API_KEY": key}, **ctx.http_options,
            )
            if resp.status_code != 200:
                logger.info("CoinMarketCap returned %s for %s", resp.status_code, s)
                return None
            quote = (((resp.json().get("data") or {}).get(cmc_id) or {}).get("quote") or {}).get("USD") or {}
            price = quote.get("price")
            return float(price) if isinstance(price, (int, float)) else None
        except (httpx.HTTPError, ValueError, TypeError) as e:
            logger.info("CMC price failed for %s: %s", s, e)
            return None
