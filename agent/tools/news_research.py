"""
News research tool.

Input:  {"symbols": ["BTC"], "lookbackDays": 7}
Output: {"items": [{"title", "url", "symbols", "sentiment", "summary", "source", "timestamp"}],
         "sentiment": {"BTC": 0.55}}

Sources, per symbol, first one that yields items wins:
1. Serper news search + Jina reader extraction (needs SERPER_API_KEY and JINA_API_KEY)
2. Serper news search snippets (SERPER_API_KEY)
3. Tavily search (TAVILY_API_KEY)

Sentiment is a keyword score in [0, 1]; 0.5 is neutral and the default for
symbols without news.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from agent.tools.base import BaseTool, ExecutionContext
from core.http import fetch_with_retry

logger = logging.getLogger(__name__)

SERPER_URL = "https://google.serper.dev/search"
TAVILY_URL = "https://api.tavily.com/search"
JINA_READER_URL = "https://r.jina.ai/"

POSITIVE_WORDS = (
    "surge", "rally", "bullish", "gain", "rise", "up", "growth", "strong",
    "positive", "breakthrough", "success", "adoption", "upgrade",
)
NEGATIVE_WORDS = (
    "crash", "drop", "bearish", "fall", "down", "decline", "weak",
    "negative", "concern", "risk", "warning", "hack", "scam",
)


def keyword_sentiment(text: str) -> float:
    lower = text.lower()
    score = 0.5
    score += 0.05 * sum(1 for w in POSITIVE_WORDS if w in lower)
    score -= 0.05 * sum(1 for w in NEGATIVE_WORDS if w in lower)
    return max(0.0, min(1.0, round(score, 4)))


def relative_time(date_str: Optional[str], now: Optional[datetime] = None) -> str:
    if not date_str:
        return "Recently"
    try:
        when = datetime.fromisoformat(date_str.replace("Z", "+00:00"))
    except ValueError:
        # Serper often returns "3 hours ago" style strings already
        return date_str
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    hours = int((now - when).total_seconds() // 3600)
    if hours < 1:
        return "Just now"
    if hours < 24:
        return f"{hours} hours ago"
    days = hours // 24
    if days < 7:
        return f"{days} days ago"
    return when.date().isoformat()


class NewsResearchTool(BaseTool):
    name = "news_research"

    async def run(self, input: Dict[str, Any], ctx: ExecutionContext) -> Dict[str, Any]:
        symbols = self.symbols(input)
        serper_key = ctx.key("SERPER_API_KEY")
        tavily_key = ctx.key("TAVILY_API_KEY")
        jina_key = ctx.key("JINA_API_KEY")

        if not serper_key and not tavily_key:
            logger.warning("No news API keys configured (SERPER_API_KEY or TAVILY_API_KEY required)")
            return {"items": [], "sentiment": {}}

        items: List[Dict[str, Any]] = []
        sentiment: Dict[str, float] = {}

        for symbol in symbols:
            found: List[Dict[str, Any]] = []
            if serper_key and jina_key:
                found = await self._serper(symbol, serper_key, ctx, jina_key=jina_key, num=10, limit=5)
            if not found and serper_key:
                found = await self._serper(symbol, serper_key, ctx, num=3, limit=3)
            if not found and tavily_key:
                found = await self._tavily(symbol, tavily_key, ctx)

            items.extend(found)
            sentiment[symbol] = (
                sum(i["sentiment"] for i in found) / len(found) if found else 0.5
            )

        return {"items": items, "sentiment": sentiment}

    async def _serper(self, symbol: str, api_key: str, ctx: ExecutionContext, num: int, limit: int, jina_key: str = "") -> List[Dict[str, Any]]:
        query = f"{symbol} cryptocurrency news latest analysis" if jina_key else f"{symbol} cryptocurrency news latest"
        try:
            resp = await fetch_with_retry(
                SERPER_URL,
                method="POST",
                headers={"X-API-KEY": api_key, "Content-Type": "application/json"},
                json={"q": query, "num": num, "tbm": "nws"},
                **ctx.http_options,
            )
            news = resp.json().get("news") if resp.status_code == 200 else None
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Serper search failed for %s: %s", symbol, e)
            return []
        if not isinstance(news, list):
            return []

        out = []
        for article in news[:limit]:
            content = article.get("snippet") or ""
            if jina_key and article.get("link"):
                content = await self._extract(article["link"], jina_key, ctx) or content
            title = article.get("title") or ""
            out.append({
                "title": title,
                "url": article.get("link"),
                "symbols": [symbol],
                "sentiment": keyword_sentiment(f"{title} {content}"),
                "summary": content[:200],
                "source": article.get("source") or "News",
                "timestamp": relative_time(article.get("date")),
            })
        logger.info("Fetched %d news items for %s via Serper%s", len(out), symbol, "+Jina" if jina_key else "")
        return out

    async def _extract(self, url: str, jina_key: str, ctx: ExecutionContext) -> Optional[str]:
        try:
            resp = await fetch_with_retry(
                f"{JINA_READER_URL}{url}",
                headers={"Authorization": f"Bearer {jina_key}", "X-Return-Format": "text"},
                **ctx.http_options,
            )
            if resp.status_code == 200:
                return resp.text[:500]
        except httpx.HTTPError as e:
            logger.error("Jina extraction failed for %s: %s", url, e)
        return None

    async def _tavily(self, symbol: str, api_key: str, ctx: ExecutionContext) -> List[Dict[str, Any]]:
        try:
            resp = await fetch_with_retry(
                TAVILY_URL,
                method="POST",
                headers={"Content-Type": "application/json"},
                json={"api_key": api_key, "query": f"{symbol} cryptocurrency news", "search_depth": "basic", "max_results": 3},
                **ctx.http_options,
            )
            results = resp.json().get("results") if resp.status_code == 200 else None
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Tavily search failed for %s: %s", symbol, e)
            return []
        if not isinstance(results, list):
            return []
        return [
            {
                "title": r.get("title") or "",
                "url": r.get("url"),
                "symbols": [symbol],
                "sentiment": keyword_sentiment(f"{r.get('title') or ''} {r.get('content') or ''}"),
                "summary": r.get("content") or "",
                "source": "Tavily",
                "timestamp": "Recently",
            }
            for r in results
        ]
