"""
Opportunity scanner.

Scores each symbol from 50 and adds:
  +20 strong 12/2 momentum (> 15%)
  +15 price > MA20 > MA50
  +15 extreme news sentiment (> 0.7 or < 0.3)
Symbols scoring >= 70 with at least one reason are returned, best first, top 5.
Symbols with fewer than 30 price points are skipped.
"""
from typing import Any, Dict, List

import numpy as np

from agent.tools.base import BaseTool, ExecutionContext
from agent.tools.series import moving_average, unwrap_data

MIN_POINTS = 30
MAX_RESULTS = 5


def window_momentum(prices: List[float], long: int = 12, short: int = 2) -> float:
    """Mean of the last `short` prices vs mean of the `short` prices starting `long` back."""
    if len(prices) < long:
        return 0.0
    recent = float(np.mean(prices[-short:]))
    older = float(np.mean(prices[-long:-long + short]))
    return (recent - older) / older if older else 0.0


class OpportunityScannerTool(BaseTool):
    name = "opportunity_scanner"

    async def run(self, input: Dict[str, Any], ctx: ExecutionContext) -> Dict[str, Any]:
        symbols = self.symbols(input)
        history = unwrap_data(input.get("history"))
        news = input.get("news") or {}
        news_sentiment = news.get("sentiment") or {}

        opportunities = []
        for symbol in symbols:
            prices = (history.get(symbol) or {}).get("p") or []
            if len(prices) < MIN_POINTS:
                continue

            momentum = window_momentum(prices)
            ma20 = moving_average(prices, 20)
            ma50 = moving_average(prices, 50)
            ma_cross = prices[-1] > ma20 > ma50
            strong_momentum = momentum > 0.15
            sentiment = news_sentiment.get(symbol) or 0.5

            score = 50
            reasons = []
            if strong_momentum:
                score += 20
                reasons.append(f"Strong momentum ({momentum * 100:.1f}%)")
            if ma_cross:
                score += 15
                reasons.append("MA crossover signal")
            if sentiment > 0.7 or sentiment < 0.3:
                score += 15
                reasons.append("Positive sentiment spike" if sentiment > 0.7 else "Oversold sentiment")

            if score >= 70 and reasons:
                opportunities.append({
                    "symbol": symbol,
                    "name": symbol,
                    "score": min(100, score),
                    "reasons": reasons,
                    "momentum": f"{'+' if momentum > 0 else ''}{momentum * 100:.1f}%",
                    "sentiment": sentiment,
                })

        opportunities.sort(key=lambda o: o["score"], reverse=True)
        return {"opportunities": opportunities[:MAX_RESULTS]}
