from typing import Any, Dict, List

from agent.tools.base import BaseTool, ExecutionContext
from agent.tools.series import unwrap_data


def _clamp(x: float, lo: float = 0.0, hi: float = 100.0) -> float:
    return max(lo, min(hi, x))


def momentum_12_2(prices: List[float]) -> int:
    """12-2 momentum mapped onto 0..100 (50 = flat / not enough data)."""
    if len(prices) < 12:
        return 50
    now = prices[-1]
    m12 = prices[-12]
    m2 = prices[-2]
    if m12 == 0 or m2 == 0:
        return 50
    mom = now / m12 - now / m2
    return int(_clamp(round(50 + 400 * mom)))


class HealthScoresTool(BaseTool):
    """Blend risk metrics and P&L into health / diversification / momentum scores (0..100)."""

    name = "health_scores"

    async def run(self, input: Dict[str, Any], ctx: ExecutionContext) -> Dict[str, int]:
        risk = self.require(input, "risk")
        weights = input.get("weights") or {}
        pnl_pct = float(input.get("pnlPct") or 0)
        history = unwrap_data(input.get("history"))

        vol_pct = risk.get("volPct") or 0
        sharpe_score = _clamp(risk.get("sharpe", 0) / 2 * 100)
        pnl_score = _clamp(50 + pnl_pct)
        dd_score = _clamp(100 + risk.get("maxDDPct", 0))
        vol_score = _clamp(100 - vol_pct)

        health = round(sharpe_score * 0.4 + pnl_score * 0.25 + dd_score * 0.2 + vol_score * 0.15)

        hhi = sum(float(w) ** 2 for w in weights.values())
        diversification = round((1 - hhi) * 100)

        momentum = 50
        if history:
            first = next(iter(history.values())) or {}
            momentum = momentum_12_2(first.get("p") or [])

        return {"health": int(health), "diversification": int(diversification), "momentum": momentum}
