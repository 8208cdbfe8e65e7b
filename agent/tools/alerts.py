"""
Policy alerts.

Compares current weights and risk metrics against a RiskPolicy and returns a
list of {"level", "code", "message"} dicts:
- HIGH_CONCENTRATION: largest weight above policy.maxWeight
- LOW_STABLE: USDT+USDC+DAI weight below policy.minStablePct
- HIGH_VOL: annualised volatility above policy.maxVolPct
- HIGH_DRAWDOWN: |max drawdown| above policy.maxDrawdownDayPct
"""
from typing import Any, Dict, List

from agent.tools.base import BaseTool, ExecutionContext
from models.portfolio import RiskPolicy

STABLECOINS = ("USDT", "USDC", "DAI")


class AlertsTool(BaseTool):
    name = "alerts"

    async def run(self, input: Dict[str, Any], ctx: ExecutionContext) -> List[Dict[str, str]]:
        risk = input.get("risk") or {}
        policy = RiskPolicy.model_validate(input.get("policy") or {})
        holdings = input.get("holdings")

        if holdings:
            weights = {h["symbol"]: float(h["value"]) for h in holdings}
        else:
            weights = {k: float(v) for k, v in (input.get("weights") or {}).items()}

        alerts: List[Dict[str, str]] = []

        if weights:
            symbol, max_w = max(weights.items(), key=lambda kv: kv[1])
            if max_w > policy.maxWeight:
                alerts.append({
                    "level": "high",
                    "code": "HIGH_CONCENTRATION",
                    "message": f"{symbol} allocation {max_w * 100:.1f}% exceeds {policy.maxWeight * 100:.0f}% threshold",
                })

        stable = sum(weights.get(s, 0.0) for s in STABLECOINS)
        if stable < policy.minStablePct:
            alerts.append({
                "level": "medium",
                "code": "LOW_STABLE",
                "message": f"Stablecoin {stable * 100:.1f}% below {policy.minStablePct * 100:.0f}% minimum",
            })

        vol = risk.get("volPct")
        if vol is not None and vol > policy.maxVolPct:
            alerts.append({
                "level": "medium",
                "code": "HIGH_VOL",
                "message": f"Volatility {vol:.1f}% exceeds {policy.maxVolPct:g}% limit",
            })

        max_dd = risk.get("maxDDPct") or 0
        if abs(max_dd) > policy.maxDrawdownDayPct:
            alerts.append({
                "level": "high",
                "code": "HIGH_DRAWDOWN",
                "message": f"Max drawdown {max_dd:.1f}% exceeds {policy.maxDrawdownDayPct:g}% limit",
            })

        return alerts
