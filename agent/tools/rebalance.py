"""
Rebalance advisor.

Input:
    holdings:    {"BTC": 0.5, "ETH": 4, ...}   (amounts)
    prices:      prices tool result or {"BTC": 65000.0, ...}
    history:     history tool result or data map
    constraints: {"minTradeUSD": 100, "maxTurnoverPct": 30, ...}
Output: {"targetWeights": {...}, "actions": [{"symbol", "side", "valueUSD"}], "notes": [...]}

Target weights are inverse-variance (naive risk parity); equal weights when
there are fewer than two return observations.
"""
from typing import Any, Dict, List

import numpy as np

from agent.tools.base import BaseTool, ExecutionContext
from agent.tools.series import align_prices, simple_returns, unwrap_data

MIN_ASSETS = 3
DRIFT_THRESHOLD = 0.02


def risk_parity_weights(symbols: List[str], history: Dict[str, dict]) -> Dict[str, float]:
    aligned = align_prices({s: history.get(s) or {} for s in symbols})
    rets = {s: simple_returns(aligned.get(s, np.asarray([]))) for s in symbols}
    n = min((len(r) for r in rets.values()), default=0)
    if n < 2:
        equal = 1 / len(symbols)
        return {s: equal for s in symbols}

    inv_var = []
    for s in symbols:
        r = rets[s][:n]
        var = float(np.mean((r - r.mean()) ** 2))
        inv_var.append(1 / max(var, 1e-9))
    total = sum(inv_var)
    return {s: iv / total for s, iv in zip(symbols, inv_var)}


class RebalanceTool(BaseTool):
    name = "rebalance"

    async def run(self, input: Dict[str, Any], ctx: ExecutionContext) -> Dict[str, Any]:
        holdings = {k.upper(): float(v) for k, v in (self.require(input, "holdings") or {}).items()}
        prices = unwrap_data(input.get("prices"))
        history = unwrap_data(input.get("history"))
        constraints = input.get("constraints") or {}

        symbols = list(holdings)
        if len(symbols) < MIN_ASSETS:
            return {
                "targetWeights": {},
                "actions": [],
                "notes": [f"Insufficient assets for rebalancing (minimum {MIN_ASSETS} required)"],
            }

        target = risk_parity_weights(symbols, history)
        current_value = sum(amount * float(prices.get(s) or 0) for s, amount in holdings.items())

        actions: List[Dict[str, Any]] = []
        notes: List[str] = []
        min_trade = constraints.get("minTradeUSD") or 100

        for s in symbols:
            price = prices.get(s)
            if not price:
                notes.append(f"Ignored {s} - no price available")
                continue
            if current_value <= 0:
                continue
            current_w = holdings[s] * float(price) / current_value
            diff = target.get(s, 0) - current_w
            value_usd = abs(diff * current_value)
            if abs(diff) > DRIFT_THRESHOLD and value_usd > min_trade:
                actions.append({"symbol": s, "side": "buy" if diff > 0 else "sell", "valueUSD": round(value_usd)})

        max_turnover = constraints.get("maxTurnoverPct")
        if current_value > 0 and max_turnover:
            turnover_pct = sum(a["valueUSD"] for a in actions) / current_value * 100
            if turnover_pct > max_turnover:
                scale = max_turnover / turnover_pct
                for a in actions:
                    a["valueUSD"] = round(a["valueUSD"] * scale)
                notes.append(f"Scaled by turnover cap ({max_turnover}%)")

        notes.append("Risk-parity optimized")
        return {"targetWeights": target, "actions": actions, "notes": notes}
