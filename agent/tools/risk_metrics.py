"""
Portfolio risk metrics.

Input:  {"history": <history result or data map>, "weights": {"BTC": 0.6, ...},
         "benchmark": "BTC", "windowDays": 90}
Output: {"windowDays", "volPct", "sharpe", "sortino", "maxDDPct", "betaBTC",
         "var95Pct", "cvar95Pct", "corr"}

Daily simple returns, annualised with 252 trading days. Percentages are
rounded to 2 decimals.
"""
import math
from typing import Any, Dict

import numpy as np

from agent.tools.base import BaseTool, ExecutionContext
from agent.tools.series import (
    TRADING_DAYS,
    align_prices,
    covariance,
    population_std,
    simple_returns,
    unwrap_data,
)


def _empty_metrics(window_days: int) -> Dict[str, Any]:
    return {
        "windowDays": window_days,
        "volPct": None,
        "sharpe": 0,
        "sortino": 0,
        "maxDDPct": 0,
        "betaBTC": 1,
        "var95Pct": 0,
        "cvar95Pct": 0,
        "corr": {},
    }


def sortino(returns: np.ndarray) -> float:
    downside = returns[returns < 0]
    if len(downside) == 0:
        return 0.0
    downside_dev = math.sqrt(float(np.mean(downside ** 2)) * TRADING_DAYS)
    return float(returns.mean() * TRADING_DAYS / downside_dev) if downside_dev > 0 else 0.0


def max_drawdown(returns: np.ndarray) -> float:
    """Most negative peak-to-trough move of the cumulative return path (<= 0)."""
    cumulative = np.cumprod(1.0 + returns)
    peaks = np.maximum.accumulate(np.concatenate(([1.0], cumulative)))[1:]
    drawdowns = (cumulative - peaks) / peaks
    return float(min(drawdowns.min(), 0.0)) if len(drawdowns) else 0.0


def value_at_risk(returns: np.ndarray, confidence: float) -> float:
    ordered = np.sort(returns)
    idx = int(math.floor((1 - confidence) * len(ordered)))
    return float(ordered[idx]) if idx < len(ordered) else 0.0


def conditional_var(returns: np.ndarray, confidence: float) -> float:
    ordered = np.sort(returns)
    idx = int(math.floor((1 - confidence) * len(ordered)))
    tail = ordered[:idx]
    return float(tail.mean()) if len(tail) else 0.0


def correlation_matrix(returns: Dict[str, np.ndarray]) -> Dict[str, Dict[str, float]]:
    corr: Dict[str, Dict[str, float]] = {}
    for a, ra in returns.items():
        corr[a] = {}
        for b, rb in returns.items():
            if a == b:
                corr[a][b] = 1.0
                continue
            sa, sb = population_std(ra), population_std(rb)
            corr[a][b] = covariance(ra, rb) / (sa * sb) if sa > 0 and sb > 0 else 0.0
    return corr


class RiskMetricsTool(BaseTool):
    name = "risk_metrics"

    async def run(self, input: Dict[str, Any], ctx: ExecutionContext) -> Dict[str, Any]:
        history = unwrap_data(input.get("history"))
        weights = input.get("weights") or {}
        benchmark = input.get("benchmark") or "BTC"
        window_days = int(input.get("windowDays") or 90)

        aligned = align_prices(history)
        asset_returns = {sym: simple_returns(p) for sym, p in aligned.items()}
        if not asset_returns:
            return _empty_metrics(window_days)

        length = len(next(iter(asset_returns.values())))
        portfolio = np.zeros(length)
        for sym, rets in asset_returns.items():
            portfolio += float(weights.get(sym) or 0) * rets
        if length == 0:
            return _empty_metrics(window_days)

        std = population_std(portfolio)
        volatility = std * math.sqrt(TRADING_DAYS)
        sharpe = float(portfolio.mean()) / (std or 1e-9) * math.sqrt(TRADING_DAYS)

        bench = asset_returns.get(benchmark)
        if bench is not None and len(bench):
            beta = covariance(portfolio, bench) / (float(np.var(bench)) or 1e-9)
        else:
            beta = 1.0

        return {
            "windowDays": window_days,
            "volPct": round(volatility * 100, 2),
            "sharpe": round(sharpe, 2),
            "sortino": round(sortino(portfolio), 2),
            "maxDDPct": round(max_drawdown(portfolio) * 100, 2),
            "betaBTC": round(beta, 2),
            "var95Pct": round(value_at_risk(portfolio, 0.95) * 100, 2),
            "cvar95Pct": round(conditional_var(portfolio, 0.95) * 100, 2),
            "corr": correlation_matrix(asset_returns),
        }
