# agent/planner_agent.py
"""
Built-in plans for the dashboard's agent routes.

Plans reference blackboard seeds ($symbols, $weights, $policy, $holdings,
$constraints) that build_blackboard() derives from the submitted portfolio.
"""
from typing import Any, Dict, List, Optional

from models.plan import Plan
from models.portfolio import Holding, RiskPolicy, load_policy, normalize_holdings, portfolio_weights

PLAN_ANALYZE_PORTFOLIO = Plan.model_validate({
    "goal": "Analyze Portfolio",
    "steps": [
        {"name": "fetch_history", "tool": "history", "input": {"symbols": "$symbols", "windowDays": 90}},
        {"name": "compute_risk", "tool": "risk_metrics", "input": {"history": "$fetch_history", "weights": "$weights"}},
        {
            "name": "compute_health",
            "tool": "health_scores",
            "input": {"risk": "$compute_risk", "pnlPct": 12.5, "weights": "$weights", "history": "$fetch_history"},
        },
        {"name": "check_alerts", "tool": "alerts", "input": {"risk": "$compute_risk", "policy": "$policy", "weights": "$weights"}},
    ],
})

# Data phase only: the rebalance tool runs afterwards on the assets that pass the
# minimum data check.
PLAN_REBALANCE_ADVISOR = Plan.model_validate({
    "goal": "Rebalance Advisor",
    "steps": [
        {"name": "fetch_prices", "tool": "prices", "input": {"symbols": "$symbols"}},
        {"name": "fetch_history", "tool": "history", "input": {"symbols": "$symbols", "windowDays": 90}},
        {"name": "compute_risk", "tool": "risk_metrics", "input": {"history": "$fetch_history", "weights": "$weights"}},
        {"name": "check_alerts", "tool": "alerts", "input": {"risk": "$compute_risk", "policy": "$policy", "weights": "$weights"}},
    ],
})

PLAN_FIND_OPPORTUNITIES = Plan.model_validate({
    "goal": "Find Opportunities",
    "steps": [
        {"name": "fetch_history", "tool": "history", "input": {"symbols": "$symbols", "windowDays": 90}},
        {"name": "fetch_news", "tool": "news_research", "input": {"symbols": "$symbols", "lookbackDays": 7}},
        {
            "name": "scan_opportunities",
            "tool": "opportunity_scanner",
            "input": {"symbols": "$symbols", "history": "$fetch_history", "news": "$fetch_news"},
        },
    ],
})

DEFAULT_CONSTRAINTS = {"minTradeUSD": 100, "maxTurnoverPct": 30, "feeBps": 10, "maxWeight": 0.35}


def build_blackboard(
    holdings: List[Holding],
    policy: Optional[RiskPolicy] = None,
    constraints: Optional[Dict[str, Any]] = None,
    user_id: str = "default",
) -> Dict[str, Any]:
    """Seed values for the built-in plans, derived from a submitted portfolio."""
    amounts = normalize_holdings(holdings)
    policy = policy or load_policy(user_id)
    return {
        "symbols": list(amounts),
        "holdings": amounts,
        "weights": portfolio_weights(amounts),
        "policy": policy.model_dump(),
        "constraints": constraints or dict(DEFAULT_CONSTRAINTS),
    }
