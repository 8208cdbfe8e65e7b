"""
Portfolio input models, risk policy and holding normalization.
"""
import math
from typing import Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field

from core.errors import ValidationError


class RiskPolicy(BaseModel):
    maxWeight: float = 0.35          # max single-asset weight
    minStablePct: float = 0.15       # min stablecoin allocation
    maxVolPct: float = 60            # max annualised volatility (%)
    maxDrawdownDayPct: float = 12    # max drawdown threshold (%)
    blacklist: List[str] = Field(default_factory=list)


DEFAULT_POLICY = RiskPolicy()


def load_policy(user_id: Optional[str] = None) -> RiskPolicy:
    """Per-user policies are not stored; everyone gets a copy of the default."""
    return DEFAULT_POLICY.model_copy(deep=True)


class Holding(BaseModel):
    symbol: str = Field(..., min_length=1)
    amount: Union[float, str] = 0
    chain: Optional[str] = None
    address: Optional[str] = None


def normalize_qty(x: Union[str, float, int]) -> float:
    """Parse a quantity; accepts "1,5" style decimals. Negative / NaN / inf are rejected."""
    if isinstance(x, bool):
        raise ValidationError(f"INVALID_QTY: {x}")
    if isinstance(x, (int, float)):
        value = float(x)
    else:
        cleaned = "".join(str(x).split()).replace(",", ".", 1)
        try:
            value = float(cleaned)
        except ValueError:
            raise ValidationError(f"INVALID_QTY: {x}")
    if not math.isfinite(value) or value < 0:
        raise ValidationError(f"INVALID_QTY: {x}")
    return value


def normalize_holdings(holdings: Union[Dict[str, object], List[Holding]]) -> Dict[str, float]:
    """{symbol: amount} with upper-cased symbols. Accepts a mapping or a list of Holding."""
    if isinstance(holdings, dict):
        items = list(holdings.items())
    else:
        items = [(h.symbol, h.amount) for h in holdings]

    normalized: Dict[str, float] = {}
    for symbol, amount in items:
        try:
            normalized[str(symbol).strip().upper()] = normalize_qty(amount)
        except ValidationError as e:
            raise ValidationError(f"Invalid amount for {symbol}: {e}")
    return normalized


def portfolio_weights(holdings: Dict[str, float]) -> Dict[str, float]:
    """Amount-proportional weights; equal weights when every amount is zero."""
    total = sum(holdings.values())
    if total > 0:
        return {s: a / total for s, a in holdings.items()}
    return {s: 1 / len(holdings) for s in holdings} if holdings else {}


def validate_minimum_assets(
    symbols: List[str],
    prices: Dict[str, Optional[float]],
    history: Dict[str, dict],
    min_assets: int = 3,
    min_history_points: int = 60,
) -> Tuple[List[str], List[str]]:
    """Return (eligible symbols, notes about the ones that were dropped)."""
    eligible: List[str] = []
    notes: List[str] = []
    for s in symbols:
        if prices.get(s) is None:
            notes.append(f"Ignored {s} - no price available")
            continue
        points = len((history.get(s) or {}).get("p") or [])
        if points < min_history_points:
            notes.append(f"Ignored {s} - insufficient history ({points} < {min_history_points} points)")
            continue
        eligible.append(s)
    if len(eligible) < min_assets:
        notes.append(f"WARNING: Only {len(eligible)} eligible assets (minimum {min_assets} recommended)")
    return eligible, notes
