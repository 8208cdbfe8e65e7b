# agent/tools/series.py
"""Price-series helpers shared by the analysis tools (numpy based)."""
from typing import Dict, List

import numpy as np

TRADING_DAYS = 252


def unwrap_data(history) -> Dict[str, dict]:
    """Accept either a tool result {"data": {...}} (history, prices) or its bare data map."""
    if isinstance(history, dict) and isinstance(history.get("data"), dict):
        return history["data"]
    return history or {}


def align_prices(history: Dict[str, dict]) -> Dict[str, np.ndarray]:
    """Trim every series to the length of the shortest one (keeping the most recent points)."""
    if not history:
        return {}
    min_len = min(len((h or {}).get("p") or []) for h in history.values())
    aligned = {}
    for sym, h in history.items():
        p = (h or {}).get("p") or []
        aligned[sym] = np.asarray(p[len(p) - min_len:] if min_len else [], dtype=float)
    return aligned


def align_history(history: Dict[str, dict]) -> Dict[str, dict]:
    if not history:
        return {}
    min_len = min(len((h or {}).get("p") or []) for h in history.values())
    out = {}
    for sym, h in history.items():
        t = (h or {}).get("t") or []
        p = (h or {}).get("p") or []
        out[sym] = {
            "t": list(t[len(t) - min_len:]) if min_len else [],
            "p": list(p[len(p) - min_len:]) if min_len else [],
        }
    return out


def simple_returns(prices: np.ndarray) -> np.ndarray:
    if len(prices) < 2:
        return np.asarray([], dtype=float)
    return np.diff(prices) / prices[:-1]


def population_std(x: np.ndarray) -> float:
    return float(np.std(x)) if len(x) else 0.0


def covariance(x: np.ndarray, y: np.ndarray) -> float:
    n = min(len(x), len(y))
    if n == 0:
        return 0.0
    x, y = x[:n], y[:n]
    return float(np.mean((x - x.mean()) * (y - y.mean())))


def moving_average(prices: List[float], period: int) -> float:
    if len(prices) < period:
        return float(prices[-1])
    return float(np.mean(prices[-period:]))
