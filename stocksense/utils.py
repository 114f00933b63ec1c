# stocksense/utils.py
from datetime import date, timedelta
from typing import List, Sequence

import numpy as np


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def return_volatility(prices: Sequence[float]) -> float:
    """
    Population standard deviation of simple period-over-period returns.
    Fewer than 2 prices -> 0.
    """
    prices = np.asarray(prices, dtype=float)
    if len(prices) < 2:
        return 0.0
    returns = np.diff(prices) / prices[:-1]
    return float(np.std(returns))


def next_trading_day(last: date) -> date:
    # weekends only; exchange holidays are not modelled
    day = last + timedelta(days=1)
    while day.weekday() >= 5:
        day += timedelta(days=1)
    return day


def trailing_mean_overlay(prices: Sequence[float], window: int = 5) -> List[float]:
    """Historical overlay used when no model could be fitted: prices[i] for the
    first ``window`` points, then the mean of the previous ``window`` prices."""
    prices = np.asarray(prices, dtype=float)
    out = []
    for i in range(len(prices)):
        if i < window:
            out.append(float(prices[i]))
        else:
            out.append(float(np.mean(prices[i - window:i])))
    return out
