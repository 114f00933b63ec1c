# stocksense/features.py
"""Engineered inputs for the neural regressor.

Each time step becomes a 9-wide vector built only from prices up to and
including that step:

    0  x_norm               normalized time index
    1  x_norm ** 2          quadratic trend
    2  sin(2*pi*x_norm)     seasonal pattern
    3  cos(2*pi*x_norm)     seasonal pattern
    4  sin(4*pi*x_norm)     higher-frequency pattern
    5  3-point moving average (price-normalized)
    6  5-point moving average (price-normalized)
    7  momentum p[i] - p[i-1] (scaled by the price range)
    8  trailing volatility over 5 points (scaled by the price range), 0 for i < 5

Near the start of the series the moving averages use whatever prefix is
available (mean of p[0..i]) instead of a full window.
"""
import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

FEATURE_COUNT = 9
FEATURE_NAMES = (
    'x_norm', 'x_norm_sq', 'sin_2pi', 'cos_2pi', 'sin_4pi',
    'ma3', 'ma5', 'momentum', 'volatility',
)

SHORT_WINDOW = 3
LONG_WINDOW = 5


@dataclass(frozen=True)
class NormalizationParams:
    x_min: float
    x_max: float
    y_min: float
    y_max: float

    @classmethod
    def from_series(cls, xs: Sequence[float], prices: Sequence[float]) -> 'NormalizationParams':
        xs = np.asarray(xs, dtype=float)
        prices = np.asarray(prices, dtype=float)
        return cls(float(xs.min()), float(xs.max()), float(prices.min()), float(prices.max()))

    @property
    def y_range(self) -> float:
        return self.y_max - self.y_min

    def scale_x(self, x: float) -> float:
        span = self.x_max - self.x_min
        if span == 0:
            return 0.0
        return (x - self.x_min) / span

    def scale_level(self, value: float) -> float:
        if self.y_range == 0:
            return 0.0
        return (value - self.y_min) / self.y_range

    def scale_delta(self, value: float) -> float:
        if self.y_range == 0:
            return 0.0
        return value / self.y_range

    def denormalize(self, value: float) -> float:
        return value * self.y_range + self.y_min

    @property
    def lower_bound(self) -> float:
        return 0.8 * self.y_min

    @property
    def upper_bound(self) -> float:
        return 1.2 * self.y_max

    def bound(self, value: float) -> float:
        return max(self.lower_bound, min(self.upper_bound, value))


def feature_vector(x: float, prices: np.ndarray, index: int, params: NormalizationParams) -> np.ndarray:
    x_norm = params.scale_x(x)

    short = prices[max(0, index - SHORT_WINDOW + 1):index + 1]
    long = prices[max(0, index - LONG_WINDOW + 1):index + 1]
    ma3 = float(np.mean(short))
    ma5 = float(np.mean(long))

    momentum = float(prices[index] - prices[index - 1]) if index > 0 else 0.0
    if index >= LONG_WINDOW:
        volatility = math.sqrt(float(np.mean((long - ma5) ** 2)))
    else:
        volatility = 0.0

    return np.array([
        x_norm,
        x_norm * x_norm,
        math.sin(2 * math.pi * x_norm),
        math.cos(2 * math.pi * x_norm),
        math.sin(4 * math.pi * x_norm),
        params.scale_level(ma3),
        params.scale_level(ma5),
        params.scale_delta(momentum),
        params.scale_delta(volatility),
    ], dtype=float)


def feature_matrix(xs: Sequence[float], prices: Sequence[float], params: NormalizationParams) -> np.ndarray:
    """One row per index of ``xs``; row i reads ``prices[:i + 1]``."""
    prices = np.asarray(prices, dtype=float)
    if len(xs) == 0:
        return np.empty((0, FEATURE_COUNT), dtype=float)
    return np.vstack([feature_vector(x, prices, i, params) for i, x in enumerate(xs)])
