# stocksense/fallback.py
"""Closed-form statistical forecast.

Always computed first; it is both the baseline result and the answer returned
whenever the neural path cannot produce one.
"""
import logging
from dataclasses import dataclass

import numpy as np
from sklearn.linear_model import LinearRegression

from .config import MIN_HISTORY
from .errors import InsufficientDataError
from .models import PredictionResult, Series
from .utils import clamp, return_volatility

logger = logging.getLogger(__name__)

SHORT_MA_WINDOW = 5
LONG_MA_WINDOW = 20
REGRESSION_WINDOW = 10

MIN_CONFIDENCE = 45.0
MAX_CONFIDENCE = 90.0


@dataclass(frozen=True)
class FallbackForecast:
    result: PredictionResult
    slope: float
    intercept: float
    short_ma: float
    long_ma: float
    volatility: float


def fallback_confidence(slope, short_ma, long_ma, current_price, volatility):
    trend_strength = abs(slope)
    ma_consistency = abs(short_ma - long_ma) / current_price
    base = min(MAX_CONFIDENCE, trend_strength * 1000 + ma_consistency * 100)
    volatility_penalty = min(30.0, volatility * 500)
    return clamp(base - volatility_penalty, MIN_CONFIDENCE, MAX_CONFIDENCE)


def fast_predict(series: Series) -> FallbackForecast:
    if len(series) < MIN_HISTORY:
        raise InsufficientDataError(
            f'Insufficient data for prediction: need at least {MIN_HISTORY} points, got {len(series)}'
        )

    prices = series.prices
    current_price = float(prices[-1])

    short_ma = float(np.mean(prices[-SHORT_MA_WINDOW:]))
    # shorter histories average what they have
    long_ma = float(np.mean(prices[-LONG_MA_WINDOW:]))

    recent = prices[-REGRESSION_WINDOW:]
    x = np.arange(len(recent), dtype=float).reshape(-1, 1)
    reg = LinearRegression().fit(x, recent)
    slope = float(reg.coef_[0])
    intercept = float(reg.intercept_)
    next_price = slope * len(recent) + intercept

    volatility = return_volatility(prices)
    confidence = fallback_confidence(slope, short_ma, long_ma, current_price, volatility)

    logger.debug('Fallback forecast: slope=%.4f next=%.2f volatility=%.5f confidence=%.1f',
                 slope, next_price, volatility, confidence)
    return FallbackForecast(
        result=PredictionResult.from_prices(current_price, next_price, confidence),
        slope=slope,
        intercept=intercept,
        short_ma=short_ma,
        long_ma=long_ma,
        volatility=volatility,
    )
