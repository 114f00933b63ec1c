# stocksense/models.py
import math
from dataclasses import dataclass
from datetime import date
from typing import Any, List, Literal, Optional, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from .errors import InvalidDataError, NumericDegeneracyError

STABLE_BAND = 0.005  # |change| below this fraction of the current price is "stable"

Trend = Literal['up', 'down', 'stable']


class PricePoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: date
    price: float = Field(gt=0, allow_inf_nan=False)


@dataclass(frozen=True)
class Series:
    """Closing prices ordered by date; position in ``points`` is the time index."""

    points: Tuple[PricePoint, ...]

    def __post_init__(self):
        if not self.points:
            raise InvalidDataError('No valid price data found')
        for prev, cur in zip(self.points, self.points[1:]):
            if cur.date <= prev.date:
                raise InvalidDataError(f'Dates must be unique and ascending: {prev.date} then {cur.date}')

    def __len__(self):
        return len(self.points)

    @property
    def prices(self) -> np.ndarray:
        return np.array([p.price for p in self.points], dtype=float)

    @property
    def dates(self) -> List[date]:
        return [p.date for p in self.points]

    @property
    def indices(self) -> np.ndarray:
        return np.arange(len(self.points), dtype=float)

    @property
    def current_price(self) -> float:
        return self.points[-1].price

    @property
    def last_date(self) -> date:
        return self.points[-1].date


def classify_trend(change: float, current_price: float) -> Trend:
    if abs(change) < current_price * STABLE_BAND:
        return 'stable'
    return 'up' if change > 0 else 'down'


class PredictionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_price: float
    predicted_price: float
    confidence: float
    trend: Trend
    change: float
    change_percent: float

    @classmethod
    def from_prices(cls, current_price: float, predicted_price: float, confidence: float) -> 'PredictionResult':
        for name, value in (('current_price', current_price),
                            ('predicted_price', predicted_price),
                            ('confidence', confidence)):
            if not math.isfinite(value):
                raise NumericDegeneracyError(f'{name} is not finite: {value}')
        change = predicted_price - current_price
        change_percent = change / current_price * 100
        return cls(
            current_price=round(current_price, 2),
            predicted_price=round(predicted_price, 2),
            confidence=round(confidence, 1),
            trend=classify_trend(change, current_price),
            change=round(change, 2),
            change_percent=round(change_percent, 2),
        )


class FitMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    r2: float
    mse: float = Field(ge=0)
    mae: float = Field(default=0.0, ge=0)


# API payloads

class PriceRecord(BaseModel):
    """Unvalidated request point; checked by the normalizer, not the schema."""

    date: Any
    price: Any


class PredictRequest(BaseModel):
    points: List[PriceRecord]


class PredictResponse(BaseModel):
    prediction: PredictionResult
    path: Literal['enhanced', 'fallback']
    fallback_reason: Optional[str] = None
    target_date: date
    metrics: Optional[FitMetrics] = None


class FitResponse(BaseModel):
    model_trained: bool
    predictions: List[float]


class StockResponse(BaseModel):
    symbol: str
    source: str
    points: List[PricePoint]
    forecast: PredictResponse
