# stocksense/predictor.py
import math
from typing import List, Sequence

import numpy as np

from .features import FEATURE_COUNT, feature_vector
from .trainer import TrainedModel


def _predict_normalized(model: TrainedModel, features: np.ndarray) -> np.ndarray:
    output = model.network.predict(features.astype(np.float32), verbose=0)
    return np.asarray(output, dtype=float).reshape(-1)


def predict_next_day(model: TrainedModel, next_day_index: int) -> float:
    """
    Predict the close at ``next_day_index`` (normally ``len(series)``).
    Moving-window features are read from the last training price; the result
    is bounded to [0.8 * y_min, 1.2 * y_max] and NaN becomes y_min.
    """
    if next_day_index < 0:
        raise ValueError(f'next_day_index must be non-negative, got {next_day_index}')
    params = model.normalization
    prices = np.asarray(model.training_prices, dtype=float)
    position = min(next_day_index, len(prices) - 1)

    features = feature_vector(next_day_index, prices, position, params).reshape(1, FEATURE_COUNT)
    result = params.denormalize(_predict_normalized(model, features)[0])
    if math.isnan(result):
        return params.y_min
    return float(params.bound(result))


def get_predictions_for_data(model: TrainedModel, xs: Sequence[float]) -> List[float]:
    """In-sample predictions for each index in ``xs`` (historical overlay)."""
    if len(xs) == 0:
        return []
    params = model.normalization
    prices = np.asarray(model.training_prices, dtype=float)
    last = len(prices) - 1

    features = np.vstack([
        feature_vector(x, prices, min(i, last), params) for i, x in enumerate(xs)
    ])
    raw = _predict_normalized(model, features)

    cleaned = []
    for i, value in enumerate(raw):
        value = params.denormalize(value)
        if math.isnan(value):
            value = prices[i] if i <= last else (params.y_min + params.y_max) / 2
        cleaned.append(float(params.bound(value)))
    return cleaned
