# stocksense/metrics.py
"""
Fit-quality metrics for the neural regressor.

Every metric returns 0 instead of NaN when an input holds a non-numeric or
non-finite value, when the inputs are empty, and (R^2 only) when the actual
series is constant. Differing lengths raise ``LengthMismatchError``.
"""
import logging
import math
from typing import Optional, Sequence

import numpy as np
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score

from .errors import LengthMismatchError
from .models import FitMetrics

logger = logging.getLogger(__name__)


def _check_lengths(actual, predicted):
    if len(actual) != len(predicted):
        raise LengthMismatchError(
            f'Actual and predicted arrays must have the same length ({len(actual)} != {len(predicted)})'
        )


def _as_finite_array(values) -> Optional[np.ndarray]:
    try:
        arr = np.asarray(values, dtype=float)
    except (TypeError, ValueError):
        return None
    if not np.all(np.isfinite(arr)):
        return None
    return arr


def _clean_inputs(name, actual, predicted):
    _check_lengths(actual, predicted)
    if len(actual) == 0:
        return None
    a = _as_finite_array(actual)
    p = _as_finite_array(predicted)
    if a is None or p is None:
        logger.error('Non-numeric values found in %s calculation (actual ok=%s, predicted ok=%s)',
                     name, a is not None, p is not None)
        return None
    return a, p


def _finite_or_zero(value) -> float:
    value = float(value)
    return value if math.isfinite(value) else 0.0


def calculate_r2_score(actual: Sequence[float], predicted: Sequence[float]) -> float:
    cleaned = _clean_inputs('R2', actual, predicted)
    if cleaned is None:
        return 0.0
    a, p = cleaned
    total_sum_squares = float(np.sum((a - a.mean()) ** 2))
    if total_sum_squares == 0:
        return 0.0
    return _finite_or_zero(r2_score(a, p))


def calculate_mse(actual: Sequence[float], predicted: Sequence[float]) -> float:
    cleaned = _clean_inputs('MSE', actual, predicted)
    if cleaned is None:
        return 0.0
    return _finite_or_zero(mean_squared_error(*cleaned))


def calculate_mae(actual: Sequence[float], predicted: Sequence[float]) -> float:
    cleaned = _clean_inputs('MAE', actual, predicted)
    if cleaned is None:
        return 0.0
    return _finite_or_zero(mean_absolute_error(*cleaned))


def evaluate_fit(actual: Sequence[float], predicted: Sequence[float]) -> FitMetrics:
    return FitMetrics(
        r2=calculate_r2_score(actual, predicted),
        mse=calculate_mse(actual, predicted),
        mae=calculate_mae(actual, predicted),
    )
