# stocksense/engine.py
"""
Prediction orchestrator.

``StockPredictor.run`` always computes the statistical forecast first, then
tries the neural path in a worker thread bounded by the inner timeout. Any
failure on that path (timeout, too little history, non-finite numbers,
training errors) returns the statistical forecast as ``FallbackSubstituted``;
the caller gets a result either way.

``run_with_timeout``, ``predict_with_timeout`` and
``fit_historical_with_timeout`` bound the whole call with the outer timeout.
Expiry there is a request failure (``OuterTimeout`` / ``PredictionTimeoutError``),
not a silent fallback.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple, Union

from .config import INNER_TIMEOUT_SECONDS, MIN_ENHANCED_HISTORY, MIN_HISTORY, OUTER_TIMEOUT_SECONDS
from .errors import (
    InsufficientDataError, NumericDegeneracyError, PredictionTimeoutError, TrainingTimeoutError,
)
from .fallback import fast_predict
from .metrics import evaluate_fit
from .models import FitMetrics, PredictionResult, Series
from .predictor import get_predictions_for_data, predict_next_day
from .trainer import ProgressReporter, TrainedModel, TrainingPlan, train_regressor
from .utils import clamp, return_volatility, trailing_mean_overlay

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 40.0
MAX_CONFIDENCE = 95.0


class FallbackReason(str, Enum):
    INSUFFICIENT_DATA = 'insufficient_data'
    TIMEOUT = 'timeout'
    NUMERIC_FAILURE = 'numeric_failure'
    TRAINING_ERROR = 'training_error'


@dataclass(frozen=True)
class EnhancedSuccess:
    result: PredictionResult
    metrics: FitMetrics

    path = 'enhanced'


@dataclass(frozen=True)
class FallbackSubstituted:
    result: PredictionResult
    reason: FallbackReason
    detail: str = ''

    path = 'fallback'


@dataclass(frozen=True)
class OuterTimeout:
    timeout: float


PredictionOutcome = Union[EnhancedSuccess, FallbackSubstituted]


@dataclass(frozen=True)
class _EnhancedFit:
    model: TrainedModel
    fitted: List[float]
    next_price: float


def blend_confidence(r2: float, mse: float, current_price: float, volatility: float) -> float:
    base_confidence = max(0.0, min(100.0, r2 * 100))
    mse_confidence = max(0.0, 100 - mse / current_price * 100)
    volatility_penalty = min(20.0, volatility * 10)
    return clamp(0.6 * base_confidence + 0.4 * mse_confidence - volatility_penalty,
                 MIN_CONFIDENCE, MAX_CONFIDENCE)


class StockPredictor:
    """One instance may serve many requests; it holds configuration only."""

    def __init__(self,
                 trainer: Callable[..., TrainedModel] = train_regressor,
                 plan: Optional[TrainingPlan] = None,
                 progress: Optional[ProgressReporter] = None,
                 inner_timeout: float = INNER_TIMEOUT_SECONDS,
                 outer_timeout: float = OUTER_TIMEOUT_SECONDS,
                 min_enhanced_history: int = MIN_ENHANCED_HISTORY):
        self.trainer = trainer
        self.plan = plan
        self.progress = progress
        self.inner_timeout = inner_timeout
        self.outer_timeout = outer_timeout
        self.min_enhanced_history = min_enhanced_history

    def _fit_enhanced(self, series: Series, cancel_event: threading.Event) -> _EnhancedFit:
        model = self.trainer(series, plan=self.plan, progress=self.progress, cancel_event=cancel_event,
                             min_history=self.min_enhanced_history)
        fitted = get_predictions_for_data(model, series.indices)
        if cancel_event.is_set():
            raise TrainingTimeoutError('Cancelled after batch inference')
        next_price = predict_next_day(model, len(series))
        return _EnhancedFit(model=model, fitted=fitted, next_price=next_price)

    def _fit_bounded(self, series: Series) -> _EnhancedFit:
        cancel_event = threading.Event()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='stocksense-train')
        try:
            future = executor.submit(self._fit_enhanced, series, cancel_event)
            try:
                return future.result(timeout=self.inner_timeout)
            except FuturesTimeoutError:
                if future.done():
                    raise
                cancel_event.set()
                raise TrainingTimeoutError(
                    f'Neural path did not finish within {self.inner_timeout}s'
                ) from None
        finally:
            # never wait on a worker that is still training. The worker thread is
            # not a daemon: a trainer that ignores cancel_event keeps running and
            # the interpreter joins it at exit.
            executor.shutdown(wait=False)

    def _try_enhanced(self, series: Series) -> Tuple[Optional[_EnhancedFit], Optional[FallbackReason], str]:
        if len(series) < self.min_enhanced_history:
            return None, FallbackReason.INSUFFICIENT_DATA, (
                f'{len(series)} points, neural path needs {self.min_enhanced_history}'
            )
        try:
            return self._fit_bounded(series), None, ''
        except TrainingTimeoutError as e:
            return None, FallbackReason.TIMEOUT, str(e)
        except InsufficientDataError as e:
            return None, FallbackReason.INSUFFICIENT_DATA, str(e)
        except ArithmeticError as e:
            return None, FallbackReason.NUMERIC_FAILURE, str(e)
        except Exception as e:
            logger.exception('Neural regressor failed')
            return None, FallbackReason.TRAINING_ERROR, f'{type(e).__name__}: {e}'

    def _substitute(self, result, reason, detail):
        logger.warning('Using statistical forecast (%s): %s', reason.value, detail)
        return FallbackSubstituted(result=result, reason=reason, detail=detail)

    def run(self, series: Series) -> PredictionOutcome:
        # raises InsufficientDataError below MIN_HISTORY; nothing else is tried
        baseline = fast_predict(series)

        fit, reason, detail = self._try_enhanced(series)
        if fit is None:
            return self._substitute(baseline.result, reason, detail)

        prices = series.prices
        current_price = series.current_price
        try:
            metrics = evaluate_fit(prices, fit.fitted)
            confidence = blend_confidence(metrics.r2, metrics.mse, current_price, return_volatility(prices))
            result = PredictionResult.from_prices(current_price, fit.next_price, confidence)
        except NumericDegeneracyError as e:
            return self._substitute(baseline.result, FallbackReason.NUMERIC_FAILURE, str(e))

        logger.info('Neural forecast %.2f (r2=%.3f mse=%.4f confidence=%.1f)',
                    result.predicted_price, metrics.r2, metrics.mse, result.confidence)
        return EnhancedSuccess(result=result, metrics=metrics)

    def predict(self, series: Series) -> PredictionResult:
        return self.run(series).result

    def _with_outer_timeout(self, fn: Callable[[Series], Any], series: Series,
                            timeout: Optional[float]) -> Any:
        timeout = self.outer_timeout if timeout is None else timeout
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='stocksense-predict')
        try:
            future = executor.submit(fn, series)
            try:
                return future.result(timeout=timeout)
            except FuturesTimeoutError:
                if future.done():
                    raise
                logger.error('%s exceeded the outer timeout of %ss', fn.__name__, timeout)
                return OuterTimeout(timeout=timeout)
        finally:
            executor.shutdown(wait=False)

    def run_with_timeout(self, series: Series,
                         timeout: Optional[float] = None) -> Union[EnhancedSuccess, FallbackSubstituted, OuterTimeout]:
        return self._with_outer_timeout(self.run, series, timeout)

    def predict_with_timeout(self, series: Series, timeout: Optional[float] = None) -> PredictionResult:
        outcome = self.run_with_timeout(series, timeout)
        if isinstance(outcome, OuterTimeout):
            raise PredictionTimeoutError(f'Prediction timeout after {outcome.timeout}s')
        return outcome.result

    def fit_historical(self, series: Series) -> Tuple[Optional[TrainedModel], List[float]]:
        """
        Fitted model and its in-sample predictions, for overlaying on a chart.
        When the neural path fails the model is None and the overlay is a
        trailing 5-point mean of the prices.
        """
        if len(series) < MIN_HISTORY:
            raise InsufficientDataError(
                f'Insufficient data for historical fit: need at least {MIN_HISTORY} points, got {len(series)}'
            )
        fit, reason, detail = self._try_enhanced(series)
        if fit is None:
            logger.warning('Historical fit unavailable (%s): %s', reason.value, detail)
            return None, trailing_mean_overlay(series.prices)
        return fit.model, fit.fitted

    def fit_historical_with_timeout(
            self, series: Series,
            timeout: Optional[float] = None) -> Union[Tuple[Optional[TrainedModel], List[float]], OuterTimeout]:
        return self._with_outer_timeout(self.fit_historical, series, timeout)
