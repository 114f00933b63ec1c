# stocksense/trainer.py
import gc
import logging
import math
import threading
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol, Tuple

import numpy as np
from tensorflow.keras import regularizers
from tensorflow.keras.callbacks import Callback
from tensorflow.keras.layers import Dense, Dropout, Input
from tensorflow.keras.models import Sequential
from tensorflow.keras.optimizers import Adam

from .config import (
    BATCH_SIZE, EPOCHS, FINETUNE_EPOCHS, FINETUNE_LEARNING_RATE, LEARNING_RATE,
    MIN_ENHANCED_HISTORY, VALIDATION_SPLIT,
)
from .errors import InsufficientDataError, NumericDegeneracyError, TrainingTimeoutError
from .features import FEATURE_COUNT, NormalizationParams, feature_matrix
from .models import Series

logger = logging.getLogger(__name__)

L2_PENALTY = 0.001


@dataclass(frozen=True)
class TrainingPhase:
    epochs: int
    batch_size: int
    learning_rate: float
    validation_split: float = VALIDATION_SPLIT
    shuffle: bool = True


TrainingPlan = Tuple[TrainingPhase, ...]


def default_training_plan(n_samples: int) -> TrainingPlan:
    """Coarse pass at the base learning rate, then a small-batch fine-tune."""
    return (
        TrainingPhase(EPOCHS, BATCH_SIZE, LEARNING_RATE, VALIDATION_SPLIT),
        TrainingPhase(FINETUNE_EPOCHS, max(1, min(4, n_samples // 8)), FINETUNE_LEARNING_RATE,
                      VALIDATION_SPLIT, shuffle=True),
    )


class ProgressReporter(Protocol):
    def on_epoch_end(self, phase: int, epoch: int, logs: Mapping[str, float]) -> None:
        ...


@dataclass(frozen=True)
class TrainedModel:
    """Everything inference needs: the fitted network, the scaling it was
    trained with and the prices the moving-window features are read from."""

    network: Any
    normalization: NormalizationParams
    training_prices: Tuple[float, ...]
    history: Tuple[Tuple[float, ...], ...] = ()

    @property
    def n_samples(self) -> int:
        return len(self.training_prices)


class _PhaseCallback(Callback):
    def __init__(self, phase, reporter=None, cancel_event=None):
        super().__init__()
        self._phase = phase
        self._reporter = reporter
        self._cancel_event = cancel_event

    def _cancelled(self):
        return self._cancel_event is not None and self._cancel_event.is_set()

    def on_train_batch_end(self, batch, logs=None):
        if self._cancelled():
            self.model.stop_training = True

    def on_epoch_end(self, epoch, logs=None):
        if self._cancelled():
            self.model.stop_training = True
            return
        if self._reporter is not None:
            self._reporter.on_epoch_end(self._phase, epoch, dict(logs or {}))


def build_network(learning_rate: float = LEARNING_RATE):
    model = Sequential([
        Input(shape=(FEATURE_COUNT,)),
        Dense(64, activation='relu', kernel_regularizer=regularizers.l2(L2_PENALTY)),
        Dropout(0.3),
        Dense(32, activation='relu', kernel_regularizer=regularizers.l2(L2_PENALTY)),
        Dropout(0.2),
        Dense(16, activation='relu'),
        Dense(1, activation='sigmoid'),
    ])
    model.compile(optimizer=Adam(learning_rate=learning_rate), loss='mse', metrics=['mse', 'mae'])
    return model


def _raise_if_cancelled(cancel_event):
    if cancel_event is not None and cancel_event.is_set():
        raise TrainingTimeoutError('Training cancelled')


def train_regressor(series: Series,
                    plan: Optional[TrainingPlan] = None,
                    progress: Optional[ProgressReporter] = None,
                    cancel_event: Optional[threading.Event] = None,
                    min_history: int = MIN_ENHANCED_HISTORY) -> TrainedModel:
    """
    Train a fresh network on ``series`` and bundle it with its normalization.
    Raises TrainingTimeoutError if ``cancel_event`` is set while training and
    NumericDegeneracyError if a phase ends with a non-finite loss.
    """
    n = len(series)
    if n < min_history:
        raise InsufficientDataError(
            f'Need at least {min_history} points to train the regressor, got {n}'
        )
    plan = default_training_plan(n) if plan is None else tuple(plan)
    if not plan:
        raise ValueError('Training plan must contain at least one phase')

    prices = series.prices
    xs = series.indices
    params = NormalizationParams.from_series(xs, prices)
    features = feature_matrix(xs, prices, params).astype(np.float32)
    targets = np.array([params.scale_level(y) for y in prices], dtype=np.float32).reshape(-1, 1)

    network = build_network(plan[0].learning_rate)
    finished = False
    try:
        losses = []
        for i, phase in enumerate(plan):
            _raise_if_cancelled(cancel_event)
            network.optimizer.learning_rate = phase.learning_rate
            logger.info('Training phase %d/%d: epochs=%d batch_size=%d lr=%g on %d samples',
                        i + 1, len(plan), phase.epochs, phase.batch_size, phase.learning_rate, n)
            history = network.fit(
                features, targets,
                epochs=phase.epochs,
                batch_size=phase.batch_size,
                validation_split=phase.validation_split,
                shuffle=phase.shuffle,
                verbose=0,
                callbacks=[_PhaseCallback(i, progress, cancel_event)],
            )
            _raise_if_cancelled(cancel_event)
            phase_loss = tuple(float(v) for v in history.history.get('loss', []))
            if not all(math.isfinite(v) for v in phase_loss):
                raise NumericDegeneracyError(f'Non-finite training loss in phase {i + 1}')
            losses.append(phase_loss)

        finished = True
        logger.info('Regressor training completed (final loss %.6f)', losses[-1][-1] if losses[-1] else float('nan'))
        return TrainedModel(
            network=network,
            normalization=params,
            training_prices=tuple(float(p) for p in prices),
            history=tuple(losses),
        )
    finally:
        del features, targets
        if not finished:
            del network
            gc.collect()
