"""
Shared fixtures for the StockSense test suite.

Price series are built on consecutive calendar days starting 2024-01-01.
Training tests use ``quick_plan`` (a few epochs) so the Keras fits stay fast;
orchestrator tests mostly inject ``stub_trainer`` so results are deterministic.
"""

from __future__ import annotations

import math
from datetime import date, timedelta

import numpy as np
import pytest

from stocksense.features import NormalizationParams
from stocksense.models import PricePoint, Series
from stocksense.trainer import TrainedModel, TrainingPhase

START = date(2024, 1, 1)


def _make_series(prices, start: date = START) -> Series:
    return Series(tuple(
        PricePoint(date=start + timedelta(days=i), price=float(p)) for i, p in enumerate(prices)
    ))


class StubNetwork:
    """Stands in for the Keras model: returns a fixed normalized output."""

    def __init__(self, value: float = 0.5) -> None:
        self.value = value
        self.calls: list[np.ndarray] = []

    def predict(self, features, verbose=0):
        self.calls.append(np.asarray(features))
        return np.full((len(features), 1), self.value, dtype=float)


def _stub_model(series: Series, value: float = 0.5) -> TrainedModel:
    return TrainedModel(
        network=StubNetwork(value),
        normalization=NormalizationParams.from_series(series.indices, series.prices),
        training_prices=tuple(float(p) for p in series.prices),
    )


# ── Series ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def series_factory():
    return _make_series


@pytest.fixture
def arithmetic_series() -> Series:
    """[100, 101, ..., 109]."""
    return _make_series(range(100, 110))


@pytest.fixture
def constant_series() -> Series:
    """30 points, all 50."""
    return _make_series([50.0] * 30)


@pytest.fixture
def trending_series() -> Series:
    """40 points: upward drift with a seasonal wiggle."""
    return _make_series([100 + 0.5 * i + 2 * math.sin(i / 3) for i in range(40)])


# ── Training ───────────────────────────────────────────────────────────────────

@pytest.fixture
def quick_plan():
    return (
        TrainingPhase(epochs=3, batch_size=8, learning_rate=5e-4, validation_split=0.2),
        TrainingPhase(epochs=2, batch_size=4, learning_rate=1e-4, validation_split=0.2, shuffle=True),
    )


@pytest.fixture
def stub_model_factory():
    return _stub_model


@pytest.fixture
def stub_trainer():
    """Trainer with the real signature that returns a StubNetwork bundle."""
    calls = []

    def trainer(series, plan=None, progress=None, cancel_event=None, min_history=None):
        calls.append({'series': series, 'plan': plan, 'progress': progress,
                      'cancel_event': cancel_event, 'min_history': min_history})
        return _stub_model(series)

    trainer.calls = calls
    return trainer
