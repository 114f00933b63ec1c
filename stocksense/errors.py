# stocksense/errors.py
"""Exception taxonomy for the prediction engine.

Only ``InvalidDataError``, ``InsufficientDataError`` and
``PredictionTimeoutError`` reach callers of ``StockPredictor``. The others are
raised inside the neural path and turned into a fallback forecast.
"""


class StockSenseError(Exception):
    """Base class for every error raised by this package."""


class InvalidDataError(StockSenseError, ValueError):
    """Price history is empty or holds a non-numeric / non-positive price."""


class InsufficientDataError(StockSenseError, ValueError):
    """Price history is shorter than the minimum required length."""


class LengthMismatchError(StockSenseError, ValueError):
    """Actual and predicted arrays handed to a metric differ in length."""


class TrainingTimeoutError(StockSenseError, TimeoutError):
    """The neural path did not finish within the inner timeout."""


class PredictionTimeoutError(StockSenseError, TimeoutError):
    """The whole prediction did not finish within the outer timeout."""


class NumericDegeneracyError(StockSenseError, ArithmeticError):
    """A training loss or derived value became non-finite."""


class DataUnavailableError(StockSenseError):
    """No provider returned usable history for a symbol."""
