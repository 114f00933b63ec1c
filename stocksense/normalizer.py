# stocksense/normalizer.py
import logging
import math
from typing import Any, Iterable, Mapping

import pandas as pd

from .errors import InvalidDataError
from .models import PricePoint, PriceRecord, Series

logger = logging.getLogger(__name__)

ALPHA_VANTAGE_SECTION = 'Time Series (Daily)'
ALPHA_VANTAGE_CLOSE = '4. close'


def _parse_price(key, raw) -> float:
    if isinstance(raw, bool):
        raise InvalidDataError(f'Invalid price data for date {key}: {raw!r}')
    try:
        price = pd.to_numeric(pd.Series([raw], dtype=object), errors='coerce').iloc[0]
    except (TypeError, ValueError) as e:
        raise InvalidDataError(f'Invalid price data for date {key}: {raw!r}') from e
    if pd.isna(price) or not math.isfinite(price):
        raise InvalidDataError(f'Invalid price data for date {key}: {raw!r}')
    if price <= 0:
        raise InvalidDataError(f'Price must be positive for date {key}: {raw!r}')
    return float(price)


def normalize_history(history: Mapping[Any, Any]) -> Series:
    """
    history: mapping of date (date, datetime or ISO string) -> raw close price.
    Returns a Series sorted ascending by date; position is the time index.
    """
    if not history:
        raise InvalidDataError('No valid price data found')

    points = {}
    for key, raw in history.items():
        try:
            stamp = pd.Timestamp(key)
        except (TypeError, ValueError) as e:
            raise InvalidDataError(f'Invalid date {key!r}') from e
        if pd.isna(stamp):
            raise InvalidDataError(f'Invalid date {key!r}')
        day = stamp.date()
        if day in points:
            raise InvalidDataError(f'Duplicate date {day}')
        points[day] = _parse_price(key, raw)

    ordered = tuple(PricePoint(date=day, price=points[day]) for day in sorted(points))
    logger.debug('Normalized %d price points (%s .. %s)', len(ordered), ordered[0].date, ordered[-1].date)
    return Series(ordered)


def series_from_records(records: Iterable[Any]) -> Series:
    """Accepts PricePoint or PriceRecord objects, or ``{"date": ..., "price": ...}`` dicts."""
    history = {}
    for rec in records:
        if isinstance(rec, (PricePoint, PriceRecord)):
            day, price = rec.date, rec.price
        else:
            try:
                day, price = rec['date'], rec['price']
            except (KeyError, TypeError) as e:
                raise InvalidDataError(f'Record is missing date/price: {rec!r}') from e
        key = str(day)
        if key in history:
            raise InvalidDataError(f'Duplicate date {day}')
        history[key] = price
    return normalize_history(history)


def series_from_alpha_vantage(payload: Mapping[str, Any]) -> Series:
    time_series = payload.get(ALPHA_VANTAGE_SECTION) if isinstance(payload, Mapping) else None
    if not time_series:
        raise InvalidDataError('Invalid stock data format')
    history = {}
    for day, row in time_series.items():
        if not isinstance(row, Mapping) or ALPHA_VANTAGE_CLOSE not in row:
            raise InvalidDataError(f'Invalid price data for date {day}: missing close')
        history[day] = row[ALPHA_VANTAGE_CLOSE]
    return normalize_history(history)
