"""
Tests for price-history normalization.

What we test
------------
1. Ordering: output is ascending by date whatever the input order.
2. Coercion: numeric strings are accepted.
3. Rejection: empty input, non-numeric, non-positive prices, bad/duplicate dates.
4. Record and Alpha Vantage adapters.
"""

from __future__ import annotations

from datetime import date

import pytest

from stocksense.errors import InvalidDataError
from stocksense.models import PricePoint, PriceRecord, Series
from stocksense.normalizer import normalize_history, series_from_alpha_vantage, series_from_records


def test_sorts_ascending_and_assigns_indices() -> None:
    series = normalize_history({
        '2024-01-03': 103.0,
        '2024-01-01': 101.0,
        '2024-01-02': 102.0,
    })
    assert series.dates == [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)]
    assert list(series.prices) == [101.0, 102.0, 103.0]
    assert list(series.indices) == [0.0, 1.0, 2.0]
    assert series.current_price == 103.0


def test_accepts_numeric_strings_and_date_keys() -> None:
    series = normalize_history({date(2024, 1, 2): '10.5', '2024-01-01': '9.25'})
    assert list(series.prices) == [9.25, 10.5]


def test_empty_history_rejected() -> None:
    with pytest.raises(InvalidDataError):
        normalize_history({})


@pytest.mark.parametrize('bad', ['abc', None, '', float('nan'), float('inf'), True])
def test_non_numeric_price_rejected(bad) -> None:
    with pytest.raises(InvalidDataError, match='2024-01-02'):
        normalize_history({'2024-01-01': 10.0, '2024-01-02': bad})


@pytest.mark.parametrize('bad', [0, -5.0, '-1'])
def test_non_positive_price_rejected(bad) -> None:
    with pytest.raises(InvalidDataError):
        normalize_history({'2024-01-01': bad})


def test_unparsable_date_rejected() -> None:
    with pytest.raises(InvalidDataError):
        normalize_history({'not-a-date': 10.0})


def test_duplicate_calendar_date_rejected() -> None:
    with pytest.raises(InvalidDataError, match='Duplicate'):
        normalize_history({'2024-01-02': 10.0, date(2024, 1, 2): 11.0})


def test_series_rejects_unsorted_points() -> None:
    points = (
        PricePoint(date=date(2024, 1, 2), price=1.0),
        PricePoint(date=date(2024, 1, 1), price=2.0),
    )
    with pytest.raises(InvalidDataError):
        Series(points)


def test_series_from_records_accepts_dicts_and_points() -> None:
    series = series_from_records([
        {'date': '2024-01-02', 'price': 2.0},
        PricePoint(date=date(2024, 1, 1), price=1.0),
    ])
    assert list(series.prices) == [1.0, 2.0]


def test_series_from_records_validates_raw_records() -> None:
    series = series_from_records([PriceRecord(date='2024-01-01', price='12.5')])
    assert list(series.prices) == [12.5]
    with pytest.raises(InvalidDataError, match='Invalid price'):
        series_from_records([PriceRecord(date='2024-01-01', price='abc')])


def test_series_from_records_missing_field() -> None:
    with pytest.raises(InvalidDataError):
        series_from_records([{'date': '2024-01-01'}])


def test_series_from_alpha_vantage() -> None:
    payload = {
        'Meta Data': {},
        'Time Series (Daily)': {
            '2024-01-02': {'1. open': '1', '4. close': '101.5'},
            '2024-01-01': {'1. open': '1', '4. close': '100.0'},
        },
    }
    series = series_from_alpha_vantage(payload)
    assert list(series.prices) == [100.0, 101.5]


def test_series_from_alpha_vantage_bad_format() -> None:
    with pytest.raises(InvalidDataError, match='Invalid stock data format'):
        series_from_alpha_vantage({'Note': 'rate limited'})
