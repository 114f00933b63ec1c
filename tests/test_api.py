"""
Tests for the FastAPI surface.

The predictor dependency is overridden with stub trainers so responses are
deterministic and fast; the data provider is monkeypatched.
"""

from __future__ import annotations

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from stocksense import main
from stocksense.engine import StockPredictor
from stocksense.errors import DataUnavailableError
from stocksense.providers import SUGGESTIONS, HistoryFetch


def _points(n: int, start: date = date(2024, 1, 1)) -> list[dict]:
    return [{'date': (start + timedelta(days=i)).isoformat(), 'price': 100 + i * 0.7} for i in range(n)]


@pytest.fixture
def client(stub_trainer):
    main.app.dependency_overrides[main.get_predictor] = lambda: StockPredictor(trainer=stub_trainer)
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


def test_health(client) -> None:
    assert client.get('/health').json() == {'status': 'ok'}


def test_predict_enhanced(client) -> None:
    r = client.post('/predict', json={'points': _points(30)})
    assert r.status_code == 200
    body = r.json()
    assert body['path'] == 'enhanced'
    assert body['fallback_reason'] is None
    assert body['metrics'] is not None
    assert body['prediction']['trend'] in ('up', 'down', 'stable')
    # last point is Tue 2024-01-30
    assert body['target_date'] == '2024-01-31'


def test_predict_fallback_for_short_history(client) -> None:
    r = client.post('/predict', json={'points': _points(12)})
    assert r.status_code == 200
    body = r.json()
    assert body['path'] == 'fallback'
    assert body['fallback_reason'] == 'insufficient_data'
    assert body['metrics'] is None
    assert 45 <= body['prediction']['confidence'] <= 90


def test_predict_too_few_points(client) -> None:
    r = client.post('/predict', json={'points': _points(5)})
    assert r.status_code == 422
    assert 'Insufficient data' in r.json()['detail']


def test_predict_duplicate_dates(client) -> None:
    points = _points(12)
    points[3]['date'] = points[2]['date']
    r = client.post('/predict', json={'points': points})
    assert r.status_code == 400


@pytest.mark.parametrize('price', ['abc', 0, -3.5, None])
def test_predict_invalid_price(client, price) -> None:
    points = _points(12)
    points[0]['price'] = price
    r = client.post('/predict', json={'points': points})
    assert r.status_code == 400
    assert '2024-01-01' in r.json()['detail']


def test_predict_invalid_date(client) -> None:
    points = _points(12)
    points[4]['date'] = 'not-a-date'
    assert client.post('/predict', json={'points': points}).status_code == 400


def test_predict_numeric_string_price(client) -> None:
    points = _points(12)
    points[0]['price'] = '100.0'
    assert client.post('/predict', json={'points': points}).status_code == 200


def test_predict_outer_timeout(client) -> None:
    def hanging(series, plan=None, progress=None, cancel_event=None, min_history=None):
        cancel_event.wait(5)
        raise RuntimeError('cancelled')

    main.app.dependency_overrides[main.get_predictor] = lambda: StockPredictor(
        trainer=hanging, inner_timeout=1.0, outer_timeout=0.1)
    r = client.post('/predict', json={'points': _points(30)})
    assert r.status_code == 504


def test_fit(client) -> None:
    r = client.post('/fit', json={'points': _points(25)})
    assert r.status_code == 200
    body = r.json()
    assert body['model_trained'] is True
    assert len(body['predictions']) == 25


def test_fit_too_few_points(client) -> None:
    r = client.post('/fit', json={'points': _points(5)})
    assert r.status_code == 422
    assert 'Insufficient data' in r.json()['detail']


def test_fit_invalid_price(client) -> None:
    points = _points(25)
    points[7]['price'] = 'n/a'
    assert client.post('/fit', json={'points': points}).status_code == 400


def test_fit_outer_timeout(client) -> None:
    def hanging(series, plan=None, progress=None, cancel_event=None, min_history=None):
        cancel_event.wait(5)
        raise RuntimeError('cancelled')

    main.app.dependency_overrides[main.get_predictor] = lambda: StockPredictor(
        trainer=hanging, inner_timeout=1.0, outer_timeout=0.1)
    assert client.post('/fit', json={'points': _points(30)}).status_code == 504


def test_stock_endpoint(client, monkeypatch, series_factory) -> None:
    series = series_factory([100 + i for i in range(30)])
    monkeypatch.setattr(main, 'fetch_history',
                        lambda symbol: HistoryFetch(symbol='TCS.NS', source='yahoo_finance', series=series))
    r = client.get('/stock/TCS.NSE')
    assert r.status_code == 200
    body = r.json()
    assert body['symbol'] == 'TCS.NS'
    assert body['source'] == 'yahoo_finance'
    assert len(body['points']) == 30
    assert body['forecast']['path'] == 'enhanced'


def test_stock_endpoint_unavailable(client, monkeypatch) -> None:
    def unavailable(symbol):
        raise DataUnavailableError('Unable to fetch stock data for NOPE.NSE.')

    monkeypatch.setattr(main, 'fetch_history', unavailable)
    r = client.get('/stock/NOPE.NSE')
    assert r.status_code == 503
    detail = r.json()['detail']
    assert detail['symbol'] == 'NOPE.NSE'
    assert detail['suggestions'] == SUGGESTIONS
