# stocksense/main.py
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .config import LOG_JSON, LOG_LEVEL
from .engine import EnhancedSuccess, OuterTimeout, StockPredictor
from .errors import DataUnavailableError, InsufficientDataError, InvalidDataError
from .logging_setup import configure_logging
from .models import FitResponse, PredictRequest, PredictResponse, Series, StockResponse
from .normalizer import series_from_records
from .providers import SUGGESTIONS, fetch_history
from .utils import next_trading_day


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(LOG_LEVEL, LOG_JSON)
    yield


app = FastAPI(title='StockSense API', version='1.0', lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_predictor() -> StockPredictor:
    return StockPredictor()


def _series_or_400(points) -> Series:
    try:
        return series_from_records(points)
    except InvalidDataError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _forecast(series: Series, predictor: StockPredictor) -> PredictResponse:
    try:
        outcome = predictor.run_with_timeout(series)
    except InsufficientDataError as e:
        raise HTTPException(status_code=422, detail=str(e))
    if isinstance(outcome, OuterTimeout):
        raise HTTPException(status_code=504, detail=f'Prediction timeout after {outcome.timeout}s')

    if isinstance(outcome, EnhancedSuccess):
        return PredictResponse(prediction=outcome.result, path=outcome.path,
                               target_date=next_trading_day(series.last_date), metrics=outcome.metrics)
    return PredictResponse(prediction=outcome.result, path=outcome.path,
                           fallback_reason=outcome.reason.value,
                           target_date=next_trading_day(series.last_date))


@app.get('/health')
def health():
    return {'status': 'ok'}


@app.post('/predict', response_model=PredictResponse)
def predict_endpoint(req: PredictRequest, predictor: StockPredictor = Depends(get_predictor)):
    return _forecast(_series_or_400(req.points), predictor)


@app.post('/fit', response_model=FitResponse)
def fit_endpoint(req: PredictRequest, predictor: StockPredictor = Depends(get_predictor)):
    series = _series_or_400(req.points)
    try:
        outcome = predictor.fit_historical_with_timeout(series)
    except InsufficientDataError as e:
        raise HTTPException(status_code=422, detail=str(e))
    if isinstance(outcome, OuterTimeout):
        raise HTTPException(status_code=504, detail=f'Historical fit timeout after {outcome.timeout}s')
    model, predictions = outcome
    return FitResponse(model_trained=model is not None, predictions=predictions)


@app.get('/stock/{symbol}', response_model=StockResponse)
def stock_endpoint(symbol: str, predictor: StockPredictor = Depends(get_predictor)):
    try:
        fetched = fetch_history(symbol)
    except InvalidDataError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DataUnavailableError as e:
        raise HTTPException(status_code=503, detail={'error': str(e), 'symbol': symbol,
                                                     'suggestions': SUGGESTIONS})
    forecast = _forecast(fetched.series, predictor)
    return StockResponse(symbol=fetched.symbol, source=fetched.source,
                         points=list(fetched.series.points), forecast=forecast)


if __name__ == "__main__":
    uvicorn.run("stocksense.main:app", host="0.0.0.0", port=8000, reload=True)
