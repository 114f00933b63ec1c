# stocksense/providers.py
"""Daily close history for a symbol: Yahoo Finance first, Alpha Vantage if a key is set."""
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import pandas as pd
import requests
import yfinance as yf

from .config import ALPHA_VANTAGE_API_KEY, HISTORY_PERIOD, MIN_PROVIDER_POINTS, PROVIDER_TIMEOUT
from .errors import DataUnavailableError, InvalidDataError
from .models import Series
from .normalizer import normalize_history, series_from_alpha_vantage

logger = logging.getLogger(__name__)

ALPHA_VANTAGE_URL = 'https://www.alphavantage.co/query'
DEFAULT_EXCHANGE = 'NSE'
YAHOO_SUFFIXES = {'NSE': 'NS', 'BSE': 'BO'}
SUGGESTIONS = ['RELIANCE', 'TCS', 'INFY', 'HDFCBANK', 'ICICIBANK', 'SBIN']


@dataclass(frozen=True)
class HistoryFetch:
    symbol: str
    source: str
    series: Series


def split_symbol(symbol: str, default_exchange: str = DEFAULT_EXCHANGE) -> Tuple[str, str]:
    """'reliance.bse' -> ('RELIANCE', 'BSE'); a bare symbol gets the default exchange."""
    cleaned = symbol.strip().upper()
    base, _, exchange = cleaned.partition('.')
    if not base:
        raise InvalidDataError('Please enter a stock symbol')
    return base, exchange or default_exchange


def yahoo_symbol_candidates(base: str, exchange: str) -> List[str]:
    candidates = []
    suffix = YAHOO_SUFFIXES.get(exchange)
    if suffix:
        candidates.append(f'{base}.{suffix}')
    candidates.append(f'{base}.{exchange}')
    candidates.append(base)
    # keep order, drop repeats
    return list(dict.fromkeys(candidates))


def fetch_yahoo_history(ticker: str, period: str = HISTORY_PERIOD) -> Optional[Series]:
    """Returns None when the download fails or yields too few closes."""
    try:
        df = yf.download(ticker, period=period, interval='1d', progress=False,
                         auto_adjust=False, timeout=PROVIDER_TIMEOUT)
    except Exception as e:
        logger.warning('Yahoo download failed for %s: %s', ticker, e)
        return None
    if df is None or df.empty or 'Close' not in df.columns:
        return None

    close = df['Close']
    # newer yfinance returns one column per ticker
    if isinstance(close, pd.DataFrame):
        close = close.iloc[:, 0]
    close = close.dropna()
    if len(close) <= MIN_PROVIDER_POINTS:
        logger.info('Yahoo returned only %d closes for %s', len(close), ticker)
        return None

    history = {pd.Timestamp(idx).date(): round(float(price), 2) for idx, price in close.items()}
    return normalize_history(history)


def fetch_alpha_vantage_history(ticker: str, api_key: str) -> Series:
    params = {'function': 'TIME_SERIES_DAILY', 'symbol': ticker, 'outputsize': 'compact', 'apikey': api_key}
    r = requests.get(ALPHA_VANTAGE_URL, params=params, timeout=PROVIDER_TIMEOUT)
    r.raise_for_status()
    return series_from_alpha_vantage(r.json())


def fetch_history(symbol: str, api_key: Optional[str] = ALPHA_VANTAGE_API_KEY) -> HistoryFetch:
    base, exchange = split_symbol(symbol)

    for candidate in yahoo_symbol_candidates(base, exchange):
        series = fetch_yahoo_history(candidate)
        if series is not None:
            logger.info('Fetched %d closes for %s from Yahoo Finance', len(series), candidate)
            return HistoryFetch(symbol=candidate, source='yahoo_finance', series=series)

    if api_key:
        av_symbol = f'{base}.{exchange}'
        try:
            series = fetch_alpha_vantage_history(av_symbol, api_key)
        except (requests.RequestException, InvalidDataError) as e:
            logger.warning('Alpha Vantage lookup failed for %s: %s', av_symbol, e)
        else:
            if len(series) > MIN_PROVIDER_POINTS:
                return HistoryFetch(symbol=av_symbol, source='alpha_vantage', series=series)

    raise DataUnavailableError(
        f'Unable to fetch stock data for {base}.{exchange}. Please verify the symbol is correct.'
    )
