"""StockSense: next-trading-day close forecasts from daily price history."""

__version__ = "1.0.0"
