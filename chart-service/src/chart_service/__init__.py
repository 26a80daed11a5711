"""
Chart Service - crypto market data and LSTM prediction proxy.

This package provides a FastAPI-based service that:
- Ingests quotes and OHLC candles from CoinGecko into Supabase
- Forwards prediction requests to the external LSTM backend
- Serves the live price chart series with prediction accuracy

Run it with the ``chart-service`` console script (``chart_service.main:main``).
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
