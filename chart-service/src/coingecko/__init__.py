"""CoinGecko - market quotes and OHLC candles for the chart service."""

from .client import COIN_ID_MAP, DEFAULT_SYMBOLS, CoinGeckoClient, symbols_to_coin_ids
from .models import MarketQuote, OhlcCandle

__all__ = [
    "COIN_ID_MAP",
    "DEFAULT_SYMBOLS",
    "CoinGeckoClient",
    "symbols_to_coin_ids",
    "MarketQuote",
    "OhlcCandle",
]
