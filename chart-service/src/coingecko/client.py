"""CoinGecko API client for fetching market data."""

import logging

import requests

from .models import MarketQuote, OhlcCandle

logger = logging.getLogger(__name__)

# API base URL
PROD_API_URL = "https://api.coingecko.com/api/v3"

COIN_ID_MAP: dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "BNB": "binancecoin",
    "XRP": "ripple",
    "SOL": "solana",
    "ADA": "cardano",
    "DOT": "polkadot",
    "LINK": "chainlink",
}

DEFAULT_SYMBOLS: list[str] = list(COIN_ID_MAP)


def symbols_to_coin_ids(symbols: list[str]) -> list[str]:
    """Map exchange tickers to CoinGecko coin ids, skipping unknown ones."""
    return [COIN_ID_MAP[s.upper()] for s in symbols if s.upper() in COIN_ID_MAP]


class CoinGeckoClient:
    """Client for interacting with the CoinGecko API."""

    def __init__(self, base_url: str = PROD_API_URL, timeout: float = 15.0):
        """Initialize the CoinGecko client.

        Args:
            base_url: API root, without trailing slash.
            timeout: Per-request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"accept": "application/json"})

    def _get(self, endpoint: str, params: dict | None = None):
        """Make a GET request to the API.

        Args:
            endpoint: API endpoint path (without base URL).
            params: Optional query parameters.

        Returns:
            Decoded JSON response.

        Raises:
            requests.HTTPError: If the request fails.
        """
        url = f"{self.base_url}{endpoint}"
        response = self.session.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def get_markets(self, coin_ids: list[str], vs_currency: str = "usd") -> list[MarketQuote]:
        """Fetch current quotes for the given coins.

        Args:
            coin_ids: CoinGecko coin ids, e.g. ["bitcoin", "ethereum"].
            vs_currency: Quote currency.

        Returns:
            List of MarketQuote objects ordered by market cap.
        """
        if not coin_ids:
            return []

        params = {
            "vs_currency": vs_currency,
            "ids": ",".join(coin_ids),
            "order": "market_cap_desc",
            "per_page": 10,
            "page": 1,
            "sparkline": "false",
            "price_change_percentage": "24h",
        }
        data = self._get("/coins/markets", params=params)
        logger.info(f"Fetched data from CoinGecko: {len(data)} coins")
        return [MarketQuote.from_api(item) for item in data]

    def get_ohlc(self, coin_id: str, days: int = 1, vs_currency: str = "usd") -> list[OhlcCandle]:
        """Fetch OHLC candles for a coin.

        Args:
            coin_id: CoinGecko coin id.
            days: Lookback in days (1 gives 30-minute candles).
            vs_currency: Quote currency.

        Returns:
            List of OhlcCandle objects, oldest first.
        """
        data = self._get(
            f"/coins/{coin_id}/ohlc",
            params={"vs_currency": vs_currency, "days": days},
        )
        candles = [OhlcCandle.from_api(row) for row in data]
        logger.debug(f"Retrieved {len(candles)} candles for {coin_id}")
        return candles
