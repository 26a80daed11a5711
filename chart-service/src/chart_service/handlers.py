"""
Request handlers for the serverless-style endpoints.

This module provides:
- MarketIngestionHandler: CoinGecko -> market_data / ohlcv_data -> response
- PredictionProxyHandler: request -> LSTM backend -> predictions -> response

Handlers return ``(status_code, body)`` so they can be exercised without
an HTTP server; main.py wraps them into JSON responses.
"""

import logging
from datetime import datetime, timezone
from typing import Any

import requests

from coingecko import COIN_ID_MAP, DEFAULT_SYMBOLS, CoinGeckoClient, symbols_to_coin_ids
from chart_service.predictor import LstmBackendClient, PredictionBackendError
from chart_service.store import StoreError, SupabaseRestClient

logger = logging.getLogger(__name__)

MISCONFIGURED_ERROR = "Server misconfigured: SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY not set"

# Number of stored close prices sent to the backend as context
HISTORY_WINDOW = 100

HandlerResult = tuple[int, dict[str, Any]]


def _misconfigured() -> HandlerResult:
    return 500, {"success": False, "error": MISCONFIGURED_ERROR}


def _requested_symbols(body: Any) -> list[str]:
    if isinstance(body, dict) and isinstance(body.get("symbols"), list) and body["symbols"]:
        return [str(s).upper() for s in body["symbols"]]
    return list(DEFAULT_SYMBOLS)


class MarketIngestionHandler:
    """Refreshes stored market data from CoinGecko and returns it."""

    def __init__(self, store: SupabaseRestClient | None, market_client: CoinGeckoClient):
        """
        Initialize the handler.

        Args:
            store: Storage client, None when storage is not configured
            market_client: CoinGecko client
        """
        self.store = store
        self.market_client = market_client

    def handle(self, body: Any) -> HandlerResult:
        """
        Ingest quotes and 24h OHLC candles for the requested symbols.

        Args:
            body: Decoded request body, optionally {"symbols": [...]}

        Returns:
            tuple: (status_code, response body)
        """
        if self.store is None:
            return _misconfigured()

        symbols = _requested_symbols(body)
        logger.info(f"Fetching market data for symbols: {symbols}")

        try:
            quotes = self.market_client.get_markets(symbols_to_coin_ids(symbols))
        except requests.RequestException as e:
            logger.error(f"Error in fetch-market-data: {e}", exc_info=True)
            return 500, {"success": False, "error": f"CoinGecko API error: {e}"}

        updated_at = datetime.now(timezone.utc).isoformat()
        for quote in quotes:
            try:
                self.store.upsert(
                    "market_data",
                    {
                        "symbol": quote.symbol.upper(),
                        "name": quote.name,
                        "current_price": quote.current_price,
                        "price_change_24h": quote.price_change_24h,
                        "price_change_percentage_24h": quote.price_change_percentage_24h,
                        "market_cap": quote.market_cap,
                        "total_volume": quote.total_volume,
                        "high_24h": quote.high_24h,
                        "low_24h": quote.low_24h,
                        "ath": quote.ath,
                        "ath_date": quote.ath_date,
                        "atl": quote.atl,
                        "atl_date": quote.atl_date,
                        "circulating_supply": quote.circulating_supply,
                        "max_supply": quote.max_supply,
                        "image_url": quote.image,
                        "last_updated": updated_at,
                    },
                    on_conflict="symbol",
                )
            except StoreError as e:
                logger.error(f"Error storing market data for {quote.symbol}: {e}")

        for symbol in symbols:
            self._ingest_ohlc(symbol)

        try:
            stored = self.store.select("market_data", order="market_cap.desc")
        except StoreError as e:
            logger.error(f"Error fetching stored data: {e}")
            return 500, {"success": False, "error": f"Error fetching stored data: {e}"}

        logger.info(
            f"Successfully processed market data for {len(stored)} coins",
            extra={"symbols": [row.get("symbol") for row in stored]},
        )
        return 200, {
            "success": True,
            "data": stored,
            "message": f"Successfully updated market data for {len(stored)} cryptocurrencies",
        }

    def _ingest_ohlc(self, symbol: str) -> int:
        coin_id = COIN_ID_MAP.get(symbol)
        if not coin_id:
            return 0

        try:
            candles = self.market_client.get_ohlc(coin_id, days=1)
            rows = [
                {
                    "symbol": symbol,
                    "timestamp": candle.time.isoformat(),
                    "open_price": candle.open,
                    "high_price": candle.high,
                    "low_price": candle.low,
                    "close_price": candle.close,
                    "volume": 0,
                    "timeframe": "1h",
                }
                for candle in candles
            ]
            if rows:
                self.store.upsert("ohlcv_data", rows, on_conflict="symbol,timestamp,timeframe")
            return len(rows)
        except (requests.RequestException, StoreError) as e:
            logger.error(f"Error fetching OHLCV data for {symbol}: {e}")
            return 0


class PredictionProxyHandler:
    """Forwards prediction requests to the LSTM backend and stores the result."""

    def __init__(self, store: SupabaseRestClient | None, backend: LstmBackendClient):
        """
        Initialize the handler.

        Args:
            store: Storage client, None when storage is not configured
            backend: LSTM backend client
        """
        self.store = store
        self.backend = backend

    def handle(self, body: Any) -> HandlerResult:
        """
        Produce a prediction through the LSTM backend.

        Args:
            body: {symbol, currentPrice, historicalPrices, horizon}

        Returns:
            tuple: (status_code, response body)
        """
        if self.store is None:
            return _misconfigured()

        body = body if isinstance(body, dict) else {}
        symbol = str(body.get("symbol") or "").upper()
        if not symbol:
            return 400, {"success": False, "error": "symbol is required"}

        current_price = body.get("currentPrice", body.get("current_price"))
        horizon = body.get("horizon") or "1H"
        try:
            historical = [float(p) for p in body.get("historicalPrices", body.get("historical_prices")) or []]
        except (TypeError, ValueError):
            return 400, {"success": False, "error": "historicalPrices must be a list of numbers"}

        logger.info(f"Generating real LSTM prediction for {symbol} with horizon {horizon}")

        payload = {
            "symbol": symbol,
            "current_price": current_price,
            "historical_prices": self._with_stored_history(symbol, historical),
            "horizon": horizon,
        }

        try:
            result = self.backend.predict(payload)
        except PredictionBackendError as e:
            logger.error(f"Error in LSTM predictions: {e}")
            return 500, {
                "success": False,
                "error": (
                    f"Real LSTM prediction failed: {e}. "
                    f"Please ensure the Python backend is running at {e.backend_url}"
                ),
                "backend_url": e.backend_url,
            }

        prediction = self._persist(symbol, current_price, horizon, result)
        confidence = result.get("confidence_level")
        logger.info(
            f"Real LSTM prediction for {symbol}: ${result.get('predicted_price')}"
            + (f" ({confidence * 100:.1f}% confidence)" if isinstance(confidence, (int, float)) else "")
        )

        metrics = {
            "rmse": result.get("rmse"),
            "mae": result.get("mae"),
            "mape": result.get("mape"),
        }
        return 200, {
            "success": True,
            "prediction": prediction,
            "predicted_price": result.get("predicted_price"),
            "confidence_level": confidence,
            "model_info": result.get("model_info"),
            "reasoning": result.get("reasoning"),
            **metrics,
            "metrics": metrics,
            "features": result.get("features"),
        }

    def _with_stored_history(self, symbol: str, historical: list[float]) -> list[float]:
        """Prepend stored close prices to the caller's history, keeping the newest."""
        try:
            rows = self.store.select(
                "ohlcv_data",
                columns="close_price",
                filters={"symbol": f"eq.{symbol}"},
                order="timestamp.desc",
                limit=HISTORY_WINDOW,
            )
        except StoreError as e:
            logger.warning(f"Could not fetch OHLCV data: {e}")
            return historical

        stored = [float(row["close_price"]) for row in reversed(rows) if row.get("close_price") is not None]
        if not stored:
            return historical
        return (stored + historical)[-HISTORY_WINDOW:]

    def _persist(
        self,
        symbol: str,
        current_price: Any,
        horizon: str,
        result: dict[str, Any],
    ) -> dict[str, Any]:
        record = {
            "symbol": symbol,
            "current_price": current_price,
            "predicted_price": result.get("predicted_price"),
            "confidence_level": result.get("confidence_level"),
            "prediction_horizon": horizon,
            "features": result.get("features"),
            "model_info": result.get("model_info"),
            "reasoning": result.get("reasoning"),
        }
        try:
            stored = self.store.insert("predictions", record)
        except StoreError as e:
            logger.warning(f"Could not store prediction: {e}")
            return record
        return stored[0] if stored else record
