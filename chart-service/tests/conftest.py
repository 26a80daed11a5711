"""Shared fakes for the chart service tests."""

import json
from datetime import datetime, timedelta, timezone

import requests

from chart_service.store import StoreError
from coingecko import MarketQuote, OhlcCandle
from pricechart import ActualObservation, FuturePrediction, TimePoint

BASE_TIME = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


def iso(hours: float = 0, minutes: float = 0) -> str:
    """ISO timestamp offset from BASE_TIME."""
    return (BASE_TIME + timedelta(hours=hours, minutes=minutes)).isoformat().replace("+00:00", "Z")


def actual(hours: float, price: float) -> TimePoint:
    return TimePoint(time=iso(hours), actual_price=price)


def prediction(hours: float, price: float, confidence: float = 0.8) -> FuturePrediction:
    return FuturePrediction(time=iso(hours), price=price, confidence=confidence)


def observation(hours: float, price: float, minutes: float = 0) -> ActualObservation:
    return ActualObservation(time=iso(hours, minutes), price=price)


class FakeStore:
    """In-memory stand-in for SupabaseRestClient."""

    def __init__(self, tables=None, fail_on=()):
        self.tables = tables or {}
        self.fail_on = set(fail_on)
        self.selects = []
        self.upserts = []
        self.inserts = []

    def _check(self, op, table):
        if (op, table) in self.fail_on:
            raise StoreError(table, f"{op} failed", status_code=500)

    def select(self, table, columns="*", filters=None, order=None, limit=None):
        self.selects.append({"table": table, "columns": columns, "filters": filters, "order": order, "limit": limit})
        self._check("select", table)
        rows = list(self.tables.get(table, []))
        return rows[:limit] if limit is not None else rows

    def upsert(self, table, rows, on_conflict):
        self.upserts.append({"table": table, "rows": rows, "on_conflict": on_conflict})
        self._check("upsert", table)
        return rows if isinstance(rows, list) else [rows]

    def insert(self, table, rows):
        self.inserts.append({"table": table, "rows": rows})
        self._check("insert", table)
        return [dict(rows, id=1)]


class FakeMarketClient:
    """Stand-in for CoinGeckoClient."""

    def __init__(self, quotes=None, candles=None, markets_error=None, ohlc_error=None):
        self.quotes = quotes if quotes is not None else [
            MarketQuote.from_api({
                "id": "bitcoin",
                "symbol": "btc",
                "name": "Bitcoin",
                "current_price": 50000.0,
                "market_cap": 1e12,
            })
        ]
        self.candles = candles if candles is not None else [
            OhlcCandle(timestamp=1704067200000, open=1.0, high=2.0, low=0.5, close=1.5)
        ]
        self.markets_error = markets_error
        self.ohlc_error = ohlc_error
        self.market_calls = []
        self.ohlc_calls = []

    def get_markets(self, coin_ids, vs_currency="usd"):
        self.market_calls.append(list(coin_ids))
        if self.markets_error:
            raise self.markets_error
        return self.quotes

    def get_ohlc(self, coin_id, days=1, vs_currency="usd"):
        self.ohlc_calls.append((coin_id, days))
        if self.ohlc_error:
            raise self.ohlc_error
        return self.candles


class FakeBackend:
    """Stand-in for LstmBackendClient."""

    base_url = "http://lstm.test:8000"

    def __init__(self, result=None, error=None, future=None):
        self.result = result if result is not None else {
            "predicted_price": 51000.0,
            "confidence_level": 0.82,
            "model_info": {"name": "lstm", "version": "1"},
            "reasoning": "uptrend",
            "rmse": 120.5,
            "mae": 90.1,
            "mape": 0.018,
            "features": {"rsi": 55},
        }
        self.error = error
        self.future = future or []
        self.payloads = []

    def predict(self, payload):
        self.payloads.append(payload)
        if self.error:
            raise self.error
        return self.result

    def predict_future(self, symbol, timeframe):
        if self.error:
            raise self.error
        return self.future


class FakeMarketSource:
    def __init__(self, price=100.0, error=None):
        self.price = price
        self.error = error
        self.calls = []

    def get_market_data(self, symbols):
        self.calls.append(list(symbols))
        if self.error:
            raise self.error
        return [{"symbol": symbols[0], "current_price": self.price}]


class FakePredictionSource:
    def __init__(self, predictions=None, error=None):
        self.predictions = predictions or []
        self.error = error
        self.calls = []

    def get_future_predictions(self, symbol, timeframe):
        self.calls.append((symbol, timeframe))
        if self.error:
            raise self.error
        return self.predictions


class FakeObservationSource:
    def __init__(self, observations=None, error=None):
        self.observations = observations or []
        self.error = error

    def get_actual_observations(self, symbol, timeframe):
        if self.error:
            raise self.error
        return self.observations


class FakeResponse:
    """Minimal requests.Response stand-in."""

    def __init__(self, status_code=200, payload=None, text=None, json_error=None):
        self.status_code = status_code
        self._payload = payload
        self._json_error = json_error
        self.text = text if text is not None else json.dumps(payload)
        self.content = self.text.encode() if payload is not None or text else b""

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._json_error:
            raise self._json_error
        return self._payload

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} Error")


class RecordingSession:
    """Replays queued responses (or raises queued exceptions) and records calls."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def _next(self, call):
        self.calls.append(call)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, params=None, timeout=None):
        return self._next({"method": "GET", "url": url, "params": params})

    def post(self, url, json=None, timeout=None):
        return self._next({"method": "POST", "url": url, "json": json})

    def request(self, method, url, params=None, json=None, headers=None, timeout=None):
        return self._next({"method": method, "url": url, "params": params, "json": json, "headers": headers})
