import pytest
from fastapi.testclient import TestClient

from conftest import (
    FakeBackend,
    FakeMarketClient,
    FakeMarketSource,
    FakeObservationSource,
    FakePredictionSource,
    FakeStore,
    iso,
    observation,
    prediction,
)
from chart_service import main
from chart_service.handlers import MarketIngestionHandler, PredictionProxyHandler
from pricechart import LiveSeriesFeed, SeriesReconciler


def build_fake_services(store):
    reconciler = SeriesReconciler(
        FakeMarketSource(price=100.0),
        FakePredictionSource([prediction(1, 110.0), prediction(2, 120.0)]),
        FakeObservationSource([observation(1, 111.0)]),
    )
    return main.Services(
        ingestion=MarketIngestionHandler(store, FakeMarketClient()),
        prediction=PredictionProxyHandler(store, FakeBackend()),
        feed=LiveSeriesFeed(reconciler, interval_seconds=3600),
    )


@pytest.fixture
def client(monkeypatch):
    services = build_fake_services(FakeStore(tables={"market_data": [{"symbol": "BTC"}]}))
    monkeypatch.setattr(main, "build_services", lambda settings: services)
    with TestClient(main.app) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_timeframes(client):
    timeframes = client.get("/api/chart/timeframes").json()["timeframes"]
    assert [tf["value"] for tf in timeframes] == ["1H", "1D", "7D", "1M", "3M", "1Y"]
    assert {tf["value"]: tf["max_points"] for tf in timeframes}["3M"] == 180


def test_reconcile_once(client):
    response = client.post("/api/chart/reconcile", json={
        "timeframe": "1D",
        "current_price": 0,
        "base_series": [{"time": iso(0), "price": 100.0}],
        "future_points": [
            {"time": iso(1), "price": 110.0, "confidence": 0.9},
            {"time": iso(2), "price": 120.0},
        ],
        "actual_observations": [{"time": iso(1, 20), "price": 112.0}],
    })

    assert response.status_code == 200
    body = response.json()
    assert body["series"] == [
        {"time": iso(0), "price": 100.0},
        {"time": iso(1), "price": 112.0, "confidence": 0.9, "isActual": True, "predictionAccuracy": "correct"},
        {"time": iso(2), "price": 112.0, "predicted": 120.0},
    ]
    assert body["tally"] == {"correct": 1, "incorrect": 0, "accuracy_pct": 100.0}
    assert body["future_count"] == 2


def test_reconcile_rejects_unknown_timeframe(client):
    response = client.post("/api/chart/reconcile", json={"timeframe": "5Y"})
    assert response.status_code == 400


def test_refresh_requires_selection(client):
    assert client.post("/api/chart/refresh").status_code == 400


def test_select_refresh_and_stop(client):
    response = client.post("/api/chart/select", json={
        "symbol": "btc",
        "timeframe": "1D",
        "base_series": [{"time": iso(0), "price": 100.0}],
    })
    assert response.status_code == 200
    assert response.json()["symbol"] == "BTC"
    assert response.json()["interval_seconds"] == 3600

    refreshed = client.post("/api/chart/refresh")
    assert refreshed.status_code == 200
    assert "published" in refreshed.json()

    series = client.get("/api/chart/series").json()
    assert series["running"] is True
    assert series["symbol"] == "BTC"
    assert series["timeframe"] == "1D"

    assert client.post("/api/chart/stop").json() == {"status": "stopped"}
    assert client.get("/api/chart/series").json()["running"] is False


def test_stream_without_feed_reports_error(client):
    with client.websocket_connect("/api/chart/stream") as websocket:
        message = websocket.receive_json()
    assert message["type"] == "error"


def test_fetch_market_data_endpoint(client):
    response = client.post("/functions/v1/fetch-market-data", json={"symbols": ["BTC"]})
    assert response.status_code == 200
    assert response.json()["data"] == [{"symbol": "BTC"}]


def test_fetch_market_data_without_body(client):
    response = client.post("/functions/v1/fetch-market-data")
    assert response.status_code == 200
    assert response.json()["success"] is True


def test_lstm_predictions_endpoint(client):
    response = client.post("/functions/v1/lstm-predictions", json={
        "symbol": "BTC",
        "currentPrice": 50000.0,
        "historicalPrices": [49000.0, 49500.0],
    })
    assert response.status_code == 200
    assert response.json()["predicted_price"] == 51000.0


def test_misconfigured_endpoints(monkeypatch):
    services = build_fake_services(None)
    monkeypatch.setattr(main, "build_services", lambda settings: services)
    with TestClient(main.app) as test_client:
        for path in ("/functions/v1/fetch-market-data", "/functions/v1/lstm-predictions"):
            response = test_client.post(path, json={"symbol": "BTC"})
            assert response.status_code == 500
            assert response.json()["success"] is False
            assert "Server misconfigured" in response.json()["error"]


def test_package_exposes_main_module():
    import chart_service

    assert chart_service.main is main
    assert callable(main.main)
