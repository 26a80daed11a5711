"""
FastAPI application for the chart service.

This module provides:
- Market ingestion and prediction proxy endpoints
- The live price chart API
- Health check endpoint
- CORS configuration for frontend access
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from coingecko import CoinGeckoClient
from chart_service.config import Settings, configure_logging, get_logger, get_settings
from chart_service.handlers import MarketIngestionHandler, PredictionProxyHandler
from chart_service.predictor import LstmBackendClient
from chart_service.store import SupabaseRestClient
from pricechart import (
    BackendFuturePredictionSource,
    LiveSeriesFeed,
    SeriesReconciler,
    StoreActualObservationSource,
    StoreMarketSnapshotSource,
)
from pricechart import api as chart_api

__version__ = "0.1.0"


@dataclass
class Services:
    """Everything the endpoints need, built once per process."""

    ingestion: MarketIngestionHandler
    prediction: PredictionProxyHandler
    feed: LiveSeriesFeed


_services: Services | None = None
_logger: logging.Logger | None = None


def build_services(settings: Settings) -> Services:
    """
    Wire clients, handlers, reconciler and feed from settings.

    Storage is left unset when its connection parameters are missing so the
    handlers can report the misconfiguration per request.
    """
    store = None
    if settings.store_configured:
        store = SupabaseRestClient(
            settings.supabase_url,
            settings.supabase_service_role_key,
            timeout=settings.request_timeout_seconds,
        )

    market_client = CoinGeckoClient(settings.coingecko_api_url, timeout=settings.request_timeout_seconds)
    backend = LstmBackendClient(settings.lstm_backend_url, timeout=settings.request_timeout_seconds)

    reconciler = SeriesReconciler(
        market_source=StoreMarketSnapshotSource(store) if store else None,
        prediction_source=BackendFuturePredictionSource(backend),
        observation_source=StoreActualObservationSource(store) if store else None,
    )

    return Services(
        ingestion=MarketIngestionHandler(store, market_client),
        prediction=PredictionProxyHandler(store, backend),
        feed=LiveSeriesFeed(reconciler, interval_seconds=settings.refresh_interval_seconds),
    )


def install_services(services: Services | None) -> None:
    """Make ``services`` the ones served by the endpoints."""
    global _services
    _services = services
    chart_api.set_feed(services.feed if services else None)


def get_services() -> Services:
    """Get the installed services."""
    if _services is None:
        raise RuntimeError("Services not initialized")
    return _services


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Initializes logging and services on startup and stops the live feed
    on shutdown.
    """
    global _logger

    settings = get_settings()

    _logger = configure_logging(settings)
    _logger.info("Starting chart service", extra={"port": settings.service_port})

    install_services(build_services(settings))
    _logger.info("Services initialized")

    yield

    _logger.info("Shutting down chart service")
    if _services is not None:
        await _services.feed.shutdown()
    install_services(None)


# Create FastAPI application
app = FastAPI(
    title="Chart Service",
    description="Crypto market data ingestion, LSTM prediction proxy and live price chart",
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

app.include_router(chart_api.router)


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """
    Health check endpoint.

    Returns:
        HealthResponse: Service health status
    """
    logger = get_logger()
    logger.debug("Health check requested")

    return HealthResponse(
        status="healthy",
        service="chart-service",
        version=__version__,
    )


async def _read_body(request: Request):
    try:
        return await request.json()
    except ValueError:
        return {}


@app.post("/functions/v1/fetch-market-data", tags=["Functions"])
async def fetch_market_data(request: Request) -> JSONResponse:
    """
    Refresh stored market data from CoinGecko.

    Body (optional): {"symbols": ["BTC", "ETH", ...]}
    """
    body = await _read_body(request)
    status_code, payload = await asyncio.to_thread(get_services().ingestion.handle, body)
    return JSONResponse(status_code=status_code, content=payload)


@app.post("/functions/v1/lstm-predictions", tags=["Functions"])
async def lstm_predictions(request: Request) -> JSONResponse:
    """
    Request a prediction from the LSTM backend.

    Body: {"symbol", "currentPrice", "historicalPrices", "horizon"}
    """
    body = await _read_body(request)
    status_code, payload = await asyncio.to_thread(get_services().prediction.handle, body)
    return JSONResponse(status_code=status_code, content=payload)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests."""
    logger = get_logger()

    logger.debug(
        "Request received",
        extra={
            "method": request.method,
            "path": request.url.path,
            "client": request.client.host if request.client else "unknown",
        },
    )

    response = await call_next(request)

    logger.debug(
        "Response sent",
        extra={
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
        },
    )

    return response


def main() -> None:
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "chart_service.main:app",
        host="0.0.0.0",
        port=settings.service_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
