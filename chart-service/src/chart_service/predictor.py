"""
Client for the external LSTM prediction backend.

The backend owns the model; this service only forwards requests to it.
"""

import logging
from typing import Any

import requests

from pricechart.models import Timeframe

logger = logging.getLogger(__name__)


class PredictionBackendError(Exception):
    """The prediction backend could not be reached or answered with an error."""

    def __init__(self, backend_url: str, message: str, status_code: int | None = None):
        super().__init__(message)
        self.backend_url = backend_url
        self.status_code = status_code


class LstmBackendClient:
    """Thin HTTP client for the LSTM backend's prediction endpoints."""

    def __init__(self, base_url: str, timeout: float = 30.0):
        """
        Initialize the client.

        Args:
            base_url: Backend root URL, e.g. http://localhost:8000
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})

    def _post(self, endpoint: str, payload: dict[str, Any]) -> Any:
        url = f"{self.base_url}{endpoint}"
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise PredictionBackendError(self.base_url, f"LSTM backend unreachable: {e}") from e

        if not response.ok:
            logger.error(f"Backend error {response.status_code}: {response.text}")
            raise PredictionBackendError(
                self.base_url,
                f"LSTM backend error: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Backend returned invalid JSON from {endpoint}: {response.text[:200]}")
            raise PredictionBackendError(
                self.base_url,
                f"LSTM backend returned invalid JSON: {e}",
                status_code=response.status_code,
            ) from e

    def predict(self, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Request a single-horizon prediction.

        Args:
            payload: {symbol, current_price, historical_prices, horizon}

        Returns:
            dict: {predicted_price, confidence_level, model_info, reasoning,
                rmse, mae, mape, features}

        Raises:
            PredictionBackendError: If the backend fails or does not answer
                with a JSON object
        """
        logger.info(f"Calling LSTM backend at {self.base_url}/predict")
        result = self._post("/predict", payload)
        if not isinstance(result, dict):
            raise PredictionBackendError(
                self.base_url,
                f"LSTM backend returned {type(result).__name__}, expected a JSON object",
            )
        return result

    def predict_future(self, symbol: str, timeframe: Timeframe) -> list[dict[str, Any]]:
        """
        Request the predicted curve for a timeframe.

        Returns:
            list: [{time, price, confidence}, ...] ordered by time

        Raises:
            PredictionBackendError: If the backend fails
        """
        data = self._post(
            "/predict/future",
            {
                "symbol": symbol.upper(),
                "timeframe": timeframe.value,
                "steps": timeframe.max_points,
                "interval_minutes": int(timeframe.step.total_seconds() // 60),
            },
        )
        if isinstance(data, dict):
            data = data.get("predictions", [])
        return list(data)
