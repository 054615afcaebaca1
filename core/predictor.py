"""HTTP client for the remote /predict backend."""

from __future__ import annotations

import json
import logging
import math
import time
import urllib.error
import urllib.request
from typing import Any

import pandas as pd

from config.settings import PREDICTION_API_URL, PREDICTION_ATTEMPTS, REQUEST_TIMEOUT_SECONDS
from core.errors import BackendUnavailableError, MalformedResponseError, PredictionRejectedError
from core.models import Confidence, PredictionResult, frame_to_rows

LOGGER = logging.getLogger("foresight.predictor")

_REQUIRED_KEYS = ("predicted_price", "predicted_return_percentage", "confidence")


def build_payload(window: pd.DataFrame) -> dict[str, Any]:
    """Request body: the window rows verbatim, no normalization."""
    return {"recent_data": frame_to_rows(window)}


def _rejection_from(body: Any) -> PredictionRejectedError | None:
    if isinstance(body, dict) and body.get("status") == "error":
        message = body.get("message") or "Prediction backend reported an error"
        return PredictionRejectedError(str(message), {"response": body})
    return None


def parse_prediction(body: Any) -> PredictionResult:
    """Validate a decoded /predict response."""
    rejection = _rejection_from(body)
    if rejection is not None:
        raise rejection
    if not isinstance(body, dict):
        raise MalformedResponseError(f"Prediction response must be a JSON object, got {type(body).__name__}")

    missing = [key for key in _REQUIRED_KEYS if body.get(key) is None]
    if missing:
        raise MalformedResponseError(f"Prediction response missing: {', '.join(missing)}", {"response": body})

    try:
        price = float(body["predicted_price"])
        return_pct = float(body["predicted_return_percentage"])
    except (TypeError, ValueError) as error:
        raise MalformedResponseError(f"Prediction values are not numeric: {error}", {"response": body}) from error
    if not (math.isfinite(price) and math.isfinite(return_pct)):
        raise MalformedResponseError("Prediction values must be finite", {"response": body})

    try:
        confidence = Confidence(str(body["confidence"]).upper())
    except ValueError as error:
        raise MalformedResponseError(f"Unknown confidence label: {body['confidence']!r}") from error

    signal = body.get("signal")
    return PredictionResult(
        predicted_price=price,
        predicted_return_pct=return_pct,
        confidence=confidence,
        signal=str(signal) if signal is not None else None,
    )


class PredictionClient:
    """POSTs trailing windows to `<base_url>/predict`."""

    def __init__(
        self,
        base_url: str = PREDICTION_API_URL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        attempts: int = PREDICTION_ATTEMPTS,
        retry_delay: float = 2.0,
    ) -> None:
        if not base_url:
            raise ValueError("base_url cannot be empty")
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.attempts = max(1, attempts)
        self.retry_delay = retry_delay

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/predict"

    def _post_json(self, payload: dict[str, Any]) -> bytes:
        request = urllib.request.Request(
            self.endpoint,
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            method="POST",
        )
        with urllib.request.urlopen(request, timeout=self.timeout) as response:
            return response.read()

    def _handle_http_error(self, error: urllib.error.HTTPError) -> Exception:
        """Map an HTTP error status to a rejection or a transient failure."""
        try:
            body = json.loads(error.read() or b"null")
        except ValueError:
            body = None
        rejection = _rejection_from(body)
        if rejection is not None:
            return rejection
        if error.code >= 500:
            return BackendUnavailableError(f"Prediction backend returned HTTP {error.code}")
        return PredictionRejectedError(f"Prediction backend returned HTTP {error.code}", {"status": error.code})

    def predict(self, window: pd.DataFrame) -> PredictionResult:
        """Send one window and return the parsed prediction."""
        payload = build_payload(window)
        LOGGER.info("Requesting prediction for %d days", len(payload["recent_data"]))

        raw: bytes | None = None
        for attempt in range(1, self.attempts + 1):
            try:
                raw = self._post_json(payload)
                break
            except urllib.error.HTTPError as error:
                failure = self._handle_http_error(error)
            except (urllib.error.URLError, TimeoutError, OSError) as error:
                failure = BackendUnavailableError(f"Prediction backend unreachable: {error}")

            if not isinstance(failure, BackendUnavailableError) or attempt == self.attempts:
                raise failure
            LOGGER.warning("Prediction attempt %d/%d failed, backend may be waking up: %s", attempt, self.attempts, failure)
            time.sleep(self.retry_delay)

        try:
            body = json.loads(raw)
        except (TypeError, ValueError) as error:
            raise MalformedResponseError(f"Prediction response is not valid JSON: {error}") from error

        result = parse_prediction(body)
        LOGGER.info(
            "Prediction received: price=%.2f return=%.2f%% confidence=%s",
            result.predicted_price,
            result.predicted_return_pct,
            result.confidence.value,
        )
        return result
