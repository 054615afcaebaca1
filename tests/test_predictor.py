"""Tests for the /predict client and response parsing."""

import io
import json
import urllib.error

import pytest

from core import predictor
from core.errors import BackendUnavailableError, MalformedResponseError, PredictionRejectedError
from core.models import Confidence
from core.predictor import PredictionClient, build_payload, parse_prediction

VALID_BODY = {
    "predicted_price": 187.42,
    "predicted_return_percentage": 1.35,
    "confidence": "MEDIUM",
    "signal": "BUY",
}


class FakeResponse:
    def __init__(self, body) -> None:
        self._body = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")

    def read(self) -> bytes:
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False


def _http_error(code: int, body: bytes) -> urllib.error.HTTPError:
    return urllib.error.HTTPError("https://backend.test/predict", code, "error", {}, io.BytesIO(body))


@pytest.fixture
def captured(monkeypatch):
    """Replace urlopen with a scripted sequence of responses and errors."""
    state = {"requests": [], "script": []}

    def fake_urlopen(request, timeout):
        state["requests"].append((request, timeout))
        outcome = state["script"].pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return FakeResponse(outcome)

    monkeypatch.setattr(predictor.urllib.request, "urlopen", fake_urlopen)
    monkeypatch.setattr(predictor.time, "sleep", lambda seconds: None)
    return state


class TestBuildPayload:
    def test_rows_are_ohlcv_in_order(self, make_frame):
        payload = build_payload(make_frame(3))

        assert payload == {
            "recent_data": [
                [99.5, 101.0, 99.0, 100.0, 1_000_000],
                [100.5, 102.0, 100.0, 101.0, 1_000_001],
                [101.5, 103.0, 101.0, 102.0, 1_000_002],
            ]
        }
        assert isinstance(payload["recent_data"][0][4], int)

    def test_payload_is_json_serializable(self, make_frame):
        assert json.loads(json.dumps(build_payload(make_frame(70))))["recent_data"][69][3] == 169.0


class TestParsePrediction:
    def test_valid_body(self):
        result = parse_prediction(VALID_BODY)

        assert result.predicted_price == 187.42
        assert result.predicted_return_pct == 1.35
        assert result.confidence is Confidence.MEDIUM
        assert result.signal == "BUY"

    def test_confidence_is_case_insensitive(self):
        assert parse_prediction({**VALID_BODY, "confidence": "high"}).confidence is Confidence.HIGH

    def test_error_status_is_rejection(self):
        body = {"status": "error", "message": "Not enough data: need 61 rows"}

        with pytest.raises(PredictionRejectedError, match="need 61 rows"):
            parse_prediction(body)

    def test_error_status_wins_over_values(self):
        with pytest.raises(PredictionRejectedError):
            parse_prediction({**VALID_BODY, "status": "error"})

    @pytest.mark.parametrize("missing", ["predicted_price", "predicted_return_percentage", "confidence"])
    def test_missing_keys(self, missing):
        body = {key: value for key, value in VALID_BODY.items() if key != missing}

        with pytest.raises(MalformedResponseError, match=missing):
            parse_prediction(body)

    @pytest.mark.parametrize(
        "body",
        [
            [],
            "ok",
            {**VALID_BODY, "predicted_price": "lots"},
            {**VALID_BODY, "predicted_return_percentage": float("nan")},
            {**VALID_BODY, "confidence": "EXTREME"},
        ],
    )
    def test_malformed_bodies(self, body):
        with pytest.raises(MalformedResponseError):
            parse_prediction(body)


class TestPredictionClient:
    def test_posts_window_to_predict_endpoint(self, captured, make_frame):
        captured["script"] = [VALID_BODY]
        client = PredictionClient(base_url="https://backend.test/", timeout=12.0)

        result = client.predict(make_frame(70))

        request, timeout = captured["requests"][0]
        assert request.full_url == "https://backend.test/predict"
        assert request.get_method() == "POST"
        assert request.get_header("Content-type") == "application/json"
        assert len(json.loads(request.data)["recent_data"]) == 70
        assert timeout == 12.0
        assert result.predicted_price == 187.42

    def test_cold_start_is_retried_once(self, captured, make_frame):
        captured["script"] = [urllib.error.URLError("connection reset"), VALID_BODY]
        client = PredictionClient(base_url="https://backend.test", attempts=2)

        result = client.predict(make_frame(5))

        assert len(captured["requests"]) == 2
        assert result.confidence is Confidence.MEDIUM

    def test_timeout_is_backend_unavailable(self, captured, make_frame):
        captured["script"] = [TimeoutError("timed out"), TimeoutError("timed out")]
        client = PredictionClient(base_url="https://backend.test", attempts=2)

        with pytest.raises(BackendUnavailableError, match="timed out"):
            client.predict(make_frame(5))
        assert len(captured["requests"]) == 2

    def test_server_error_is_retried_then_unavailable(self, captured, make_frame):
        captured["script"] = [_http_error(502, b"Bad Gateway"), _http_error(503, b"")]
        client = PredictionClient(base_url="https://backend.test", attempts=2)

        with pytest.raises(BackendUnavailableError, match="503"):
            client.predict(make_frame(5))

    def test_error_body_is_rejection_without_retry(self, captured, make_frame):
        body = json.dumps({"status": "error", "message": "Invalid input shape"}).encode("utf-8")
        captured["script"] = [_http_error(400, body), VALID_BODY]
        client = PredictionClient(base_url="https://backend.test", attempts=2)

        with pytest.raises(PredictionRejectedError, match="Invalid input shape"):
            client.predict(make_frame(5))
        assert len(captured["requests"]) == 1

    def test_ok_status_with_error_body_is_rejection(self, captured, make_frame):
        captured["script"] = [{"status": "error", "message": "Model not loaded"}]
        client = PredictionClient(base_url="https://backend.test")

        with pytest.raises(PredictionRejectedError, match="Model not loaded"):
            client.predict(make_frame(5))

    def test_non_json_answer_is_malformed(self, captured, make_frame):
        captured["script"] = [b"<html>Service waking up</html>"]
        client = PredictionClient(base_url="https://backend.test")

        with pytest.raises(MalformedResponseError):
            client.predict(make_frame(5))

    def test_client_configuration_is_validated(self):
        with pytest.raises(ValueError, match="base_url"):
            PredictionClient(base_url="")
        with pytest.raises(ValueError, match="timeout"):
            PredictionClient(base_url="https://backend.test", timeout=0)
