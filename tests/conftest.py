"""Shared fixtures: deterministic OHLCV series and fake collaborators."""

from __future__ import annotations

import pandas as pd
import pytest

from core.dashboard import DashboardSession
from core.errors import BackendUnavailableError
from core.models import Confidence, OhlcvRecord, PredictionResult, records_to_frame


def build_records(count: int, start_close: float = 100.0) -> list[OhlcvRecord]:
    dates = pd.bdate_range("2024-01-01", periods=count)
    records = []
    for offset, date in enumerate(dates):
        close = start_close + offset
        records.append(
            OhlcvRecord(
                open=close - 0.5,
                high=close + 1.0,
                low=close - 1.0,
                close=close,
                volume=1_000_000 + offset,
                date=date,
            )
        )
    return records


def build_chart_payload(count: int, nulls: tuple[tuple[int, str], ...] = ()) -> dict:
    """Chart endpoint JSON for `count` days with selected fields nulled."""
    records = build_records(count)
    quote = {
        "open": [record.open for record in records],
        "high": [record.high for record in records],
        "low": [record.low for record in records],
        "close": [record.close for record in records],
        "volume": [record.volume for record in records],
    }
    for index, field in nulls:
        quote[field][index] = None
    return {
        "chart": {
            "result": [
                {
                    "timestamp": [int(record.date.timestamp()) for record in records],
                    "indicators": {"quote": [quote]},
                }
            ],
            "error": None,
        }
    }


class FakePredictionClient:
    """Records every window it receives and answers with a canned result."""

    def __init__(self, result: PredictionResult | None = None, error: Exception | None = None) -> None:
        self.result = result or PredictionResult(
            predicted_price=105.0,
            predicted_return_pct=1.2,
            confidence=Confidence.HIGH,
        )
        self.error = error
        self.windows: list[pd.DataFrame] = []

    def predict(self, window: pd.DataFrame) -> PredictionResult:
        self.windows.append(window)
        if self.error is not None:
            raise self.error
        return self.result


class FakeLoader:
    """Market-data loader returning queued frames or raising queued errors."""

    def __init__(self, *outcomes) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[str] = []

    def __call__(self, ticker: str):
        self.calls.append(ticker)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome, "chart"


@pytest.fixture
def make_frame():
    def _make(count: int = 30, start_close: float = 100.0) -> pd.DataFrame:
        return records_to_frame(build_records(count, start_close))

    return _make


@pytest.fixture
def fake_client() -> FakePredictionClient:
    return FakePredictionClient()


@pytest.fixture
def loaded_session(make_frame, fake_client) -> DashboardSession:
    session = DashboardSession(
        ticker="AAPL",
        loader=FakeLoader(make_frame(100)),
        client=fake_client,
    )
    session.refresh()
    return session


@pytest.fixture
def unavailable_error() -> BackendUnavailableError:
    return BackendUnavailableError("Prediction backend unreachable: timed out")
