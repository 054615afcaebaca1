"""One dashboard session: fetch, edit, predict and expose chart data."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable

import pandas as pd

from config.settings import DEFAULT_TICKER, PREDICTION_WINDOW, SMA_WINDOW
from core.analytics import (
    classify_signal,
    gauge_bands,
    gauge_position,
    next_trading_day,
    percentage_return,
    simple_moving_average,
)
from core.errors import ForesightError, NoLiveDataError, PredictionBusyError
from core.market_data import load_market_series
from core.models import PredictionResult, Signal
from core.predictor import PredictionClient
from core.series_store import SeriesStore

LOGGER = logging.getLogger("foresight.dashboard")

STATUS_LOADING = "Loading"
STATUS_READY = "System Ready"
STATUS_DATA_ERROR = "Data Error"


@dataclass(frozen=True)
class WhatIf:
    """User override of the last trading day; close is never overridden."""

    open: float
    high: float
    low: float
    volume: float


@dataclass(frozen=True)
class ForecastMarker:
    index: int
    date: pd.Timestamp | None
    price: float


@dataclass(frozen=True)
class GaugeReading:
    value: float
    percent_change: float
    signal: Signal
    bands: list[tuple[float, float, Signal]]


@dataclass(frozen=True)
class PredictionOutcome:
    """Backend prediction plus the values derived locally from it."""

    result: PredictionResult
    base_price: float
    local_return_pct: float
    signal: Signal
    forecast: ForecastMarker
    what_if: WhatIf | None = None


@dataclass
class ChartData:
    """Everything a renderer needs for the candlestick chart and gauge."""

    ticker: str
    frame: pd.DataFrame
    sma: list[float | None]
    sma_window: int
    forecast: ForecastMarker | None = None
    gauge: GaugeReading | None = None


class DashboardSession:
    """
    Sequential fetch / edit / predict flow around a `SeriesStore`.

    Failed refreshes keep the last good series. Failed predictions roll the
    simulated series back so nothing visible changes.
    """

    def __init__(
        self,
        ticker: str = DEFAULT_TICKER,
        store: SeriesStore | None = None,
        loader: Callable[[str], tuple[pd.DataFrame, str]] = load_market_series,
        client: PredictionClient | None = None,
        prediction_window: int = PREDICTION_WINDOW,
        sma_window: int = SMA_WINDOW,
    ) -> None:
        self.ticker = ticker
        self.store = store if store is not None else SeriesStore()
        self._loader = loader
        self._client = client if client is not None else PredictionClient()
        self.prediction_window = prediction_window
        self.sma_window = sma_window
        self.status = STATUS_LOADING
        self.source: str | None = None
        self.last_error: str | None = None
        self.last_prediction: PredictionOutcome | None = None
        self._series_lock = threading.Lock()

    def refresh(self) -> str:
        """
        Reload market data; on failure keep stale data and flag the feed.

        Waits for a running prediction so its rollback cannot overwrite the
        freshly loaded series.
        """
        with self._series_lock:
            try:
                frame, source = self._loader(self.ticker)
                self.store.ingest(frame)
                self.store.reset_to_live()
            except ForesightError as error:
                self.status = STATUS_DATA_ERROR
                self.last_error = error.message
                LOGGER.error("Error fetching market data for %s: %s", self.ticker, error.message)
                return self.status

            self.source = source
            self.status = STATUS_READY
            self.last_error = None
            self.last_prediction = None
            LOGGER.info("Loaded %d days for %s via %s", len(self.store.live), self.ticker, source)
            return self.status

    def predict(self, what_if: WhatIf | None = None) -> PredictionOutcome:
        """Apply an optional what-if override and ask the backend for a forecast."""
        if not self._series_lock.acquire(blocking=False):
            raise PredictionBusyError("A prediction or refresh is already in progress")
        try:
            if not self.store.has_live:
                raise NoLiveDataError("No live data loaded yet")

            snapshot = self.store.snapshot()
            try:
                base_price = self.store.latest_close()
                if what_if is not None:
                    self.store.apply_what_if(what_if.open, what_if.high, what_if.low, what_if.volume)
                window = self.store.trailing_window(self.prediction_window)
                result = self._client.predict(window)
                local_return = percentage_return(base_price, result.predicted_price)
            except Exception:
                self.store.restore(snapshot)
                raise

            sim = self.store.sim
            forecast = ForecastMarker(
                index=len(sim),
                date=next_trading_day(sim["Date"].iloc[-1]),
                price=result.predicted_price,
            )
            outcome = PredictionOutcome(
                result=result,
                base_price=base_price,
                local_return_pct=local_return,
                signal=classify_signal(result.predicted_return_pct),
                forecast=forecast,
                what_if=what_if,
            )
            self.last_prediction = outcome
            return outcome
        finally:
            self._series_lock.release()

    def chart_data(self) -> ChartData:
        """Values for the candlestick, SMA overlay, forecast marker and gauge."""
        sim = self.store.sim
        chart = ChartData(
            ticker=self.ticker,
            frame=sim,
            sma=simple_moving_average(sim["Close"], self.sma_window),
            sma_window=self.sma_window,
        )
        outcome = self.last_prediction
        if outcome is not None:
            pct = outcome.result.predicted_return_pct
            chart.forecast = outcome.forecast
            chart.gauge = GaugeReading(
                value=gauge_position(pct),
                percent_change=pct,
                signal=outcome.signal,
                bands=gauge_bands(),
            )
        return chart

    def status_summary(self) -> dict[str, Any]:
        sim = self.store.sim
        return {
            "ticker": self.ticker,
            "status": self.status,
            "source": self.source,
            "records": len(sim),
            "latest_close": float(sim["Close"].iloc[-1]) if not sim.empty else None,
            "last_error": self.last_error,
        }
