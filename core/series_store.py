"""Live and simulated OHLCV series owned by one dashboard session."""

from __future__ import annotations

import logging
import math
from typing import Iterable

import numpy as np
import pandas as pd

from core.analytics import trailing_window
from core.errors import EmptySeriesError, InvalidInputError, NoLiveDataError
from core.models import (
    OHLCV_COLUMNS,
    PRICE_COLUMNS,
    REQUIRED_COLUMNS,
    OhlcvRecord,
    empty_ohlcv_frame,
    normalize_frame,
    records_to_table,
)

LOGGER = logging.getLogger("foresight.series_store")

MAX_VOLUME = int(np.iinfo("int64").max)


def _finite(name: str, value: object) -> float:
    """Convert a what-if field to float, rejecting NaN, inf and non-numbers."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(number):
        raise InvalidInputError(f"{name} must be finite, got {value!r}")
    return number


def _validate_values(table: pd.DataFrame) -> None:
    """Every day needs finite prices > 0 and a finite volume >= 0."""
    values = table[OHLCV_COLUMNS].apply(pd.to_numeric, errors="coerce").astype("float64")
    incomplete = ~np.isfinite(values).all(axis=1)
    if incomplete.any():
        raise InvalidInputError(f"Series has {int(incomplete.sum())} days with missing or non-finite fields")
    if (values[PRICE_COLUMNS] <= 0).any().any():
        raise InvalidInputError("Series prices must be > 0")
    if (values["Volume"] < 0).any():
        raise InvalidInputError("Series volume must be >= 0")
    if (values["Volume"] > MAX_VOLUME).any():
        raise InvalidInputError("Series volume exceeds the int64 range")


class SeriesStore:
    """
    Holds the immutable `live` series and the editable `sim` copy.

    `live` is replaced wholesale on every successful ingestion. `sim` is only
    ever derived from `live` by `reset_to_live` and afterwards edited through
    `apply_what_if`, which touches the most recent row and nothing else.
    """

    def __init__(self) -> None:
        self._live = empty_ohlcv_frame()
        self._sim = empty_ohlcv_frame()

    @property
    def live(self) -> pd.DataFrame:
        return self._live.copy(deep=True)

    @property
    def sim(self) -> pd.DataFrame:
        return self._sim.copy(deep=True)

    @property
    def has_live(self) -> bool:
        return not self._live.empty

    def ingest(self, series: pd.DataFrame | Iterable[OhlcvRecord]) -> None:
        """Replace `live` with a freshly parsed series. `sim` is left alone."""
        if isinstance(series, pd.DataFrame):
            missing = [column for column in REQUIRED_COLUMNS if column not in series.columns]
            if missing:
                raise InvalidInputError(f"Missing required columns: {', '.join(missing)}")
            table = series
        else:
            table = records_to_table(series)

        if table.empty:
            raise EmptySeriesError("Market data feed returned no complete trading days")
        _validate_values(table)

        frame = normalize_frame(table)
        self._live = frame
        LOGGER.info("Ingested %d live records", len(frame))

    def reset_to_live(self) -> None:
        """Rebuild `sim` as a deep copy of `live`."""
        if self._live.empty:
            raise NoLiveDataError("No live data loaded yet")
        self._sim = self._live.copy(deep=True)

    def apply_what_if(self, open: float, high: float, low: float, volume: float) -> None:
        """Override open/high/low/volume of the last simulated day; close is kept."""
        if self._sim.empty:
            raise EmptySeriesError("Simulated series is empty; load market data first")

        open_value = _finite("open", open)
        high_value = _finite("high", high)
        low_value = _finite("low", low)
        volume_value = _finite("volume", volume)

        if volume_value < 0:
            raise InvalidInputError(f"volume must be >= 0, got {volume_value}")
        if volume_value > MAX_VOLUME:
            raise InvalidInputError(f"volume must not exceed {MAX_VOLUME}, got {volume_value}")
        for name, price in (("open", open_value), ("high", high_value), ("low", low_value)):
            if price <= 0:
                raise InvalidInputError(f"{name} must be > 0, got {price}")
        if high_value < low_value:
            raise InvalidInputError(f"high ({high_value}) must not be below low ({low_value})")

        last = len(self._sim) - 1
        close_value = float(self._sim.at[last, "Close"])
        if not low_value <= open_value <= high_value:
            LOGGER.warning("What-if open %.4f lies outside [%.4f, %.4f]", open_value, low_value, high_value)
        if not low_value <= close_value <= high_value:
            LOGGER.warning("Last close %.4f lies outside what-if range [%.4f, %.4f]", close_value, low_value, high_value)

        # Edit a copy and swap it in, so a failed write leaves sim untouched.
        edited = self._sim.copy(deep=True)
        edited.at[last, "Open"] = open_value
        edited.at[last, "High"] = high_value
        edited.at[last, "Low"] = low_value
        edited.at[last, "Volume"] = int(round(volume_value))
        self._sim = edited

    def trailing_window(self, n: int) -> pd.DataFrame:
        """Independent copy of the last min(n, len(sim)) simulated rows."""
        return trailing_window(self._sim, n)

    def latest_close(self) -> float:
        if self._sim.empty:
            raise EmptySeriesError("Simulated series is empty")
        return float(self._sim["Close"].iloc[-1])

    def snapshot(self) -> pd.DataFrame:
        """Copy of `sim` that `restore` can roll back to."""
        return self._sim.copy(deep=True)

    def restore(self, snapshot: pd.DataFrame) -> None:
        self._sim = snapshot.copy(deep=True)
