"""Series analytics: moving average, windows, returns and signal buckets."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np
import pandas as pd

from config.settings import GAUGE_SPAN_PCT, SIGNAL_THRESHOLD_PCT
from core.errors import InvalidInputError
from core.models import Signal


def simple_moving_average(closes: Sequence[float] | pd.Series, window: int) -> list[float | None]:
    """
    Trailing mean of `window` closes, aligned with the input.

    The first `window - 1` entries are None because no full window exists yet.
    A window longer than the input yields an all-None list.
    """
    if isinstance(window, bool) or not isinstance(window, (int, np.integer)) or window <= 0:
        raise InvalidInputError(f"SMA window must be a positive integer, got {window!r}")

    series = pd.Series(list(closes), dtype="float64")
    averaged = series.rolling(window=int(window), min_periods=int(window)).mean()
    return [None if pd.isna(value) else float(value) for value in averaged]


def trailing_window(frame: pd.DataFrame, n: int) -> pd.DataFrame:
    """Return an independent copy of the last min(n, len(frame)) rows."""
    if isinstance(n, bool) or not isinstance(n, (int, np.integer)) or n <= 0:
        raise InvalidInputError(f"Window length must be a positive integer, got {n!r}")
    return frame.tail(int(n)).reset_index(drop=True).copy(deep=True)


def percentage_return(base_price: float, predicted_price: float) -> float:
    """Percent move from base_price to predicted_price."""
    if base_price == 0:
        raise InvalidInputError("Base price must be non-zero to compute a return")
    return (predicted_price - base_price) / base_price * 100


def classify_signal(percent_change: float, threshold: float = SIGNAL_THRESHOLD_PCT) -> Signal:
    """Bucket a percent move; the threshold itself is neutral."""
    if percent_change > threshold:
        return Signal.STRONG_BUY
    if percent_change < -threshold:
        return Signal.STRONG_SELL
    return Signal.NEUTRAL


def gauge_position(percent_change: float, span: float = GAUGE_SPAN_PCT) -> float:
    """Clamp a percent move to the [-span, span] gauge dial."""
    if not math.isfinite(percent_change):
        raise InvalidInputError(f"Gauge value must be finite, got {percent_change!r}")
    return max(-span, min(span, percent_change))


def gauge_bands(
    span: float = GAUGE_SPAN_PCT,
    threshold: float = SIGNAL_THRESHOLD_PCT,
) -> list[tuple[float, float, Signal]]:
    """Color bands of the gauge, matching classify_signal boundaries."""
    return [
        (-span, -threshold, Signal.STRONG_SELL),
        (-threshold, threshold, Signal.NEUTRAL),
        (threshold, span, Signal.STRONG_BUY),
    ]


def next_trading_day(date: pd.Timestamp | None) -> pd.Timestamp | None:
    """Business day after `date`, used to place the forecast marker."""
    if date is None or pd.isna(date):
        return None
    return pd.Timestamp(date) + pd.offsets.BDay(1)
