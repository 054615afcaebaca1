"""Request parsing and JSON serialization for Foresight UI routes."""

from __future__ import annotations

import math
from typing import Any, Mapping

import pandas as pd

from core.dashboard import ChartData, PredictionOutcome, WhatIf
from core.errors import InvalidInputError

WHAT_IF_FIELDS = ("open", "high", "low", "volume")


def parse_float(raw_value: Any, field: str) -> float:
    """Parse one user-supplied number, rejecting blanks and non-finite values."""
    if raw_value is None or (isinstance(raw_value, str) and not raw_value.strip()):
        raise InvalidInputError(f"{field} is required")
    try:
        value = float(raw_value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{field} must be a number, got {raw_value!r}") from None
    if not math.isfinite(value):
        raise InvalidInputError(f"{field} must be finite")
    return value


def parse_what_if(form: Mapping[str, Any] | None) -> WhatIf | None:
    """
    Build a what-if override from request fields.

    All four fields blank or absent means no override; a partial set is an error.
    """
    if form is None:
        return None
    if not isinstance(form, Mapping):
        raise InvalidInputError(f"What-if override must be an object, got {type(form).__name__}")
    if not form:
        return None
    present = [
        field
        for field in WHAT_IF_FIELDS
        if form.get(field) is not None and str(form.get(field)).strip() != ""
    ]
    if not present:
        return None
    if len(present) != len(WHAT_IF_FIELDS):
        missing = [field for field in WHAT_IF_FIELDS if field not in present]
        raise InvalidInputError(f"What-if override is missing: {', '.join(missing)}")
    return WhatIf(**{field: parse_float(form.get(field), field) for field in WHAT_IF_FIELDS})


def _date_text(value: Any) -> str | None:
    if value is None or pd.isna(value):
        return None
    return pd.Timestamp(value).strftime("%Y-%m-%d")


def serialize_prediction(outcome: PredictionOutcome) -> dict[str, Any]:
    """Convert a prediction outcome to an API payload."""
    result = outcome.result
    return {
        "predicted_price": round(result.predicted_price, 2),
        "predicted_return_percentage": round(result.predicted_return_pct, 2),
        "confidence": result.confidence.value,
        "backend_signal": result.signal,
        "signal": outcome.signal.value,
        "base_price": round(outcome.base_price, 2),
        "local_return_percentage": round(outcome.local_return_pct, 2),
        "forecast": {
            "index": outcome.forecast.index,
            "date": _date_text(outcome.forecast.date),
            "price": round(outcome.forecast.price, 2),
        },
        "what_if": None
        if outcome.what_if is None
        else {field: getattr(outcome.what_if, field) for field in WHAT_IF_FIELDS},
    }


def serialize_chart(chart: ChartData) -> dict[str, Any]:
    """Convert chart data to plain lists for client-side rendering."""
    data = chart.frame
    payload: dict[str, Any] = {
        "ticker": chart.ticker,
        "dates": [_date_text(value) for value in data["Date"]],
        "open": [float(value) for value in data["Open"]],
        "high": [float(value) for value in data["High"]],
        "low": [float(value) for value in data["Low"]],
        "close": [float(value) for value in data["Close"]],
        "volume": [int(value) for value in data["Volume"]],
        "sma_window": chart.sma_window,
        "sma": chart.sma,
        "forecast": None,
        "gauge": None,
    }
    if chart.forecast is not None:
        payload["forecast"] = {
            "index": chart.forecast.index,
            "date": _date_text(chart.forecast.date),
            "price": chart.forecast.price,
        }
    if chart.gauge is not None:
        payload["gauge"] = {
            "value": chart.gauge.value,
            "percent_change": chart.gauge.percent_change,
            "signal": chart.gauge.signal.value,
            "bands": [
                {"from": low, "to": high, "signal": signal.value}
                for low, high, signal in chart.gauge.bands
            ],
        }
    return payload
