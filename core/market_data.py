"""Daily OHLCV retrieval from the Yahoo chart endpoint with a yfinance fallback."""

from __future__ import annotations

import json
import logging
import time
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

import pandas as pd
import yfinance as yf

from config.settings import (
    DEFAULT_TICKER,
    MARKET_DATA_ATTEMPTS,
    MARKET_DATA_INTERVAL,
    MARKET_DATA_RANGE,
    MARKET_DATA_URL,
    RELAY_URL,
    REQUEST_TIMEOUT_SECONDS,
)
from core.errors import BackendUnavailableError, EmptySeriesError, ForesightError, MalformedResponseError
from core.models import REQUIRED_COLUMNS, empty_ohlcv_frame, normalize_frame

LOGGER = logging.getLogger("foresight.market_data")

_QUOTE_FIELDS = ("open", "high", "low", "close", "volume")
_HEADERS = {"User-Agent": "Mozilla/5.0", "Accept": "application/json"}


def build_chart_url(
    ticker: str,
    interval: str = MARKET_DATA_INTERVAL,
    range_: str = MARKET_DATA_RANGE,
    relay_url: str = RELAY_URL,
) -> str:
    """Chart endpoint URL, optionally wrapped in a relay prefix."""
    query = urllib.parse.urlencode({"interval": interval, "range": range_})
    url = f"{MARKET_DATA_URL.format(ticker=urllib.parse.quote(ticker))}?{query}"
    if relay_url:
        return relay_url + urllib.parse.quote(url, safe="")
    return url


def _read_json_from_url(url: str, timeout: float, attempts: int) -> Any:
    """
    GET a JSON document with bounded retries and doubling back-off.

    HTTP 4xx answers other than 429 are not retried; their body is returned
    so the chart endpoint's own error description reaches the parser.
    """
    request = urllib.request.Request(url, headers=_HEADERS)
    backoff = 1.0
    status = None
    for attempt in range(1, attempts + 1):
        try:
            with urllib.request.urlopen(request, timeout=timeout) as response:
                body = response.read()
            break
        except urllib.error.HTTPError as error:
            if 400 <= error.code < 500 and error.code != 429:
                LOGGER.warning("Market data request returned HTTP %d", error.code)
                status = error.code
                body = error.read()
                break
            failure = error
        except (urllib.error.URLError, TimeoutError, OSError) as error:
            failure = error

        if attempt == attempts:
            raise BackendUnavailableError(f"Market data request failed: {failure}", {"url": url}) from failure
        LOGGER.warning("Market data attempt %d/%d failed: %s", attempt, attempts, failure)
        time.sleep(backoff)
        backoff *= 2

    try:
        return json.loads(body)
    except ValueError as error:
        if status is not None:
            raise MalformedResponseError(f"Market data request returned HTTP {status}", {"status": status}) from error
        raise MalformedResponseError(f"Market data response is not valid JSON: {error}") from error


def fetch_chart_payload(
    ticker: str = DEFAULT_TICKER,
    *,
    interval: str = MARKET_DATA_INTERVAL,
    range_: str = MARKET_DATA_RANGE,
    relay_url: str = RELAY_URL,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
    attempts: int = MARKET_DATA_ATTEMPTS,
) -> Any:
    """Download the raw chart JSON for one ticker."""
    url = build_chart_url(ticker, interval=interval, range_=range_, relay_url=relay_url)
    LOGGER.info("Fetching %s candles for %s (%s)", interval, ticker, range_)
    return _read_json_from_url(url, timeout=timeout, attempts=attempts)


def drop_incomplete_days(frame: pd.DataFrame) -> pd.DataFrame:
    """Remove every day where the date or any OHLCV field is missing, keeping order."""
    complete = frame.dropna(subset=REQUIRED_COLUMNS)
    dropped = len(frame) - len(complete)
    if dropped:
        LOGGER.info("Dropped %d incomplete trading days", dropped)
    return complete.reset_index(drop=True)


def parse_chart_payload(payload: Any) -> pd.DataFrame:
    """
    Turn chart JSON into a series frame.

    `timestamp[i]` is zipped with `quote[0].{open,high,low,close,volume}[i]`;
    indices with any null field or an unreadable timestamp are dropped.
    """
    try:
        chart = payload["chart"]
    except (KeyError, TypeError) as error:
        raise MalformedResponseError("Chart payload has no 'chart' object") from error

    results = chart.get("result") if isinstance(chart, dict) else None
    if not results:
        error = chart.get("error") if isinstance(chart, dict) else None
        if isinstance(error, dict) and error.get("description"):
            raise MalformedResponseError(f"Chart endpoint error: {error['description']}", {"error": error})
        raise MalformedResponseError("Chart payload has no result")

    result = results[0]
    timestamps = result.get("timestamp") if isinstance(result, dict) else None
    if timestamps is None:
        return empty_ohlcv_frame()
    if not isinstance(timestamps, list):
        raise MalformedResponseError("Chart payload timestamp is not a list")

    try:
        quote = result["indicators"]["quote"][0]
        columns = {field: quote[field] for field in _QUOTE_FIELDS}
    except (KeyError, IndexError, TypeError) as error:
        raise MalformedResponseError(f"Chart payload quote block is incomplete: {error}") from error

    for field, values in columns.items():
        if not isinstance(values, list) or len(values) != len(timestamps):
            raise MalformedResponseError(
                f"Quote field '{field}' does not line up with {len(timestamps)} timestamps"
            )

    frame = pd.DataFrame(
        {
            "Date": pd.to_datetime(
                pd.to_numeric(pd.Series(timestamps, dtype="object"), errors="coerce"),
                unit="s",
                errors="coerce",
            ),
            "Open": pd.to_numeric(pd.Series(columns["open"], dtype="object"), errors="coerce"),
            "High": pd.to_numeric(pd.Series(columns["high"], dtype="object"), errors="coerce"),
            "Low": pd.to_numeric(pd.Series(columns["low"], dtype="object"), errors="coerce"),
            "Close": pd.to_numeric(pd.Series(columns["close"], dtype="object"), errors="coerce"),
            "Volume": pd.to_numeric(pd.Series(columns["volume"], dtype="object"), errors="coerce"),
        }
    )
    complete = drop_incomplete_days(frame)
    if complete.empty:
        return empty_ohlcv_frame()
    return normalize_frame(complete)


def _normalize_downloaded_data(dataframe: pd.DataFrame | None) -> pd.DataFrame:
    """Normalize yfinance output to Date/Open/High/Low/Close/Volume."""
    if dataframe is None or dataframe.empty:
        return empty_ohlcv_frame()

    normalized = dataframe.copy()
    if isinstance(normalized.columns, pd.MultiIndex):
        normalized.columns = [column[0] for column in normalized.columns]

    normalized = normalized.reset_index()
    if "Date" not in normalized.columns and "Datetime" in normalized.columns:
        normalized = normalized.rename(columns={"Datetime": "Date"})

    if not set(REQUIRED_COLUMNS).issubset(normalized.columns):
        return empty_ohlcv_frame()

    normalized["Date"] = pd.to_datetime(normalized["Date"], errors="coerce")
    if getattr(normalized["Date"].dt, "tz", None) is not None:
        normalized["Date"] = normalized["Date"].dt.tz_localize(None)

    complete = drop_incomplete_days(normalized[REQUIRED_COLUMNS])
    if complete.empty:
        return empty_ohlcv_frame()
    return normalize_frame(complete)


def _download_from_yfinance(ticker: str, interval: str, range_: str) -> pd.DataFrame:
    """Fallback source: yfinance daily candles for the same range."""
    attempts = 2
    backoff = 1.0
    for attempt in range(1, attempts + 1):
        try:
            downloaded = yf.download(
                ticker,
                period=range_,
                interval=interval,
                progress=False,
                auto_adjust=False,
            )
            return _normalize_downloaded_data(downloaded)
        except Exception:
            if attempt == attempts:
                raise
            time.sleep(backoff)
            backoff *= 2
    return empty_ohlcv_frame()


def load_market_series(
    ticker: str = DEFAULT_TICKER,
    *,
    interval: str = MARKET_DATA_INTERVAL,
    range_: str = MARKET_DATA_RANGE,
    relay_url: str = RELAY_URL,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
    use_fallback: bool = True,
) -> tuple[pd.DataFrame, str]:
    """
    Load the daily series for `ticker` and name the source that produced it.

    The chart endpoint is tried first; yfinance is attempted when it is
    unreachable, malformed or empty. The primary error is raised when both fail.
    """
    primary_error: ForesightError
    try:
        payload = fetch_chart_payload(
            ticker,
            interval=interval,
            range_=range_,
            relay_url=relay_url,
            timeout=timeout,
        )
        frame = parse_chart_payload(payload)
        if not frame.empty:
            return frame, "chart"
        primary_error = EmptySeriesError(f"Chart endpoint returned no complete days for {ticker}")
        LOGGER.warning("%s", primary_error.message)
    except (BackendUnavailableError, MalformedResponseError) as error:
        LOGGER.warning("Chart endpoint failed for %s: %s", ticker, error)
        primary_error = error

    if not use_fallback:
        raise primary_error

    LOGGER.info("Attempting yfinance fallback for %s", ticker)
    try:
        frame = _download_from_yfinance(ticker, interval=interval, range_=range_)
    except Exception as error:
        LOGGER.warning("yfinance fallback failed for %s: %s", ticker, error)
        raise primary_error from error

    if frame.empty:
        LOGGER.warning("All market data sources failed for %s", ticker)
        raise primary_error

    LOGGER.info("Recovered via yfinance for %s", ticker)
    return frame, "yfinance"
