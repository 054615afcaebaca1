#!/usr/bin/env python3
"""Foresight health check for the market feed and the prediction backend."""

import os
import sys
import time

# Add project to path
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

from config.settings import DEFAULT_TICKER, PREDICTION_API_URL, PREDICTION_WINDOW
from core.analytics import trailing_window
from core.errors import ForesightError
from core.market_data import fetch_chart_payload, parse_chart_payload
from core.predictor import PredictionClient


def check_market_feed(ticker=DEFAULT_TICKER):
    """Report whether the chart endpoint answers with usable candles."""
    print("\n📊 Market Feed")
    print("=" * 70)
    started = time.monotonic()
    try:
        frame = parse_chart_payload(fetch_chart_payload(ticker, attempts=1))
    except ForesightError as error:
        print(f"  ✗ {ticker:10} | {error.error_code} | {error.message[:60]}")
        return None

    elapsed = time.monotonic() - started
    if frame.empty:
        print(f"  ✗ {ticker:10} | no complete trading days")
        return None

    last_date = frame["Date"].iloc[-1]
    print(f"  ✓ {ticker:10} | rows={len(frame):4} | last={last_date:%Y-%m-%d} | {elapsed:.1f}s")
    return frame


def check_prediction_backend(frame, base_url=PREDICTION_API_URL):
    """Send one real window and time the backend answer."""
    print("\n🤖 Prediction Backend")
    print("=" * 70)
    if frame is None:
        print("  - skipped (no market data to send)")
        return False

    client = PredictionClient(base_url=base_url, attempts=1)
    started = time.monotonic()
    try:
        result = client.predict(trailing_window(frame, PREDICTION_WINDOW))
    except ForesightError as error:
        print(f"  ✗ {client.endpoint} | {error.error_code} | {error.message[:60]}")
        return False

    elapsed = time.monotonic() - started
    print(
        f"  ✓ {client.endpoint} | price={result.predicted_price:.2f} "
        f"confidence={result.confidence.value} | {elapsed:.1f}s"
    )
    if elapsed > 10:
        print("  ⚠ Slow answer; the backend was probably cold-starting.")
    return True


def main():
    frame = check_market_feed()
    backend_ok = check_prediction_backend(frame)

    print("\n" + "=" * 70)
    healthy = frame is not None and backend_ok
    print("✓ All systems healthy." if healthy else "✗ One or more collaborators are unavailable.")
    print("=" * 70 + "\n")
    return 0 if healthy else 1


if __name__ == "__main__":
    sys.exit(main())
