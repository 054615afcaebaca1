import argparse
import datetime
import logging
import os
import sys

from config import settings
from core.dashboard import STATUS_READY, DashboardSession, WhatIf
from core.errors import ForesightError
from core.predictor import PredictionClient
from core.visualizer import save_forecast_chart


def _configure_logging():
    """Configure file logging for local and cron execution."""
    os.makedirs(settings.LOGS_DIR, exist_ok=True)

    log_file = os.path.join(settings.LOGS_DIR, "foresight.log")
    formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    root_logger.handlers.clear()

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # Keep logs focused on Foresight; third-party libraries can be noisy.
    logging.getLogger("yfinance").setLevel(logging.CRITICAL)
    logging.getLogger("urllib3").setLevel(logging.CRITICAL)


def _build_parser():
    parser = argparse.ArgumentParser(description="Fetch market data and run one what-if prediction")
    parser.add_argument("--ticker", default=settings.DEFAULT_TICKER, help="Equity symbol (default: %(default)s)")
    parser.add_argument("--prediction-url", default=settings.PREDICTION_API_URL, help="Prediction backend base URL")
    parser.add_argument("--open", type=float, help="What-if open for the last trading day")
    parser.add_argument("--high", type=float, help="What-if high for the last trading day")
    parser.add_argument("--low", type=float, help="What-if low for the last trading day")
    parser.add_argument("--volume", type=float, help="What-if volume for the last trading day")
    parser.add_argument("--chart", action="store_true", help="Save a PNG chart under reports/charts")
    return parser


def _what_if_from_args(parser, args):
    values = [args.open, args.high, args.low, args.volume]
    if all(value is None for value in values):
        return None
    if any(value is None for value in values):
        parser.error("--open, --high, --low and --volume must be given together")
    return WhatIf(open=args.open, high=args.high, low=args.low, volume=args.volume)


def main(argv=None):
    """
    Foresight entry point.
    Loads the latest candles, applies an optional what-if override and prints the forecast.
    """
    _configure_logging()
    logger = logging.getLogger("foresight.runner")

    parser = _build_parser()
    args = parser.parse_args(argv)
    what_if = _what_if_from_args(parser, args)

    start_time = datetime.datetime.now(datetime.timezone.utc)
    logger.info("Run started at %s", start_time.isoformat())
    print(f"🔭 Foresight - loading {args.ticker} daily candles...")

    session = DashboardSession(ticker=args.ticker, client=PredictionClient(base_url=args.prediction_url))
    if session.refresh() != STATUS_READY:
        print(f"Data Error: {session.last_error}")
        return 1

    summary = session.status_summary()
    print(f"Loaded {summary['records']} days via {summary['source']} | latest close ${summary['latest_close']:.2f}")

    try:
        outcome = session.predict(what_if)
    except ForesightError as error:
        logger.error("Prediction failed: %s", error.message)
        print(f"Prediction failed: {error.message}")
        print("Is the prediction backend awake? Idle backends can take a while to start.")
        return 1

    result = outcome.result
    print(f"Predicted price: ${result.predicted_price:.2f}")
    print(f"Predicted return: {result.predicted_return_pct:+.2f}% (local check {outcome.local_return_pct:+.2f}%)")
    print(f"Signal: {outcome.signal.value} | Confidence: {result.confidence.value}")

    if args.chart:
        chart_path = save_forecast_chart(session.chart_data())
        print(f"Chart: {chart_path}")

    end_time = datetime.datetime.now(datetime.timezone.utc)
    logger.info("Run ended at %s", end_time.isoformat())
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n🛑 Execution interrupted by user.")
        sys.exit(2)
