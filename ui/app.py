"""Local Flask UI for Foresight what-if predictions."""

from __future__ import annotations

import logging
from pathlib import Path
import sys
import threading
from typing import Any

from flask import Flask, got_request_exception, jsonify, render_template, request
from plotly.offline import get_plotlyjs

# Make `python ui/app.py` work without external PYTHONPATH setup.
THIS_DIR = Path(__file__).resolve().parent
PROJECT_DIR = THIS_DIR.parent
if str(PROJECT_DIR) not in sys.path:
    sys.path.insert(0, str(PROJECT_DIR))

from config.settings import LOGS_DIR
from core.dashboard import STATUS_LOADING, DashboardSession
from core.errors import (
    BackendUnavailableError,
    EmptySeriesError,
    ForesightError,
    InvalidInputError,
    MalformedResponseError,
    NoLiveDataError,
    PredictionBusyError,
    PredictionRejectedError,
)
from ui.api import parse_what_if, serialize_chart, serialize_prediction
from ui.charts import build_gauge_figure, build_price_figure, render_div


UI_DIR = THIS_DIR
STATIC_DIR = UI_DIR / "static"
PLOTLY_VENDOR_RELATIVE_PATH = "vendor/plotly.min.js"
PLOTLY_VENDOR_PATH = STATIC_DIR / PLOTLY_VENDOR_RELATIVE_PATH

ERROR_STATUS_CODES: dict[type[ForesightError], int] = {
    InvalidInputError: 400,
    PredictionBusyError: 409,
    EmptySeriesError: 409,
    NoLiveDataError: 409,
    PredictionRejectedError: 422,
    MalformedResponseError: 502,
    BackendUnavailableError: 503,
}

logging.getLogger("yfinance").setLevel(logging.CRITICAL)
logging.getLogger("urllib3").setLevel(logging.CRITICAL)


def _configure_ui_logger() -> logging.Logger:
    """Configure file logger for the UI app."""
    logs_dir = Path(LOGS_DIR)
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = logs_dir / "ui.log"

    logger = logging.getLogger("foresight")
    logger.setLevel(logging.INFO)

    existing = None
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler):
            existing = handler
            break

    if existing is None:
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
        logger.addHandler(handler)

    return logging.getLogger("foresight.ui")


def error_status_code(error: ForesightError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(error, error_type):
            return status_code
    return 500


def create_app(session: DashboardSession | None = None) -> Flask:
    """Create and configure the local Flask application."""
    app = Flask(
        __name__,
        template_folder=str(UI_DIR / "templates"),
        static_folder=str(STATIC_DIR),
    )
    app.config["TEMPLATES_AUTO_RELOAD"] = True

    logger = _configure_ui_logger()
    logger.info("UI app initialized")

    if not PLOTLY_VENDOR_PATH.exists():
        try:
            PLOTLY_VENDOR_PATH.parent.mkdir(parents=True, exist_ok=True)
            PLOTLY_VENDOR_PATH.write_text(get_plotlyjs(), encoding="utf-8")
            logger.info("Wrote local Plotly bundle: %s", PLOTLY_VENDOR_PATH)
        except OSError as exc:
            logger.warning("Failed to write local Plotly bundle: %s", exc)

    dashboard = session if session is not None else DashboardSession()
    load_lock = threading.Lock()
    app.extensions["foresight_session"] = dashboard

    def _ensure_loaded() -> None:
        """Fetch market data once, on the first request."""
        with load_lock:
            if dashboard.status == STATUS_LOADING:
                dashboard.refresh()

    def _error_payload(error: ForesightError) -> tuple[Any, int]:
        status_code = error_status_code(error)
        logger.warning("Request failed with %s: %s", error.error_code, error.message)
        return jsonify({"error": error.message, "code": error.error_code}), status_code

    @app.route("/", methods=["GET", "POST"])
    def index() -> str:
        """Dashboard page: chart, gauge and what-if form."""
        _ensure_loaded()
        prediction = None
        error_message = None

        if request.method == "POST":
            try:
                outcome = dashboard.predict(parse_what_if(request.form))
                prediction = serialize_prediction(outcome)
            except ForesightError as error:
                logger.warning("Prediction failed: %s", error.message)
                error_message = f"Prediction failed: {error.message}"

        chart = dashboard.chart_data()
        return render_template(
            "dashboard.html",
            summary=dashboard.status_summary(),
            prediction=prediction,
            error_message=error_message,
            price_chart=render_div(build_price_figure(chart)),
            gauge_chart=render_div(build_gauge_figure(chart.gauge)),
            plotly_js_path=PLOTLY_VENDOR_RELATIVE_PATH,
        )

    @app.route("/api/status")
    def status_api():
        _ensure_loaded()
        return jsonify(dashboard.status_summary())

    @app.route("/api/chart")
    def chart_api():
        _ensure_loaded()
        return jsonify(serialize_chart(dashboard.chart_data()))

    @app.route("/api/refresh", methods=["POST"])
    def refresh_api():
        """Reload market data; stale data is kept when the feed fails."""
        status = dashboard.refresh()
        status_code = 200 if dashboard.last_error is None else 503
        return jsonify(dashboard.status_summary() | {"status": status}), status_code

    @app.route("/api/predict", methods=["POST"])
    def predict_api():
        """Run one prediction with an optional what-if override of the last day."""
        _ensure_loaded()
        body = request.get_json(silent=True)
        try:
            outcome = dashboard.predict(parse_what_if(body))
        except ForesightError as error:
            return _error_payload(error)
        return jsonify(serialize_prediction(outcome))

    def _log_unhandled_exception(sender: Flask, exception: Exception, **_: Any) -> None:
        logger.exception("Unhandled UI exception: %s", exception)

    got_request_exception.connect(_log_unhandled_exception, app)

    return app


if __name__ == "__main__":
    create_app().run(host="127.0.0.1", port=5000, debug=False)
