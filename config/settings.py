import os

# Project root directory (foresight/)
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# Log and chart output paths
LOGS_DIR = os.path.join(BASE_DIR, "logs")
CHARTS_DIR = os.path.join(BASE_DIR, "reports", "charts")

# Instrument and market feed
DEFAULT_TICKER = os.environ.get("FORESIGHT_TICKER", "AAPL")
MARKET_DATA_URL = "https://query1.finance.yahoo.com/v8/finance/chart/{ticker}"
MARKET_DATA_INTERVAL = "1d"
MARKET_DATA_RANGE = "3mo"

# Optional relay prefix, e.g. "https://corsproxy.io/?". Empty means direct access.
RELAY_URL = os.environ.get("FORESIGHT_RELAY_URL", "")

# Remote prediction backend (may cold-start after idling)
PREDICTION_API_URL = os.environ.get(
    "FORESIGHT_PREDICTION_URL",
    "https://stock-prediction-backend-xpts.onrender.com",
)
PREDICTION_WINDOW = 70

# Network behavior
REQUEST_TIMEOUT_SECONDS = float(os.environ.get("FORESIGHT_TIMEOUT_SECONDS", "30"))
MARKET_DATA_ATTEMPTS = 3
PREDICTION_ATTEMPTS = 2

# Analytics
SMA_WINDOW = 20
SIGNAL_THRESHOLD_PCT = 0.5
GAUGE_SPAN_PCT = 5.0
