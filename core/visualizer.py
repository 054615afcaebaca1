"""Static chart output for command-line prediction runs."""

from __future__ import annotations

from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import pandas as pd

from config.settings import CHARTS_DIR
from core.dashboard import ChartData


def _chart_output_dir() -> Path:
    path = Path(CHARTS_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def save_forecast_chart(chart: ChartData, output_path: Path | None = None) -> Path:
    """Save close/SMA chart of the simulated series with the forecast marker."""
    data = chart.frame
    x_values = data["Date"] if data["Date"].notna().all() else pd.Series(range(len(data)))

    fig, ax = plt.subplots(figsize=(13, 6))
    ax.plot(x_values, data["Close"], label="Close", linewidth=1.6)
    sma = [float("nan") if value is None else value for value in chart.sma]
    ax.plot(x_values, sma, label=f"SMA {chart.sma_window}", linewidth=1.0)

    if chart.forecast is not None:
        forecast_x = chart.forecast.date if chart.forecast.date is not None else chart.forecast.index
        ax.scatter(forecast_x, chart.forecast.price, marker="o", s=90, color="green", label="Forecast")

    title = chart.ticker
    if chart.gauge is not None:
        title = f"{chart.ticker} | {chart.gauge.signal.value} ({chart.gauge.percent_change:+.2f}%)"
    ax.set_title(title)
    ax.set_ylabel("Price")
    ax.legend(loc="upper left")
    ax.grid(True, alpha=0.25)
    fig.tight_layout()

    if output_path is None:
        output_path = _chart_output_dir() / f"{chart.ticker}_forecast.png"
    fig.savefig(output_path, dpi=130)
    plt.close(fig)
    return output_path
