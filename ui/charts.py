"""Plotly chart builders for the Foresight dashboard."""

from __future__ import annotations

import plotly.graph_objects as go
from plotly.offline import plot

from config.settings import GAUGE_SPAN_PCT
from core.dashboard import ChartData, GaugeReading
from core.models import Signal

SIGNAL_COLORS = {
    Signal.STRONG_SELL: "#da3633",
    Signal.NEUTRAL: "#8b949e",
    Signal.STRONG_BUY: "#2ea043",
}


def _x_values(chart: ChartData) -> list:
    """Dates when every candle has one, positional indices otherwise."""
    dates = chart.frame["Date"]
    if len(dates) and dates.notna().all():
        return list(dates)
    return list(range(len(chart.frame)))


def build_price_figure(chart: ChartData) -> go.Figure:
    """Candlestick of the simulated series with SMA overlay and forecast marker."""
    data = chart.frame
    x_values = _x_values(chart)

    figure = go.Figure()
    figure.add_trace(
        go.Candlestick(
            x=x_values,
            open=data["Open"],
            high=data["High"],
            low=data["Low"],
            close=data["Close"],
            name=f"{chart.ticker} History",
        )
    )
    figure.add_trace(
        go.Scatter(
            x=x_values,
            y=chart.sma,
            mode="lines",
            name=f"SMA {chart.sma_window}",
            line={"color": "#00b4d8", "width": 1.2},
            hovertemplate="SMA: %{y:.2f}<extra></extra>",
        )
    )

    if chart.forecast is not None:
        uses_dates = bool(x_values) and not isinstance(x_values[0], int)
        forecast_x = chart.forecast.date if uses_dates and chart.forecast.date is not None else chart.forecast.index
        figure.add_trace(
            go.Scatter(
                x=[forecast_x],
                y=[chart.forecast.price],
                mode="markers",
                name="AI Prediction",
                marker={"color": "#2ea043", "size": 12},
                hovertemplate="Forecast: %{y:.2f}<extra></extra>",
            )
        )

    figure.update_layout(
        template="plotly_dark",
        hovermode="x unified",
        margin={"t": 20, "b": 40, "l": 40, "r": 20},
        xaxis={"showgrid": False, "rangeslider": {"visible": False}},
        yaxis={"title": "Price"},
        legend={"orientation": "h", "y": 1.08},
    )
    return figure


def build_gauge_figure(gauge: GaugeReading | None, span: float = GAUGE_SPAN_PCT) -> go.Figure:
    """Return-percentage gauge banded on the signal thresholds."""
    steps = []
    bands = gauge.bands if gauge is not None else []
    for low, high, signal in bands:
        steps.append({"range": [low, high], "color": SIGNAL_COLORS[signal]})

    value = gauge.value if gauge is not None else 0.0
    title = gauge.signal.value.replace("_", " ") if gauge is not None else "Awaiting prediction"
    figure = go.Figure(
        go.Indicator(
            mode="gauge+number",
            value=value,
            number={"suffix": "%", "valueformat": ".2f"},
            title={"text": title},
            gauge={
                "axis": {"range": [-span, span]},
                "bar": {"color": "#c9d1d9"},
                "steps": steps,
            },
        )
    )
    figure.update_layout(template="plotly_dark", margin={"t": 40, "b": 10, "l": 20, "r": 20}, height=260)
    return figure


def render_div(figure: go.Figure) -> str:
    """Embed a figure as an HTML div; plotly.js is served separately."""
    return plot(
        figure,
        output_type="div",
        include_plotlyjs=False,
        config={"displaylogo": False, "responsive": True},
    )
