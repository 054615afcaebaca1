"""Tests for Plotly and matplotlib chart builders."""

from core.models import Signal
from core.visualizer import save_forecast_chart
from ui.charts import SIGNAL_COLORS, build_gauge_figure, build_price_figure, render_div


def test_price_figure_without_forecast(loaded_session):
    figure = build_price_figure(loaded_session.chart_data())

    assert [trace.type for trace in figure.data] == ["candlestick", "scatter"]
    assert figure.data[1].name == "SMA 20"
    assert len(figure.data[0].close) == 100


def test_price_figure_with_forecast(loaded_session):
    loaded_session.predict()

    figure = build_price_figure(loaded_session.chart_data())

    marker = figure.data[2]
    assert marker.name == "AI Prediction"
    assert list(marker.y) == [105.0]


def test_gauge_bands_follow_signal_colors(loaded_session):
    loaded_session.predict()
    gauge = loaded_session.chart_data().gauge

    figure = build_gauge_figure(gauge)

    indicator = figure.data[0]
    assert indicator.value == 1.2
    colors = [step.color for step in indicator.gauge.steps]
    assert colors == [SIGNAL_COLORS[Signal.STRONG_SELL], SIGNAL_COLORS[Signal.NEUTRAL], SIGNAL_COLORS[Signal.STRONG_BUY]]
    assert list(indicator.gauge.steps[1].range) == [-0.5, 0.5]


def test_empty_gauge_before_prediction():
    figure = build_gauge_figure(None)

    assert figure.data[0].value == 0.0
    assert figure.data[0].title.text == "Awaiting prediction"


def test_render_div(loaded_session):
    html = render_div(build_price_figure(loaded_session.chart_data()))

    assert html.startswith("<div")


def test_static_forecast_chart(loaded_session, tmp_path):
    loaded_session.predict()

    output = save_forecast_chart(loaded_session.chart_data(), tmp_path / "forecast.png")

    assert output.exists()
    assert output.stat().st_size > 0
