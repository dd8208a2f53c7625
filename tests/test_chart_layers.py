from __future__ import annotations

from datetime import date

import pytest

from options_heatmap.analysis.chart_layers import (
    build_chart_layers,
    closest_call_to_delta,
    intensity_color,
)
from options_heatmap.models import EMPTY_POINT_SET, Contract

EXPIRY = date(2025, 6, 27)
SPOT = 100_000.0


def _call(symbol: str, strike: float, mark: float, delta: float | None, volume: float = 0.0) -> Contract:
    return Contract(
        symbol=symbol,
        strike=strike,
        mark_price=mark,
        delta=delta,
        volume=volume,
        option_type="call",
        expiry=EXPIRY,
    )


def _chain() -> list[Contract]:
    return [
        _call("C110", 110_000.0, 800.0, 0.2),
        _call("C100", 100_000.0, 3_000.0, 0.5),
        _call("C90", 90_000.0, 11_000.0, 0.8),
        _call("CNONE", 95_000.0, 6_000.0, None),
    ]


def test_price_line_is_sorted_by_strike() -> None:
    layers = build_chart_layers(_chain(), SPOT)
    strikes = [p.strike for p in layers.price_line]
    assert strikes == sorted(strikes)
    xs = [p.x for p in layers.price_line]
    assert xs == sorted(xs)
    assert all(0.0 <= p.x <= layers.heatmap.viewport.inner_width for p in layers.price_line)


def test_spot_marker_is_inside_plot() -> None:
    layers = build_chart_layers(_chain(), SPOT)
    x_scale, _ = layers.heatmap.scales()
    assert layers.spot_marker_x == pytest.approx(x_scale(SPOT))
    assert 0.0 < layers.spot_marker_x < layers.heatmap.viewport.inner_width


def test_delta_guides_pick_closest_calls() -> None:
    layers = build_chart_layers(_chain(), SPOT)
    guides = {g.threshold: g.symbol for g in layers.delta_guides}
    assert guides == {0.25: "C110", 0.5: "C100", 0.75: "C90"}


def test_closest_call_ignores_missing_delta_and_keeps_first_on_tie() -> None:
    calls = [_call("NONE", 1.0, 1.0, None), _call("A", 2.0, 1.0, 0.25), _call("B", 3.0, 1.0, 0.75)]
    assert closest_call_to_delta(calls, 0.5).symbol == "A"
    assert closest_call_to_delta([], 0.5) is None


def test_markers_scale_with_volume_and_flag_highlights() -> None:
    recommended = [
        _call("BIG", 97_500.0, 5_000.0, 0.55, volume=400.0),
        _call("SMALL", 102_000.0, 1_000.0, 0.4, volume=100.0),
    ]
    layers = build_chart_layers(_chain(), SPOT, recommended=recommended)
    markers = {m.symbol: m for m in layers.markers}

    assert markers["BIG"].radius == pytest.approx(11.0)
    assert markers["SMALL"].radius == pytest.approx(9.0)
    assert markers["BIG"].highlight is True
    assert markers["SMALL"].highlight is False


def test_degenerate_input_keeps_only_the_grid() -> None:
    layers = build_chart_layers([], SPOT, recommended=_chain())
    assert layers.heatmap.degenerate is True
    assert EMPTY_POINT_SET in layers.heatmap.warnings
    assert layers.price_line == []
    assert layers.markers == []
    assert layers.delta_guides == []
    assert layers.spot_marker_x is None


@pytest.mark.parametrize(
    ("value", "background", "expected"),
    [
        (0.0, False, "#262738"),
        (0.0, True, "#13141b"),
        (0.04, False, "#262738"),
        (0.05, False, "#f7f0ff"),
        (0.15, False, "#e9d9ff"),
        (0.55, False, "#804aff"),
        (0.95, False, "#361d86"),
        (1.0, True, "#361d86"),
    ],
)
def test_intensity_color_ramp(value: float, background: bool, expected: str) -> None:
    assert intensity_color(value, background=background) == expected
