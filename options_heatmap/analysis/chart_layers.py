from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from options_heatmap.analysis.heatmap import HeatmapResult, collect_points, compute_heatmap
from options_heatmap.analysis.normalize import coerce_float
from options_heatmap.analysis.rank import is_highlight_candidate
from options_heatmap.data.engine_config import EngineConfig
from options_heatmap.models import Contract, GridResolution, Viewport

DELTA_GUIDE_THRESHOLDS: tuple[float, ...] = (0.25, 0.5, 0.75)
MARKER_RADIUS_RANGE: tuple[float, float] = (7.0, 11.0)
_MISSING_DELTA_SENTINEL = 999.0

# Low -> high intensity, violet ramp. Values under 0.05 use the background swatch.
INTENSITY_PALETTE: tuple[tuple[float, str], ...] = (
    (0.1, "#f7f0ff"),
    (0.2, "#e9d9ff"),
    (0.3, "#d4b4ff"),
    (0.4, "#b78eff"),
    (0.5, "#9c6bff"),
    (0.6, "#804aff"),
    (0.7, "#6933f5"),
    (0.8, "#5626dc"),
    (0.9, "#4520b5"),
)
_INTENSITY_MAX_COLOR = "#361d86"
_EMPTY_BACKGROUND = "#13141b"
_EMPTY_FOREGROUND = "#262738"


def intensity_color(value: float, *, background: bool = False) -> str:
    if not math.isfinite(value) or value < 0.05:
        return _EMPTY_BACKGROUND if background else _EMPTY_FOREGROUND
    for upper, color in INTENSITY_PALETTE:
        if value < upper:
            return color
    return _INTENSITY_MAX_COLOR


class PixelPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    strike: float
    premium: float


class DeltaGuide(BaseModel):
    model_config = ConfigDict(frozen=True)

    threshold: float
    strike: float
    x: float
    symbol: str


class ContractMarker(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    option_type: str
    x: float
    y: float
    radius: float
    highlight: bool = False


class ChartLayers(BaseModel):
    """Everything a drawing surface needs besides chrome. Only the grid survives degenerate input."""

    model_config = ConfigDict(frozen=True)

    heatmap: HeatmapResult
    price_line: list[PixelPoint] = Field(default_factory=list)
    spot_marker_x: float | None = None
    delta_guides: list[DeltaGuide] = Field(default_factory=list)
    markers: list[ContractMarker] = Field(default_factory=list)


def _sqrt_scale(value: float, max_value: float, out: tuple[float, float]) -> float:
    if max_value <= 0:
        return out[0]
    t = math.sqrt(min(max(value, 0.0), max_value) / max_value)
    return out[0] + t * (out[1] - out[0])


def closest_call_to_delta(calls: Sequence[Contract], threshold: float) -> Contract | None:
    """First call whose delta is nearest to the threshold; a missing delta loses to any known one."""
    best: Contract | None = None
    best_gap = math.inf
    for contract in calls:
        delta = contract.delta if contract.delta is not None else _MISSING_DELTA_SENTINEL
        gap = abs(delta - threshold)
        if gap < best_gap:
            best, best_gap = contract, gap
    return best


def build_chart_layers(
    points: Iterable[Any],
    spot: float | None,
    *,
    recommended: Iterable[Contract] = (),
    viewport: Viewport | None = None,
    resolution: GridResolution | None = None,
    config: EngineConfig | None = None,
) -> ChartLayers:
    cfg = config or EngineConfig()
    items = list(points)
    heatmap = compute_heatmap(items, spot, viewport, resolution, config=cfg)
    if heatmap.degenerate:
        return ChartLayers(heatmap=heatmap)

    x_scale, y_scale = heatmap.scales()
    pts, _ = collect_points(items)

    ordered = sorted(pts, key=lambda p: p.strike)
    price_line = [
        PixelPoint(x=x_scale(p.strike), y=y_scale(p.mark_price), strike=p.strike, premium=p.mark_price)
        for p in ordered
    ]

    spot_val = coerce_float(spot)
    spot_x = x_scale(spot_val) if spot_val is not None else None

    calls = [p.contract for p in pts if p.contract is not None and p.contract.option_type == "call"]
    guides: list[DeltaGuide] = []
    for threshold in DELTA_GUIDE_THRESHOLDS:
        closest = closest_call_to_delta(calls, threshold)
        if closest is not None:
            guides.append(
                DeltaGuide(threshold=threshold, strike=closest.strike, x=x_scale(closest.strike), symbol=closest.symbol)
            )

    picks = [c for c in recommended if c.mark_price is not None]
    max_volume = max((c.volume for c in picks), default=0.0) or 1.0
    markers = [
        ContractMarker(
            symbol=c.symbol,
            option_type=c.option_type,
            x=x_scale(c.strike),
            y=y_scale(c.mark_price or 0.0),
            radius=_sqrt_scale(c.volume, max_volume, MARKER_RADIUS_RANGE),
            highlight=spot_val is not None and is_highlight_candidate(c, spot_val, config=cfg.ranker),
        )
        for c in picks
    ]

    return ChartLayers(
        heatmap=heatmap,
        price_line=price_line,
        spot_marker_x=spot_x,
        delta_guides=guides,
        markers=markers,
    )
