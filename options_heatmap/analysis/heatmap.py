from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny

from options_heatmap.analysis.normalize import coerce_float
from options_heatmap.analysis.spatial_index import IndexFactory, build_index
from options_heatmap.data.engine_config import EngineConfig, HeatmapConfig
from options_heatmap.models import (
    COLLAPSED_DOMAIN,
    EMPTY_POINT_SET,
    EMPTY_VIEWPORT,
    NON_FINITE_POINTS_DROPPED,
    AxisDomains,
    Contract,
    GridResolution,
    Viewport,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HeatmapPoint:
    strike: float
    mark_price: float
    contract: SerializeAsAny[Contract] | None = None


@dataclass(frozen=True)
class LinearScale:
    """Clamped linear map between a data domain and a pixel range (d3-style)."""

    domain: tuple[float, float]
    range: tuple[float, float]

    def __call__(self, value: float) -> float:
        d0, d1 = self.domain
        r0, r1 = self.range
        if d1 == d0:
            return r0
        t = min(1.0, max(0.0, (value - d0) / (d1 - d0)))
        return r0 + t * (r1 - r0)

    def invert(self, pixel: float) -> float:
        d0, d1 = self.domain
        r0, r1 = self.range
        if r1 == r0:
            return d0
        t = min(1.0, max(0.0, (pixel - r0) / (r1 - r0)))
        return d0 + t * (d1 - d0)


class HeatmapCell(BaseModel):
    model_config = ConfigDict(frozen=True)

    row: int
    col: int
    intensity: float = Field(default=0.0, ge=0.0, le=1.0)
    nearest_index: int | None = None
    # Set whenever a nearest point exists; nearest_contract only when that point came from a contract.
    nearest_point: HeatmapPoint | None = None
    nearest_contract: SerializeAsAny[Contract] | None = None
    # Data-space center of the cell; None on a degenerate grid.
    strike: float | None = None
    premium: float | None = None


class HeatmapResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    grid: list[list[HeatmapCell]]
    strike_domain: tuple[float, float]
    premium_domain: tuple[float, float]
    viewport: Viewport
    resolution: GridResolution
    point_count: int = 0
    degenerate: bool = False
    warnings: list[str] = Field(default_factory=list)

    def intensities(self) -> list[list[float]]:
        return [[cell.intensity for cell in row] for row in self.grid]

    def scales(self) -> tuple[LinearScale, LinearScale]:
        x_scale = LinearScale(domain=self.strike_domain, range=(0.0, self.viewport.inner_width))
        y_scale = LinearScale(domain=self.premium_domain, range=(self.viewport.inner_height, 0.0))
        return x_scale, y_scale


def _point_from(item: Any) -> HeatmapPoint | None:
    if isinstance(item, HeatmapPoint):
        strike, mark, contract = item.strike, item.mark_price, item.contract
    elif isinstance(item, Contract):
        strike, mark, contract = item.strike, item.mark_price, item
    elif isinstance(item, Mapping):
        mark_raw = item.get("markPrice", item.get("mark_price"))
        strike, mark, contract = item.get("strike"), mark_raw, None
    else:
        strike, mark, contract = getattr(item, "strike", None), getattr(item, "mark_price", None), None

    strike_val = coerce_float(strike)
    mark_val = coerce_float(mark)
    if strike_val is None or mark_val is None or mark_val < 0:
        return None
    return HeatmapPoint(strike=strike_val, mark_price=mark_val, contract=contract)


def collect_points(items: Iterable[Any]) -> tuple[list[HeatmapPoint], int]:
    """Finite (strike, mark) points in input order, plus how many inputs were dropped."""
    points: list[HeatmapPoint] = []
    dropped = 0
    for item in items:
        point = _point_from(item)
        if point is None:
            dropped += 1
        else:
            points.append(point)
    return points, dropped


def compute_axis_domains(
    points: Iterable[Any],
    spot: float | None,
    *,
    config: HeatmapConfig | None = None,
) -> AxisDomains:
    """
    Strike axis covers every point (padded) and the spot band; premium axis starts at zero.

    With no usable points both axes fall back to the configured ranges.
    """
    cfg = config or HeatmapConfig()
    pts, _ = collect_points(points)
    if not pts:
        return AxisDomains(strike=cfg.fallback_strike_domain, premium=cfg.fallback_premium_domain, is_fallback=True)

    strikes = [p.strike for p in pts]
    lo, hi = min(strikes), max(strikes)
    if hi - lo == 0:
        pad = max(cfg.single_strike_padding_min, abs(hi) * cfg.single_strike_padding_pct)
    else:
        pad = max(cfg.min_strike_padding, (hi - lo) * cfg.strike_padding_pct)
    strike_lo, strike_hi = lo - pad, hi + pad

    spot_val = coerce_float(spot)
    if spot_val is not None:
        band = (spot_val * (1.0 - cfg.spot_band_pct), spot_val * (1.0 + cfg.spot_band_pct))
        strike_lo = min(strike_lo, *band)
        strike_hi = max(strike_hi, *band)

    max_premium = max(p.mark_price for p in pts)
    if max_premium > 0:
        premium = (0.0, max_premium * cfg.premium_headroom)
    else:
        premium = cfg.fallback_premium_domain

    return AxisDomains(strike=(strike_lo, strike_hi), premium=premium)


def _empty_result(
    *,
    cfg: HeatmapConfig,
    viewport: Viewport,
    resolution: GridResolution,
    point_count: int,
    warnings: list[str],
) -> HeatmapResult:
    grid = [[HeatmapCell(row=j, col=i) for i in range(resolution.cols)] for j in range(resolution.rows)]
    return HeatmapResult(
        grid=grid,
        strike_domain=cfg.fallback_strike_domain,
        premium_domain=cfg.fallback_premium_domain,
        viewport=viewport,
        resolution=resolution,
        point_count=point_count,
        degenerate=True,
        warnings=warnings,
    )


def compute_heatmap(
    points: Iterable[Any],
    spot: float | None,
    viewport: Viewport | Mapping[str, Any] | None = None,
    resolution: GridResolution | Mapping[str, Any] | None = None,
    *,
    config: EngineConfig | None = None,
    index_factory: IndexFactory | None = None,
) -> HeatmapResult:
    """
    Proximity heatmap over strike x premium space.

    Each cell center is inverted from pixel to data space; its intensity falls
    off linearly with the distance to the nearest point, reaching zero at a
    quarter of the domain diagonal. Row 0 is the top of the viewport.
    """
    cfg = (config or EngineConfig()).heatmap
    viewport = Viewport.model_validate(viewport) if isinstance(viewport, Mapping) else (viewport or cfg.viewport)
    if isinstance(resolution, Mapping):
        resolution = GridResolution.model_validate(resolution)
    resolution = resolution or cfg.resolution

    pts, dropped = collect_points(points)
    warnings: list[str] = []
    if dropped:
        warnings.append(NON_FINITE_POINTS_DROPPED)

    def _degenerate(code: str) -> HeatmapResult:
        logger.debug("Heatmap degenerate (%s): points=%s dropped=%s", code, len(pts), dropped)
        return _empty_result(
            cfg=cfg,
            viewport=viewport,
            resolution=resolution,
            point_count=len(pts),
            warnings=[*warnings, code],
        )

    if not pts:
        return _degenerate(EMPTY_POINT_SET)

    inner_w, inner_h = viewport.inner_width, viewport.inner_height
    if inner_w <= 0 or inner_h <= 0:
        return _degenerate(EMPTY_VIEWPORT)

    domains = compute_axis_domains(pts, spot, config=cfg)
    strike_range = domains.strike[1] - domains.strike[0]
    premium_range = domains.premium[1] - domains.premium[0]
    if not (strike_range > 0 and premium_range > 0) or not math.isfinite(strike_range + premium_range):
        return _degenerate(COLLAPSED_DOMAIN)

    x_scale = LinearScale(domain=domains.strike, range=(0.0, inner_w))
    y_scale = LinearScale(domain=domains.premium, range=(inner_h, 0.0))
    falloff = math.hypot(strike_range, premium_range) / cfg.intensity_divisor

    xs = [p.strike for p in pts]
    ys = [p.mark_price for p in pts]
    index = index_factory(xs, ys) if index_factory is not None else build_index(cfg.index, xs, ys)

    cell_w = inner_w / resolution.cols
    cell_h = inner_h / resolution.rows
    grid: list[list[HeatmapCell]] = []
    for j in range(resolution.rows):
        sy = y_scale.invert((j + 0.5) * cell_h)
        row: list[HeatmapCell] = []
        for i in range(resolution.cols):
            sx = x_scale.invert((i + 0.5) * cell_w)
            hit = index.nearest(sx, sy)
            if hit is None:
                row.append(HeatmapCell(row=j, col=i, strike=sx, premium=sy))
                continue
            idx, dist = hit
            intensity = min(1.0, max(0.0, 1.0 - dist / falloff))
            row.append(
                HeatmapCell(
                    row=j,
                    col=i,
                    intensity=intensity,
                    nearest_index=idx,
                    nearest_point=pts[idx],
                    nearest_contract=pts[idx].contract,
                    strike=sx,
                    premium=sy,
                )
            )
        grid.append(row)

    logger.debug(
        "Heatmap computed: points=%s grid=%sx%s strike=%s premium=%s",
        len(pts),
        resolution.cols,
        resolution.rows,
        domains.strike,
        domains.premium,
    )
    return HeatmapResult(
        grid=grid,
        strike_domain=domains.strike,
        premium_domain=domains.premium,
        viewport=viewport,
        resolution=resolution,
        point_count=len(pts),
        warnings=warnings,
    )
