from __future__ import annotations

from datetime import datetime

from pydantic import Field

from options_heatmap.analysis.heatmap import HeatmapResult
from options_heatmap.schemas.common import ArtifactBase, utc_now


class HeatmapArtifact(ArtifactBase):
    """Serializable heatmap grid: intensities plus the nearest contract symbol and buy score per cell (row 0 = top)."""

    schema_version: int = 1
    generated_at: datetime
    source: str | None = None
    spot: float | None = None
    cols: int = Field(ge=1)
    rows: int = Field(ge=1)
    width: float
    height: float
    strike_domain: tuple[float, float]
    premium_domain: tuple[float, float]
    point_count: int = 0
    degenerate: bool = False
    intensity: list[list[float]] = Field(default_factory=list)
    nearest_symbols: list[list[str | None]] = Field(default_factory=list)
    nearest_buy_scores: list[list[int | None]] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(
        cls,
        result: HeatmapResult,
        *,
        spot: float | None = None,
        source: str | None = None,
        generated_at: datetime | None = None,
    ) -> "HeatmapArtifact":
        return cls(
            generated_at=generated_at or utc_now(),
            source=source,
            spot=spot,
            cols=result.resolution.cols,
            rows=result.resolution.rows,
            width=result.viewport.width,
            height=result.viewport.height,
            strike_domain=result.strike_domain,
            premium_domain=result.premium_domain,
            point_count=result.point_count,
            degenerate=result.degenerate,
            intensity=[[round(value, 6) for value in row] for row in result.intensities()],
            nearest_symbols=[
                [cell.nearest_contract.symbol if cell.nearest_contract is not None else None for cell in row]
                for row in result.grid
            ],
            nearest_buy_scores=[
                [getattr(cell.nearest_contract, "buy_score", None) for cell in row] for row in result.grid
            ],
            warnings=list(result.warnings),
        )
