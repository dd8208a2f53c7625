from __future__ import annotations

from options_heatmap.schemas.common import ArtifactBase, json_safe, utc_now
from options_heatmap.schemas.heatmap import HeatmapArtifact
from options_heatmap.schemas.recommendations import RecommendationArtifact, RecommendationRow

__all__ = [
    "ArtifactBase",
    "HeatmapArtifact",
    "RecommendationArtifact",
    "RecommendationRow",
    "json_safe",
    "utc_now",
]
