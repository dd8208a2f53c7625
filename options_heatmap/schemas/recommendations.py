from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from options_heatmap.models import EnrichedContract, OptionType
from options_heatmap.schemas.common import ArtifactBase


class RecommendationRow(ArtifactBase):
    rank: int = Field(ge=1)
    contract: EnrichedContract
    risk_reward: float | None = None
    risk_reward_label: Literal["good", "neutral", "poor"] | None = None
    highlight: bool = False


class RecommendationArtifact(ArtifactBase):
    schema_version: int = 1
    generated_at: datetime
    source: str | None = None
    spot: float
    option_type: OptionType
    expiry: str | None = None
    weight_preset: str
    top_picks_only: bool = False
    recommendations: list[RecommendationRow] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
