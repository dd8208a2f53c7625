from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any

from options_heatmap.analysis.enrich import enrich_contracts, resolve_weights, usable_spot
from options_heatmap.analysis.heatmap import HeatmapResult, compute_heatmap
from options_heatmap.analysis.normalize import InvalidContract, normalize_contract
from options_heatmap.analysis.rank import (
    is_highlight_candidate,
    rank_recommendations,
    risk_reward,
    select_top_picks,
)
from options_heatmap.data.engine_config import EngineConfig
from options_heatmap.models import INVALID_SPOT, Contract, EnrichedContract, OptionType
from options_heatmap.schemas.common import utc_now
from options_heatmap.schemas.recommendations import RecommendationArtifact, RecommendationRow

logger = logging.getLogger(__name__)


def coerce_contracts(items: Iterable[Contract | Mapping[str, Any]]) -> list[Contract]:
    """Accept Contracts (enriched or not) and raw feed records side by side."""
    contracts: list[Contract] = []
    skipped = 0
    for item in items:
        if isinstance(item, EnrichedContract):
            contracts.append(item.base_contract())
        elif isinstance(item, Contract):
            contracts.append(item)
        else:
            try:
                contracts.append(normalize_contract(item))
            except InvalidContract as exc:
                skipped += 1
                logger.debug("Skipping raw record: %s", exc)
    if skipped:
        logger.warning("Skipped %s invalid option records", skipped)
    return contracts


def enrich_and_rank(
    contracts: Iterable[Contract | Mapping[str, Any]],
    spot: float,
    *,
    option_type: OptionType,
    expiry: date | str | None = None,
    weight_preset: str | None = None,
    config: EngineConfig | None = None,
    top_picks: bool = False,
) -> list[EnrichedContract]:
    """Score every contract, then return the bounded recommendation list for one option type."""
    cfg = config or EngineConfig()
    weights = resolve_weights(weight_preset, cfg)
    enriched = enrich_contracts(coerce_contracts(contracts), spot, config=cfg, weights=weights)
    ranked = rank_recommendations(enriched, spot, option_type=option_type, expiry=expiry, config=cfg)
    if top_picks:
        ranked = select_top_picks(ranked, config=cfg)
    logger.debug("enrich_and_rank: type=%s enriched=%s returned=%s", option_type, len(enriched), len(ranked))
    return ranked


def _preset_label(cfg: EngineConfig) -> str:
    if cfg.scores.weights is not None:
        return "custom"
    return cfg.scores.weight_preset


def build_recommendation_artifact(
    ranked: Iterable[EnrichedContract],
    spot: float,
    *,
    option_type: OptionType,
    expiry: date | str | None = None,
    weight_preset: str | None = None,
    top_picks: bool = False,
    source: str | None = None,
    config: EngineConfig | None = None,
) -> RecommendationArtifact:
    cfg = config or EngineConfig()
    rows: list[RecommendationRow] = []
    for rank, contract in enumerate(ranked, start=1):
        assessed = risk_reward(contract, spot, config=cfg.ranker)
        rows.append(
            RecommendationRow(
                rank=rank,
                contract=contract,
                risk_reward=assessed.rr if assessed else None,
                risk_reward_label=assessed.label if assessed else None,
                highlight=is_highlight_candidate(contract, spot, config=cfg.ranker),
            )
        )
    warnings = [] if usable_spot(spot) else [INVALID_SPOT]
    if isinstance(expiry, date):
        expiry = expiry.isoformat()
    return RecommendationArtifact(
        generated_at=utc_now(),
        source=source,
        spot=spot,
        option_type=option_type,
        expiry=expiry if expiry and expiry.lower() != "all" else None,
        weight_preset=weight_preset or _preset_label(cfg),
        top_picks_only=top_picks,
        recommendations=rows,
        warnings=warnings,
    )


__all__ = [
    "HeatmapResult",
    "build_recommendation_artifact",
    "coerce_contracts",
    "compute_heatmap",
    "enrich_and_rank",
]
