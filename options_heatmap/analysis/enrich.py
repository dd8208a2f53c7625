from __future__ import annotations

import logging
import math
from collections.abc import Iterable

from options_heatmap.data.engine_config import (
    WEIGHT_PRESETS,
    AlertThresholds,
    EngineConfig,
    PremiumConfig,
    ScoreConfig,
    ScoreWeights,
)
from options_heatmap.models import (
    CONTRACT_FIELDS,
    INVALID_SPOT,
    MISSING_DELTA,
    MISSING_MARK_PRICE,
    Contract,
    ContractAlerts,
    EnrichedContract,
    ScoreBreakdown,
)

logger = logging.getLogger(__name__)


def _clamp(val: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, val))


def _round_half_up(val: float) -> int:
    return int(math.floor(val + 0.5))


def usable_spot(spot: float | None) -> bool:
    if spot is None or isinstance(spot, bool):
        return False
    try:
        val = float(spot)
    except (TypeError, ValueError):
        return False
    return math.isfinite(val) and val > 0


def resolve_weights(preset: str | None = None, config: EngineConfig | None = None) -> ScoreWeights:
    cfg = config or EngineConfig()
    if preset is None:
        return cfg.scores.resolved_weights()
    try:
        return WEIGHT_PRESETS[preset]
    except KeyError as exc:
        raise ValueError(f"Unknown weight preset {preset!r} (use {'|'.join(sorted(WEIGHT_PRESETS))})") from exc


def fair_premium(abs_delta: float | None, distance: float | None, cfg: PremiumConfig) -> float:
    """Linear proxy |delta| * distance * scale, floored; 0 when delta or distance is unknown."""
    if abs_delta is None or distance is None:
        return 0.0
    fair = abs_delta * distance * cfg.scale
    if not math.isfinite(fair):
        return cfg.floor
    return max(cfg.floor, fair)


def premium_anomaly(mark: float | None, fair: float, cfg: PremiumConfig) -> float:
    if mark is None or fair <= 0:
        return 0.0
    ratio = (mark - fair) / max(fair, cfg.floor) * 100.0
    if not math.isfinite(ratio):
        return 0.0
    return _clamp(ratio, -cfg.anomaly_bound, cfg.anomaly_bound)


def distance_score(distance: float | None, cfg: ScoreConfig) -> float:
    if distance is None:
        return cfg.neutral_score
    return _clamp(100.0 - (distance / cfg.distance_unit) * cfg.distance_decay, 0.0, 100.0)


def delta_score(abs_delta: float | None, cfg: ScoreConfig) -> float:
    if abs_delta is None:
        return cfg.neutral_score
    if cfg.delta_band_low <= abs_delta <= cfg.delta_band_high:
        return 100.0
    off = cfg.delta_off_band_max * (1.0 - abs(abs_delta - cfg.delta_center) / cfg.delta_center)
    return _clamp(off, 0.0, 100.0)


def premium_score(mark: float | None, fair: float, cfg: ScoreConfig, premium_cfg: PremiumConfig) -> float:
    if mark is None or fair <= 0:
        return cfg.neutral_score
    floored = max(fair, premium_cfg.floor)
    score = 100.0 - abs(mark - floored) / floored * 100.0
    if not math.isfinite(score):
        return cfg.neutral_score
    return _clamp(score, 0.0, 100.0)


def volume_score(volume: float, cfg: ScoreConfig) -> float:
    return _clamp(volume / cfg.volume_divisor, 0.0, 100.0)


def buy_score(breakdown: ScoreBreakdown, weights: ScoreWeights) -> int:
    total = (
        breakdown.distance * weights.distance
        + breakdown.delta * weights.delta
        + breakdown.premium * weights.premium
        + breakdown.volume * weights.volume
    )
    if not math.isfinite(total):
        return 50
    return int(_clamp(_round_half_up(total), 0, 100))


def compute_alerts(
    abs_delta: float | None,
    mark: float | None,
    fair: float,
    *,
    volume_change: float,
    oi_change: float,
    cfg: AlertThresholds,
) -> ContractAlerts:
    priced = mark is not None and fair > 0
    in_zone = abs_delta is not None and cfg.decision_zone_low <= abs_delta <= cfg.decision_zone_high

    imbalance = False
    if priced and abs_delta is not None:
        imbalance = (abs_delta > cfg.imbalance_high_delta and mark < fair * cfg.imbalance_high_delta_ratio) or (
            abs_delta < cfg.imbalance_low_delta and mark > fair * cfg.imbalance_low_delta_ratio
        )

    return ContractAlerts(
        is_in_decision_zone=in_zone,
        is_underpriced=priced and mark < fair * cfg.underpriced_ratio,
        is_overpriced=priced and mark > fair * cfg.overpriced_ratio,
        has_volume_spike=volume_change > cfg.volume_spike_pct,
        has_oi_spike=oi_change > cfg.oi_spike_pct,
        has_imbalance=imbalance,
    )


def enrich_contract(
    contract: Contract,
    spot: float,
    *,
    config: EngineConfig | None = None,
    weights: ScoreWeights | None = None,
) -> EnrichedContract:
    cfg = config or EngineConfig()
    weights = weights or cfg.scores.resolved_weights()
    warnings: list[str] = []

    distance: float | None = None
    if usable_spot(spot):
        distance = abs(contract.strike - float(spot))
    else:
        warnings.append(INVALID_SPOT)

    abs_delta = abs(contract.delta) if contract.delta is not None else None
    if abs_delta is None:
        warnings.append(MISSING_DELTA)
    mark = contract.mark_price
    if mark is None:
        warnings.append(MISSING_MARK_PRICE)

    fair = fair_premium(abs_delta, distance, cfg.premium)
    breakdown = ScoreBreakdown(
        distance=distance_score(distance, cfg.scores),
        delta=delta_score(abs_delta, cfg.scores),
        premium=premium_score(mark, fair, cfg.scores, cfg.premium),
        volume=volume_score(contract.volume, cfg.scores),
    )

    return EnrichedContract(
        **contract.model_dump(include=CONTRACT_FIELDS),
        fair_premium=fair,
        premium_anomaly=premium_anomaly(mark, fair, cfg.premium),
        buy_score=buy_score(breakdown, weights),
        alerts=compute_alerts(
            abs_delta,
            mark,
            fair,
            volume_change=contract.volume_change,
            oi_change=contract.oi_change,
            cfg=cfg.alerts,
        ),
        score_breakdown=breakdown,
        warnings=warnings,
    )


def enrich_contracts(
    contracts: Iterable[Contract],
    spot: float,
    *,
    config: EngineConfig | None = None,
    weights: ScoreWeights | None = None,
) -> list[EnrichedContract]:
    cfg = config or EngineConfig()
    weights = weights or cfg.scores.resolved_weights()
    out = [enrich_contract(c, spot, config=cfg, weights=weights) for c in contracts]
    if not usable_spot(spot):
        logger.warning("Spot price %r is unusable; distance-based scores fall back to neutral", spot)
    return out
