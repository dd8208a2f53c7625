from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Literal, TypeVar

from options_heatmap.analysis.enrich import usable_spot
from options_heatmap.analysis.normalize import parse_expiry
from options_heatmap.data.engine_config import EngineConfig, RankerConfig
from options_heatmap.models import Contract, OptionType

logger = logging.getLogger(__name__)

RiskRewardLabel = Literal["good", "neutral", "poor"]

ContractT = TypeVar("ContractT", bound=Contract)


@dataclass(frozen=True)
class RiskReward:
    intrinsic: float
    time_value: float
    time_value_pct: float
    rr: float
    label: RiskRewardLabel


def intrinsic_value(contract: Contract, spot: float) -> float:
    if contract.option_type == "call":
        return max(0.0, spot - contract.strike)
    return max(0.0, contract.strike - spot)


def risk_reward(contract: Contract, spot: float, *, config: RankerConfig | None = None) -> RiskReward | None:
    """
    Delta-vs-time-value heuristic:
    rr = |delta * 100| - time value as a percent of the mark.

    Returns None when delta or mark price is missing (the contract cannot be assessed).
    """
    cfg = config or RankerConfig()
    if contract.delta is None or contract.mark_price is None or not usable_spot(spot):
        return None
    mark = contract.mark_price
    intrinsic = intrinsic_value(contract, spot)
    time_value = max(0.0, mark - intrinsic)
    time_value_pct = time_value / max(mark, 1.0) * 100.0
    rr = abs(contract.delta * 100.0) - time_value_pct
    if rr > cfg.good_risk_reward:
        label: RiskRewardLabel = "good"
    elif rr < cfg.min_risk_reward:
        label = "poor"
    else:
        label = "neutral"
    return RiskReward(
        intrinsic=intrinsic,
        time_value=time_value,
        time_value_pct=time_value_pct,
        rr=rr,
        label=label,
    )


def is_poor_risk_reward(contract: Contract, spot: float, *, config: RankerConfig | None = None) -> bool:
    cfg = config or RankerConfig()
    assessed = risk_reward(contract, spot, config=cfg)
    return assessed is None or assessed.rr < cfg.min_risk_reward


def within_spot_band(contract: Contract, spot: float, *, max_pct: float) -> bool:
    return abs(contract.strike - spot) / spot < max_pct


def is_highlight_candidate(contract: Contract, spot: float, *, config: RankerConfig | None = None) -> bool:
    """Near-the-money contract whose premium is mostly (but not entirely) time value."""
    cfg = config or RankerConfig()
    if contract.mark_price is None or not usable_spot(spot):
        return False
    mark = contract.mark_price
    time_share = max(0.0, mark - intrinsic_value(contract, spot)) / max(mark, 1.0)
    near = within_spot_band(contract, spot, max_pct=cfg.highlight_spot_distance_pct)
    return near and cfg.highlight_time_value_low < time_share < cfg.highlight_time_value_high


def _expiry_filter(expiry: date | str | None) -> date | None:
    if expiry is None:
        return None
    if isinstance(expiry, str) and expiry.strip().lower() in {"", "all"}:
        return None
    parsed = parse_expiry(expiry)
    if parsed is None:
        raise ValueError(f"Invalid expiry filter {expiry!r} (use YYYY-MM-DD or 'all')")
    return parsed


def rank_recommendations(
    contracts: Iterable[ContractT],
    spot: float,
    *,
    option_type: OptionType,
    expiry: date | str | None = None,
    config: EngineConfig | None = None,
) -> list[ContractT]:
    """
    Bounded recommendation list for one option type.

    Filters (all must pass): type/expiry match, strike within the spot band,
    not a poor risk/reward. Survivors are ordered by volume (stable) and capped.
    """
    cfg = (config or EngineConfig()).ranker
    if option_type not in ("call", "put"):
        raise ValueError(f"Invalid option type {option_type!r} (use call|put)")
    expiry_date = _expiry_filter(expiry)

    if not usable_spot(spot):
        logger.debug("Ranking skipped: unusable spot %r", spot)
        return []
    spot = float(spot)

    selected = [
        c
        for c in contracts
        if c.option_type == option_type and (expiry_date is None or c.expiry == expiry_date)
    ]
    near = [c for c in selected if within_spot_band(c, spot, max_pct=cfg.max_spot_distance_pct)]
    kept = [c for c in near if not is_poor_risk_reward(c, spot, config=cfg)]
    ranked = sorted(kept, key=lambda c: c.volume, reverse=True)[: cfg.max_results]

    logger.debug(
        "Ranked %s %s contracts: selected=%s near=%s kept=%s returned=%s",
        option_type,
        expiry_date.isoformat() if expiry_date else "all",
        len(selected),
        len(near),
        len(kept),
        len(ranked),
    )
    return ranked


def select_top_picks(
    ranked: Sequence[ContractT],
    n: int | None = None,
    *,
    config: EngineConfig | None = None,
) -> list[ContractT]:
    cfg = (config or EngineConfig()).ranker
    limit = cfg.top_picks if n is None else min(max(n, 0), cfg.top_picks)
    return list(ranked[:limit])
