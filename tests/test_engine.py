from __future__ import annotations

from datetime import date

from options_heatmap.engine import build_recommendation_artifact, coerce_contracts, compute_heatmap, enrich_and_rank
from options_heatmap.models import INVALID_SPOT, Contract, EnrichedContract

SPOT = 100_000.0


def _records() -> list[dict]:
    return [
        {"symbol": "BTC-27JUN25-96000-C", "markPrice": "5000", "delta": "0.5", "volume": "10", "deliveryTime": "2025-06-27"},
        {"symbol": "BTC-27JUN25-97000-C", "markPrice": "5000", "delta": "0.5", "volume": "500", "deliveryTime": "2025-06-27"},
        {"symbol": "BTC-27JUN25-97500-C", "markPrice": "5000", "delta": "0.5", "volume": "50", "deliveryTime": "2025-06-27"},
        {"symbol": "BTC-27JUN25-104000-P", "markPrice": "5000", "delta": "-0.5", "volume": "90", "deliveryTime": "2025-06-27"},
        {"symbol": "BROKEN", "strike": "x", "type": "call", "deliveryTime": "2025-06-27"},
    ]


def test_coerce_contracts_mixes_models_and_records() -> None:
    model = Contract(symbol="M", strike=1.0, option_type="put", expiry=date(2025, 6, 27))
    contracts = coerce_contracts([model, *_records()])
    assert contracts[0] is model
    assert [c.symbol for c in contracts[1:]] == [
        "BTC-27JUN25-96000-C",
        "BTC-27JUN25-97000-C",
        "BTC-27JUN25-97500-C",
        "BTC-27JUN25-104000-P",
    ]


def test_enrich_and_rank_from_raw_records() -> None:
    ranked = enrich_and_rank(_records(), SPOT, option_type="call")
    assert [c.symbol for c in ranked] == ["BTC-27JUN25-97000-C", "BTC-27JUN25-97500-C", "BTC-27JUN25-96000-C"]
    assert all(isinstance(c, EnrichedContract) for c in ranked)

    picks = enrich_and_rank(_records(), SPOT, option_type="call", top_picks=True)
    assert picks == ranked[:4]


def test_enrich_and_rank_is_deterministic() -> None:
    first = enrich_and_rank(_records(), SPOT, option_type="call")
    second = enrich_and_rank(_records(), SPOT, option_type="call")
    assert first == second
    assert [c.model_dump() for c in first] == [c.model_dump() for c in second]

    puts = [
        enrich_and_rank(list(reversed(_records())), SPOT, option_type="put", weight_preset="delta_weighted")
        for _ in range(2)
    ]
    assert puts[0] == puts[1]


def test_enrich_and_rank_re_enriches_enriched_input() -> None:
    first = enrich_and_rank(_records(), SPOT, option_type="put")
    again = enrich_and_rank(first, SPOT, option_type="put", weight_preset="delta_weighted")
    assert [c.symbol for c in again] == [c.symbol for c in first]


def test_recommendation_artifact_rows() -> None:
    ranked = enrich_and_rank(_records(), SPOT, option_type="call")
    artifact = build_recommendation_artifact(ranked, SPOT, option_type="call", expiry="all")

    assert artifact.expiry is None
    assert artifact.weight_preset == "premium_weighted"
    assert [row.rank for row in artifact.recommendations] == [1, 2, 3]
    by_symbol = {row.contract.symbol: row for row in artifact.recommendations}
    assert by_symbol["BTC-27JUN25-97500-C"].highlight is True
    assert by_symbol["BTC-27JUN25-96000-C"].risk_reward_label == "good"
    assert artifact.warnings == []

    payload = artifact.to_dict()
    assert payload["recommendations"][0]["contract"]["markPrice"] == 5000.0
    assert payload["recommendations"][0]["contract"]["type"] == "call"


def test_recommendation_artifact_flags_invalid_spot() -> None:
    artifact = build_recommendation_artifact([], 0.0, option_type="put", expiry=date(2025, 6, 27))
    assert artifact.warnings == [INVALID_SPOT]
    assert artifact.expiry == "2025-06-27"


def test_compute_heatmap_is_reexported() -> None:
    result = compute_heatmap(coerce_contracts(_records()), SPOT)
    assert result.point_count == 4
