from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
from pathlib import Path
from typing import Any

import pandas as pd

from options_heatmap.analysis.normalize import coerce_float

logger = logging.getLogger(__name__)

_SPOT_KEYS = ("spot", "currentPrice", "underlyingPrice", "indexPrice")


class ChainFeedError(ValueError):
    pass


@dataclass(frozen=True)
class ChainFeed:
    records: list[dict[str, Any]] = field(default_factory=list)
    spot: float | None = None
    source: Path | None = None


def _spot_from(payload: dict[str, Any]) -> float | None:
    for key in _SPOT_KEYS:
        spot = coerce_float(payload.get(key))
        if spot is not None and spot > 0:
            return spot
    return None


def _typed(records: Any, option_type: str, *, key: str) -> list[dict[str, Any]]:
    if not isinstance(records, list):
        raise ChainFeedError(f"'{key}' must be a list of option records")
    out: list[dict[str, Any]] = []
    for rec in records:
        if isinstance(rec, dict) and not any(rec.get(k) for k in ("type", "optionType", "optionsType")):
            rec = {**rec, "type": option_type}
        out.append(rec)
    return out


def parse_chain_payload(payload: Any) -> tuple[list[dict[str, Any]], float | None]:
    """
    Accepted shapes:
    - a bare list of records
    - {"spot": ..., "contracts": [...]} or {"spot": ..., "calls": [...], "puts": [...]}
    - an exchange envelope {"result": {"list": [...]}}
    """
    if isinstance(payload, list):
        return payload, None
    if not isinstance(payload, dict):
        raise ChainFeedError(f"Unsupported chain payload ({type(payload).__name__})")

    spot = _spot_from(payload)
    result = payload.get("result")
    if isinstance(result, dict) and isinstance(result.get("list"), list):
        return result["list"], spot or _spot_from(result)

    if "contracts" in payload:
        contracts = payload["contracts"]
        if not isinstance(contracts, list):
            raise ChainFeedError("'contracts' must be a list of option records")
        return contracts, spot

    if "calls" in payload or "puts" in payload:
        records = _typed(payload.get("calls") or [], "call", key="calls")
        records.extend(_typed(payload.get("puts") or [], "put", key="puts"))
        return records, spot

    raise ChainFeedError("Chain payload has no 'contracts', 'calls'/'puts' or 'result.list' records")


def _load_csv(path: Path) -> tuple[list[dict[str, Any]], float | None]:
    try:
        df = pd.read_csv(path)
    except pd.errors.EmptyDataError:
        return [], None
    df = df.astype(object).where(pd.notna(df), None)
    spot = None
    for key in _SPOT_KEYS:
        if key in df.columns:
            values = [coerce_float(v) for v in df[key].tolist()]
            spot = next((v for v in values if v is not None and v > 0), None)
            if spot is not None:
                break
    return df.to_dict(orient="records"), spot


def load_chain_feed(path: Path) -> ChainFeed:
    if not path.exists():
        raise ChainFeedError(f"Chain file not found: {path}")
    suffix = path.suffix.lower()
    if suffix == ".json":
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ChainFeedError(f"Invalid JSON in {path}: {exc}") from exc
        records, spot = parse_chain_payload(payload)
    elif suffix in {".csv", ".txt"}:
        records, spot = _load_csv(path)
    else:
        raise ChainFeedError("Unsupported chain file format (use .json or .csv)")

    logger.info("Loaded %s option records from %s (spot=%s)", len(records), path, spot)
    return ChainFeed(records=records, spot=spot, source=path)
