from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any

from pydantic import ValidationError

from options_heatmap.models import Contract, OptionType

logger = logging.getLogger(__name__)

# Exchange symbols look like BTC-27JUN25-95000-C or SOL-27JUN25-150-C-USDT; the last numeric segment is the strike.
_SYMBOL_RE = re.compile(r"^.*-(\d+(?:\.\d+)?)-([CP])\b", re.IGNORECASE)

_ALIASES: dict[str, tuple[str, ...]] = {
    "symbol": ("symbol", "contractSymbol"),
    "strike": ("strike", "strikePrice", "strike_price"),
    "mark_price": ("markPrice", "mark_price", "mark"),
    "iv_pct": ("iv",),
    "iv_fraction": ("markIv", "impliedVolatility"),
    "delta": ("delta",),
    "gamma": ("gamma",),
    "theta": ("theta",),
    "bid": ("bid", "bid1Price"),
    "ask": ("ask", "ask1Price"),
    "volume": ("volume", "volume24h"),
    "open_interest": ("openInterest", "open_interest"),
    "type": ("type", "optionType", "optionsType", "option_type"),
    "expiry": ("expiry", "expiration", "expiryDate", "deliveryDate", "deliveryTime"),
    "volume_change": ("volumeChange", "volume_change"),
    "oi_change": ("oiChange", "oi_change"),
}

_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y", "%d%b%y")


class InvalidContract(ValueError):
    """A single raw record cannot become a Contract (bad strike, expiry, or type)."""

    def __init__(self, reason: str, *, symbol: str | None = None) -> None:
        self.reason = reason
        self.symbol = symbol
        super().__init__(f"{symbol}: {reason}" if symbol else reason)


@dataclass(frozen=True)
class SkippedRecord:
    index: int
    symbol: str | None
    reason: str


@dataclass(frozen=True)
class NormalizedChain:
    contracts: tuple[Contract, ...] = ()
    skipped: tuple[SkippedRecord, ...] = field(default_factory=tuple)

    @property
    def calls(self) -> list[Contract]:
        return [c for c in self.contracts if c.option_type == "call"]

    @property
    def puts(self) -> list[Contract]:
        return [c for c in self.contracts if c.option_type == "put"]

    @property
    def expiries(self) -> list[date]:
        return sorted({c.expiry for c in self.contracts})


def _first(raw: Mapping[str, Any], key: str) -> Any:
    for name in _ALIASES[key]:
        if name in raw:
            value = raw[name]
            if value is None or (isinstance(value, str) and not value.strip()):
                continue
            return value
    return None


def coerce_float(value: Any) -> float | None:
    """Parse a loosely typed numeric; None for missing, malformed, NaN or infinite input."""
    if value is None or isinstance(value, bool):
        return None
    try:
        out = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(out):
        return None
    return out


def _non_negative(value: Any, default: float = 0.0) -> float:
    out = coerce_float(value)
    if out is None or out < 0:
        return default
    return out


def parse_expiry(value: Any) -> date | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc).date() if value.tzinfo else value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        return _epoch_to_date(value)

    text = str(value).strip()
    if not text:
        return None
    if text.isdigit():
        if len(text) == 8:
            try:
                return datetime.strptime(text, "%Y%m%d").date()
            except ValueError:
                return None
        return _epoch_to_date(int(text))
    if len(text) > 10 and text[10] in {"T", " "}:
        text = text[:10]
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _epoch_to_date(value: float) -> date | None:
    if not math.isfinite(value) or value <= 0:
        return None
    seconds = value / 1000.0 if value >= 1e11 else float(value)
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc).date()
    except (OverflowError, OSError, ValueError):
        return None


def _type_from_value(value: Any) -> OptionType | None:
    if value is None:
        return None
    v = str(value).strip().lower()
    if v in {"call", "c", "calls"}:
        return "call"
    if v in {"put", "p", "puts"}:
        return "put"
    return None


def _resolve_type(raw: Mapping[str, Any], symbol: str | None, expected: OptionType | None) -> OptionType:
    raw_type = _first(raw, "type")
    resolved = _type_from_value(raw_type)
    if raw_type is not None and resolved is None:
        raise InvalidContract(f"unrecognized option type {raw_type!r}", symbol=symbol)
    if resolved is None and symbol:
        match = _SYMBOL_RE.search(symbol)
        if match:
            resolved = _type_from_value(match.group(2))
    if resolved is None:
        if expected is None:
            raise InvalidContract("missing option type", symbol=symbol)
        return expected
    if expected is not None and resolved != expected:
        raise InvalidContract(f"expected {expected} but record is {resolved}", symbol=symbol)
    return resolved


def _resolve_strike(raw: Mapping[str, Any], symbol: str | None) -> float:
    raw_strike = _first(raw, "strike")
    strike = coerce_float(raw_strike)
    if strike is None and raw_strike is None and symbol:
        match = _SYMBOL_RE.search(symbol)
        if match:
            strike = coerce_float(match.group(1))
    if strike is None:
        raise InvalidContract(f"strike is not numeric ({raw_strike!r})", symbol=symbol)
    if strike <= 0:
        raise InvalidContract(f"strike must be > 0 (got {strike:g})", symbol=symbol)
    return strike


def _resolve_iv(raw: Mapping[str, Any]) -> float | None:
    pct = coerce_float(_first(raw, "iv_pct"))
    if pct is not None:
        return pct
    fraction = coerce_float(_first(raw, "iv_fraction"))
    if fraction is not None:
        return fraction * 100.0
    return None


def normalize_contract(
    raw: Mapping[str, Any],
    option_type: OptionType | None = None,
    *,
    base: str = "BTC",
) -> Contract:
    """
    Coerce one loosely typed record into a Contract.

    Raises InvalidContract when strike, expiry or option type cannot be resolved.
    Every other numeric field falls back to a default instead:
    - mark price, iv and greeks -> None (scores treat these as missing)
    - volume, open interest -> 0.0 (negative values too)
    - volume/OI change -> 0.0
    """
    if not isinstance(raw, Mapping):
        raise InvalidContract(f"record is not a mapping ({type(raw).__name__})")

    raw_symbol = _first(raw, "symbol")
    symbol = str(raw_symbol).strip() if raw_symbol is not None else None

    strike = _resolve_strike(raw, symbol)
    resolved_type = _resolve_type(raw, symbol, option_type)

    raw_expiry = _first(raw, "expiry")
    expiry = parse_expiry(raw_expiry)
    if expiry is None:
        raise InvalidContract(f"expiry is not a valid date ({raw_expiry!r})", symbol=symbol)

    mark = coerce_float(_first(raw, "mark_price"))
    if mark is not None and mark < 0:
        mark = None

    if not symbol:
        symbol = f"{base}-{expiry.isoformat()}-{strike:g}-{resolved_type[0].upper()}"

    try:
        return Contract(
            symbol=symbol,
            strike=strike,
            mark_price=mark,
            iv=_resolve_iv(raw),
            delta=coerce_float(_first(raw, "delta")),
            gamma=coerce_float(_first(raw, "gamma")),
            theta=coerce_float(_first(raw, "theta")),
            bid=coerce_float(_first(raw, "bid")),
            ask=coerce_float(_first(raw, "ask")),
            volume=_non_negative(_first(raw, "volume")),
            open_interest=_non_negative(_first(raw, "open_interest")),
            option_type=resolved_type,
            expiry=expiry,
            volume_change=coerce_float(_first(raw, "volume_change")) or 0.0,
            oi_change=coerce_float(_first(raw, "oi_change")) or 0.0,
        )
    except ValidationError as exc:
        raise InvalidContract(f"record failed validation: {exc.error_count()} error(s)", symbol=symbol) from exc


def normalize_chain(
    records: Iterable[Any],
    option_type: OptionType | None = None,
    *,
    base: str = "BTC",
) -> NormalizedChain:
    """Normalize a whole feed; bad records are skipped and reported, never fatal."""
    contracts: list[Contract] = []
    skipped: list[SkippedRecord] = []
    for idx, raw in enumerate(records):
        try:
            contracts.append(normalize_contract(raw, option_type, base=base))
        except InvalidContract as exc:
            skipped.append(SkippedRecord(index=idx, symbol=exc.symbol, reason=exc.reason))

    if skipped:
        logger.warning(
            "Skipped %s of %s option records during normalization (first: %s)",
            len(skipped),
            len(contracts) + len(skipped),
            skipped[0].reason,
        )
    logger.debug("Normalized %s option records", len(contracts))
    return NormalizedChain(contracts=tuple(contracts), skipped=tuple(skipped))
