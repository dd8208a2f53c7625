from __future__ import annotations

from datetime import date

import pytest

from options_heatmap.analysis.normalize import (
    InvalidContract,
    coerce_float,
    normalize_chain,
    normalize_contract,
    parse_expiry,
)


def test_normalize_exchange_record_with_string_numbers() -> None:
    raw = {
        "symbol": "BTC-27JUN25-95000-C",
        "strike": "95000",
        "markPrice": "4600.5",
        "markIv": "0.52",
        "delta": "0.45",
        "volume24h": "590",
        "openInterest": "1200",
        "deliveryTime": "1751011200000",
    }
    contract = normalize_contract(raw)

    assert contract.symbol == "BTC-27JUN25-95000-C"
    assert contract.strike == 95000.0
    assert contract.mark_price == pytest.approx(4600.5)
    assert contract.iv == pytest.approx(52.0)
    assert contract.delta == pytest.approx(0.45)
    assert contract.volume == 590.0
    assert contract.open_interest == 1200.0
    assert contract.option_type == "call"
    assert contract.expiry == date(2025, 6, 27)
    assert contract.volume_change == 0.0
    assert contract.oi_change == 0.0


def test_normalize_iv_key_is_already_percent() -> None:
    contract = normalize_contract(
        {"strike": 90000, "iv": 48.5, "type": "put", "expiry": "2025-06-27", "markPrice": 100}
    )
    assert contract.iv == pytest.approx(48.5)


def test_normalize_strike_and_type_from_symbol() -> None:
    contract = normalize_contract({"symbol": "BTC-27JUN25-88000-P", "expiry": "2025-06-27"})
    assert contract.strike == 88000.0
    assert contract.option_type == "put"


@pytest.mark.parametrize(
    ("symbol", "strike", "option_type"),
    [
        ("SOL-27JUN25-150-C", 150.0, "call"),
        ("XRP-27JUN25-2.5-P", 2.5, "put"),
        ("ETH-27JUN25-3000-C-USDT", 3000.0, "call"),
        ("BTC-2025-06-27-95-C", 95.0, "call"),
    ],
)
def test_normalize_recovers_short_strikes_from_symbol(symbol: str, strike: float, option_type: str) -> None:
    contract = normalize_contract({"symbol": symbol, "expiry": "2025-06-27"})
    assert contract.strike == strike
    assert contract.option_type == option_type


def test_normalize_synthesizes_symbol() -> None:
    contract = normalize_contract({"strike": 95000, "type": "call", "expiry": "2025-06-27"}, base="ETH")
    assert contract.symbol == "ETH-2025-06-27-95000-C"


def test_normalize_missing_numbers_become_none_or_zero() -> None:
    contract = normalize_contract(
        {
            "strike": 95000,
            "type": "call",
            "expiry": "2025-06-27",
            "markPrice": "n/a",
            "delta": None,
            "volume": -5,
        }
    )
    assert contract.mark_price is None
    assert contract.delta is None
    assert contract.volume == 0.0


def test_normalize_negative_mark_is_missing() -> None:
    contract = normalize_contract({"strike": 95000, "type": "call", "expiry": "2025-06-27", "markPrice": -1})
    assert contract.mark_price is None


@pytest.mark.parametrize(
    "raw",
    [
        {"strike": "abc", "type": "call", "expiry": "2025-06-27"},
        {"strike": 0, "type": "call", "expiry": "2025-06-27"},
        {"strike": -100, "type": "call", "expiry": "2025-06-27"},
        {"strike": 95000, "type": "call", "expiry": "not-a-date"},
        {"strike": 95000, "type": "straddle", "expiry": "2025-06-27"},
        {"strike": 95000, "expiry": "2025-06-27"},
    ],
)
def test_normalize_rejects_unusable_records(raw: dict) -> None:
    with pytest.raises(InvalidContract):
        normalize_contract(raw)


def test_normalize_expected_type_mismatch_is_rejected() -> None:
    with pytest.raises(InvalidContract, match="expected put"):
        normalize_contract({"strike": 95000, "type": "call", "expiry": "2025-06-27"}, "put")


def test_normalize_expected_type_fills_missing_type() -> None:
    contract = normalize_contract({"strike": 95000, "expiry": "2025-06-27"}, "put")
    assert contract.option_type == "put"


def test_normalize_chain_skips_and_reports_bad_records() -> None:
    records = [
        {"strike": 95000, "type": "call", "expiry": "2025-06-27", "markPrice": 4600},
        {"symbol": "BAD", "strike": "abc", "type": "call", "expiry": "2025-06-27"},
        {"strike": 90000, "type": "put", "expiry": "2025-07-25", "markPrice": 1200},
        "not a record",
    ]
    chain = normalize_chain(records)

    assert len(chain.contracts) == 2
    assert [s.index for s in chain.skipped] == [1, 3]
    assert chain.skipped[0].symbol == "BAD"
    assert [c.strike for c in chain.calls] == [95000.0]
    assert [c.strike for c in chain.puts] == [90000.0]
    assert chain.expiries == [date(2025, 6, 27), date(2025, 7, 25)]


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2025-06-27", date(2025, 6, 27)),
        ("2025-06-27T08:00:00Z", date(2025, 6, 27)),
        ("06/27/2025", date(2025, 6, 27)),
        ("20250627", date(2025, 6, 27)),
        ("27JUN25", date(2025, 6, 27)),
        (1751011200, date(2025, 6, 27)),
        (1751011200000, date(2025, 6, 27)),
        (date(2025, 6, 27), date(2025, 6, 27)),
        ("", None),
        ("soon", None),
        (None, None),
    ],
)
def test_parse_expiry_formats(value: object, expected: date | None) -> None:
    assert parse_expiry(value) == expected


def test_coerce_float_rejects_non_finite() -> None:
    assert coerce_float("1.5") == 1.5
    assert coerce_float(float("nan")) is None
    assert coerce_float(float("inf")) is None
    assert coerce_float(True) is None
    assert coerce_float("") is None
