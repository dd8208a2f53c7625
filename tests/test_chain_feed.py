from __future__ import annotations

import json
from pathlib import Path

import pytest

from options_heatmap.analysis.normalize import normalize_chain
from options_heatmap.data.chain_feed import ChainFeedError, load_chain_feed, parse_chain_payload


def test_parse_bare_list() -> None:
    records, spot = parse_chain_payload([{"strike": 1}])
    assert records == [{"strike": 1}]
    assert spot is None


def test_parse_calls_and_puts_injects_type() -> None:
    payload = {
        "currentPrice": "93762.4",
        "calls": [{"strike": 95000, "expiry": "2025-06-27"}],
        "puts": [{"strike": 90000, "expiry": "2025-06-27", "type": "put"}],
    }
    records, spot = parse_chain_payload(payload)
    assert spot == pytest.approx(93762.4)
    assert [r["type"] for r in records] == ["call", "put"]
    chain = normalize_chain(records)
    assert [c.option_type for c in chain.contracts] == ["call", "put"]


def test_parse_exchange_envelope() -> None:
    payload = {"result": {"list": [{"symbol": "BTC-27JUN25-95000-C"}]}, "spot": 0}
    records, spot = parse_chain_payload(payload)
    assert len(records) == 1
    assert spot is None


@pytest.mark.parametrize("payload", ["text", {"contracts": {}}, {"nothing": []}, {"calls": "x"}])
def test_parse_rejects_unknown_shapes(payload: object) -> None:
    with pytest.raises(ChainFeedError):
        parse_chain_payload(payload)


def test_load_json_file(tmp_path: Path) -> None:
    path = tmp_path / "chain.json"
    path.write_text(json.dumps({"spot": 100000, "contracts": [{"strike": 1}]}), encoding="utf-8")
    feed = load_chain_feed(path)
    assert feed.spot == 100000.0
    assert feed.records == [{"strike": 1}]
    assert feed.source == path


def test_load_csv_file(tmp_path: Path) -> None:
    path = tmp_path / "chain.csv"
    path.write_text(
        "symbol,strike,markPrice,delta,volume,type,expiry,spot\n"
        "BTC-27JUN25-95000-C,95000,4600,0.45,590,call,2025-06-27,93762.4\n"
        "BTC-27JUN25-90000-P,90000,,-0.3,,put,2025-06-27,\n",
        encoding="utf-8",
    )
    feed = load_chain_feed(path)
    assert feed.spot == pytest.approx(93762.4)

    chain = normalize_chain(feed.records)
    assert len(chain.contracts) == 2
    put = chain.puts[0]
    assert put.mark_price is None
    assert put.volume == 0.0
    assert put.delta == pytest.approx(-0.3)


def test_load_errors(tmp_path: Path) -> None:
    with pytest.raises(ChainFeedError, match="not found"):
        load_chain_feed(tmp_path / "missing.json")

    bad = tmp_path / "bad.json"
    bad.write_text("{", encoding="utf-8")
    with pytest.raises(ChainFeedError, match="Invalid JSON"):
        load_chain_feed(bad)

    other = tmp_path / "chain.parquet"
    other.write_bytes(b"")
    with pytest.raises(ChainFeedError, match="Unsupported"):
        load_chain_feed(other)
