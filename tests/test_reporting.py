from __future__ import annotations

from datetime import date

from rich.console import Console

from options_heatmap.analysis.chart_layers import build_chart_layers
from options_heatmap.analysis.enrich import enrich_contracts
from options_heatmap.engine import build_recommendation_artifact, enrich_and_rank
from options_heatmap.models import Contract
from options_heatmap.reporting_heatmap import render_heatmap_console
from options_heatmap.reporting_rank import (
    render_enriched_console,
    render_recommendations_console,
    render_recommendations_markdown,
)

SPOT = 100_000.0
EXPIRY = date(2025, 6, 27)


def _contracts() -> list[Contract]:
    return [
        Contract(symbol="C96", strike=96_000.0, mark_price=5_000.0, delta=0.5, volume=10.0, option_type="call", expiry=EXPIRY),
        Contract(symbol="C97", strike=97_500.0, mark_price=5_000.0, delta=0.5, volume=50.0, option_type="call", expiry=EXPIRY),
        Contract(symbol="C105", strike=105_000.0, mark_price=900.0, delta=0.25, volume=5.0, option_type="call", expiry=EXPIRY),
    ]


def _console() -> Console:
    return Console(record=True, width=200)


def test_render_recommendations_console_and_markdown() -> None:
    ranked = enrich_and_rank(_contracts(), SPOT, option_type="call")
    artifact = build_recommendation_artifact(ranked, SPOT, option_type="call")

    console = _console()
    render_recommendations_console(console, artifact)
    text = console.export_text()
    assert "CALL recommendations" in text
    assert "C97" in text
    assert "C105" not in text

    md = render_recommendations_markdown(artifact)
    assert md.startswith("# CALL recommendations")
    assert "| 1 | C97 |" in md


def test_render_recommendations_empty() -> None:
    artifact = build_recommendation_artifact([], 0.0, option_type="put")
    console = _console()
    render_recommendations_console(console, artifact)
    text = console.export_text()
    assert "No contracts passed the ranking filters." in text
    assert "invalid_spot" in text
    assert "_No contracts passed the ranking filters._" in render_recommendations_markdown(artifact)


def test_render_enriched_console_lists_warnings() -> None:
    contracts = [*_contracts(), Contract(symbol="NODELTA", strike=99_000.0, option_type="put", expiry=EXPIRY)]
    console = _console()
    render_enriched_console(console, enrich_contracts(contracts, SPOT), spot=SPOT)
    text = console.export_text()
    assert "Enriched chain (4 contracts)" in text
    assert "missing_delta" in text
    assert "missing_mark_price" in text


def test_render_heatmap_console_draws_grid_and_guides() -> None:
    layers = build_chart_layers(_contracts(), SPOT, recommended=_contracts()[:2])
    console = _console()
    render_heatmap_console(console, layers)
    text = console.export_text()
    assert "Heatmap 24x15" in text
    assert "Delta guides" in text
    assert "●" in text or "★" in text


def test_render_heatmap_console_degenerate() -> None:
    console = _console()
    render_heatmap_console(console, build_chart_layers([], SPOT))
    assert "Nothing to plot (empty_point_set)." in console.export_text()
