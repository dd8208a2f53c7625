from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console

from options_heatmap.analysis.chart_layers import build_chart_layers
from options_heatmap.analysis.enrich import enrich_contracts
from options_heatmap.analysis.rank import rank_recommendations
from options_heatmap.commands.common import (
    _load_chain,
    _parse_format,
    _parse_option_type,
    _print_json,
    _report_skipped,
)
from options_heatmap.data.engine_config import load_engine_config
from options_heatmap.models import EnrichedContract, GridResolution, Viewport
from options_heatmap.reporting_heatmap import render_heatmap_console
from options_heatmap.schemas.heatmap import HeatmapArtifact

logger = logging.getLogger(__name__)


def heatmap(
    chain_file: Path = typer.Argument(..., help="Option chain file (.json or .csv)."),
    spot: float | None = typer.Option(None, "--spot", help="Underlying spot price (overrides the file)."),
    option_type: str | None = typer.Option(
        None,
        "--type",
        help="Plot one side only (call|put); also marks that side's recommendations.",
    ),
    expiry: str = typer.Option("all", "--expiry", help="Expiry filter for recommendations (YYYY-MM-DD) or 'all'."),
    cols: int | None = typer.Option(None, "--cols", min=1, max=500, help="Grid columns (default from config)."),
    rows: int | None = typer.Option(None, "--rows", min=1, max=500, help="Grid rows (default from config)."),
    width: float | None = typer.Option(None, "--width", min=0.0, help="Viewport width in pixels."),
    height: float | None = typer.Option(None, "--height", min=0.0, help="Viewport height in pixels."),
    recommended_only: bool = typer.Option(
        False,
        "--recommended-only",
        help="Plot only the recommended contracts (requires --type).",
    ),
    config_path: Path | None = typer.Option(None, "--config", help="Engine config YAML (defaults built in)."),
    base: str = typer.Option("BTC", "--base", help="Base asset used when a record has no symbol."),
    format: str = typer.Option("console", "--format", help="Output format: console|json"),
    out: Path | None = typer.Option(None, "--out", help="Write the heatmap artifact JSON to this path."),
) -> None:
    """Proximity heatmap of the chain in strike x premium space."""
    console = Console()
    try:
        fmt = _parse_format(format, ("console", "json"))
        side = _parse_option_type(option_type) if option_type else None
        if recommended_only and side is None:
            raise typer.BadParameter("--recommended-only requires --type", param_hint="--recommended-only")

        cfg = load_engine_config(config_path)
        resolution = GridResolution(
            cols=cols or cfg.heatmap.resolution.cols,
            rows=rows or cfg.heatmap.resolution.rows,
        )
        viewport = Viewport(
            width=cfg.heatmap.viewport.width if width is None else width,
            height=cfg.heatmap.viewport.height if height is None else height,
            margins=cfg.heatmap.viewport.margins,
        )

        chain, spot_val = _load_chain(chain_file, spot=spot, base=base)
        contracts = chain.contracts if side is None else [c for c in chain.contracts if c.option_type == side]
        enriched = enrich_contracts(contracts, spot_val, config=cfg)
        recommended: list[EnrichedContract] = []
        if side is not None:
            recommended = rank_recommendations(enriched, spot_val, option_type=side, expiry=expiry, config=cfg)
        points = recommended if recommended_only else enriched

        layers = build_chart_layers(
            points,
            spot_val,
            recommended=recommended,
            viewport=viewport,
            resolution=resolution,
            config=cfg,
        )
        artifact = HeatmapArtifact.from_result(layers.heatmap, spot=spot_val, source=str(chain_file))
        logger.info(
            "Heatmap for %s: points=%s degenerate=%s",
            chain_file,
            layers.heatmap.point_count,
            layers.heatmap.degenerate,
        )

        if fmt == "json":
            _print_json(console, artifact.to_json())
        else:
            _report_skipped(console, chain)
            render_heatmap_console(console, layers)

        if out is not None:
            artifact.write_json(out)
            if fmt != "json":
                console.print(f"\nSaved: {out}")
    except Exception as exc:  # noqa: BLE001
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc
