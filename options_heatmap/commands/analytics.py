from __future__ import annotations

import json
import logging
from pathlib import Path
import time

import typer
from rich.console import Console

from options_heatmap.analysis.enrich import enrich_contracts, resolve_weights
from options_heatmap.commands.common import (
    _load_chain,
    _parse_format,
    _parse_option_type,
    _print_json,
    _report_skipped,
)
from options_heatmap.data.engine_config import load_engine_config
from options_heatmap.engine import build_recommendation_artifact, enrich_and_rank
from options_heatmap.models import EnrichedContract
from options_heatmap.reporting_rank import (
    render_enriched_console,
    render_recommendations_console,
    render_recommendations_markdown,
)
from options_heatmap.schemas.common import json_safe

logger = logging.getLogger(__name__)


def enrich(
    chain_file: Path = typer.Argument(..., help="Option chain file (.json or .csv)."),
    spot: float | None = typer.Option(None, "--spot", help="Underlying spot price (overrides the file)."),
    config_path: Path | None = typer.Option(None, "--config", help="Engine config YAML (defaults built in)."),
    preset: str | None = typer.Option(None, "--preset", help="Score weight preset: premium_weighted|delta_weighted."),
    option_type: str | None = typer.Option(None, "--type", help="Only show one side: call|put."),
    base: str = typer.Option("BTC", "--base", help="Base asset used when a record has no symbol."),
    format: str = typer.Option("console", "--format", help="Output format: console|json"),
) -> None:
    """Score every contract in a chain file (fair premium, anomaly, buy score, alerts)."""
    console = Console()
    try:
        fmt = _parse_format(format, ("console", "json"))
        side = _parse_option_type(option_type) if option_type else None
        cfg = load_engine_config(config_path)
        weights = resolve_weights(preset, cfg)
        chain, spot_val = _load_chain(chain_file, spot=spot, base=base)
        contracts = chain.contracts if side is None else [c for c in chain.contracts if c.option_type == side]
        enriched = enrich_contracts(contracts, spot_val, config=cfg, weights=weights)
        logger.info("Enriched %s contracts from %s", len(enriched), chain_file)

        if fmt == "json":
            payload = {
                "spot": spot_val,
                "skipped": len(chain.skipped),
                "contracts": enriched,
            }
            _print_json(console, json.dumps(json_safe(payload), indent=2))
        else:
            _report_skipped(console, chain)
            render_enriched_console(console, enriched, spot=spot_val)
    except Exception as exc:  # noqa: BLE001
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc


def rank(
    chain_file: Path = typer.Argument(..., help="Option chain file (.json or .csv)."),
    option_type: str = typer.Option(..., "--type", help="Option type to rank: call|put."),
    spot: float | None = typer.Option(None, "--spot", help="Underlying spot price (overrides the file)."),
    expiry: str = typer.Option("all", "--expiry", help="Expiry filter (YYYY-MM-DD) or 'all'."),
    top_picks: bool = typer.Option(False, "--top-picks", help="Only the first few recommendations."),
    preset: str | None = typer.Option(None, "--preset", help="Score weight preset: premium_weighted|delta_weighted."),
    config_path: Path | None = typer.Option(None, "--config", help="Engine config YAML (defaults built in)."),
    base: str = typer.Option("BTC", "--base", help="Base asset used when a record has no symbol."),
    format: str = typer.Option("console", "--format", help="Output format: console|md|json"),
    out: Path | None = typer.Option(
        None,
        "--out",
        help="Output root for saved artifacts (writes under {out}/recommendations/).",
    ),
) -> None:
    """Bounded buy recommendations for one option type (not financial advice)."""
    console = Console()
    try:
        fmt = _parse_format(format, ("console", "md", "json"))
        side = _parse_option_type(option_type)
        cfg = load_engine_config(config_path)
        chain, spot_val = _load_chain(chain_file, spot=spot, base=base)
        ranked = enrich_and_rank(
            chain.contracts,
            spot_val,
            option_type=side,
            expiry=expiry,
            weight_preset=preset,
            config=cfg,
            top_picks=top_picks,
        )
        artifact = build_recommendation_artifact(
            ranked,
            spot_val,
            option_type=side,
            expiry=expiry,
            weight_preset=preset,
            top_picks=top_picks,
            source=str(chain_file),
            config=cfg,
        )

        if fmt == "console":
            _report_skipped(console, chain)
            render_recommendations_console(console, artifact)
        elif fmt == "md":
            console.print(render_recommendations_markdown(artifact), markup=False, soft_wrap=True)
        else:
            _print_json(console, artifact.to_json())

        if out is not None:
            base_dir = out / "recommendations"
            stem = f"{side}_{artifact.expiry or 'all'}"
            json_path = artifact.write_json(base_dir / f"{stem}.json")
            md_path = base_dir / f"{stem}.md"
            md_path.write_text(render_recommendations_markdown(artifact), encoding="utf-8")
            if fmt != "json":
                console.print(f"\nSaved: {json_path}")
                console.print(f"Saved: {md_path}")
    except Exception as exc:  # noqa: BLE001
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc


def _watch_line(ranked: list[EnrichedContract]) -> str:
    if not ranked:
        return "no recommendations"
    return " | ".join(f"{c.symbol} score={c.buy_score} mark={c.mark_price}" for c in ranked)


def watch(
    chain_file: Path = typer.Argument(..., help="Option chain file, re-read on every refresh."),
    option_type: str = typer.Option(..., "--type", help="Option type to rank: call|put."),
    spot: float | None = typer.Option(None, "--spot", help="Underlying spot price (overrides the file)."),
    expiry: str = typer.Option("all", "--expiry", help="Expiry filter (YYYY-MM-DD) or 'all'."),
    seconds: float = typer.Option(30.0, "--seconds", min=0.0, help="Refresh interval in seconds."),
    iterations: int = typer.Option(0, "--iterations", min=0, help="Stop after N refreshes (0 = run until Ctrl-C)."),
    config_path: Path | None = typer.Option(None, "--config", help="Engine config YAML (defaults built in)."),
    base: str = typer.Option("BTC", "--base", help="Base asset used when a record has no symbol."),
) -> None:
    """Poll a chain file and print the top picks on every refresh; each refresh replaces the last."""
    console = Console()
    try:
        side = _parse_option_type(option_type)
        cfg = load_engine_config(config_path)
    except Exception as exc:  # noqa: BLE001
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc

    tick = 0
    try:
        while iterations == 0 or tick < iterations:
            tick += 1
            try:
                chain, spot_val = _load_chain(chain_file, spot=spot, base=base)
                ranked = enrich_and_rank(
                    chain.contracts,
                    spot_val,
                    option_type=side,
                    expiry=expiry,
                    config=cfg,
                    top_picks=True,
                )
                console.print(f"[{tick}] spot={spot_val:,.2f} {_watch_line(ranked)}", markup=False)
            except Exception as exc:  # noqa: BLE001
                # A failed refresh leaves the previous picks on screen.
                logger.warning("Refresh %s failed: %s", tick, exc)
                console.print(f"[yellow]Refresh {tick} failed:[/yellow] {exc}")
            if iterations == 0 or tick < iterations:
                time.sleep(seconds)
    except KeyboardInterrupt:
        console.print("Stopped.")
