from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from options_heatmap.analysis.enrich import usable_spot
from options_heatmap.analysis.normalize import NormalizedChain, normalize_chain
from options_heatmap.data.chain_feed import load_chain_feed
from options_heatmap.models import OptionType


def _parse_option_type(value: str) -> OptionType:
    val = value.strip().lower()
    if val in {"call", "calls", "c"}:
        return "call"
    if val in {"put", "puts", "p"}:
        return "put"
    raise typer.BadParameter("Invalid --type (use call|put)", param_hint="--type")


def _parse_format(value: str, allowed: tuple[str, ...]) -> str:
    fmt = value.strip().lower()
    if fmt not in allowed:
        raise typer.BadParameter(f"Invalid --format (use {'|'.join(allowed)})", param_hint="--format")
    return fmt


def _load_chain(chain_file: Path, *, spot: float | None, base: str) -> tuple[NormalizedChain, float]:
    """Normalized chain plus the spot to score against (--spot wins over the file)."""
    feed = load_chain_feed(chain_file)
    effective_spot = spot if spot is not None else feed.spot
    if not usable_spot(effective_spot):
        raise ValueError(f"missing or invalid spot price (pass --spot): {chain_file}")
    chain = normalize_chain(feed.records, base=base)
    return chain, float(effective_spot)


def _print_json(console: Console, payload: str) -> None:
    console.print(payload, soft_wrap=True, markup=False, highlight=False)


def _report_skipped(console: Console, chain: NormalizedChain) -> None:
    if chain.skipped:
        console.print(f"[yellow]Skipped {len(chain.skipped)} invalid records[/yellow] (first: {chain.skipped[0].reason})")
