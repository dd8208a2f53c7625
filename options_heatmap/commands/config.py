from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from options_heatmap.data.engine_config import dump_engine_config, load_engine_config


def config_show(
    config_path: Path | None = typer.Option(None, "--config", help="Engine config YAML (defaults built in)."),
) -> None:
    """Print the effective engine configuration (defaults merged with the file)."""
    console = Console()
    try:
        cfg = load_engine_config(config_path)
    except Exception as exc:  # noqa: BLE001
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc
    console.print(dump_engine_config(cfg), markup=False, highlight=False, soft_wrap=True)
