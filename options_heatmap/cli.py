from __future__ import annotations

from pathlib import Path

import typer

from options_heatmap.commands import register
from options_heatmap.observability import finalize_run_logger, parse_log_level, setup_run_logger

app = typer.Typer(add_completion=False, help="Option chain analytics and strike x premium heatmaps.")
config_app = typer.Typer(help="Inspect the engine configuration.")
app.add_typer(config_app, name="config")


@app.callback()
def main(
    ctx: typer.Context,
    log_dir: Path = typer.Option(
        Path("data/logs"),
        "--log-dir",
        help="Directory for per-run log files (partitioned by date).",
    ),
    log_level: str = typer.Option("INFO", "--log-level", help="Log level: DEBUG|INFO|WARNING|ERROR"),
) -> None:
    try:
        level = parse_log_level(log_level)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--log-level") from exc

    command_name = ctx.invoked_subcommand or "options-heatmap"
    run_logger = setup_run_logger(log_dir, command_name, level=level)
    if run_logger is not None:
        ctx.call_on_close(lambda: finalize_run_logger(run_logger))


register(app, config_app)
