from __future__ import annotations

import typer

from options_heatmap.commands.analytics import enrich, rank, watch
from options_heatmap.commands.config import config_show
from options_heatmap.commands.heatmap import heatmap


def register(app: typer.Typer, config_app: typer.Typer) -> None:
    app.command("enrich")(enrich)
    app.command("rank")(rank)
    app.command("watch")(watch)
    app.command("heatmap")(heatmap)
    config_app.command("show")(config_show)


__all__ = ["register"]
