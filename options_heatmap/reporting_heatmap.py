from __future__ import annotations

from rich.console import Console
from rich.style import Style
from rich.table import Table
from rich.text import Text

from options_heatmap.analysis.chart_layers import ChartLayers, intensity_color


def _cell_of(x: float, y: float, layers: ChartLayers) -> tuple[int, int]:
    hm = layers.heatmap
    cell_w = hm.viewport.inner_width / hm.resolution.cols
    cell_h = hm.viewport.inner_height / hm.resolution.rows
    col = min(max(int(x // cell_w), 0), hm.resolution.cols - 1)
    row = min(max(int(y // cell_h), 0), hm.resolution.rows - 1)
    return row, col


def _overlay(layers: ChartLayers) -> dict[tuple[int, int], str]:
    """Glyphs drawn on top of the grid; markers win over the price line."""
    glyphs: dict[tuple[int, int], str] = {}
    for point in layers.price_line:
        glyphs[_cell_of(point.x, point.y, layers)] = "·"
    for marker in layers.markers:
        glyphs[_cell_of(marker.x, marker.y, layers)] = "★" if marker.highlight else "●"
    return glyphs


def render_heatmap_console(console: Console, layers: ChartLayers, *, cell_width: int = 2) -> None:
    hm = layers.heatmap
    lo, hi = hm.strike_domain
    p_lo, p_hi = hm.premium_domain
    console.print(
        f"\n[bold]Heatmap[/bold] {hm.resolution.cols}x{hm.resolution.rows} | points={hm.point_count} "
        f"| strike {lo:,.0f}-{hi:,.0f} | premium {p_lo:,.2f}-{p_hi:,.2f}"
    )
    if hm.degenerate:
        console.print(f"[yellow]Nothing to plot ({', '.join(hm.warnings)}).[/yellow]")
        return

    spot_col = None
    if layers.spot_marker_x is not None:
        spot_col = _cell_of(layers.spot_marker_x, 0.0, layers)[1]
    glyphs = _overlay(layers)

    for row in hm.grid:
        label = f"{row[0].premium or 0.0:>10,.2f} "
        line = Text(label, style="dim")
        for cell in row:
            glyph = glyphs.get((cell.row, cell.col))
            if glyph is None and cell.col == spot_col:
                glyph = "│"
            body = (glyph or "").center(cell_width)
            line.append(body, style=Style(color="white", bgcolor=intensity_color(cell.intensity, background=True)))
        console.print(line)

    axis = Text(" " * 11, style="dim")
    step = max(1, hm.resolution.cols // 6)
    first_row = hm.grid[0]
    col = 0
    while col < hm.resolution.cols:
        strike = first_row[col].strike or 0.0
        span = cell_width * step
        axis.append(f"{strike:,.0f}"[:span].ljust(span))
        col += step
    console.print(axis)

    if layers.delta_guides:
        guides = Table(title="Delta guides (calls)")
        guides.add_column("Δ target", justify="right")
        guides.add_column("Strike", justify="right")
        guides.add_column("Symbol")
        for guide in layers.delta_guides:
            guides.add_row(f"{guide.threshold:.2f}", f"{guide.strike:,.0f}", guide.symbol)
        console.print(guides)

    console.print("[dim]· price line  ● recommended  ★ highlight  │ spot[/dim]")
    if hm.warnings:
        console.print(f"[yellow]Warnings:[/yellow] {', '.join(hm.warnings)}")
