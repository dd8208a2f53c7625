from __future__ import annotations

from collections.abc import Sequence

from rich.console import Console
from rich.table import Table

from options_heatmap.models import EnrichedContract
from options_heatmap.schemas.recommendations import RecommendationArtifact

_ALERT_LABELS = {
    "is_in_decision_zone": "zone",
    "is_underpriced": "cheap",
    "is_overpriced": "rich",
    "has_volume_spike": "vol+",
    "has_oi_spike": "oi+",
    "has_imbalance": "imb",
}


def _fmt_money(val: float | None) -> str:
    if val is None:
        return "-"
    return f"${val:,.2f}"


def _fmt_num(val: float | None, *, digits: int = 2) -> str:
    if val is None:
        return "-"
    return f"{val:.{digits}f}"


def _fmt_signed(val: float | None, *, digits: int = 1) -> str:
    if val is None:
        return "-"
    return f"{val:+.{digits}f}"


def _alerts_text(contract: EnrichedContract) -> str:
    return ",".join(_ALERT_LABELS.get(name, name) for name in contract.alerts.active()) or "-"


def _score_style(score: int) -> str:
    if score >= 70:
        return "green"
    if score <= 40:
        return "red"
    return "yellow"


def _render_warning_list(console: Console, warnings: Sequence[str]) -> None:
    if not warnings:
        return
    console.print("\n[yellow]Warnings[/yellow]")
    for warning in warnings:
        console.print(f"- {warning}")


def render_recommendations_console(console: Console, artifact: RecommendationArtifact) -> None:
    expiry = artifact.expiry or "all"
    console.print(
        f"\n[bold]{artifact.option_type.upper()}[/bold] recommendations | expiry={expiry} "
        f"| spot={artifact.spot:,.2f} | weights={artifact.weight_preset}"
    )
    if not artifact.recommendations:
        console.print("[yellow]No contracts passed the ranking filters.[/yellow]")
        _render_warning_list(console, artifact.warnings)
        return

    table = Table(title="Top Picks" if artifact.top_picks_only else "Recommendations")
    table.add_column("#", justify="right")
    table.add_column("Symbol")
    table.add_column("Expiry")
    table.add_column("Strike", justify="right")
    table.add_column("Mark", justify="right")
    table.add_column("Fair", justify="right")
    table.add_column("Anom %", justify="right")
    table.add_column("Δ", justify="right")
    table.add_column("Vol", justify="right")
    table.add_column("R/R", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Alerts")
    for row in artifact.recommendations:
        c = row.contract
        style = _score_style(c.buy_score)
        symbol = f"[bold]{c.symbol}[/bold]" if row.highlight else c.symbol
        table.add_row(
            str(row.rank),
            symbol,
            c.expiry.isoformat(),
            f"{c.strike:,.0f}",
            _fmt_money(c.mark_price),
            _fmt_money(c.fair_premium),
            _fmt_signed(c.premium_anomaly),
            _fmt_num(c.delta, digits=3),
            f"{c.volume:,.0f}",
            _fmt_signed(row.risk_reward),
            f"[{style}]{c.buy_score}[/{style}]",
            _alerts_text(c),
        )
    console.print(table)
    _render_warning_list(console, artifact.warnings)


def render_recommendations_markdown(artifact: RecommendationArtifact) -> str:
    expiry = artifact.expiry or "all"
    lines = [
        f"# {artifact.option_type.upper()} recommendations",
        "",
        f"- Spot: {artifact.spot:,.2f}",
        f"- Expiry: {expiry}",
        f"- Weights: {artifact.weight_preset}",
        f"- Generated: {artifact.generated_at.isoformat()}",
        "",
    ]
    if not artifact.recommendations:
        lines.append("_No contracts passed the ranking filters._")
    else:
        lines.append("| # | Symbol | Strike | Mark | Fair | Anomaly % | Delta | Volume | R/R | Score | Alerts |")
        lines.append("|---:|---|---:|---:|---:|---:|---:|---:|---:|---:|---|")
        for row in artifact.recommendations:
            c = row.contract
            lines.append(
                f"| {row.rank} | {c.symbol} | {c.strike:,.0f} | {_fmt_money(c.mark_price)} "
                f"| {_fmt_money(c.fair_premium)} | {_fmt_signed(c.premium_anomaly)} "
                f"| {_fmt_num(c.delta, digits=3)} | {c.volume:,.0f} | {_fmt_signed(row.risk_reward)} "
                f"| {c.buy_score} | {_alerts_text(c)} |"
            )
    if artifact.warnings:
        lines.extend(["", "## Warnings", ""])
        lines.extend(f"- {w}" for w in artifact.warnings)
    return "\n".join(lines) + "\n"


def render_enriched_console(console: Console, contracts: Sequence[EnrichedContract], *, spot: float | None) -> None:
    spot_txt = f"{spot:,.2f}" if spot is not None else "-"
    table = Table(title=f"Enriched chain ({len(contracts)} contracts) | spot={spot_txt}")
    table.add_column("Symbol")
    table.add_column("Type")
    table.add_column("Strike", justify="right")
    table.add_column("Mark", justify="right")
    table.add_column("Fair", justify="right")
    table.add_column("Anom %", justify="right")
    table.add_column("Dist", justify="right")
    table.add_column("Δ", justify="right")
    table.add_column("Prem", justify="right")
    table.add_column("Vol", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Alerts")
    for c in contracts:
        b = c.score_breakdown
        style = _score_style(c.buy_score)
        table.add_row(
            c.symbol,
            c.option_type,
            f"{c.strike:,.0f}",
            _fmt_money(c.mark_price),
            _fmt_money(c.fair_premium),
            _fmt_signed(c.premium_anomaly),
            _fmt_num(b.distance, digits=0),
            _fmt_num(b.delta, digits=0),
            _fmt_num(b.premium, digits=0),
            _fmt_num(b.volume, digits=0),
            f"[{style}]{c.buy_score}[/{style}]",
            _alerts_text(c),
        )
    console.print(table)

    flagged = sorted({w for c in contracts for w in c.warnings})
    _render_warning_list(console, flagged)
