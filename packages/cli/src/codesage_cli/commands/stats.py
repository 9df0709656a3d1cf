"""stats command: aggregate dashboard statistics."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from codesage_cli.commands.history import persistent_store

console = Console()


@click.command("stats")
@click.pass_context
def stats_cmd(ctx):
    """Show review totals, the average score, and issue counts by severity.

    Scores and issue counts only include COMPLETED reviews; the active count
    is the number of reviews still PENDING.
    """
    store = persistent_store(ctx)
    stats = store.stats()

    if not stats.total_reviews:
        console.print("[yellow]No review records found.[/yellow]")
        return

    console.print("\n[bold]Review stats[/bold]")
    console.print(f"  Total reviews:  {stats.total_reviews}")
    console.print(f"  Active (pending): {stats.active_reviews}")
    console.print(f"  Average score:  {stats.avg_quality_score:.1f}/10")
    console.print(f"  Issues found:   {stats.issues_found}")

    sev_table = Table(title="Severity Breakdown", show_header=True)
    sev_table.add_column("Severity", style="bold")
    sev_table.add_column("Count", justify="right")
    sev_table.add_column("% of total", justify="right")
    _sev_style = {"CRITICAL": "red", "HIGH": "yellow", "MEDIUM": "blue", "LOW": "cyan", "INFO": "dim"}
    rows = [
        ("CRITICAL", stats.critical_issues),
        ("HIGH", stats.high_issues),
        ("MEDIUM", stats.medium_issues),
        ("LOW", stats.low_issues),
        ("INFO", stats.info_issues),
    ]
    for sev, count in rows:
        pct = f"{count / stats.issues_found * 100:.1f}%" if stats.issues_found else "0%"
        style = _sev_style.get(sev, "white")
        sev_table.add_row(f"[{style}]{sev}[/{style}]", str(count), pct)
    console.print(sev_table)
