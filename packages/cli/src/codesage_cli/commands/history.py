"""history command: paginated listing of stored reviews."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import click
from rich.console import Console
from rich.table import Table

console = Console()

_STATUS_STYLE = {"COMPLETED": "green", "FAILED": "red", "PENDING": "yellow"}


def persistent_store(ctx):
    """Return the configured store, refusing the in-memory one (it is always empty here)."""
    from codesage_store.memory import MemoryStore

    store = ctx.obj.get("store") if ctx.obj else None
    if store is None or isinstance(store, MemoryStore):
        raise click.UsageError(
            "No persistent store configured. Set 'store: sqlite' (the default) in .codesage.yml."
        )
    return store


def _split_repo(repo: str | None) -> tuple[str | None, str | None]:
    if repo is None:
        return None, None
    owner, sep, name = repo.partition("/")
    if not sep or not owner or not name:
        raise click.BadParameter("expected owner/name", param_hint="--repo")
    return owner, name


@click.command("history")
@click.option("--repo", default=None, help="Only reviews of this repository (owner/name).")
@click.option(
    "--status",
    type=click.Choice(["PENDING", "COMPLETED", "FAILED"], case_sensitive=False),
    default=None,
    help="Only reviews in this status.",
)
@click.option("--page", default=0, show_default=True, help="Zero-based page number.")
@click.option("--size", default=10, show_default=True, help="Reviews per page.")
@click.option("--days", type=int, default=None, help="Only reviews created in the last N days.")
@click.pass_context
def history_cmd(ctx, repo: str | None, status: str | None, page: int, size: int, days: int | None):
    """Show stored reviews, newest first."""
    from codesage_store.models import ReviewStatus

    store = persistent_store(ctx)
    owner, name = _split_repo(repo)

    if days is not None:
        since = datetime.now(timezone.utc) - timedelta(days=days)
        reviews = [
            r
            for r in store.find_recent_since(since)
            if (owner is None or (r.repository_owner, r.repository_name) == (owner, name))
            and (status is None or r.status.value == status.upper())
        ]
        total = len(reviews)
        reviews = reviews[page * size : (page + 1) * size]
    else:
        result = store.list_reviews(
            owner=owner,
            name=name,
            status=ReviewStatus(status.upper()) if status else None,
            page=page,
            size=size,
        )
        reviews, total = result.items, result.total

    if not reviews:
        console.print("[yellow]No review records found.[/yellow]")
        return

    title = f"Review History: {repo}" if repo else "Review History"
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("ID", justify="right", width=6)
    table.add_column("Repository")
    table.add_column("PR", style="bold", width=6)
    table.add_column("Title", max_width=40)
    table.add_column("Author")
    table.add_column("Status", width=10)
    table.add_column("Score", justify="right", width=6)
    table.add_column("Issues", justify="right", width=7)
    table.add_column("Created At", width=20)

    for r in reviews:
        style = _STATUS_STYLE.get(r.status.value, "white")
        table.add_row(
            str(r.id),
            r.full_repository_name,
            f"#{r.pr_number}",
            r.pr_title[:40] if r.pr_title else "",
            r.pr_author,
            f"[{style}]{r.status.value}[/{style}]",
            f"{r.quality_score:.1f}",
            str(len(r.issues)),
            r.created_at.isoformat()[:19].replace("T", " "),
        )

    console.print(table)
    console.print(f"[dim]Page {page} · {len(reviews)} of {total} review(s)[/dim]")
