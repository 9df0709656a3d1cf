"""show command: one review in full."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markdown import Markdown

from codesage_cli.commands.history import persistent_store

console = Console()


@click.command("show")
@click.argument("review_id", type=int)
@click.option("--raw", is_flag=True, help="Print the PR comment markdown without rendering it.")
@click.pass_context
def show_cmd(ctx, review_id: int, raw: bool):
    """Display a stored review and the PR comment it renders to."""
    from codesage_core.gh.comment import format_review_comment
    from codesage_store.models import ReviewStatus

    store = persistent_store(ctx)
    review = store.get(review_id)
    if review is None:
        raise click.ClickException(f"Review {review_id} not found.")

    console.print(
        f"[bold]{review.full_repository_name}#{review.pr_number}[/bold]  {review.pr_title}\n"
        f"  Author:  {review.pr_author or '-'}\n"
        f"  URL:     {review.pr_url or '-'}\n"
        f"  Status:  {review.status.value}\n"
        f"  Created: {review.created_at.isoformat()}\n"
        f"  Updated: {review.updated_at.isoformat()}"
    )

    if review.status is ReviewStatus.FAILED:
        console.print(f"\n[red]Error:[/red] {review.error_message}")
        return
    if review.status is ReviewStatus.PENDING:
        console.print("\n[yellow]Analysis still pending.[/yellow]")
        return

    comment = format_review_comment(review)
    console.print()
    if raw:
        click.echo(comment)
    else:
        console.print(Markdown(comment))
