"""analyze command: push webhook payloads through the pipeline locally."""

from __future__ import annotations

import json

import click
from rich.console import Console
from rich.table import Table

console = Console()

_STATUS_STYLE = {"COMPLETED": "green", "FAILED": "red", "PENDING": "yellow"}


def _load_payloads(text: str, source: str) -> list:
    """Read one JSON document, a JSON array of payloads, or JSON lines."""
    text = text.strip()
    if not text:
        return []
    try:
        document = json.loads(text)
    except json.JSONDecodeError:
        payloads = []
        for lineno, line in enumerate(text.splitlines(), 1):
            if not line.strip():
                continue
            try:
                payloads.append(json.loads(line))
            except json.JSONDecodeError as e:
                raise click.UsageError(f"{source}:{lineno}: not valid JSON ({e.msg})")
        return payloads
    return document if isinstance(document, list) else [document]


@click.command("analyze")
@click.argument("payload_files", nargs=-1, required=True, type=click.File("r"))
@click.option("--workers", type=int, default=None, help="Number of worker threads. Overrides config file.")
@click.pass_context
def analyze_cmd(ctx, payload_files, workers: int | None):
    """Analyze pull request webhook payloads.

    Each PAYLOAD_FILE holds a GitHub `pull_request` webhook body (or a JSON
    array / JSON lines of them); use `-` to read from stdin. The payloads are
    queued and consumed by worker threads exactly as a deployed worker would.

    \b
    Optional environment variables:
      OPENAI_API_KEY, ANTHROPIC_API_KEY     AI providers (mock analysis if neither is set)
      GITHUB_APP_ID, GITHUB_APP_PRIVATE_KEY_PATH, GITHUB_INSTALLATION_ID
                                            GitHub App (mock diff, logged comment if unset)
    """
    from codesage_cli.cli import _build_orchestrator
    from codesage_core.events import extract_event
    from codesage_core.exceptions import MalformedEventError
    from codesage_core.worker import LocalQueue, drain

    config = ctx.obj["config"]
    store = ctx.obj["store"]
    orchestrator = _build_orchestrator(config, store)

    work_queue = LocalQueue()
    keys = []
    for f in payload_files:
        for payload in _load_payloads(f.read(), f.name):
            work_queue.put(payload)
            try:
                event = extract_event(payload)
            except MalformedEventError:
                event = None
            if event is not None and event.key not in keys:
                keys.append(event.key)

    if not keys:
        console.print("[yellow]No opened/synchronize pull request events found.[/yellow]")

    handled = drain(work_queue, orchestrator, workers=workers or config.get("workers", 1))
    console.print(f"Processed {handled} event(s).")

    if not keys:
        return

    table = Table(title="Reviews", show_header=True, header_style="bold cyan")
    table.add_column("ID", justify="right", width=6)
    table.add_column("Pull Request")
    table.add_column("Status", width=10)
    table.add_column("Score", justify="right", width=6)
    table.add_column("Issues", justify="right", width=7)
    table.add_column("Provider")

    for owner, name, number in keys:
        review = store.find_by_key(owner, name, number)
        if review is None:
            table.add_row("-", f"{owner}/{name}#{number}", "[dim]none[/dim]", "", "", "")
            continue
        style = _STATUS_STYLE.get(review.status.value, "white")
        table.add_row(
            str(review.id),
            f"{owner}/{name}#{number}",
            f"[{style}]{review.status.value}[/{style}]",
            f"{review.quality_score:.1f}",
            str(len(review.issues)),
            f"{review.ai_provider} ({review.ai_model})",
        )
    console.print(table)
