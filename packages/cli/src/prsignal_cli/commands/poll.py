"""poll command — run one poll cycle now."""

from __future__ import annotations

from datetime import datetime, timezone

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from prsignal_cli.context import build_cipher, build_factory, get_config, get_store
from prsignal_core.sync import PollRepositoryJob

console = Console()


@click.command("poll")
@click.option("--limit", type=int, default=None, help="Maximum repositories to sync (default: poll_batch_limit).")
@click.pass_context
def poll_cmd(ctx, limit: int | None):
    """Sync every repository whose poll interval has elapsed.

    Exits with status 1 if any repository failed to sync.
    """
    store = get_store(ctx)
    config = get_config(ctx)
    job = PollRepositoryJob(
        store,
        build_cipher(config),
        build_factory(ctx),
        batch_limit=limit or config["poll_batch_limit"],
    )
    results = job.execute(datetime.now(timezone.utc))
    if not results:
        console.print("[yellow]No repositories due.[/yellow]")
        return

    table = Table(title="Poll cycle", show_header=True, header_style="bold cyan")
    table.add_column("Repository", style="bold")
    table.add_column("Result", width=8)
    table.add_column("Open PRs", justify="right")
    table.add_column("Merged", justify="right")
    table.add_column("Closed", justify="right")
    table.add_column("Check errors", justify="right")
    table.add_column("Review errors", justify="right")
    table.add_column("Error", max_width=50)

    for r in results:
        table.add_row(
            escape(r.repository),
            "[green]ok[/green]" if r.ok else "[red]failed[/red]",
            str(r.pull_requests),
            str(r.merged),
            str(r.closed),
            str(r.check_failures),
            str(r.review_failures),
            escape(r.error or ""),
        )
    console.print(table)

    if any(not r.ok for r in results):
        ctx.exit(1)
