"""score command — record merge metrics, then append one health score per repository."""

from __future__ import annotations

from datetime import datetime, timezone

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from prsignal_cli.context import get_config, get_store
from prsignal_cli.render import hours
from prsignal_core.health import HealthScoreJob
from prsignal_core.metrics import MetricsCollectionJob

console = Console()


@click.command("score")
@click.pass_context
def score_cmd(ctx):
    """Calculate repository health scores now."""
    store = get_store(ctx)
    config = get_config(ctx)
    now = datetime.now(timezone.utc)

    recorded = MetricsCollectionJob(store).execute(now)
    scores = HealthScoreJob(store, stale_after_days=config["stale_after_days"]).execute(now)
    if not scores:
        console.print("[yellow]No repositories to score.[/yellow]")
        return

    names = {repo.id: repo.full_name for repo in store.list_repositories()}
    table = Table(title="Health scores", show_header=True, header_style="bold cyan")
    table.add_column("Repository", style="bold")
    table.add_column("Score", justify="right")
    table.add_column("Avg merge", justify="right")
    table.add_column("Avg first review", justify="right")
    table.add_column("Stale", justify="right")
    table.add_column("Merged (7d)", justify="right")

    for s in scores:
        table.add_row(
            escape(names.get(s.repository_id, str(s.repository_id))),
            _score_label(s.score),
            hours(s.avg_time_to_merge),
            hours(s.avg_review_time),
            str(s.stale_pr_count),
            str(s.pr_throughput),
        )
    console.print(table)
    console.print(f"[dim]Merge metrics recorded for {recorded} pull requests.[/dim]")


def _score_label(score: int) -> str:
    style = "green" if score >= 80 else "yellow" if score >= 50 else "red"
    return f"[{style}]{score}[/{style}]"
