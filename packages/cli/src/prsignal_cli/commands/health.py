"""health command — display a repository's health score trend."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from prsignal_cli.context import get_store, parse_repo
from prsignal_cli.render import hours, timestamp

console = Console()


@click.command("health")
@click.option("--repo", required=True, help="Repository (owner/name).")
@click.option("--provider", default=None, help="Provider of --repo, when several providers share the name.")
@click.option("--limit", default=20, show_default=True, help="Maximum number of scores to show.")
@click.pass_context
def health_cmd(ctx, repo: str, provider: str | None, limit: int):
    """Show the health score history of a repository, newest first."""
    store = get_store(ctx)
    owner, name = parse_repo(repo)
    repository = next(
        (
            r
            for r in store.list_repositories()
            if r.owner == owner and r.name == name and (provider is None or r.provider == provider.lower())
        ),
        None,
    )
    if repository is None:
        raise click.UsageError(f"{repo} is not watched. Add it with `prsignal watch`.")

    scores = store.list_health_scores(repository.id, limit=limit)
    if not scores:
        console.print("[yellow]No health scores yet. Run `prsignal score` or the worker.[/yellow]")
        return

    table = Table(title=f"Health: {escape(repository.full_name)}", show_header=True, header_style="bold cyan")
    table.add_column("Calculated At", width=17)
    table.add_column("Score", justify="right")
    table.add_column("Trend", width=6)
    table.add_column("Avg merge", justify="right")
    table.add_column("Avg first review", justify="right")
    table.add_column("Stale", justify="right")
    table.add_column("Merged (7d)", justify="right")

    # scores are newest first; compare each with the one before it in time
    for current, previous in zip(scores, scores[1:] + [None]):
        table.add_row(
            timestamp(current.calculated_at),
            str(current.score),
            _trend(current.score, previous.score if previous else None),
            hours(current.avg_time_to_merge),
            hours(current.avg_review_time),
            str(current.stale_pr_count),
            str(current.pr_throughput),
        )
    console.print(table)


def _trend(score: int, previous: int | None) -> str:
    if previous is None or score == previous:
        return "[dim]=[/dim]"
    if score > previous:
        return f"[green]+{score - previous}[/green]"
    return f"[red]{score - previous}[/red]"
