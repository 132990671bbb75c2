"""status command — traffic lights per repository and open pull request."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from prsignal_cli.context import get_store, parse_repo
from prsignal_cli.render import status_label, timestamp
from prsignal_core.dashboard import build_dashboard, build_repository_view

console = Console()


@click.command("status")
@click.option("--repo", default=None, help="Only this repository (owner/name).")
@click.option("--provider", default=None, help="Provider of --repo, when several providers share the name.")
@click.pass_context
def status_cmd(ctx, repo: str | None, provider: str | None):
    """Show the current status of watched repositories.

    Statuses are evaluated from the last synced data; run `prsignal poll`
    first for fresh results.
    """
    store = get_store(ctx)

    if repo is not None:
        owner, name = parse_repo(repo)
        matches = [
            r
            for r in store.list_repositories()
            if r.owner == owner and r.name == name and (provider is None or r.provider == provider.lower())
        ]
        if not matches:
            raise click.UsageError(f"{repo} is not watched. Add it with `prsignal watch`.")
        views = [build_repository_view(store, r) for r in matches]
    else:
        views = build_dashboard(store)

    if not views:
        console.print("[yellow]No repositories watched.[/yellow]")
        return

    for view in views:
        repository = view.repository
        health = f", health {view.latest_health.score}" if view.latest_health else ""
        name = escape(f"{repository.provider}:{repository.full_name}")
        console.print(
            f"\n{status_label(view.status)} [bold]{name}[/bold] "
            f"[dim](polled {timestamp(repository.last_polled_at)}{health})[/dim]"
        )
        if not view.pull_requests:
            console.print("  [dim]No open pull requests.[/dim]")
            continue

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("PR", style="bold", width=7)
        table.add_column("Title", max_width=50)
        table.add_column("Author")
        table.add_column("Status")
        table.add_column("CI")
        table.add_column("Reviews")
        for pr_view in view.pull_requests:
            pr = pr_view.pull_request
            title = escape(pr.title)
            if pr.is_draft:
                title = f"[dim](draft)[/dim] {title}"
            table.add_row(
                f"#{pr.number}",
                title,
                escape(pr.author),
                status_label(pr_view.status),
                status_label(pr_view.ci_status),
                status_label(pr_view.review_status),
            )
        console.print(table)
