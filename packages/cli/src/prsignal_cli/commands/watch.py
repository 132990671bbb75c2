"""watch command — add a repository to the poll list."""

from __future__ import annotations

from datetime import datetime, timezone

import click
from rich.console import Console
from rich.markup import escape

from prsignal_cli.auth import TOKEN_ENV_VARS, resolve_token
from prsignal_cli.context import build_cipher, get_config, get_store, parse_repo
from prsignal_core.models import GitProvider
from prsignal_store.models import ProviderAccount, Repository

console = Console()


@click.command("watch")
@click.option(
    "--provider",
    required=True,
    type=click.Choice([p.value for p in GitProvider], case_sensitive=False),
    help="Hosting provider.",
)
@click.option("--repo", required=True, help="Repository (owner/name; GitLab: group/subgroup/name).")
@click.option("--token", default=None, help="Access token. Defaults to the provider's environment variable.")
@click.option("--username", default=None, help="Account username (Bitbucket app passwords).")
@click.option("--instance-url", default=None, help="Base URL of a self-hosted instance.")
@click.option("--interval", type=int, default=None, help="Poll interval in seconds.")
@click.pass_context
def watch_cmd(
    ctx,
    provider: str,
    repo: str,
    token: str | None,
    username: str | None,
    instance_url: str | None,
    interval: int | None,
):
    """Watch a repository: store its encrypted token and schedule it for polling.

    The repository is polled on the next `prsignal poll` or worker cycle.
    """
    store = get_store(ctx)
    config = get_config(ctx)
    provider = provider.lower()
    owner, name = parse_repo(repo)

    if store.find_repository(provider, owner, name) is not None:
        raise click.UsageError(f"{provider}:{owner}/{name} is already watched.")

    token = resolve_token(provider, token)
    if not token:
        raise click.UsageError(f"No access token. Pass --token or set {TOKEN_ENV_VARS[provider]}.")
    if provider == GitProvider.BITBUCKET and not username:
        console.print("[yellow]No --username given: the token will be sent as a bearer token.[/yellow]")

    if interval is None:
        interval = config["default_poll_interval"]
    if interval <= 0:
        raise click.BadParameter("must be positive", param_hint="--interval")

    cipher = build_cipher(config)
    now = datetime.now(timezone.utc)
    account = store.add_provider_account(
        ProviderAccount(
            provider=provider,
            label=f"{provider}:{owner}",
            access_token_encrypted=cipher.encrypt(token),
            auth_username=username,
            instance_url=instance_url,
            created_at=now,
        )
    )
    repository = store.add_repository(
        Repository(
            provider=provider,
            owner=owner,
            name=name,
            provider_account_id=account.id,
            poll_interval_seconds=interval,
            created_at=now,
        )
    )
    console.print(
        f"[green]Watching {provider}:{escape(repository.full_name)}[/green] (every {interval}s, id {repository.id})"
    )
