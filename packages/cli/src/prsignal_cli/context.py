"""Shared wiring for commands: turn the loaded config into runtime objects.

Kept out of cli.py so command modules can import it without a cycle.
"""

from __future__ import annotations

import click

from prsignal_core.crypto import TokenCipher
from prsignal_core.errors import CredentialError
from prsignal_core.providers.factory import ProviderFactory


def get_store(ctx: click.Context):
    return ctx.obj["store"]


def get_config(ctx: click.Context) -> dict:
    return ctx.obj["config"]


def build_cipher(config: dict) -> TokenCipher:
    try:
        return TokenCipher.from_base64_key(config.get("encryption_key"))
    except CredentialError as e:
        raise click.UsageError(f"{e} Run `prsignal init` to generate one.") from e


def build_factory(ctx: click.Context) -> ProviderFactory:
    """Provider factory closed together with the store when the command exits."""
    factory = ProviderFactory(get_config(ctx))
    ctx.call_on_close(factory.close)
    return factory


def parse_repo(repo: str) -> tuple[str, str]:
    """Split "owner/name". GitLab subgroups keep every segment but the last in the owner."""
    owner, _, name = repo.strip().strip("/").rpartition("/")
    if not owner or not name:
        raise click.BadParameter(f"expected owner/name, got {repo!r}", param_hint="--repo")
    return owner, name
