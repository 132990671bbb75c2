"""init command — write .prsignal.yml and generate an encryption key."""

from __future__ import annotations

from pathlib import Path

import click
import yaml
from rich.console import Console

from prsignal_core.crypto import TokenCipher

console = Console()


@click.command("init")
@click.option("--store-path", default=None, help="SQLite database path.")
@click.option("--interval", type=int, default=None, help="Default poll interval in seconds for new repositories.")
@click.option("--config-out", default=".prsignal.yml", show_default=True, help="Where to write the configuration.")
def init_cmd(store_path: str | None, interval: int | None, config_out: str):
    """Set up prsignal in the current directory.

    Writes the configuration file (keeping any keys already in it) and prints
    a fresh PRSIGNAL_ENCRYPTION_KEY. Tokens are encrypted with that key, so
    keep it safe: losing it means re-adding every repository.
    """
    console.print("\n[bold cyan]prsignal init[/bold cyan]\n")

    if store_path is None:
        store_path = click.prompt("SQLite database path", default=".prsignal.db")
    if interval is None:
        interval = click.prompt("Default poll interval (seconds)", type=click.IntRange(min=1), default=300)
    elif interval <= 0:
        raise click.BadParameter("must be positive", param_hint="--interval")

    _write_config(Path(config_out), {"store": "sqlite", "store_path": store_path, "default_poll_interval": interval})
    console.print(f"[green]Wrote {config_out}[/green]")

    key = TokenCipher.generate_key()
    console.print("\nAdd this to your environment before running [bold]prsignal watch[/bold]:\n")
    console.print(f"  export PRSIGNAL_ENCRYPTION_KEY={key}", highlight=False, soft_wrap=True)
    console.print("\n[bold green]Setup complete![/bold green]")
    console.print("Watch a repository with: [bold]prsignal watch --provider github --repo owner/name[/bold]")


def _write_config(path: Path, config: dict) -> None:
    """Write or update the config file, preserving any existing keys."""
    existing: dict = {}
    if path.exists():
        existing = yaml.safe_load(path.read_text()) or {}
    existing.update(config)
    path.write_text(yaml.dump(existing, default_flow_style=False, sort_keys=False))
