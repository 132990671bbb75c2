"""CLI entry point for prsignal.

Commands:
  init    — write .prsignal.yml and generate an encryption key
  watch   — register a repository and the account that can read it
  poll    — run one poll cycle over the due repositories
  score   — record merge metrics and append a health score per repository
  status  — show traffic lights per repository and pull request
  health  — show a repository's health score trend
  worker  — run every job on its schedule until interrupted
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from prsignal_cli.commands.health import health_cmd
from prsignal_cli.commands.init import init_cmd
from prsignal_cli.commands.poll import poll_cmd
from prsignal_cli.commands.score import score_cmd
from prsignal_cli.commands.status import status_cmd
from prsignal_cli.commands.watch import watch_cmd
from prsignal_cli.commands.worker import worker_cmd

console = Console()


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _build_store(config: dict):
    """Instantiate the configured store from .prsignal.yml settings.

    Store selection:
      store: sqlite  → SQLiteStore at store_path (default)
      store: memory  → InMemoryStore, discarded on exit (dry runs)

    This factory lives in cli.py so neither prsignal_core nor prsignal_store
    know about the CLI config format.
    """
    store_type = config.get("store", "sqlite")

    if store_type == "memory":
        from prsignal_store.memory import InMemoryStore

        return InMemoryStore()

    if store_type == "sqlite":
        from prsignal_store.sqlite import SQLiteStore

        return SQLiteStore(db_path=config.get("store_path", ".prsignal.db"))

    raise click.UsageError(f"Unknown store {store_type!r}. Choose 'sqlite' or 'memory'.")


@click.group()
@click.version_option(
    version=importlib.metadata.version("prsignal"),
    prog_name="prsignal",
)
@click.option(
    "--config",
    "config_path",
    default=".prsignal.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRSIGNAL_CONFIG",
)
@click.option(
    "--log-level",
    default="INFO",
    show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    envvar="PRSIGNAL_LOG_LEVEL",
    help="Logging verbosity.",
)
@click.pass_context
def main(ctx: click.Context, config_path: str, log_level: str):
    """Keep pull request state from GitHub, GitLab and Bitbucket in sync and traffic-lit."""
    from prsignal_core.config import load_config, validate_config
    from prsignal_core.errors import ConfigError

    _configure_logging(log_level)
    ctx.ensure_object(dict)

    try:
        config = validate_config(load_config(config_path))
    except ConfigError as e:
        raise click.UsageError(str(e)) from e

    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.call_on_close(store.close)


main.add_command(init_cmd)
main.add_command(watch_cmd)
main.add_command(poll_cmd)
main.add_command(score_cmd)
main.add_command(status_cmd)
main.add_command(health_cmd)
main.add_command(worker_cmd)
