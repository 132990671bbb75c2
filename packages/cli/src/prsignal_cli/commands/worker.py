"""worker command — run poll, metrics, health and cleanup jobs on their schedules."""

from __future__ import annotations

import logging

import click

from prsignal_cli.context import build_cipher, build_factory, get_config, get_store
from prsignal_core.cleanup import CleanupJob
from prsignal_core.health import HealthScoreJob
from prsignal_core.metrics import MetricsCollectionJob
from prsignal_core.scheduler import ScheduledJob, Scheduler
from prsignal_core.sync import PollRepositoryJob

logger = logging.getLogger(__name__)


def build_scheduler(store, cipher, factory, config: dict) -> Scheduler:
    return Scheduler(
        [
            ScheduledJob(
                "poll",
                config["poll_period"],
                PollRepositoryJob(store, cipher, factory, batch_limit=config["poll_batch_limit"]),
            ),
            ScheduledJob("metrics", config["metrics_period"], MetricsCollectionJob(store)),
            ScheduledJob(
                "health",
                config["health_period"],
                HealthScoreJob(store, stale_after_days=config["stale_after_days"]),
            ),
            ScheduledJob(
                "cleanup",
                config["cleanup_period"],
                CleanupJob(store, retention_days=config["cleanup_retention_days"]),
            ),
        ]
    )


@click.command("worker")
@click.option("--tick", default=1.0, show_default=True, help="Seconds between schedule checks.")
@click.pass_context
def worker_cmd(ctx, tick: float):
    """Run the background worker until interrupted (Ctrl+C)."""
    config = get_config(ctx)
    scheduler = build_scheduler(get_store(ctx), build_cipher(config), build_factory(ctx), config)
    try:
        scheduler.run_forever(tick_seconds=tick)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        scheduler.stop()
