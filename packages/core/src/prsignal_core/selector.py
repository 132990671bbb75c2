from __future__ import annotations

from datetime import datetime, timedelta

from prsignal_store.base import BaseStore
from prsignal_store.models import Repository

DEFAULT_BATCH_LIMIT = 50


def is_due(repository: Repository, now: datetime) -> bool:
    """A never-polled repository is always due; otherwise once its interval has strictly elapsed."""
    if repository.last_polled_at is None:
        return True
    return now > repository.last_polled_at + timedelta(seconds=repository.poll_interval_seconds)


def select_due_repositories(store: BaseStore, now: datetime, limit: int = DEFAULT_BATCH_LIMIT) -> list[Repository]:
    """Return up to ``limit`` due repositories, stalest first.

    The store hands back every repository ordered by last_polled_at; the due
    test runs here because "never polled" and "interval elapsed" are different
    comparisons with a per-row interval. Anything beyond the limit stays the
    stalest and is picked up next cycle.
    """
    due = []
    for repository in store.list_repositories():
        if is_due(repository, now):
            due.append(repository)
            if len(due) >= limit:
                break
    return due
