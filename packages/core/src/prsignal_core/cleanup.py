from __future__ import annotations

import logging
from datetime import datetime, timedelta

from prsignal_store.base import BaseStore

logger = logging.getLogger(__name__)


class CleanupJob:
    """Delete closed and merged pull requests once they are past the retention window."""

    def __init__(self, store: BaseStore, retention_days: int = 30):
        self.store = store
        self.retention = timedelta(days=retention_days)

    def execute(self, now: datetime) -> int:
        deleted = self.store.delete_closed_pull_requests(now - self.retention)
        logger.info("Cleanup removed %d closed pull requests older than %d days", deleted, self.retention.days)
        return deleted
