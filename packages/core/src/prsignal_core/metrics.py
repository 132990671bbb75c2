from __future__ import annotations

import logging
from datetime import datetime

from prsignal_core.models import ReviewState
from prsignal_store.base import BaseStore
from prsignal_store.models import PrMetrics, PullRequest, Review

logger = logging.getLogger(__name__)

BOT_AUTHORS = frozenset(
    {
        "dependabot",
        "renovate",
        "github-actions",
        "greenkeeper",
        "snyk-bot",
        "imgbot",
        "codecov",
        "mergify",
        "stale",
        "allcontributors",
    }
)


def is_bot_author(author: str) -> bool:
    name = author.lower()
    return name in BOT_AUTHORS or name.endswith("[bot]") or name.endswith("-bot")


def _seconds_between(start: datetime, end: datetime | None) -> int | None:
    if end is None:
        return None
    return int((end - start).total_seconds())


def build_metrics(pr: PullRequest, reviews: list[Review], recorded_at: datetime) -> PrMetrics:
    """Derive merge latency figures for a merged pull request from its stored reviews."""
    submitted = sorted(r.submitted_at for r in reviews)
    approvals = sorted(r.submitted_at for r in reviews if r.state == ReviewState.APPROVED)
    return PrMetrics(
        pull_request_id=pr.id,
        repository_id=pr.repository_id,
        merged_at=pr.merged_at,
        recorded_at=recorded_at,
        time_to_merge=_seconds_between(pr.created_at, pr.merged_at),
        time_to_first_review=_seconds_between(pr.created_at, submitted[0] if submitted else None),
        time_to_approval=_seconds_between(pr.created_at, approvals[0] if approvals else None),
        review_rounds=sum(1 for r in reviews if r.state == ReviewState.CHANGES_REQUESTED),
        comments_count=pr.comments_count,
        is_bot=is_bot_author(pr.author),
    )


class MetricsCollectionJob:
    """Record one PrMetrics row per merged pull request; rows are never recomputed."""

    def __init__(self, store: BaseStore):
        self.store = store

    def execute(self, now: datetime) -> int:
        recorded = 0
        for pr in self.store.list_merged_without_metrics():
            try:
                self.store.insert_pr_metrics(build_metrics(pr, self.store.list_reviews(pr.id), now))
            except Exception as e:
                logger.error("Failed to record metrics for pull request %d: %s", pr.id, e)
                continue
            recorded += 1

        if recorded:
            logger.info("Recorded merge metrics for %d pull requests", recorded)
        return recorded
