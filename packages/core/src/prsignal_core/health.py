"""Repository health score: a 0-100 trend value appended to a time series.

Starts at 100, then:

    avg time-to-merge       > 72h: -30   > 48h: -20   > 24h: -10
    avg time-to-first-review > 24h: -20   > 8h: -10    > 4h: -5
    stale open PRs           > 10: -25    > 5: -15     else -2 each
    PRs merged last 7 days  >= 10: +10   >= 5: +5

Durations compare in whole hours. Missing averages carry no penalty.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from prsignal_store.base import BaseStore
from prsignal_store.models import HealthScore

logger = logging.getLogger(__name__)

AVERAGE_WINDOW = timedelta(days=30)
THROUGHPUT_WINDOW = timedelta(days=7)


@dataclass
class HealthInputs:
    avg_time_to_merge: int | None  # seconds
    avg_review_time: int | None  # seconds
    stale_pr_count: int
    pr_throughput: int


def _merge_penalty(seconds: int | None) -> int:
    if seconds is None:
        return 0
    hours = seconds // 3600
    if hours > 72:
        return 30
    if hours > 48:
        return 20
    if hours > 24:
        return 10
    return 0


def _review_penalty(seconds: int | None) -> int:
    if seconds is None:
        return 0
    hours = seconds // 3600
    if hours > 24:
        return 20
    if hours > 8:
        return 10
    if hours > 4:
        return 5
    return 0


def _stale_penalty(count: int) -> int:
    if count > 10:
        return 25
    if count > 5:
        return 15
    return 2 * count


def _throughput_bonus(count: int) -> int:
    if count >= 10:
        return 10
    if count >= 5:
        return 5
    return 0


def calculate_score(inputs: HealthInputs) -> int:
    score = 100
    score -= _merge_penalty(inputs.avg_time_to_merge)
    score -= _review_penalty(inputs.avg_review_time)
    score -= _stale_penalty(inputs.stale_pr_count)
    score += _throughput_bonus(inputs.pr_throughput)
    return max(0, min(100, score))


def _average(values: list[int]) -> int | None:
    if not values:
        return None
    return sum(values) // len(values)


class HealthScoreJob:
    def __init__(self, store: BaseStore, stale_after_days: int = 7):
        self.store = store
        self.stale_after = timedelta(days=stale_after_days)

    def gather(self, repository_id: int, now: datetime) -> HealthInputs:
        recent = self.store.list_pr_metrics(repository_id, now - AVERAGE_WINDOW)
        last_week = self.store.list_pr_metrics(repository_id, now - THROUGHPUT_WINDOW)
        return HealthInputs(
            avg_time_to_merge=_average([m.time_to_merge for m in recent if m.time_to_merge is not None]),
            avg_review_time=_average([m.time_to_first_review for m in recent if m.time_to_first_review is not None]),
            stale_pr_count=self.store.count_stale_pull_requests(repository_id, now - self.stale_after),
            pr_throughput=len(last_week),
        )

    def score_repository(self, repository_id: int, now: datetime) -> HealthScore:
        inputs = self.gather(repository_id, now)
        return self.store.insert_health_score(
            HealthScore(
                repository_id=repository_id,
                score=calculate_score(inputs),
                avg_time_to_merge=inputs.avg_time_to_merge,
                avg_review_time=inputs.avg_review_time,
                stale_pr_count=inputs.stale_pr_count,
                pr_throughput=inputs.pr_throughput,
                calculated_at=now,
            )
        )

    def execute(self, now: datetime) -> list[HealthScore]:
        scores = []
        failed = 0
        for repository in self.store.list_repositories():
            try:
                score = self.score_repository(repository.id, now)
            except Exception as e:
                failed += 1
                logger.error("Failed to score %s: %s", repository.full_name, e)
                continue
            logger.debug("%s: health score %d", repository.full_name, score.score)
            scores.append(score)

        logger.info("Health scores calculated: %d repositories, %d failed", len(scores), failed)
        return scores
