"""InMemoryStore — dict-backed store for tests and one-shot CLI runs.

Holds copies of records so callers mutating a returned object never change
stored state behind the store's back, matching the SQLite backend.
"""

from __future__ import annotations

import copy
import itertools
from datetime import datetime

from prsignal_store.base import BaseStore
from prsignal_store.models import (
    CICheck,
    HealthScore,
    PrMetrics,
    ProviderAccount,
    PullRequest,
    Repository,
    Review,
)


class InMemoryStore(BaseStore):
    def __init__(self):
        self._ids = itertools.count(1)
        self._accounts: dict[int, ProviderAccount] = {}
        self._repositories: dict[int, Repository] = {}
        self._pull_requests: dict[int, PullRequest] = {}
        self._checks: dict[int, list[CICheck]] = {}
        self._reviews: dict[int, list[Review]] = {}
        self._metrics: dict[int, PrMetrics] = {}  # keyed by pull_request_id
        self._scores: list[HealthScore] = []

    def _stored(self, record):
        stored = copy.deepcopy(record)
        stored.id = next(self._ids)
        record.id = stored.id
        return stored

    # ------------------------------------------------------------------ #
    # Accounts and repositories                                           #
    # ------------------------------------------------------------------ #

    def add_provider_account(self, account: ProviderAccount) -> ProviderAccount:
        stored = self._stored(account)
        self._accounts[stored.id] = stored
        return account

    def get_provider_account(self, account_id: int) -> ProviderAccount | None:
        return copy.deepcopy(self._accounts.get(account_id))

    def add_repository(self, repository: Repository) -> Repository:
        if repository.poll_interval_seconds <= 0:
            raise ValueError(f"poll_interval_seconds must be positive, got {repository.poll_interval_seconds}")
        if self.find_repository(repository.provider, repository.owner, repository.name) is not None:
            raise ValueError(f"Repository {repository.provider}:{repository.full_name} is already watched")
        stored = self._stored(repository)
        self._repositories[stored.id] = stored
        return repository

    def get_repository(self, repository_id: int) -> Repository | None:
        return copy.deepcopy(self._repositories.get(repository_id))

    def find_repository(self, provider: str, owner: str, name: str) -> Repository | None:
        for repo in self._repositories.values():
            if (repo.provider, repo.owner, repo.name) == (provider, owner, name):
                return copy.deepcopy(repo)
        return None

    def list_repositories(self, limit: int | None = None) -> list[Repository]:
        repos = sorted(
            self._repositories.values(),
            key=lambda r: (r.last_polled_at is not None, r.last_polled_at or datetime.min, r.id),
        )
        if limit is not None:
            repos = repos[:limit]
        return copy.deepcopy(repos)

    def update_last_polled_at(self, repository_id: int, polled_at: datetime) -> None:
        repo = self._repositories.get(repository_id)
        if repo is not None:
            repo.last_polled_at = polled_at

    # ------------------------------------------------------------------ #
    # Pull requests, checks, reviews                                      #
    # ------------------------------------------------------------------ #

    def _find_pull_request(self, repository_id: int, number: int) -> PullRequest | None:
        for pr in self._pull_requests.values():
            if pr.repository_id == repository_id and pr.number == number:
                return pr
        return None

    def upsert_pull_request(self, pull_request: PullRequest) -> PullRequest:
        existing = self._find_pull_request(pull_request.repository_id, pull_request.number)
        if existing is None:
            stored = self._stored(pull_request)
            self._pull_requests[stored.id] = stored
            return copy.deepcopy(stored)

        updated = copy.deepcopy(pull_request)
        updated.id = existing.id
        updated.created_at = existing.created_at
        self._pull_requests[existing.id] = updated
        return copy.deepcopy(updated)

    def get_pull_request(self, pull_request_id: int) -> PullRequest | None:
        return copy.deepcopy(self._pull_requests.get(pull_request_id))

    def list_pull_requests(self, repository_id: int, state: str | None = None) -> list[PullRequest]:
        prs = [
            pr
            for pr in self._pull_requests.values()
            if pr.repository_id == repository_id and (state is None or pr.state == state)
        ]
        return copy.deepcopy(sorted(prs, key=lambda pr: pr.number))

    def mark_closed(self, pull_request_id: int, closed_at: datetime) -> None:
        pr = self._pull_requests.get(pull_request_id)
        if pr is not None:
            pr.state = "closed"
            pr.closed_at = closed_at

    def replace_ci_checks(self, pull_request_id: int, checks: list[CICheck]) -> None:
        stored = []
        for check in checks:
            record = self._stored(check)
            record.pull_request_id = pull_request_id
            stored.append(record)
        self._checks[pull_request_id] = stored

    def list_ci_checks(self, pull_request_id: int) -> list[CICheck]:
        return copy.deepcopy(self._checks.get(pull_request_id, []))

    def replace_reviews(self, pull_request_id: int, reviews: list[Review]) -> None:
        stored = []
        for review in reviews:
            record = self._stored(review)
            record.pull_request_id = pull_request_id
            stored.append(record)
        self._reviews[pull_request_id] = stored

    def list_reviews(self, pull_request_id: int) -> list[Review]:
        reviews = sorted(self._reviews.get(pull_request_id, []), key=lambda r: (r.submitted_at, r.id))
        return copy.deepcopy(reviews)

    def count_stale_pull_requests(self, repository_id: int, created_before: datetime) -> int:
        return sum(
            1
            for pr in self._pull_requests.values()
            if pr.repository_id == repository_id and pr.state == "open" and pr.created_at < created_before
        )

    def delete_closed_pull_requests(self, closed_before: datetime) -> int:
        doomed = [
            pr.id
            for pr in self._pull_requests.values()
            if pr.state != "open" and pr.closed_at is not None and pr.closed_at < closed_before
        ]
        for pr_id in doomed:
            del self._pull_requests[pr_id]
            self._checks.pop(pr_id, None)
            self._reviews.pop(pr_id, None)
            self._metrics.pop(pr_id, None)
        return len(doomed)

    # ------------------------------------------------------------------ #
    # Metrics and health scores                                           #
    # ------------------------------------------------------------------ #

    def list_merged_without_metrics(self) -> list[PullRequest]:
        prs = [
            pr
            for pr in self._pull_requests.values()
            if pr.state == "merged" and pr.merged_at is not None and pr.id not in self._metrics
        ]
        return copy.deepcopy(sorted(prs, key=lambda pr: pr.merged_at))

    def insert_pr_metrics(self, metrics: PrMetrics) -> PrMetrics:
        if metrics.pull_request_id in self._metrics:
            raise ValueError(f"Metrics already recorded for pull request {metrics.pull_request_id}")
        stored = self._stored(metrics)
        self._metrics[stored.pull_request_id] = stored
        return metrics

    def list_pr_metrics(self, repository_id: int, merged_since: datetime) -> list[PrMetrics]:
        metrics = [
            m for m in self._metrics.values() if m.repository_id == repository_id and m.merged_at >= merged_since
        ]
        return copy.deepcopy(sorted(metrics, key=lambda m: m.merged_at))

    def insert_health_score(self, score: HealthScore) -> HealthScore:
        self._scores.append(self._stored(score))
        return score

    def list_health_scores(self, repository_id: int, limit: int | None = None) -> list[HealthScore]:
        scores = sorted(
            (s for s in self._scores if s.repository_id == repository_id),
            key=lambda s: (s.calculated_at, s.id),
            reverse=True,
        )
        if limit is not None:
            scores = scores[:limit]
        return copy.deepcopy(scores)
