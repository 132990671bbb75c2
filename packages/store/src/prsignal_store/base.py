"""Abstract store interface.

The sync engine and the health/metrics/cleanup jobs depend on BaseStore,
not on a concrete backend, so SQLite and the in-memory store are
interchangeable in job code.

Contract every backend honours:
  - at most one PullRequest per (repository_id, number); upsert matches on it
  - replace_ci_checks / replace_reviews delete the old set and insert the new
    one atomically
  - HealthScore and PrMetrics rows are insert-only
  - deleting a PullRequest also deletes its checks, reviews and metrics
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from prsignal_store.models import (
        CICheck,
        HealthScore,
        PrMetrics,
        ProviderAccount,
        PullRequest,
        Repository,
        Review,
    )


class BaseStore(ABC):
    # ------------------------------------------------------------------ #
    # Accounts and repositories                                           #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def add_provider_account(self, account: ProviderAccount) -> ProviderAccount:
        """Persist an account and return it with its id assigned."""

    @abstractmethod
    def get_provider_account(self, account_id: int) -> ProviderAccount | None:
        """Return the account or None."""

    @abstractmethod
    def add_repository(self, repository: Repository) -> Repository:
        """Persist a watched repository. Raises ValueError if poll_interval_seconds <= 0."""

    @abstractmethod
    def get_repository(self, repository_id: int) -> Repository | None:
        """Return the repository or None."""

    @abstractmethod
    def find_repository(self, provider: str, owner: str, name: str) -> Repository | None:
        """Look a repository up by its provider identity."""

    @abstractmethod
    def list_repositories(self, limit: int | None = None) -> list[Repository]:
        """Return repositories stalest first: never-polled, then last_polled_at ascending."""

    @abstractmethod
    def update_last_polled_at(self, repository_id: int, polled_at: datetime) -> None:
        """Advance a repository's polling clock."""

    # ------------------------------------------------------------------ #
    # Pull requests, checks, reviews                                      #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def upsert_pull_request(self, pull_request: PullRequest) -> PullRequest:
        """Insert or update by (repository_id, number); return the stored row.

        On update every mutable field and last_synced_at are overwritten; id
        and created_at are kept.
        """

    @abstractmethod
    def get_pull_request(self, pull_request_id: int) -> PullRequest | None:
        """Return the pull request or None."""

    @abstractmethod
    def list_pull_requests(self, repository_id: int, state: str | None = None) -> list[PullRequest]:
        """Return a repository's pull requests ordered by number, optionally filtered by state."""

    @abstractmethod
    def mark_closed(self, pull_request_id: int, closed_at: datetime) -> None:
        """Transition a pull request to state 'closed' with the given closed_at."""

    @abstractmethod
    def replace_ci_checks(self, pull_request_id: int, checks: list[CICheck]) -> None:
        """Replace the full check set of a pull request."""

    @abstractmethod
    def list_ci_checks(self, pull_request_id: int) -> list[CICheck]:
        """Return the stored check set of a pull request."""

    @abstractmethod
    def replace_reviews(self, pull_request_id: int, reviews: list[Review]) -> None:
        """Replace the full review set of a pull request."""

    @abstractmethod
    def list_reviews(self, pull_request_id: int) -> list[Review]:
        """Return the stored review set of a pull request, oldest first."""

    @abstractmethod
    def count_stale_pull_requests(self, repository_id: int, created_before: datetime) -> int:
        """Count open pull requests created before the given instant."""

    @abstractmethod
    def delete_closed_pull_requests(self, closed_before: datetime) -> int:
        """Delete non-open pull requests closed before the given instant; return the count."""

    # ------------------------------------------------------------------ #
    # Metrics and health scores                                           #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def list_merged_without_metrics(self) -> list[PullRequest]:
        """Return merged pull requests (merged_at set) that have no PrMetrics row yet."""

    @abstractmethod
    def insert_pr_metrics(self, metrics: PrMetrics) -> PrMetrics:
        """Append a metrics row."""

    @abstractmethod
    def list_pr_metrics(self, repository_id: int, merged_since: datetime) -> list[PrMetrics]:
        """Return metrics of pull requests merged at or after the given instant."""

    @abstractmethod
    def insert_health_score(self, score: HealthScore) -> HealthScore:
        """Append a health score row."""

    @abstractmethod
    def list_health_scores(self, repository_id: int, limit: int | None = None) -> list[HealthScore]:
        """Return a repository's health scores, newest first."""

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Default is a no-op; backends holding a connection override it.
        """
