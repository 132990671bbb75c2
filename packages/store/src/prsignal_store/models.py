"""Persisted record models.

Decoupled from prsignal_core so the store layer can be used independently:
the sync engine maps provider facts onto these records before writing, and
the store never sees a provider payload.

All datetimes are timezone-aware UTC.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class ProviderAccount:
    """Credentials for one provider login, shared by the repositories it watches."""

    provider: str  # "github" | "gitlab" | "bitbucket"
    label: str
    access_token_encrypted: bytes  # nonce + AES-GCM ciphertext
    created_at: datetime
    auth_username: str | None = None  # Bitbucket app-password username
    instance_url: str | None = None  # self-hosted base URL; None = public cloud
    id: int | None = None


@dataclass
class Repository:
    provider: str
    owner: str
    name: str
    provider_account_id: int
    created_at: datetime
    poll_interval_seconds: int = 300
    last_polled_at: datetime | None = None
    id: int | None = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass
class PullRequest:
    """One pull/merge request. Unique per (repository_id, number)."""

    repository_id: int
    number: int
    provider_id: str
    title: str
    url: str
    state: str  # "open" | "closed" | "merged"
    source_branch: str
    target_branch: str
    author: str
    created_at: datetime
    updated_at: datetime
    last_synced_at: datetime
    description: str | None = None
    author_avatar_url: str | None = None
    is_draft: bool = False
    is_mergeable: bool | None = None
    has_conflicts: bool = False
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0
    commits_count: int = 0
    comments_count: int = 0
    merged_at: datetime | None = None
    closed_at: datetime | None = None
    id: int | None = None


@dataclass
class CICheck:
    pull_request_id: int
    name: str
    status: str  # "queued" | "in_progress" | "completed"
    conclusion: str | None = None  # set only when completed
    url: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_seconds: int | None = None
    id: int | None = None


@dataclass
class Review:
    pull_request_id: int
    reviewer: str
    state: str  # "approved" | "changes_requested" | "commented" | "pending" | "dismissed"
    submitted_at: datetime
    body: str | None = None
    reviewer_avatar_url: str | None = None
    id: int | None = None


@dataclass
class PrMetrics:
    """Latency figures for one merged pull request, recorded once."""

    pull_request_id: int
    repository_id: int
    merged_at: datetime
    recorded_at: datetime
    time_to_merge: int | None = None  # seconds
    time_to_first_review: int | None = None
    time_to_approval: int | None = None
    review_rounds: int = 0
    comments_count: int = 0
    is_bot: bool = False
    id: int | None = None


@dataclass
class HealthScore:
    """One point of a repository's health time series. Insert-only."""

    repository_id: int
    score: int  # 0-100
    calculated_at: datetime
    avg_time_to_merge: int | None = None  # seconds
    avg_review_time: int | None = None  # seconds to first review
    stale_pr_count: int = 0
    pr_throughput: int = 0
    id: int | None = None
