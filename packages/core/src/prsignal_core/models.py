"""Provider-neutral domain model.

Provider adapters translate GitHub/GitLab/Bitbucket payloads into the *Fact
dataclasses below. Facts are what the orchestrator writes through the store;
the store's own record types (prsignal_store.models) carry the same fields
plus identity and sync bookkeeping.

Enums subclass ``str`` so a value read back from the store as plain text
compares equal to the enum member.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class GitProvider(str, Enum):
    GITHUB = "github"
    GITLAB = "gitlab"
    BITBUCKET = "bitbucket"

    @classmethod
    def parse(cls, value: str) -> GitProvider:
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown provider: {value!r}. Choose 'github', 'gitlab' or 'bitbucket'.") from None


class PullRequestState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"


class CheckStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @classmethod
    def parse(cls, value: str | None) -> CheckStatus:
        # Unknown states are treated as not-yet-finished so they never read as green.
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.QUEUED


class CheckConclusion(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    NEUTRAL = "neutral"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"
    TIMED_OUT = "timed_out"
    ACTION_REQUIRED = "action_required"

    @classmethod
    def parse(cls, value: str | None) -> CheckConclusion | None:
        if not value:
            return None
        try:
            return cls(value.lower())
        except ValueError:
            return cls.NEUTRAL


class ReviewState(str, Enum):
    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"
    COMMENTED = "commented"
    PENDING = "pending"
    DISMISSED = "dismissed"

    @classmethod
    def parse(cls, value: str | None) -> ReviewState:
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.COMMENTED


@dataclass(frozen=True)
class ProviderCredentials:
    """Plaintext credentials handed to a provider adapter for one sync.

    ``username`` is only meaningful for Bitbucket, whose app passwords are
    sent as HTTP Basic auth.
    """

    token: str
    username: str | None = None


@dataclass
class PullRequestFact:
    """An open pull/merge request as reported by the provider."""

    provider_id: str
    number: int
    title: str
    url: str
    source_branch: str
    target_branch: str
    author: str
    created_at: datetime
    updated_at: datetime
    state: str = PullRequestState.OPEN.value
    description: str | None = None
    author_avatar_url: str | None = None
    is_draft: bool = False
    is_mergeable: bool | None = None  # None = provider has not computed it yet
    has_conflicts: bool = False
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0
    commits_count: int = 0
    comments_count: int = 0
    merged_at: datetime | None = None
    closed_at: datetime | None = None


@dataclass
class CICheckFact:
    name: str
    status: str  # CheckStatus value
    conclusion: str | None = None  # CheckConclusion value, only when completed
    url: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def duration_seconds(self) -> int | None:
        if self.started_at is None or self.completed_at is None:
            return None
        return int((self.completed_at - self.started_at).total_seconds())


@dataclass
class ReviewFact:
    reviewer: str
    state: str  # ReviewState value
    submitted_at: datetime
    body: str | None = None
    reviewer_avatar_url: str | None = None
