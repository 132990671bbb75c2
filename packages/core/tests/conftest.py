"""Shared fixtures: an in-memory store, a real cipher and a scriptable provider."""

from __future__ import annotations

import base64
from datetime import datetime, timedelta, timezone

import pytest

from prsignal_core.crypto import TokenCipher
from prsignal_core.errors import NotFound
from prsignal_core.models import (
    CICheckFact,
    GitProvider as ProviderKind,
    PullRequestFact,
    ReviewFact,
)
from prsignal_core.providers.base import GitProvider
from prsignal_store.memory import InMemoryStore
from prsignal_store.models import ProviderAccount, Repository

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
KEY = base64.b64encode(b"k" * 32).decode("ascii")


class FakeProvider(GitProvider):
    """Serves canned facts. Assign an exception to ``*_error`` to make that call fail.

    ``get_pull_request`` answers from ``final_states`` and raises NotFound otherwise.
    """

    def __init__(self):
        self.open_prs: list[PullRequestFact] = []
        self.checks: dict[int, list[CICheckFact]] = {}
        self.reviews: dict[int, list[ReviewFact]] = {}
        self.list_error: Exception | None = None
        self.checks_error: dict[int, Exception] = {}
        self.reviews_error: dict[int, Exception] = {}
        self.final_states: dict[int, PullRequestFact] = {}
        self.calls: list[tuple] = []

    @property
    def provider_type(self) -> ProviderKind:
        return ProviderKind.GITHUB

    def list_open_pull_requests(self, credentials, owner, repo):
        self.calls.append(("list", credentials, owner, repo))
        if self.list_error:
            raise self.list_error
        return list(self.open_prs)

    def get_pull_request(self, credentials, owner, repo, number):
        self.calls.append(("get", number))
        if number not in self.final_states:
            raise NotFound("github", f"pull request #{number} not found", 404)
        return self.final_states[number]

    def get_ci_checks(self, credentials, owner, repo, number):
        self.calls.append(("checks", number))
        if number in self.checks_error:
            raise self.checks_error[number]
        return list(self.checks.get(number, []))

    def get_reviews(self, credentials, owner, repo, number):
        self.calls.append(("reviews", number))
        if number in self.reviews_error:
            raise self.reviews_error[number]
        return list(self.reviews.get(number, []))


class FakeFactory:
    def __init__(self, provider: GitProvider):
        self.provider = provider
        self.created: list[tuple] = []

    def create(self, provider, instance_url=None):
        self.created.append((provider, instance_url))
        return self.provider

    def close(self):
        pass


def make_pr_fact(number: int = 42, **overrides) -> PullRequestFact:
    fields = dict(
        provider_id=f"id-{number}",
        number=number,
        title=f"PR {number}",
        url=f"https://github.com/acme/widgets/pull/{number}",
        source_branch=f"feature-{number}",
        target_branch="main",
        author="alice",
        created_at=NOW - timedelta(days=1),
        updated_at=NOW - timedelta(hours=1),
        is_mergeable=True,
    )
    fields.update(overrides)
    return PullRequestFact(**fields)


def success_check(name: str = "build") -> CICheckFact:
    return CICheckFact(
        name=name,
        status="completed",
        conclusion="success",
        started_at=NOW - timedelta(minutes=10),
        completed_at=NOW - timedelta(minutes=5),
    )


def review(state: str = "approved", reviewer: str = "bob", submitted_at: datetime | None = None) -> ReviewFact:
    return ReviewFact(reviewer=reviewer, state=state, submitted_at=submitted_at or NOW - timedelta(hours=2))


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def cipher():
    return TokenCipher.from_base64_key(KEY)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def factory(provider):
    return FakeFactory(provider)


@pytest.fixture
def add_repository(store, cipher):
    """Register a repository backed by a freshly encrypted token."""

    def _add(name: str = "widgets", last_polled_at=None, interval: int = 300, token: str = "tok") -> Repository:
        account = store.add_provider_account(
            ProviderAccount(
                provider="github",
                label="github:acme",
                access_token_encrypted=cipher.encrypt(token),
                created_at=NOW,
            )
        )
        return store.add_repository(
            Repository(
                provider="github",
                owner="acme",
                name=name,
                provider_account_id=account.id,
                poll_interval_seconds=interval,
                last_polled_at=last_polled_at,
                created_at=NOW,
            )
        )

    return _add
