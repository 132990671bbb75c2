"""Provider capability interface.

The sync orchestrator depends on GitProvider only, never on a concrete
backend:

    list_open_pull_requests()  → primary fetch; failure aborts the repo's sync
    get_ci_checks()            → secondary; failure keeps the stored checks
    get_reviews()              → secondary; failure keeps the stored reviews
    get_pull_request()         → final state of a PR that left the open set;
                                 failure falls back to "closed"

Implementations return provider-neutral facts (prsignal_core.models) and
raise ProviderError subclasses for every failure, including timeouts. They
must not swallow errors into empty lists: an empty list means "the provider
reports nothing", which the orchestrator treats as authoritative.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prsignal_core.models import (
        CICheckFact,
        GitProvider as ProviderKind,
        ProviderCredentials,
        PullRequestFact,
        ReviewFact,
    )


class GitProvider(ABC):
    """One git hosting backend, bound to a base URL and a request timeout."""

    @property
    @abstractmethod
    def provider_type(self) -> ProviderKind:
        """Which hosting service this adapter talks to."""

    @abstractmethod
    def list_open_pull_requests(
        self, credentials: ProviderCredentials, owner: str, repo: str
    ) -> list[PullRequestFact]:
        """Return every currently open pull request of owner/repo."""

    @abstractmethod
    def get_pull_request(
        self, credentials: ProviderCredentials, owner: str, repo: str, number: int
    ) -> PullRequestFact:
        """Return one pull request in whatever state it is now (open, merged or closed)."""

    @abstractmethod
    def get_ci_checks(
        self, credentials: ProviderCredentials, owner: str, repo: str, number: int
    ) -> list[CICheckFact]:
        """Return the full current check set for one pull request."""

    @abstractmethod
    def get_reviews(self, credentials: ProviderCredentials, owner: str, repo: str, number: int) -> list[ReviewFact]:
        """Return the full current review set for one pull request."""

    def close(self) -> None:
        """Release HTTP sessions. Default is a no-op."""
