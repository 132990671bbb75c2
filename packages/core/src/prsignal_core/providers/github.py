"""GitHub adapter built on PyGithub.

PyGithub objects are lazy: attribute access can trigger further requests
(``mergeable`` in particular completes the pull request object). Every such
access therefore happens inside ``_translate_errors`` so a timeout or HTTP
failure anywhere surfaces as a ProviderError, never as a raw library error.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone

import requests
from github import Auth, Github, GithubException, RateLimitExceededException

from prsignal_core.errors import (
    ProviderTimeout,
    ProviderUnavailable,
    RateLimitExceeded,
    error_for_status,
)
from prsignal_core.models import (
    CICheckFact,
    GitProvider as ProviderKind,
    ProviderCredentials,
    PullRequestFact,
    ReviewFact,
)
from prsignal_core.providers.base import GitProvider

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"


def _utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@contextmanager
def _translate_errors(action: str):
    try:
        yield
    except RateLimitExceededException as e:
        raise RateLimitExceeded("github", f"{action}: rate limit exceeded", e.status) from e
    except GithubException as e:
        message = (e.data or {}).get("message") if isinstance(e.data, dict) else None
        raise error_for_status("github", e.status, f"{action}: {message or 'request failed'}") from e
    except requests.Timeout as e:
        raise ProviderTimeout("github", f"{action}: timed out") from e
    except requests.RequestException as e:
        raise ProviderUnavailable("github", f"{action}: {e}") from e


class GitHubProvider(GitProvider):
    def __init__(self, base_url: str | None = None, timeout: float = 30.0):
        self.base_url = base_url or GITHUB_API_URL
        self.timeout = timeout

    @property
    def provider_type(self) -> ProviderKind:
        return ProviderKind.GITHUB

    def _client(self, credentials: ProviderCredentials) -> Github:
        # One client per call: credentials differ per repository owner.
        return Github(auth=Auth.Token(credentials.token), base_url=self.base_url, timeout=int(self.timeout))

    def _repo(self, credentials: ProviderCredentials, owner: str, repo: str):
        return self._client(credentials).get_repo(f"{owner}/{repo}")

    def list_open_pull_requests(
        self, credentials: ProviderCredentials, owner: str, repo: str
    ) -> list[PullRequestFact]:
        with _translate_errors(f"list pull requests for {owner}/{repo}"):
            pulls = self._repo(credentials, owner, repo).get_pulls(state="open")
            return [self._to_fact(pr) for pr in pulls]

    def get_pull_request(
        self, credentials: ProviderCredentials, owner: str, repo: str, number: int
    ) -> PullRequestFact:
        with _translate_errors(f"get pull request {owner}/{repo}#{number}"):
            return self._to_fact(self._repo(credentials, owner, repo).get_pull(number))

    @staticmethod
    def _to_fact(pr) -> PullRequestFact:
        user = pr.user
        created_at = _utc(pr.created_at) or datetime.now(timezone.utc)
        merged_at = _utc(pr.merged_at)
        return PullRequestFact(
            provider_id=str(pr.id),
            number=pr.number,
            title=pr.title or "",
            description=pr.body,
            url=pr.html_url,
            # GitHub reports merged pull requests as "closed".
            state="merged" if merged_at is not None else pr.state,
            source_branch=pr.head.ref,
            target_branch=pr.base.ref,
            author=user.login if user else "",
            author_avatar_url=user.avatar_url if user else None,
            is_draft=bool(pr.draft),
            is_mergeable=pr.mergeable,
            has_conflicts=pr.mergeable_state == "dirty",
            additions=pr.additions or 0,
            deletions=pr.deletions or 0,
            changed_files=pr.changed_files or 0,
            commits_count=pr.commits or 0,
            comments_count=pr.comments or 0,
            created_at=created_at,
            updated_at=_utc(pr.updated_at) or created_at,
            merged_at=merged_at,
            closed_at=_utc(pr.closed_at),
        )

    def get_ci_checks(
        self, credentials: ProviderCredentials, owner: str, repo: str, number: int
    ) -> list[CICheckFact]:
        with _translate_errors(f"list check runs for {owner}/{repo}#{number}"):
            gh_repo = self._repo(credentials, owner, repo)
            head_sha = gh_repo.get_pull(number).head.sha
            return [
                CICheckFact(
                    name=run.name,
                    status=run.status,
                    conclusion=run.conclusion,
                    url=run.html_url,
                    started_at=_utc(run.started_at),
                    completed_at=_utc(run.completed_at),
                )
                for run in gh_repo.get_commit(head_sha).get_check_runs()
            ]

    def get_reviews(self, credentials: ProviderCredentials, owner: str, repo: str, number: int) -> list[ReviewFact]:
        with _translate_errors(f"list reviews for {owner}/{repo}#{number}"):
            pr = self._repo(credentials, owner, repo).get_pull(number)
            reviews = []
            for review in pr.get_reviews():
                # Pending (unsubmitted) reviews have no timestamp and are private to their author.
                if review.submitted_at is None:
                    continue
                reviews.append(
                    ReviewFact(
                        reviewer=review.user.login if review.user else "",
                        reviewer_avatar_url=review.user.avatar_url if review.user else None,
                        state=(review.state or "").lower(),
                        body=review.body or None,
                        submitted_at=_utc(review.submitted_at),
                    )
                )
            return reviews

