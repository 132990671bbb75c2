"""Sync orchestrator: fetch → upsert → reconcile → mark polled.

Per repository, strictly in this order:

  1. resolve the provider account and decrypt its token (CredentialError aborts)
  2. list the provider's open pull requests (ProviderError aborts)
  3. upsert every fetched pull request by (repository_id, number)
  4. replace each pull request's CI checks; a failed fetch keeps the old set
  5. replace each pull request's reviews; same policy
  6. resolve stored-open pull requests missing from the fetched set: ask the
     provider for their final state and store them as merged, or as closed
     when they were not merged or the lookup fails
  7. advance last_polled_at

An abort in 1 or 2 leaves last_polled_at untouched so the repository is due
again on the next cycle. Store errors propagate and abort only the repository
being synced; PollRepositoryJob keeps going with the rest of the batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from prsignal_core.crypto import TokenCipher
from prsignal_core.errors import CredentialError, ProviderError
from prsignal_core.models import (
    CheckConclusion,
    CheckStatus,
    CICheckFact,
    ProviderCredentials,
    PullRequestFact,
    ReviewFact,
    ReviewState,
)
from prsignal_core.providers.base import GitProvider
from prsignal_core.providers.factory import ProviderFactory
from prsignal_core.selector import DEFAULT_BATCH_LIMIT, select_due_repositories
from prsignal_store.base import BaseStore
from prsignal_store.models import CICheck, PullRequest, Repository, Review

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    repository_id: int
    repository: str  # owner/name
    ok: bool
    pull_requests: int = 0
    closed: int = 0
    merged: int = 0
    check_failures: int = 0
    review_failures: int = 0
    error: str | None = None


def _to_pull_request(repository_id: int, fact: PullRequestFact, synced_at: datetime) -> PullRequest:
    return PullRequest(
        repository_id=repository_id,
        number=fact.number,
        provider_id=fact.provider_id,
        title=fact.title,
        description=fact.description,
        url=fact.url,
        state=fact.state,
        source_branch=fact.source_branch,
        target_branch=fact.target_branch,
        author=fact.author,
        author_avatar_url=fact.author_avatar_url,
        is_draft=fact.is_draft,
        is_mergeable=fact.is_mergeable,
        has_conflicts=fact.has_conflicts,
        additions=fact.additions,
        deletions=fact.deletions,
        changed_files=fact.changed_files,
        commits_count=fact.commits_count,
        comments_count=fact.comments_count,
        created_at=fact.created_at,
        updated_at=fact.updated_at,
        merged_at=fact.merged_at,
        closed_at=fact.closed_at,
        last_synced_at=synced_at,
    )


def _to_check(pull_request_id: int, fact: CICheckFact) -> CICheck:
    status = CheckStatus.parse(fact.status)
    conclusion = CheckConclusion.parse(fact.conclusion) if status == CheckStatus.COMPLETED else None
    return CICheck(
        pull_request_id=pull_request_id,
        name=fact.name,
        status=status.value,
        conclusion=conclusion.value if conclusion else None,
        url=fact.url,
        started_at=fact.started_at,
        completed_at=fact.completed_at,
        duration_seconds=fact.duration_seconds,
    )


def _to_review(pull_request_id: int, fact: ReviewFact) -> Review:
    return Review(
        pull_request_id=pull_request_id,
        reviewer=fact.reviewer,
        reviewer_avatar_url=fact.reviewer_avatar_url,
        state=ReviewState.parse(fact.state).value,
        body=fact.body,
        submitted_at=fact.submitted_at,
    )


class RepositorySyncer:
    def __init__(self, store: BaseStore, cipher: TokenCipher, factory: ProviderFactory):
        self.store = store
        self.cipher = cipher
        self.factory = factory

    def _credentials(self, repository: Repository):
        account = self.store.get_provider_account(repository.provider_account_id)
        if account is None:
            raise CredentialError(
                f"Provider account {repository.provider_account_id} for {repository.full_name} not found"
            )
        token = self.cipher.decrypt(account.access_token_encrypted)
        return account, ProviderCredentials(token=token, username=account.auth_username)

    def sync(self, repository: Repository, now: datetime) -> SyncResult:
        """Synchronise one repository. Raises CredentialError/ProviderError on an aborting failure."""
        account, credentials = self._credentials(repository)
        provider = self.factory.create(repository.provider, account.instance_url)

        facts = provider.list_open_pull_requests(credentials, repository.owner, repository.name)
        logger.debug("%s: provider reports %d open pull requests", repository.full_name, len(facts))

        result = SyncResult(repository_id=repository.id, repository=repository.full_name, ok=True)
        for fact in facts:
            stored = self.store.upsert_pull_request(_to_pull_request(repository.id, fact, now))
            result.pull_requests += 1

            try:
                checks = provider.get_ci_checks(credentials, repository.owner, repository.name, fact.number)
            except ProviderError as e:
                result.check_failures += 1
                logger.warning("%s#%d: keeping stored CI checks, fetch failed: %s", repository.full_name, fact.number, e)
            else:
                self.store.replace_ci_checks(stored.id, [_to_check(stored.id, c) for c in checks])

            try:
                reviews = provider.get_reviews(credentials, repository.owner, repository.name, fact.number)
            except ProviderError as e:
                result.review_failures += 1
                logger.warning("%s#%d: keeping stored reviews, fetch failed: %s", repository.full_name, fact.number, e)
            else:
                self.store.replace_reviews(stored.id, [_to_review(stored.id, r) for r in reviews])

        open_numbers = {fact.number for fact in facts}
        result.closed, result.merged = self._reconcile(provider, credentials, repository, open_numbers, now)
        self.store.update_last_polled_at(repository.id, now)
        return result

    def _reconcile(
        self,
        provider: GitProvider,
        credentials: ProviderCredentials,
        repository: Repository,
        open_numbers: set[int],
        now: datetime,
    ) -> tuple[int, int]:
        """Settle stored-open pull requests the provider no longer lists as open.

        Returns (closed, merged).
        """
        closed = merged = 0
        for pr in self.store.list_pull_requests(repository.id, state="open"):
            if pr.number in open_numbers:
                continue
            try:
                fact = provider.get_pull_request(credentials, repository.owner, repository.name, pr.number)
            except ProviderError as e:
                logger.warning("%s#%d: final state unavailable, marking closed: %s", repository.full_name, pr.number, e)
                fact = None

            if fact is not None and fact.state == "merged":
                final = _to_pull_request(repository.id, fact, now)
                final.merged_at = fact.merged_at or now
                final.closed_at = fact.closed_at or final.merged_at
                self.store.upsert_pull_request(final)
                merged += 1
                logger.info("%s#%d: merged on the provider", repository.full_name, pr.number)
            else:
                self.store.mark_closed(pr.id, now)
                closed += 1
                logger.info("%s#%d: no longer open on the provider, marked closed", repository.full_name, pr.number)
        return closed, merged


class PollRepositoryJob:
    """One poll cycle over the due repositories. Never raises for a single repository's failure."""

    def __init__(
        self,
        store: BaseStore,
        cipher: TokenCipher,
        factory: ProviderFactory,
        batch_limit: int = DEFAULT_BATCH_LIMIT,
    ):
        self.store = store
        self.syncer = RepositorySyncer(store, cipher, factory)
        self.batch_limit = batch_limit

    def execute(self, now: datetime) -> list[SyncResult]:
        repositories = select_due_repositories(self.store, now, self.batch_limit)
        if not repositories:
            logger.debug("Poll cycle: no repositories due")
            return []

        results = []
        for repository in repositories:
            try:
                result = self.syncer.sync(repository, now)
            except Exception as e:
                logger.error("Failed to sync %s: %s", repository.full_name, e)
                result = SyncResult(
                    repository_id=repository.id,
                    repository=repository.full_name,
                    ok=False,
                    error=str(e),
                )
            results.append(result)

        failed = sum(1 for r in results if not r.ok)
        logger.info(
            "Poll cycle finished: %d repositories, %d synced, %d failed",
            len(results),
            len(results) - failed,
            failed,
        )
        return results
