from __future__ import annotations

import base64
import logging
from datetime import datetime, timezone

import httpx

from prsignal_core.errors import InvalidResponse
from prsignal_core.models import (
    CICheckFact,
    GitProvider as ProviderKind,
    ProviderCredentials,
    PullRequestFact,
    ReviewFact,
    ReviewState,
)
from prsignal_core.providers.base import GitProvider
from prsignal_core.providers.http import JsonHttpClient, parse_datetime, translate_payload_errors

logger = logging.getLogger(__name__)

BITBUCKET_CLOUD_URL = "https://api.bitbucket.org/2.0"

_PR_STATE = {"OPEN": "open", "MERGED": "merged", "DECLINED": "closed", "SUPERSEDED": "closed"}

# Commit status state → (check status, conclusion)
_STATUS_STATE = {
    "INPROGRESS": ("in_progress", None),
    "SUCCESSFUL": ("completed", "success"),
    "FAILED": ("completed", "failure"),
    "STOPPED": ("completed", "cancelled"),
}


class BitbucketProvider(GitProvider):
    """Bitbucket Cloud pull requests via the 2.0 REST API.

    App passwords are sent as HTTP Basic auth, so credentials must carry the
    account username alongside the token.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self._http = JsonHttpClient("bitbucket", base_url or BITBUCKET_CLOUD_URL, timeout=timeout, transport=transport)

    @property
    def provider_type(self) -> ProviderKind:
        return ProviderKind.BITBUCKET

    def close(self) -> None:
        self._http.close()

    @staticmethod
    def _headers(credentials: ProviderCredentials) -> dict[str, str]:
        if not credentials.username:
            # Workspace/repository access tokens are bearer tokens.
            return {"Authorization": f"Bearer {credentials.token}"}
        pair = f"{credentials.username}:{credentials.token}".encode("utf-8")
        return {"Authorization": "Basic " + base64.b64encode(pair).decode("ascii")}

    def _get_all(self, path: str, credentials: ProviderCredentials, params: dict | None = None) -> list[dict]:
        """Follow the ``next`` links of Bitbucket's paginated envelopes."""
        items: list[dict] = []
        url: str | None = path
        query = params
        while url:
            page = self._http.get_json(url, headers=self._headers(credentials), params=query)
            with translate_payload_errors("bitbucket", path):
                items.extend(page.get("values", []))
                url = page.get("next")
            query = None  # the next link already carries the query string
        return items

    def list_open_pull_requests(
        self, credentials: ProviderCredentials, owner: str, repo: str
    ) -> list[PullRequestFact]:
        prs = self._get_all(
            f"/repositories/{owner}/{repo}/pullrequests",
            credentials,
            {"state": "OPEN", "pagelen": 50},
        )
        with translate_payload_errors("bitbucket", f"pull requests of {owner}/{repo}"):
            return [self._to_fact(pr) for pr in prs]

    def get_pull_request(
        self, credentials: ProviderCredentials, owner: str, repo: str, number: int
    ) -> PullRequestFact:
        pr = self._http.get_json(
            f"/repositories/{owner}/{repo}/pullrequests/{number}",
            headers=self._headers(credentials),
        )
        with translate_payload_errors("bitbucket", f"pull request {owner}/{repo}#{number}"):
            return self._to_fact(pr)

    @staticmethod
    def _to_fact(pr: dict) -> PullRequestFact:
        author = pr.get("author") or {}
        now = datetime.now(timezone.utc)
        state = _PR_STATE.get(pr.get("state", "OPEN"), "open")
        updated_at = parse_datetime(pr.get("updated_on")) or now
        return PullRequestFact(
            provider_id=str(pr["id"]),
            number=int(pr["id"]),
            title=pr.get("title", ""),
            description=pr.get("description"),
            url=((pr.get("links") or {}).get("html") or {}).get("href", ""),
            state=state,
            source_branch=((pr.get("source") or {}).get("branch") or {}).get("name", ""),
            target_branch=((pr.get("destination") or {}).get("branch") or {}).get("name", ""),
            author=author.get("username") or author.get("nickname") or author.get("display_name") or "",
            author_avatar_url=((author.get("links") or {}).get("avatar") or {}).get("href"),
            is_draft=bool(pr.get("draft")),
            # Bitbucket does not report mergeability or conflicts in the listing.
            is_mergeable=None,
            has_conflicts=False,
            comments_count=int(pr.get("comment_count") or 0),
            created_at=parse_datetime(pr.get("created_on")) or now,
            updated_at=updated_at,
            # No dedicated merge timestamp; the last update of a merged PR is the merge.
            merged_at=updated_at if state == "merged" else None,
            closed_at=updated_at if state in ("merged", "closed") else None,
        )

    def get_ci_checks(
        self, credentials: ProviderCredentials, owner: str, repo: str, number: int
    ) -> list[CICheckFact]:
        statuses = self._get_all(f"/repositories/{owner}/{repo}/pullrequests/{number}/statuses", credentials)
        with translate_payload_errors("bitbucket", f"statuses of {owner}/{repo}#{number}"):
            checks = []
            for status in statuses:
                check_status, conclusion = _STATUS_STATE.get(status.get("state", ""), ("queued", None))
                checks.append(
                    CICheckFact(
                        name=status.get("name") or status.get("key", ""),
                        status=check_status,
                        conclusion=conclusion,
                        url=status.get("url"),
                        started_at=parse_datetime(status.get("created_on")),
                        completed_at=parse_datetime(status.get("updated_on")) if check_status == "completed" else None,
                    )
                )
            return checks

    def get_reviews(self, credentials: ProviderCredentials, owner: str, repo: str, number: int) -> list[ReviewFact]:
        pr = self._http.get_json(
            f"/repositories/{owner}/{repo}/pullrequests/{number}",
            headers=self._headers(credentials),
        )
        with translate_payload_errors("bitbucket", f"participants of {owner}/{repo}#{number}"):
            pr_updated_at = parse_datetime(pr.get("updated_on")) or parse_datetime(pr.get("created_on"))
            reviews = []
            for participant in pr.get("participants") or []:
                if participant.get("state") == "changes_requested":
                    state = ReviewState.CHANGES_REQUESTED
                elif participant.get("approved"):
                    state = ReviewState.APPROVED
                else:
                    continue  # plain participants/reviewers who have not reviewed yet
                submitted_at = parse_datetime(participant.get("participated_on")) or pr_updated_at
                if submitted_at is None:
                    raise InvalidResponse("bitbucket", f"pull request {owner}/{repo}#{number} has no timestamps")
                user = participant.get("user") or {}
                reviews.append(
                    ReviewFact(
                        reviewer=user.get("username") or user.get("nickname") or user.get("display_name") or "",
                        reviewer_avatar_url=((user.get("links") or {}).get("avatar") or {}).get("href"),
                        state=state.value,
                        submitted_at=submitted_at,
                    )
                )
            return reviews
