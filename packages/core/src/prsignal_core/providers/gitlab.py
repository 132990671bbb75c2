from __future__ import annotations

import logging
from datetime import datetime, timezone
from urllib.parse import quote

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

GITLAB_CLOUD_URL = "https://gitlab.com"
_PER_PAGE = 100

# "locked" is a transient state while a merge is in progress.
_MR_STATE = {"opened": "open", "locked": "open", "merged": "merged", "closed": "closed"}

# GitLab job status → (check status, conclusion)
_JOB_STATUS = {
    "created": ("queued", None),
    "pending": ("queued", None),
    "waiting_for_resource": ("queued", None),
    "preparing": ("queued", None),
    "scheduled": ("queued", None),
    "manual": ("queued", None),
    "running": ("in_progress", None),
    "success": ("completed", "success"),
    "failed": ("completed", "failure"),
    "canceled": ("completed", "cancelled"),
    "skipped": ("completed", "skipped"),
}


class GitLabProvider(GitProvider):
    """GitLab merge requests via the REST v4 API (gitlab.com or self-hosted)."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        root = (base_url or GITLAB_CLOUD_URL).rstrip("/")
        self._http = JsonHttpClient("gitlab", f"{root}/api/v4", timeout=timeout, transport=transport)

    @property
    def provider_type(self) -> ProviderKind:
        return ProviderKind.GITLAB

    def close(self) -> None:
        self._http.close()

    @staticmethod
    def _headers(credentials: ProviderCredentials) -> dict[str, str]:
        return {"Authorization": f"Bearer {credentials.token}"}

    @staticmethod
    def _project(owner: str, repo: str) -> str:
        return quote(f"{owner}/{repo}", safe="")

    def _get_all(self, path: str, credentials: ProviderCredentials, params: dict | None = None) -> list[dict]:
        """Follow GitLab's X-Next-Page header until every page is read."""
        items: list[dict] = []
        query = {"per_page": _PER_PAGE, **(params or {})}
        page = "1"
        while page:
            response = self._http.get(path, headers=self._headers(credentials), params={**query, "page": page})
            with translate_payload_errors("gitlab", path):
                items.extend(self._http.decode(response))
            page = response.headers.get("X-Next-Page", "")
        return items

    def list_open_pull_requests(
        self, credentials: ProviderCredentials, owner: str, repo: str
    ) -> list[PullRequestFact]:
        mrs = self._get_all(
            f"/projects/{self._project(owner, repo)}/merge_requests",
            credentials,
            {"state": "opened"},
        )
        with translate_payload_errors("gitlab", f"merge requests of {owner}/{repo}"):
            return [self._to_fact(mr) for mr in mrs]

    def get_pull_request(
        self, credentials: ProviderCredentials, owner: str, repo: str, number: int
    ) -> PullRequestFact:
        mr = self._http.get_json(
            f"/projects/{self._project(owner, repo)}/merge_requests/{number}",
            headers=self._headers(credentials),
        )
        with translate_payload_errors("gitlab", f"merge request {owner}/{repo}!{number}"):
            return self._to_fact(mr)

    @staticmethod
    def _to_fact(mr: dict) -> PullRequestFact:
        author = mr.get("author") or {}
        merge_status = mr.get("detailed_merge_status") or mr.get("merge_status")
        try:
            changed_files = int(str(mr.get("changes_count") or 0).rstrip("+"))
        except ValueError:
            changed_files = 0
        now = datetime.now(timezone.utc)
        return PullRequestFact(
            provider_id=str(mr["id"]),
            number=int(mr["iid"]),
            title=mr.get("title", ""),
            description=mr.get("description"),
            url=mr.get("web_url", ""),
            state=_MR_STATE.get(mr.get("state", "opened"), "open"),
            source_branch=mr.get("source_branch", ""),
            target_branch=mr.get("target_branch", ""),
            author=author.get("username", ""),
            author_avatar_url=author.get("avatar_url"),
            is_draft=bool(mr.get("draft") or mr.get("work_in_progress")),
            # "checking"/"unchecked" mean GitLab has not decided yet.
            is_mergeable=(
                None
                if merge_status in (None, "checking", "unchecked", "preparing")
                else merge_status in ("can_be_merged", "mergeable")
            ),
            has_conflicts=bool(mr.get("has_conflicts")),
            changed_files=changed_files,
            comments_count=int(mr.get("user_notes_count") or 0),
            created_at=parse_datetime(mr.get("created_at")) or now,
            updated_at=parse_datetime(mr.get("updated_at")) or now,
            merged_at=parse_datetime(mr.get("merged_at")),
            closed_at=parse_datetime(mr.get("closed_at")),
        )

    def get_ci_checks(
        self, credentials: ProviderCredentials, owner: str, repo: str, number: int
    ) -> list[CICheckFact]:
        project = self._project(owner, repo)
        pipelines = self._http.get_json(
            f"/projects/{project}/merge_requests/{number}/pipelines",
            headers=self._headers(credentials),
        )
        if not pipelines:
            return []

        # Newest pipeline first; only its jobs describe the current head.
        with translate_payload_errors("gitlab", f"pipelines of {owner}/{repo}!{number}"):
            latest = pipelines[0]["id"]
        jobs = self._get_all(f"/projects/{project}/pipelines/{latest}/jobs", credentials)
        with translate_payload_errors("gitlab", f"jobs of pipeline {latest}"):
            checks = []
            for job in jobs:
                status, conclusion = _JOB_STATUS.get(job.get("status", ""), ("queued", None))
                checks.append(
                    CICheckFact(
                        name=job.get("name", ""),
                        status=status,
                        conclusion=conclusion,
                        url=job.get("web_url"),
                        started_at=parse_datetime(job.get("started_at")),
                        completed_at=parse_datetime(job.get("finished_at")),
                    )
                )
            return checks

    def get_reviews(self, credentials: ProviderCredentials, owner: str, repo: str, number: int) -> list[ReviewFact]:
        approvals = self._http.get_json(
            f"/projects/{self._project(owner, repo)}/merge_requests/{number}/approvals",
            headers=self._headers(credentials),
        )
        with translate_payload_errors("gitlab", f"approvals of {owner}/{repo}!{number}"):
            approved_by = approvals.get("approved_by") or []
            # The approvals endpoint has no per-approval timestamp; the MR's
            # updated_at is the closest bound GitLab offers.
            submitted_at = parse_datetime(approvals.get("updated_at"))
        if not approved_by:
            return []
        if submitted_at is None:
            submitted_at = self._updated_at(credentials, owner, repo, number)

        with translate_payload_errors("gitlab", f"approvals of {owner}/{repo}!{number}"):
            return [
                ReviewFact(
                    reviewer=(entry.get("user") or {}).get("username", ""),
                    reviewer_avatar_url=(entry.get("user") or {}).get("avatar_url"),
                    state=ReviewState.APPROVED.value,
                    submitted_at=submitted_at,
                )
                for entry in approved_by
            ]

    def _updated_at(self, credentials: ProviderCredentials, owner: str, repo: str, number: int) -> datetime:
        mr = self._http.get_json(
            f"/projects/{self._project(owner, repo)}/merge_requests/{number}",
            headers=self._headers(credentials),
        )
        with translate_payload_errors("gitlab", f"merge request {owner}/{repo}!{number}"):
            updated_at = parse_datetime(mr.get("updated_at")) or parse_datetime(mr.get("created_at"))
        if updated_at is None:
            raise InvalidResponse("gitlab", f"merge request {owner}/{repo}!{number} has no timestamps")
        return updated_at
