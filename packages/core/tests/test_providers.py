"""Tests for the PyGithub-backed GitHub adapter.

The Github client class is patched out; tests drive the adapter through
MagicMock repositories, pull requests, check runs and reviews.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock, PropertyMock

import pytest
import requests
from github import GithubException, RateLimitExceededException

from prsignal_core.errors import (
    AuthenticationFailed,
    NotFound,
    ProviderTimeout,
    ProviderUnavailable,
    RateLimitExceeded,
)
from prsignal_core.models import ProviderCredentials
from prsignal_core.providers.github import GITHUB_API_URL, GitHubProvider

CREDS = ProviderCredentials(token="ghp_test")
CREATED = datetime(2026, 3, 1, 10, 0)  # PyGithub may hand back naive UTC


def _user(login="alice"):
    user = MagicMock()
    user.login = login
    user.avatar_url = f"https://avatars.example/{login}.png"
    return user


def _pr(number=42, **overrides):
    pr = MagicMock()
    pr.id = 1000 + number
    pr.number = number
    pr.title = "Add widget"
    pr.body = "Adds the widget"
    pr.html_url = f"https://github.com/acme/widgets/pull/{number}"
    pr.state = "open"
    pr.head.ref = "feature"
    pr.head.sha = "abc123"
    pr.base.ref = "main"
    pr.user = _user()
    pr.draft = False
    pr.mergeable = True
    pr.mergeable_state = "clean"
    pr.additions = 10
    pr.deletions = 2
    pr.changed_files = 3
    pr.commits = 1
    pr.comments = 4
    pr.created_at = CREATED
    pr.updated_at = CREATED
    pr.merged_at = None
    pr.closed_at = None
    for key, value in overrides.items():
        setattr(pr, key, value)
    return pr


@pytest.fixture
def github_cls(mocker):
    return mocker.patch("prsignal_core.providers.github.Github")


@pytest.fixture
def gh_repo(github_cls):
    repo = MagicMock()
    github_cls.return_value.get_repo.return_value = repo
    return repo


class TestClientSetup:
    def test_uses_token_and_base_url(self, github_cls, gh_repo, mocker):
        token_auth = mocker.patch("prsignal_core.providers.github.Auth.Token")
        gh_repo.get_pulls.return_value = []

        GitHubProvider(base_url="https://ghe.example.com/api/v3", timeout=12.5).list_open_pull_requests(
            CREDS, "acme", "widgets"
        )

        token_auth.assert_called_once_with("ghp_test")
        github_cls.assert_called_once_with(
            auth=token_auth.return_value, base_url="https://ghe.example.com/api/v3", timeout=12
        )
        github_cls.return_value.get_repo.assert_called_once_with("acme/widgets")

    def test_defaults_to_public_api(self):
        assert GitHubProvider().base_url == GITHUB_API_URL


class TestListOpenPullRequests:
    def test_maps_pull_request_fields(self, gh_repo):
        gh_repo.get_pulls.return_value = [_pr()]

        [fact] = GitHubProvider().list_open_pull_requests(CREDS, "acme", "widgets")

        gh_repo.get_pulls.assert_called_once_with(state="open")
        assert fact.number == 42
        assert fact.provider_id == "1042"
        assert fact.author == "alice"
        assert fact.source_branch == "feature"
        assert fact.target_branch == "main"
        assert fact.is_mergeable is True
        assert fact.has_conflicts is False
        assert fact.comments_count == 4
        assert fact.created_at == datetime(2026, 3, 1, 10, tzinfo=timezone.utc)

    def test_unknown_mergeability_stays_none(self, gh_repo):
        gh_repo.get_pulls.return_value = [_pr(mergeable=None, mergeable_state="unknown")]
        [fact] = GitHubProvider().list_open_pull_requests(CREDS, "acme", "widgets")
        assert fact.is_mergeable is None

    def test_dirty_state_means_conflicts(self, gh_repo):
        gh_repo.get_pulls.return_value = [_pr(mergeable=False, mergeable_state="dirty")]
        [fact] = GitHubProvider().list_open_pull_requests(CREDS, "acme", "widgets")
        assert fact.has_conflicts is True

    def test_deleted_author(self, gh_repo):
        gh_repo.get_pulls.return_value = [_pr(user=None)]
        [fact] = GitHubProvider().list_open_pull_requests(CREDS, "acme", "widgets")
        assert fact.author == ""
        assert fact.author_avatar_url is None


class TestGetPullRequest:
    def test_merged_pull_request_reports_merged(self, gh_repo):
        merged_at = datetime(2026, 3, 1, 11, 0)
        gh_repo.get_pull.return_value = _pr(state="closed", merged_at=merged_at, closed_at=merged_at)

        fact = GitHubProvider().get_pull_request(CREDS, "acme", "widgets", 42)

        gh_repo.get_pull.assert_called_once_with(42)
        assert fact.state == "merged"
        assert fact.merged_at == datetime(2026, 3, 1, 11, tzinfo=timezone.utc)

    def test_closed_without_merge_stays_closed(self, gh_repo):
        gh_repo.get_pull.return_value = _pr(state="closed", closed_at=datetime(2026, 3, 1, 11, 0))
        fact = GitHubProvider().get_pull_request(CREDS, "acme", "widgets", 42)
        assert (fact.state, fact.merged_at) == ("closed", None)

    def test_missing_pull_request_raises_not_found(self, gh_repo):
        gh_repo.get_pull.side_effect = GithubException(404, {"message": "Not Found"}, None)
        with pytest.raises(NotFound):
            GitHubProvider().get_pull_request(CREDS, "acme", "widgets", 42)


class TestChecksAndReviews:
    def test_check_runs_for_head_commit(self, gh_repo):
        run = MagicMock()
        run.name = "build"
        run.status = "completed"
        run.conclusion = "success"
        run.html_url = "https://github.com/acme/widgets/runs/1"
        run.started_at = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)
        run.completed_at = datetime(2026, 3, 1, 10, 4, tzinfo=timezone.utc)
        gh_repo.get_pull.return_value = _pr()
        gh_repo.get_commit.return_value.get_check_runs.return_value = [run]

        [check] = GitHubProvider().get_ci_checks(CREDS, "acme", "widgets", 42)

        gh_repo.get_commit.assert_called_once_with("abc123")
        assert (check.name, check.status, check.conclusion) == ("build", "completed", "success")
        assert check.duration_seconds == 240

    def test_reviews_are_lowercased_and_pending_skipped(self, gh_repo):
        submitted = MagicMock(user=_user("bob"), state="APPROVED", body="", submitted_at=CREATED)
        pending = MagicMock(user=_user("carol"), state="PENDING", body="", submitted_at=None)
        gh_repo.get_pull.return_value.get_reviews.return_value = [submitted, pending]

        reviews = GitHubProvider().get_reviews(CREDS, "acme", "widgets", 42)

        assert [(r.reviewer, r.state) for r in reviews] == [("bob", "approved")]
        assert reviews[0].body is None
        assert reviews[0].submitted_at.tzinfo is timezone.utc


class TestErrorTranslation:
    @pytest.mark.parametrize(
        "exc, expected",
        [
            (GithubException(401, {"message": "Bad credentials"}, None), AuthenticationFailed),
            (GithubException(404, {"message": "Not Found"}, None), NotFound),
            (RateLimitExceededException(403, {"message": "API rate limit exceeded"}, None), RateLimitExceeded),
            (requests.ConnectTimeout("slow"), ProviderTimeout),
            (requests.ConnectionError("refused"), ProviderUnavailable),
        ],
    )
    def test_library_errors_become_provider_errors(self, github_cls, exc, expected):
        github_cls.return_value.get_repo.side_effect = exc
        with pytest.raises(expected):
            GitHubProvider().list_open_pull_requests(CREDS, "acme", "widgets")

    def test_lazy_attribute_failure_is_translated(self, gh_repo):
        pr = _pr()
        type(pr).mergeable = PropertyMock(side_effect=requests.ReadTimeout("slow"))
        gh_repo.get_pulls.return_value = [pr]
        with pytest.raises(ProviderTimeout):
            GitHubProvider().list_open_pull_requests(CREDS, "acme", "widgets")

    def test_message_from_payload(self, github_cls):
        github_cls.return_value.get_repo.side_effect = GithubException(404, {"message": "Not Found"}, None)
        with pytest.raises(NotFound, match="Not Found"):
            GitHubProvider().list_open_pull_requests(CREDS, "acme", "widgets")
