"""Tests for the read-time dashboard view."""

from __future__ import annotations

from conftest import NOW, make_pr_fact, review, success_check
from prsignal_core.dashboard import build_dashboard, build_repository_view
from prsignal_core.status import TrafficLight
from prsignal_core.sync import RepositorySyncer
from prsignal_store.models import HealthScore


def test_repository_view_evaluates_open_pull_requests(store, cipher, provider, factory, add_repository):
    repo = add_repository()
    provider.open_prs = [make_pr_fact(1), make_pr_fact(2, is_draft=True)]
    provider.checks = {1: [success_check()]}
    provider.reviews = {1: [review("approved")]}
    RepositorySyncer(store, cipher, factory).sync(repo, NOW)
    store.insert_health_score(HealthScore(repository_id=repo.id, score=88, calculated_at=NOW))

    view = build_repository_view(store, store.get_repository(repo.id))

    statuses = {v.pull_request.number: v.status for v in view.pull_requests}
    assert statuses == {1: TrafficLight.GREEN, 2: TrafficLight.YELLOW}
    assert view.status == TrafficLight.YELLOW
    assert view.pull_requests[0].approvals == 1
    assert view.pull_requests[0].checks_total == 1
    assert view.latest_health.score == 88


def test_repository_without_open_pull_requests_is_none(store, add_repository):
    repo = add_repository()
    view = build_repository_view(store, repo)
    assert view.status == TrafficLight.NONE
    assert view.pull_requests == []
    assert view.latest_health is None


def test_view_is_not_persisted(store, cipher, provider, factory, add_repository, mocker):
    repo = add_repository()
    provider.open_prs = [make_pr_fact(1)]
    RepositorySyncer(store, cipher, factory).sync(repo, NOW)
    upsert = mocker.spy(store, "upsert_pull_request")

    build_dashboard(store)

    upsert.assert_not_called()


def test_dashboard_sorted_by_name(store, add_repository):
    add_repository(name="zeta")
    add_repository(name="alpha")
    assert [v.repository.name for v in build_dashboard(store)] == ["alpha", "zeta"]
