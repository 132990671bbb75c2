"""Read-time dashboard view: stored pull requests joined with their checks and
reviews, coloured by the status evaluator. Nothing here is persisted."""

from __future__ import annotations

from dataclasses import dataclass, field

from prsignal_core import status
from prsignal_core.status import TrafficLight
from prsignal_store.base import BaseStore
from prsignal_store.models import HealthScore, PullRequest, Repository


@dataclass
class PullRequestView:
    pull_request: PullRequest
    status: TrafficLight
    ci_status: TrafficLight
    review_status: TrafficLight
    checks_total: int = 0
    approvals: int = 0


@dataclass
class RepositoryView:
    repository: Repository
    status: TrafficLight
    pull_requests: list[PullRequestView] = field(default_factory=list)
    latest_health: HealthScore | None = None


def build_pull_request_view(store: BaseStore, pr: PullRequest) -> PullRequestView:
    checks = store.list_ci_checks(pr.id)
    reviews = store.list_reviews(pr.id)
    return PullRequestView(
        pull_request=pr,
        status=status.for_pull_request(pr, checks, reviews),
        ci_status=status.evaluate_ci_checks(checks),
        review_status=status.evaluate_reviews(reviews),
        checks_total=len(checks),
        approvals=sum(1 for r in reviews if r.state == "approved"),
    )


def build_repository_view(store: BaseStore, repository: Repository) -> RepositoryView:
    pr_views = [build_pull_request_view(store, pr) for pr in store.list_pull_requests(repository.id, state="open")]
    scores = store.list_health_scores(repository.id, limit=1)
    return RepositoryView(
        repository=repository,
        status=status.for_repository(v.status for v in pr_views),
        pull_requests=pr_views,
        latest_health=scores[0] if scores else None,
    )


def build_dashboard(store: BaseStore) -> list[RepositoryView]:
    views = [build_repository_view(store, repo) for repo in store.list_repositories()]
    return sorted(views, key=lambda v: (v.repository.owner, v.repository.name))
