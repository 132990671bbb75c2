"""Traffic-light status evaluation.

Pure functions only: nothing here reads or writes the store. The dashboard
calls these at read time, so the verdict always reflects the latest synced
checks and reviews without a persisted status column going stale.

Per pull request, in priority order:
    draft                      → YELLOW (short-circuit: conflicts are not consulted)
    has conflicts              → RED
    explicitly not mergeable   → RED
    otherwise worst of (CI sub-status, review sub-status), where a CI
    sub-status of NONE (no checks) defers to the review sub-status.

Per repository: the worst status among its open pull requests, NONE if it
has none.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from prsignal_core.models import CheckConclusion, CheckStatus, ReviewState

_FAILING_CONCLUSIONS = {
    CheckConclusion.FAILURE,
    CheckConclusion.TIMED_OUT,
    CheckConclusion.ACTION_REQUIRED,
}


class TrafficLight(str, Enum):
    GREEN = "green"  # checks pass, approved, no conflicts: ready to merge
    YELLOW = "yellow"  # checks pending or awaiting review
    RED = "red"  # checks failed, changes requested, conflicts or blocked
    NONE = "none"  # nothing to evaluate

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    TrafficLight.NONE: 0,
    TrafficLight.GREEN: 1,
    TrafficLight.YELLOW: 2,
    TrafficLight.RED: 3,
}


def worst_of(*statuses: TrafficLight) -> TrafficLight:
    """Red beats yellow beats green; NONE only wins when nothing else is present."""
    return max(statuses, key=lambda s: s.severity, default=TrafficLight.NONE)


def evaluate_ci_checks(checks: Iterable) -> TrafficLight:
    has_checks = False
    has_pending = False
    has_failure = False

    for check in checks:
        has_checks = True
        status = CheckStatus.parse(check.status)
        if status != CheckStatus.COMPLETED:
            has_pending = True
            continue
        conclusion = CheckConclusion.parse(check.conclusion)
        if conclusion in _FAILING_CONCLUSIONS:
            has_failure = True
        elif conclusion == CheckConclusion.CANCELLED:
            has_pending = True

    if not has_checks:
        return TrafficLight.NONE
    if has_failure:
        return TrafficLight.RED
    if has_pending:
        return TrafficLight.YELLOW
    return TrafficLight.GREEN


def evaluate_reviews(reviews: Iterable) -> TrafficLight:
    states = [ReviewState.parse(r.state) for r in reviews]
    if not states:
        return TrafficLight.YELLOW  # awaiting review
    if ReviewState.CHANGES_REQUESTED in states:
        return TrafficLight.RED
    if ReviewState.APPROVED in states:
        return TrafficLight.GREEN
    return TrafficLight.YELLOW


def for_pull_request(pr, ci_checks: Iterable, reviews: Iterable) -> TrafficLight:
    """Evaluate one pull request.

    ``pr`` needs ``is_draft``, ``has_conflicts`` and ``is_mergeable``; checks need
    ``status``/``conclusion`` and reviews need ``state``. Both store records and
    provider facts satisfy this.
    """
    if pr.is_draft:
        return TrafficLight.YELLOW
    if pr.has_conflicts:
        return TrafficLight.RED
    if pr.is_mergeable is False:
        return TrafficLight.RED

    ci_status = evaluate_ci_checks(ci_checks)
    review_status = evaluate_reviews(reviews)
    return worst_of(ci_status, review_status)


def for_repository(pr_statuses: Iterable[TrafficLight]) -> TrafficLight:
    statuses = list(pr_statuses)
    if not statuses:
        return TrafficLight.NONE
    if TrafficLight.RED in statuses:
        return TrafficLight.RED
    if TrafficLight.YELLOW in statuses:
        return TrafficLight.YELLOW
    return TrafficLight.GREEN
