"""Tests for the traffic-light status evaluator."""

from __future__ import annotations

from types import SimpleNamespace

from hypothesis import given
from hypothesis import strategies as st

from prsignal_core.status import (
    TrafficLight,
    evaluate_ci_checks,
    evaluate_reviews,
    for_pull_request,
    for_repository,
    worst_of,
)


def _pr(is_draft=False, has_conflicts=False, is_mergeable=True):
    return SimpleNamespace(is_draft=is_draft, has_conflicts=has_conflicts, is_mergeable=is_mergeable)


def _check(status="completed", conclusion="success"):
    return SimpleNamespace(status=status, conclusion=conclusion)


def _review(state):
    return SimpleNamespace(state=state)


checks_strategy = st.lists(
    st.builds(
        _check,
        status=st.sampled_from(["queued", "in_progress", "completed"]),
        conclusion=st.sampled_from(
            [None, "success", "failure", "neutral", "cancelled", "skipped", "timed_out", "action_required"]
        ),
    ),
    max_size=6,
)
reviews_strategy = st.lists(
    st.builds(_review, st.sampled_from(["approved", "changes_requested", "commented", "pending", "dismissed"])),
    max_size=6,
)
statuses = st.sampled_from(list(TrafficLight))


# ---------------------------------------------------------------------------
# CI sub-status
# ---------------------------------------------------------------------------


class TestCiChecks:
    def test_no_checks_is_none(self):
        assert evaluate_ci_checks([]) == TrafficLight.NONE

    def test_all_passing_is_green(self):
        assert evaluate_ci_checks([_check(), _check(conclusion="skipped"), _check(conclusion="neutral")]) == (
            TrafficLight.GREEN
        )

    def test_failure_beats_pending(self):
        checks = [_check(status="in_progress", conclusion=None), _check(conclusion="failure")]
        assert evaluate_ci_checks(checks) == TrafficLight.RED

    def test_timed_out_and_action_required_are_red(self):
        assert evaluate_ci_checks([_check(conclusion="timed_out")]) == TrafficLight.RED
        assert evaluate_ci_checks([_check(conclusion="action_required")]) == TrafficLight.RED

    def test_queued_in_progress_and_cancelled_are_yellow(self):
        assert evaluate_ci_checks([_check(status="queued", conclusion=None)]) == TrafficLight.YELLOW
        assert evaluate_ci_checks([_check(status="in_progress", conclusion=None)]) == TrafficLight.YELLOW
        assert evaluate_ci_checks([_check(conclusion="cancelled")]) == TrafficLight.YELLOW


# ---------------------------------------------------------------------------
# Review sub-status
# ---------------------------------------------------------------------------


class TestReviews:
    def test_no_reviews_awaits_review(self):
        assert evaluate_reviews([]) == TrafficLight.YELLOW

    def test_changes_requested_beats_approval(self):
        assert evaluate_reviews([_review("approved"), _review("changes_requested")]) == TrafficLight.RED

    def test_approved_is_green(self):
        assert evaluate_reviews([_review("commented"), _review("approved")]) == TrafficLight.GREEN

    def test_only_comments_is_yellow(self):
        assert evaluate_reviews([_review("commented"), _review("dismissed")]) == TrafficLight.YELLOW


# ---------------------------------------------------------------------------
# Pull request and repository
# ---------------------------------------------------------------------------


class TestPullRequest:
    def test_ready_to_merge_is_green(self):
        assert for_pull_request(_pr(), [_check()], [_review("approved")]) == TrafficLight.GREEN

    def test_second_review_requesting_changes_turns_red(self):
        reviews = [_review("approved"), _review("changes_requested")]
        assert for_pull_request(_pr(), [_check()], reviews) == TrafficLight.RED

    def test_no_reviews_is_yellow(self):
        assert for_pull_request(_pr(), [_check()], []) == TrafficLight.YELLOW

    def test_draft_with_conflicts_stays_yellow(self):
        pr = _pr(is_draft=True, has_conflicts=True, is_mergeable=False)
        assert for_pull_request(pr, [_check(conclusion="failure")], []) == TrafficLight.YELLOW

    def test_conflicts_are_red(self):
        assert for_pull_request(_pr(has_conflicts=True), [_check()], [_review("approved")]) == TrafficLight.RED

    def test_not_mergeable_is_red_but_unknown_is_not(self):
        approved = [_review("approved")]
        assert for_pull_request(_pr(is_mergeable=False), [_check()], approved) == TrafficLight.RED
        assert for_pull_request(_pr(is_mergeable=None), [_check()], approved) == TrafficLight.GREEN

    def test_no_checks_defers_to_reviews(self):
        assert for_pull_request(_pr(), [], [_review("approved")]) == TrafficLight.GREEN

    @given(checks=checks_strategy, reviews=reviews_strategy)
    def test_draft_is_always_yellow(self, checks, reviews):
        assert for_pull_request(_pr(is_draft=True), checks, reviews) == TrafficLight.YELLOW

    @given(checks=checks_strategy, reviews=reviews_strategy)
    def test_conflicts_are_always_red(self, checks, reviews):
        assert for_pull_request(_pr(has_conflicts=True), checks, reviews) == TrafficLight.RED

    @given(checks=checks_strategy, reviews=reviews_strategy)
    def test_failing_check_is_red_regardless_of_reviews(self, checks, reviews):
        checks = checks + [_check(conclusion="failure")]
        assert for_pull_request(_pr(), checks, reviews) == TrafficLight.RED

    @given(checks=checks_strategy)
    def test_empty_reviews_never_green(self, checks):
        assert for_pull_request(_pr(), checks, []) != TrafficLight.GREEN

    @given(checks=checks_strategy, reviews=reviews_strategy)
    def test_deterministic(self, checks, reviews):
        assert for_pull_request(_pr(), checks, reviews) == for_pull_request(_pr(), checks, reviews)


class TestRepository:
    def test_empty_is_none(self):
        assert for_repository([]) == TrafficLight.NONE

    def test_worst_wins(self):
        assert for_repository([TrafficLight.GREEN, TrafficLight.RED, TrafficLight.YELLOW]) == TrafficLight.RED
        assert for_repository([TrafficLight.GREEN, TrafficLight.YELLOW]) == TrafficLight.YELLOW
        assert for_repository([TrafficLight.GREEN]) == TrafficLight.GREEN

    @given(st.lists(st.sampled_from([TrafficLight.GREEN, TrafficLight.YELLOW, TrafficLight.RED]), min_size=1))
    def test_aggregate_equals_worst_of(self, pr_statuses):
        assert for_repository(pr_statuses) == worst_of(*pr_statuses)


class TestWorstOf:
    def test_none_defers(self):
        assert worst_of(TrafficLight.NONE, TrafficLight.GREEN) == TrafficLight.GREEN
        assert worst_of(TrafficLight.NONE, TrafficLight.NONE) == TrafficLight.NONE

    @given(statuses, statuses)
    def test_commutative(self, a, b):
        assert worst_of(a, b) == worst_of(b, a)
