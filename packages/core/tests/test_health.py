"""Tests for the health score heuristic and job."""

from __future__ import annotations

from datetime import timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st

from conftest import NOW
from prsignal_core.health import HealthInputs, HealthScoreJob, calculate_score
from prsignal_store.models import PrMetrics, PullRequest

HOUR = 3600


def _inputs(merge=None, review=None, stale=0, throughput=0):
    return HealthInputs(avg_time_to_merge=merge, avg_review_time=review, stale_pr_count=stale, pr_throughput=throughput)


class TestCalculateScore:
    def test_perfect_repository(self):
        assert calculate_score(_inputs()) == 100

    @pytest.mark.parametrize(
        "merge_seconds, expected",
        [
            (24 * HOUR, 100),
            (25 * HOUR, 90),
            (49 * HOUR, 80),
            (73 * HOUR, 70),
            (72 * HOUR + HOUR - 1, 80),  # whole hours: 72h59m59s is still 72h
        ],
    )
    def test_merge_latency_penalty(self, merge_seconds, expected):
        assert calculate_score(_inputs(merge=merge_seconds)) == expected

    @pytest.mark.parametrize(
        "review_seconds, expected",
        [(4 * HOUR, 100), (5 * HOUR, 95), (9 * HOUR, 90), (25 * HOUR, 80)],
    )
    def test_review_latency_penalty(self, review_seconds, expected):
        assert calculate_score(_inputs(review=review_seconds)) == expected

    @pytest.mark.parametrize("stale, expected", [(0, 100), (1, 98), (5, 90), (6, 85), (10, 85), (11, 75)])
    def test_stale_penalty(self, stale, expected):
        assert calculate_score(_inputs(stale=stale)) == expected

    @pytest.mark.parametrize("throughput, expected", [(4, 70), (5, 75), (10, 80)])
    def test_throughput_bonus(self, throughput, expected):
        assert calculate_score(_inputs(merge=73 * HOUR, throughput=throughput)) == expected

    def test_all_penalties_maxed(self):
        assert calculate_score(_inputs(merge=100 * HOUR, review=100 * HOUR, stale=50)) == 25

    def test_bonus_never_exceeds_100(self):
        assert calculate_score(_inputs(throughput=50)) == 100

    @given(
        merge=st.one_of(st.none(), st.integers(min_value=0, max_value=10**7)),
        review=st.one_of(st.none(), st.integers(min_value=0, max_value=10**7)),
        stale=st.integers(min_value=0, max_value=10**4),
        throughput=st.integers(min_value=0, max_value=10**4),
    )
    def test_always_clamped(self, merge, review, stale, throughput):
        assert 0 <= calculate_score(_inputs(merge, review, stale, throughput)) <= 100


class TestHealthScoreJob:
    def _merged(self, store, repo_id, number, merged_days_ago, merge_hours, review_hours=None):
        merged_at = NOW - timedelta(days=merged_days_ago)
        pr = store.upsert_pull_request(
            PullRequest(
                repository_id=repo_id,
                number=number,
                provider_id=str(number),
                title="t",
                url="u",
                state="merged",
                source_branch="f",
                target_branch="main",
                author="alice",
                created_at=merged_at - timedelta(hours=merge_hours),
                updated_at=merged_at,
                last_synced_at=NOW,
                merged_at=merged_at,
            )
        )
        store.insert_pr_metrics(
            PrMetrics(
                pull_request_id=pr.id,
                repository_id=repo_id,
                merged_at=merged_at,
                recorded_at=NOW,
                time_to_merge=merge_hours * HOUR,
                time_to_first_review=review_hours * HOUR if review_hours is not None else None,
            )
        )

    def _open(self, store, repo_id, number, age_days):
        store.upsert_pull_request(
            PullRequest(
                repository_id=repo_id,
                number=number,
                provider_id=str(number),
                title="t",
                url="u",
                state="open",
                source_branch="f",
                target_branch="main",
                author="alice",
                created_at=NOW - timedelta(days=age_days),
                updated_at=NOW,
                last_synced_at=NOW,
            )
        )

    def test_gathers_windows_and_appends_score(self, store, add_repository):
        repo = add_repository()
        self._merged(store, repo.id, 1, merged_days_ago=2, merge_hours=30, review_hours=6)
        self._merged(store, repo.id, 2, merged_days_ago=20, merge_hours=50)
        self._merged(store, repo.id, 3, merged_days_ago=45, merge_hours=500)  # outside 30 days
        self._open(store, repo.id, 10, age_days=9)
        self._open(store, repo.id, 11, age_days=1)

        [score] = HealthScoreJob(store).execute(NOW)

        assert score.avg_time_to_merge == 40 * HOUR
        assert score.avg_review_time == 6 * HOUR
        assert score.stale_pr_count == 1
        assert score.pr_throughput == 1
        # merge 40h: -10, review 6h: -5, one stale: -2
        assert score.score == 83
        assert score.calculated_at == NOW
        assert store.list_health_scores(repo.id)[0].score == 83

    def test_scores_are_appended_not_overwritten(self, store, add_repository):
        repo = add_repository()
        job = HealthScoreJob(store)
        job.execute(NOW)
        job.execute(NOW + timedelta(hours=1))
        assert len(store.list_health_scores(repo.id)) == 2

    def test_no_samples_means_no_latency_penalty(self, store, add_repository):
        add_repository()
        [score] = HealthScoreJob(store).execute(NOW)
        assert score.avg_time_to_merge is None
        assert score.avg_review_time is None
        assert score.score == 100

    def test_one_failing_repository_does_not_stop_others(self, store, add_repository, mocker):
        broken = add_repository(name="broken")
        healthy = add_repository(name="healthy")
        real = store.count_stale_pull_requests

        def flaky(repository_id, created_before):
            if repository_id == broken.id:
                raise RuntimeError("boom")
            return real(repository_id, created_before)

        mocker.patch.object(store, "count_stale_pull_requests", side_effect=flaky)
        scores = HealthScoreJob(store).execute(NOW)

        assert [s.repository_id for s in scores] == [healthy.id]
        assert store.list_health_scores(broken.id) == []
