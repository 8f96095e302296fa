"""
tests/test_streak_engine.py — Pure Streak Computation Tests
============================================================

No database: the engine takes evidence dates and returns a StreakView.
"""

from __future__ import annotations

from streakforge.engine.streak import (
    StreakBaseline,
    compute_streak,
    longest_run,
    trailing_run,
)


class TestRuns:
    def test_longest_run_finds_historical_best(self):
        dates = ["2024-01-01", "2024-01-02", "2024-01-03", "2024-01-05", "2024-01-06"]
        assert longest_run(dates) == 3

    def test_trailing_run_counts_from_the_end(self):
        dates = ["2024-01-01", "2024-01-02", "2024-01-03", "2024-01-05", "2024-01-06"]
        assert trailing_run(dates) == 2

    def test_empty(self):
        assert longest_run([]) == 0
        assert trailing_run([]) == 0


class TestComputeStreak:
    def test_no_evidence(self):
        view = compute_streak([], today="2024-01-10")
        assert (view.current_streak, view.longest_streak, view.last_activity_date) == (0, 0, None)

    def test_run_ending_yesterday_counts(self):
        view = compute_streak(["2024-01-08", "2024-01-09"], today="2024-01-10")
        assert view.current_streak == 2
        assert view.last_activity_date == "2024-01-09"

    def test_duplicates_and_order_do_not_matter(self):
        view = compute_streak(
            ["2024-01-10", "2024-01-09", "2024-01-09", "2024-01-08"], today="2024-01-10"
        )
        assert view.current_streak == 3

    def test_gap_lapses_current_but_keeps_longest(self):
        view = compute_streak(["2024-01-01", "2024-01-02", "2024-01-03"], today="2024-01-10")
        assert view.current_streak == 0
        assert view.longest_streak == 3

    def test_stored_longest_is_a_floor(self):
        view = compute_streak(["2024-01-09"], today="2024-01-10", stored_longest=12)
        assert view.current_streak == 1
        assert view.longest_streak == 12

    def test_longest_never_below_current(self):
        view = compute_streak(["2024-01-09", "2024-01-10"], today="2024-01-10")
        assert view.longest_streak >= view.current_streak


class TestRejection:
    def test_rejection_today_breaks_streak(self):
        """Approved yesterday, rejected today → current 0."""
        view = compute_streak(
            ["2024-01-09"], today="2024-01-10", latest_rejected="2024-01-10"
        )
        assert view.current_streak == 0
        assert view.broken_by_rejection
        assert view.last_activity_date == "2024-01-10"

    def test_later_valid_day_supersedes_rejection(self):
        view = compute_streak(
            ["2024-01-08", "2024-01-10"], today="2024-01-10", latest_rejected="2024-01-09"
        )
        assert view.current_streak == 1
        assert not view.broken_by_rejection

    def test_old_rejection_is_ignored(self):
        view = compute_streak(
            ["2024-01-09", "2024-01-10"], today="2024-01-10", latest_rejected="2024-01-02"
        )
        assert view.current_streak == 2

    def test_rejection_keeps_longest(self):
        view = compute_streak(
            ["2024-01-07", "2024-01-08", "2024-01-09"],
            today="2024-01-10",
            latest_rejected="2024-01-10",
        )
        assert view.current_streak == 0
        assert view.longest_streak == 3


class TestAdminBaseline:
    def test_baseline_extends_through_following_days(self):
        """Baseline 50 on 03-01, approved 03-02 → 51."""
        view = compute_streak(
            ["2024-03-02"],
            today="2024-03-02",
            baseline=StreakBaseline(anchor_date="2024-03-01", streak=50, longest=50),
        )
        assert view.current_streak == 51
        assert view.longest_streak == 51
        assert view.baseline_applied
        assert view.last_activity_date == "2024-03-02"

    def test_baseline_alone_holds_on_anchor_day(self):
        view = compute_streak(
            [],
            today="2024-03-02",
            baseline=StreakBaseline(anchor_date="2024-03-01", streak=50, longest=60),
        )
        assert view.current_streak == 50
        assert view.longest_streak == 60

    def test_stale_baseline_lapses(self):
        view = compute_streak(
            ["2024-03-09"],
            today="2024-03-10",
            baseline=StreakBaseline(anchor_date="2024-03-01", streak=50, longest=50),
        )
        assert view.current_streak == 1
        assert not view.baseline_applied
        assert view.longest_streak == 50

    def test_baseline_loses_to_a_larger_computed_run(self):
        dates = [f"2024-03-{d:02d}" for d in range(1, 11)]
        view = compute_streak(
            dates,
            today="2024-03-10",
            baseline=StreakBaseline(anchor_date="2024-03-05", streak=3, longest=3),
        )
        assert view.current_streak == 10
        assert not view.baseline_applied

    def test_rejection_on_baseline_end_wins_the_tie(self):
        view = compute_streak(
            [],
            today="2024-03-01",
            latest_rejected="2024-03-01",
            baseline=StreakBaseline(anchor_date="2024-03-01", streak=50, longest=50),
        )
        assert view.current_streak == 0
        assert view.broken_by_rejection
        assert not view.baseline_applied
        assert view.longest_streak == 50

    def test_zero_baseline_is_ignored(self):
        view = compute_streak(
            ["2024-03-02"],
            today="2024-03-02",
            baseline=StreakBaseline(anchor_date="2024-03-01", streak=0, longest=0),
        )
        assert view.current_streak == 1
