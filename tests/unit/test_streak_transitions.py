"""Daily order streak transition tests."""

from __future__ import annotations

from datetime import date, timedelta

from folies.gamification.stats_service import compute_streak

TODAY = date(2026, 3, 10)


class TestComputeStreak:
    def test_first_order_starts_streak(self):
        assert compute_streak(None, 0, TODAY) == 1

    def test_consecutive_day_extends(self):
        assert compute_streak(TODAY - timedelta(days=1), 4, TODAY) == 5

    def test_same_day_keeps_value(self):
        assert compute_streak(TODAY, 4, TODAY) == 4

    def test_gap_of_two_days_resets(self):
        assert compute_streak(TODAY - timedelta(days=2), 4, TODAY) == 1

    def test_long_gap_resets(self):
        assert compute_streak(TODAY - timedelta(days=40), 12, TODAY) == 1

    def test_across_month_boundary(self):
        assert compute_streak(date(2026, 2, 28), 2, date(2026, 3, 1)) == 3
