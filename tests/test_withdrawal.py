"""Tests for withdrawal recommendations and goal progress."""

import pytest

from sharpline.bankroll.withdrawal import (
    NO_PROJECTION_DAYS,
    calculate_goal_progress,
    calculate_withdrawal_recommendation,
)


class TestWithdrawal:
    """Tests for calculate_withdrawal_recommendation."""

    def test_profitable_bankroll(self):
        rec = calculate_withdrawal_recommendation(
            current_bankroll=1500,
            starting_bankroll=1000,
            monthly_income_target=500,
            expected_edge=0.03,
            current_roi=12,
        )

        assert rec.safe_amount == pytest.approx(125)
        assert rec.recommended_amount == pytest.approx(200)
        assert rec.aggressive_amount == pytest.approx(300)
        assert rec.growth_reserve == pytest.approx(250)
        assert rec.protected_bankroll == 1000
        assert rec.sustainability_score == 85
        assert rec.can_meet_target is False
        assert "$200" in rec.reasoning

    def test_tiers_are_ordered(self):
        rec = calculate_withdrawal_recommendation(1200, 1000, 20, 0.01, 3)

        assert rec.safe_amount <= rec.recommended_amount <= rec.aggressive_amount
        assert rec.can_meet_target is True

    def test_safe_capped_by_sustainable_amount(self):
        # 1% edge on 2000 over 20 days: 400 expected, 200 sustainable
        rec = calculate_withdrawal_recommendation(2000, 1000, 100, 0.01, 8)

        assert rec.safe_amount == pytest.approx(200)
        assert rec.recommended_amount == pytest.approx(200)

    @pytest.mark.parametrize("current", [1000, 800])
    def test_nothing_at_or_below_start(self, current):
        rec = calculate_withdrawal_recommendation(current, 1000, 300, 0.03, -5)

        assert rec.recommended_amount == 0
        assert rec.safe_amount == 0
        assert rec.aggressive_amount == 0
        assert rec.sustainability_score == 0
        assert rec.protected_bankroll == 1000
        assert rec.can_meet_target is False

    def test_negative_roi_lowers_score(self):
        good = calculate_withdrawal_recommendation(1500, 1000, 100, 0.03, 12)
        bad = calculate_withdrawal_recommendation(1500, 1000, 100, 0.03, -3)

        assert good.sustainability_score - bad.sustainability_score == 40


class TestGoalProgress:
    """Tests for calculate_goal_progress."""

    def test_on_track(self):
        progress = calculate_goal_progress(1300, 1000, target_profit=500, period_days=30, days_elapsed=10)

        assert progress.progress_pct == pytest.approx(60)
        assert progress.remaining_amount == 200
        assert progress.days_remaining == 20
        assert progress.daily_target_required == pytest.approx(10)
        assert progress.projected_days_to_goal == 7
        assert progress.is_on_track is True
        assert progress.recommendation.startswith("On track")

    def test_behind(self):
        progress = calculate_goal_progress(1050, 1000, target_profit=500, period_days=30, days_elapsed=20)

        assert progress.projected_days_to_goal == 180
        assert progress.is_on_track is False
        assert progress.recommendation.startswith("Significant ground")

    def test_losing_has_no_projection(self):
        progress = calculate_goal_progress(900, 1000, target_profit=500, period_days=30, days_elapsed=5)

        assert progress.progress_pct == 0
        assert progress.projected_days_to_goal == NO_PROJECTION_DAYS
        assert progress.is_on_track is False

    def test_goal_reached(self):
        progress = calculate_goal_progress(1600, 1000, target_profit=500, period_days=30, days_elapsed=15)

        assert progress.progress_pct == 100
        assert progress.remaining_amount == 0
        assert progress.projected_days_to_goal == 0
        assert progress.is_on_track is True

    def test_period_over(self):
        progress = calculate_goal_progress(1200, 1000, target_profit=500, period_days=30, days_elapsed=40)

        assert progress.days_remaining == 0
        assert progress.daily_target_required == 300
        assert progress.is_on_track is False
