"""
Withdrawal recommendation and goal progress.

Withdrawal tiers (profit = current - starting):
- safe: at most 25% of profit, capped by the sustainable amount
  (half of the expected monthly profit at the given edge)
- aggressive: up to 60% of profit, never below safe
- recommended: the income target, capped at 40% of profit, kept
  between safe and aggressive
The starting bankroll is always protected; nothing is recommended while
the bankroll is at or below it.
"""

import structlog

from sharpline.models.schemas import GoalProgress, WithdrawalRecommendation

logger = structlog.get_logger()

SAFE_PROFIT_SHARE = 0.25
RECOMMENDED_PROFIT_SHARE = 0.40
AGGRESSIVE_PROFIT_SHARE = 0.60
GROWTH_RESERVE_SHARE = 0.50
SUSTAINABLE_SHARE = 0.50

NO_PROJECTION_DAYS = 999


def calculate_withdrawal_recommendation(
    current_bankroll: float,
    starting_bankroll: float,
    monthly_income_target: float,
    expected_edge: float,
    current_roi: float,
    betting_days_per_month: int = 20,
) -> WithdrawalRecommendation:
    """
    Recommend how much profit can be withdrawn this month.

    Args:
        current_bankroll: Bankroll now
        starting_bankroll: Bankroll the user started with (protected floor)
        monthly_income_target: Desired monthly withdrawal
        expected_edge: Expected edge per betting day as a decimal (0.03 = 3%)
        current_roi: Trailing ROI in percent
        betting_days_per_month: Betting days used to project monthly profit
    """
    profit = current_bankroll - starting_bankroll

    if profit <= 0:
        return WithdrawalRecommendation(
            recommended_amount=0.0,
            safe_amount=0.0,
            aggressive_amount=0.0,
            sustainability_score=0.0,
            protected_bankroll=starting_bankroll,
            growth_reserve=0.0,
            can_meet_target=False,
            reasoning="Your bankroll is at or below starting amount. Focus on rebuilding before withdrawing.",
        )

    expected_monthly = current_bankroll * max(0.0, expected_edge) * betting_days_per_month
    sustainable = expected_monthly * SUSTAINABLE_SHARE
    target = max(0.0, monthly_income_target)

    safe = max(0.0, min(profit * SAFE_PROFIT_SHARE, sustainable))
    aggressive = max(safe, profit * AGGRESSIVE_PROFIT_SHARE)
    recommended = min(max(safe, min(target, profit * RECOMMENDED_PROFIT_SHARE)), aggressive)

    score = 50
    if current_roi > 10:
        score += 20
    elif current_roi > 5:
        score += 10
    elif current_roi < 0:
        score -= 20
    if recommended <= sustainable:
        score += 15
    if current_bankroll > starting_bankroll * 1.2:
        score += 15
    if target > sustainable:
        score -= 15
    score = max(0, min(100, score))

    can_meet = recommended >= target
    if can_meet:
        reasoning = f"You can sustainably withdraw your target of ${target:.0f} while protecting your bankroll."
    elif recommended > 0:
        reasoning = f"Recommended withdrawal of ${recommended:.0f} balances income needs with bankroll growth."
    else:
        reasoning = "Build more profit before withdrawing to ensure long-term sustainability."

    recommendation = WithdrawalRecommendation(
        recommended_amount=recommended,
        safe_amount=safe,
        aggressive_amount=aggressive,
        sustainability_score=float(score),
        protected_bankroll=starting_bankroll,
        growth_reserve=profit * GROWTH_RESERVE_SHARE,
        can_meet_target=can_meet,
        reasoning=reasoning,
    )
    logger.debug(
        "Withdrawal recommendation",
        profit=profit,
        safe=round(safe, 2),
        recommended=round(recommended, 2),
        aggressive=round(aggressive, 2),
        score=score,
    )
    return recommendation


def calculate_goal_progress(
    current_bankroll: float,
    starting_bankroll: float,
    target_profit: float,
    period_days: int,
    days_elapsed: int,
) -> GoalProgress:
    """Progress towards a profit target over a period (e.g. 30 days)."""
    profit = current_bankroll - starting_bankroll
    if target_profit > 0:
        progress_pct = min(100.0, max(0.0, profit / target_profit * 100))
    else:
        progress_pct = 100.0
    remaining = max(0.0, target_profit - profit)
    days_remaining = max(0, period_days - days_elapsed)

    daily_required = remaining / days_remaining if days_remaining > 0 else remaining

    daily_rate = profit / days_elapsed if days_elapsed > 0 else 0.0
    if remaining == 0:
        projected = 0
    elif daily_rate > 0:
        projected = round(remaining / daily_rate)
    else:
        projected = NO_PROJECTION_DAYS

    on_track = projected <= days_remaining

    if progress_pct >= 100:
        recommendation = "Goal reached. Consider setting a new target or withdrawing profits."
    elif on_track and progress_pct >= 75:
        recommendation = "Excellent pace. Stay disciplined and you'll exceed your goal."
    elif on_track:
        recommendation = "On track. Maintain your current strategy and bet sizing."
    elif progress_pct >= 50:
        recommendation = "Slightly behind schedule. Focus on high-value picks only."
    elif progress_pct >= 25:
        recommendation = "Behind target. Consider increasing selectivity or adjusting your goal."
    else:
        recommendation = "Significant ground to cover. Stay patient and avoid chasing losses."

    return GoalProgress(
        current_progress=profit,
        progress_pct=progress_pct,
        remaining_amount=remaining,
        days_remaining=days_remaining,
        projected_days_to_goal=projected,
        is_on_track=on_track,
        daily_target_required=daily_required,
        recommendation=recommendation,
    )
