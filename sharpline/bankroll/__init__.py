"""Bankroll protection: ledger, guardrails, exposure and withdrawals."""

from sharpline.bankroll.ledger import BetLedger
from sharpline.bankroll.lockout import LockoutStore
from sharpline.bankroll.guardrails import (
    GuardrailEvaluator,
    SessionTimer,
    default_rules,
    loss_streak,
    should_block,
)
from sharpline.bankroll.exposure import ExposureConfig, calculate_risk_exposure, infer_bet_type
from sharpline.bankroll.withdrawal import calculate_goal_progress, calculate_withdrawal_recommendation

__all__ = [
    "BetLedger",
    "LockoutStore",
    "GuardrailEvaluator",
    "SessionTimer",
    "default_rules",
    "loss_streak",
    "should_block",
    "ExposureConfig",
    "calculate_risk_exposure",
    "infer_bet_type",
    "calculate_goal_progress",
    "calculate_withdrawal_recommendation",
]
