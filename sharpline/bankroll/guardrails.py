"""
Psychological guardrails for responsible betting.

Each rule type is evaluated independently against the part of the ledger
it cares about:
- loss_streak_lockout: consecutive most recent losses by settlement time
- max_bet_limit: proposed stake as % of bankroll
- daily_loss_limit: losses settled since local midnight
- session_time_limit: minutes since the session started
- cool_down_period: minutes left of the cool-down after the last loss

A rule triggers when its current value meets or exceeds its threshold
(cool-down: while any time remains). Triggered lockout rules write to the
lockout store; block and warn are advisory to the caller.
"""

import math
from datetime import datetime, timedelta, tzinfo
from typing import Iterable, Optional, Sequence

import structlog

from config.settings import GuardrailSettings
from sharpline.bankroll.lockout import LockoutStore
from sharpline.models.schemas import (
    BetRecord,
    BetStatus,
    BlockDecision,
    GuardrailAction,
    GuardrailResult,
    GuardrailRule,
    GuardrailType,
    LockoutState,
)
from sharpline.utils.clock import Clock, SystemClock, local_midnight, resolve_timezone

logger = structlog.get_logger()


class SessionTimer:
    """Betting session start, recorded once per logical session."""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()
        self._started_at: Optional[datetime] = None

    def start(self) -> datetime:
        """Start the session if not already started."""
        if self._started_at is None:
            self._started_at = self.clock.now()
        return self._started_at

    @property
    def started_at(self) -> Optional[datetime]:
        return self._started_at

    def elapsed_minutes(self) -> int:
        if self._started_at is None:
            return 0
        return int((self.clock.now() - self._started_at).total_seconds() // 60)

    def end(self) -> None:
        self._started_at = None


def default_rules(guardrails: Optional[GuardrailSettings] = None) -> list[GuardrailRule]:
    """Default rule set from settings."""
    g = guardrails or GuardrailSettings()
    return [
        GuardrailRule(
            type=GuardrailType.LOSS_STREAK_LOCKOUT,
            threshold=g.max_loss_streak,
            action=GuardrailAction.LOCKOUT,
            enabled=g.enable_auto_lockout,
            lockout_hours=g.lockout_hours,
        ),
        GuardrailRule(
            type=GuardrailType.MAX_BET_LIMIT,
            threshold=g.max_single_bet_pct,
            action=GuardrailAction.BLOCK,
            enabled=g.enable_bet_size_warnings,
        ),
        GuardrailRule(
            type=GuardrailType.DAILY_LOSS_LIMIT,
            threshold=g.daily_loss_limit,
            action=GuardrailAction.BLOCK,
        ),
        GuardrailRule(
            type=GuardrailType.SESSION_TIME_LIMIT,
            threshold=g.session_time_limit_minutes,
            action=GuardrailAction.WARN,
        ),
        GuardrailRule(
            type=GuardrailType.COOL_DOWN_PERIOD,
            threshold=g.cool_down_after_loss_minutes,
            action=GuardrailAction.BLOCK,
            enabled=g.cool_down_after_loss_minutes > 0,
        ),
    ]


def loss_streak(bets: Iterable[BetRecord]) -> int:
    """Consecutive most recent losses; a win or push ends the streak."""
    settled = sorted(
        (b for b in bets if b.status in (BetStatus.WON, BetStatus.LOST, BetStatus.PUSH)),
        key=lambda b: (b.resolved_at, b.id),
        reverse=True,
    )
    streak = 0
    for bet in settled:
        if bet.status != BetStatus.LOST:
            break
        streak += 1
    return streak


def _describe(rule: GuardrailRule) -> str:
    t = rule.threshold
    return {
        GuardrailType.LOSS_STREAK_LOCKOUT: f"Lock betting after {t:g} consecutive losses",
        GuardrailType.MAX_BET_LIMIT: f"Never allow a single bet > {t:g}% of bankroll",
        GuardrailType.DAILY_LOSS_LIMIT: f"Stop betting after losing ${t:g} in a day",
        GuardrailType.SESSION_TIME_LIMIT: f"Take a break after {t / 60:g} hours of betting",
        GuardrailType.COOL_DOWN_PERIOD: f"Wait {t:g} minutes after a loss",
    }[rule.type]


class GuardrailEvaluator:
    """Evaluates guardrail rules against a bet ledger snapshot."""

    def __init__(
        self,
        rules: Optional[Sequence[GuardrailRule]] = None,
        lockout_store: Optional[LockoutStore] = None,
        session: Optional[SessionTimer] = None,
        clock: Optional[Clock] = None,
        tz: Optional[tzinfo] = None,
        default_lockout_hours: float = 24.0,
    ):
        self.clock = clock or SystemClock()
        self.rules = list(rules) if rules is not None else default_rules()
        self.lockout_store = lockout_store or LockoutStore(clock=self.clock)
        self.session = session or SessionTimer(clock=self.clock)
        self.tz = tz
        self.default_lockout_hours = default_lockout_hours
        self.logger = logger.bind(component="guardrails")

    @classmethod
    def from_settings(
        cls,
        guardrails: GuardrailSettings,
        lockout_store: Optional[LockoutStore] = None,
        clock: Optional[Clock] = None,
    ) -> "GuardrailEvaluator":
        """Default rules, lockout length and day boundary from settings."""
        return cls(
            rules=default_rules(guardrails),
            lockout_store=lockout_store,
            clock=clock,
            tz=resolve_timezone(guardrails.timezone),
            default_lockout_hours=guardrails.lockout_hours,
        )

    def evaluate(
        self,
        bets: Iterable[BetRecord],
        bankroll: float,
        proposed_stake: Optional[float] = None,
        rules: Optional[Sequence[GuardrailRule]] = None,
    ) -> list[GuardrailResult]:
        """
        Evaluate every rule.

        Args:
            bets: All of the user's bets
            bankroll: Current bankroll
            proposed_stake: Stake of the bet about to be placed, if any
            rules: Override the evaluator's rule set

        Returns:
            One result per rule, in rule order
        """
        bets = list(bets)
        now = self.clock.now()
        results = []

        for rule in (rules if rules is not None else self.rules):
            current = self._current_value(rule, bets, bankroll, proposed_stake, now)
            if rule.type == GuardrailType.COOL_DOWN_PERIOD:
                triggered = current > 0
            else:
                triggered = current >= rule.threshold

            result = GuardrailResult(
                id=rule.type.value,
                type=rule.type,
                enabled=rule.enabled,
                threshold=rule.threshold,
                action=rule.action,
                current_value=current,
                is_triggered=triggered,
                description=_describe(rule),
                lockout_hours=rule.lockout_hours,
            )
            results.append(result)

            if not (rule.enabled and triggered):
                continue

            self.logger.info(
                "Guardrail triggered",
                rule=rule.type.value,
                action=rule.action.value,
                value=round(current, 2),
                threshold=rule.threshold,
            )
            if rule.action == GuardrailAction.LOCKOUT:
                hours = rule.lockout_hours or self.default_lockout_hours
                self.lockout_store.trigger_if_unlocked(result.description, hours)

        return results

    def _current_value(
        self,
        rule: GuardrailRule,
        bets: list[BetRecord],
        bankroll: float,
        proposed_stake: Optional[float],
        now: datetime,
    ) -> float:
        if rule.type == GuardrailType.LOSS_STREAK_LOCKOUT:
            return float(loss_streak(bets))

        if rule.type == GuardrailType.MAX_BET_LIMIT:
            if not proposed_stake or bankroll <= 0:
                return 0.0
            return proposed_stake / bankroll * 100

        if rule.type == GuardrailType.DAILY_LOSS_LIMIT:
            midnight = local_midnight(now, self.tz) if self.tz else local_midnight(now, now.tzinfo)
            return sum(
                max(0.0, -b.profit) for b in bets
                if b.status == BetStatus.LOST and b.resolved_at >= midnight
            )

        if rule.type == GuardrailType.SESSION_TIME_LIMIT:
            return float(self.session.elapsed_minutes())

        if rule.type == GuardrailType.COOL_DOWN_PERIOD:
            losses = [b.resolved_at for b in bets if b.status == BetStatus.LOST]
            if not losses or rule.threshold <= 0:
                return 0.0
            ends = max(losses) + timedelta(minutes=rule.threshold)
            remaining = (ends - now).total_seconds() / 60
            return float(math.ceil(remaining)) if remaining > 0 else 0.0

        return 0.0


def should_block(
    results: Iterable[GuardrailResult],
    lockout: Optional[LockoutState] = None,
) -> BlockDecision:
    """Whether a new bet should be refused, and why."""
    reasons = []
    if lockout is not None and lockout.is_locked:
        reasons.append(f"Betting locked: {lockout.reason}" if lockout.reason else "Betting locked")

    reasons.extend(
        r.description for r in results
        if r.enabled and r.is_triggered and r.action in (GuardrailAction.BLOCK, GuardrailAction.LOCKOUT)
    )

    if not reasons:
        return BlockDecision(blocked=False)
    return BlockDecision(blocked=True, reason="; ".join(reasons))
