"""
Risk exposure from pending bets.

Pure calculation: groups pending stakes by league, outcome side and bet
type, flags the largest single bet and classifies overall risk by total
exposure relative to bankroll.
"""

from dataclasses import dataclass
from typing import Callable, Iterable, Optional

import structlog

from config.settings import BankrollSettings
from sharpline.models.schemas import (
    BetRecord,
    BetStatus,
    ExposureBucket,
    ExposureWarning,
    LargestBet,
    RiskExposure,
    RiskLevel,
)

logger = structlog.get_logger()

UNKNOWN = "unknown"


@dataclass
class ExposureConfig:
    """Bankroll and exposure limits (percent of bankroll)."""
    bankroll: float = 1000.0
    max_league_exposure_pct: float = 30.0
    max_single_bet_pct: float = 5.0
    max_total_exposure_pct: float = 25.0

    @classmethod
    def from_settings(cls, bankroll: BankrollSettings) -> "ExposureConfig":
        return cls(
            bankroll=bankroll.bankroll,
            max_league_exposure_pct=bankroll.max_league_exposure_pct,
            max_single_bet_pct=bankroll.max_single_bet_pct,
            max_total_exposure_pct=bankroll.max_total_exposure_pct,
        )


def infer_bet_type(bet: BetRecord) -> str:
    """Explicit bet type, else guessed from the selection text."""
    if bet.bet_type:
        return bet.bet_type.lower()
    if not bet.selection:
        return UNKNOWN
    selection = bet.selection.lower()
    if "spread" in selection:
        return "spread"
    if "over" in selection or "under" in selection:
        return "total"
    return "moneyline"


def classify_risk(exposure_pct: float) -> RiskLevel:
    if exposure_pct < 10:
        return RiskLevel.LOW
    if exposure_pct < 20:
        return RiskLevel.MODERATE
    if exposure_pct < 35:
        return RiskLevel.HIGH
    return RiskLevel.CRITICAL


def _pct(amount: float, of: float) -> float:
    return amount / of * 100 if of > 0 else 0.0


def _group(bets: list[BetRecord], key: Callable[[BetRecord], str], total: float) -> dict[str, ExposureBucket]:
    groups: dict[str, ExposureBucket] = {}
    for bet in bets:
        bucket = groups.setdefault(key(bet), ExposureBucket())
        bucket.amount += bet.stake
        bucket.count += 1
    for bucket in groups.values():
        bucket.percentage = _pct(bucket.amount, total)
    return groups


def _severity(value: float, limit: float, danger_factor: float) -> str:
    return "danger" if value > limit * danger_factor else "warning"


def calculate_risk_exposure(
    bets: Iterable[BetRecord],
    config: Optional[ExposureConfig] = None,
) -> RiskExposure:
    """
    Calculate current risk exposure.

    Only pending bets count. Group percentages are shares of the total
    pending stake; largest bet, warnings and risk level are relative to
    the bankroll.
    """
    cfg = config or ExposureConfig()
    pending = [b for b in bets if b.status == BetStatus.PENDING]

    total = sum(b.stake for b in pending)
    exposure_pct = _pct(total, cfg.bankroll)
    if cfg.bankroll <= 0 and total > 0:
        exposure_pct = 100.0

    by_league = _group(pending, lambda b: b.league or UNKNOWN, total)
    by_outcome = _group(pending, lambda b: (b.side or UNKNOWN).lower(), total)
    by_bet_type = _group(pending, infer_bet_type, total)

    warnings: list[ExposureWarning] = []

    for league, bucket in by_league.items():
        league_pct = _pct(bucket.amount, cfg.bankroll)
        if league_pct > cfg.max_league_exposure_pct:
            warnings.append(ExposureWarning(
                type="over_exposure_league",
                severity=_severity(league_pct, cfg.max_league_exposure_pct, 1.5),
                message=f"{league} exposure is {league_pct:.1f}% of bankroll",
                value=league_pct,
                threshold=cfg.max_league_exposure_pct,
            ))

    largest = None
    if pending:
        # First of equal stakes wins
        top = max(pending, key=lambda b: b.stake)
        largest = LargestBet(
            bet_id=top.id,
            match_title=top.match_title or top.match_id,
            amount=top.stake,
            percentage=_pct(top.stake, cfg.bankroll),
        )
        if largest.percentage > cfg.max_single_bet_pct:
            warnings.append(ExposureWarning(
                type="single_bet_too_large",
                severity=_severity(largest.percentage, cfg.max_single_bet_pct, 2.0),
                message=f"Largest bet is {largest.percentage:.1f}% of bankroll",
                value=largest.percentage,
                threshold=cfg.max_single_bet_pct,
            ))

    if exposure_pct > cfg.max_total_exposure_pct:
        warnings.append(ExposureWarning(
            type="total_exposure_high",
            severity=_severity(exposure_pct, cfg.max_total_exposure_pct, 1.5),
            message=f"Total exposure is {exposure_pct:.1f}% of bankroll",
            value=exposure_pct,
            threshold=cfg.max_total_exposure_pct,
        ))

    exposure = RiskExposure(
        total_exposure=total,
        open_bets_count=len(pending),
        exposure_pct=exposure_pct,
        by_league=by_league,
        by_outcome=by_outcome,
        by_bet_type=by_bet_type,
        largest_single_bet=largest,
        warnings=warnings,
        risk_level=classify_risk(exposure_pct),
    )

    logger.debug(
        "Risk exposure calculated",
        total=total,
        exposure_pct=round(exposure_pct, 1),
        risk_level=exposure.risk_level.value,
        warnings=len(warnings),
    )
    return exposure
