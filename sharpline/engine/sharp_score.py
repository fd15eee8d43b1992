"""
Sharp Score Aggregator.

Combines a match's active signals into a 0-100 sharp score, a confidence
and a recommended side.

Scoring:
- Base 50
- Each signal contributes weight x strength multiplier, signed toward its
  side: home/away on the side axis, over/under on the totals axis
- Score = base + |net side| + |net totals|, clamped to [0, 100]
- Confidence = min(100, 40 + 10 x distinct signal types)

Pure: identical inputs always give identical results. Signals are put in a
canonical order before summing so input order cannot change the float sum.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

import structlog

from config.settings import ScoringSettings
from sharpline.engine.signal_detector import signal_sort_key, supersede
from sharpline.models.schemas import (
    MarketSnapshot,
    SharpScoreResult,
    SharpSide,
    SharpSignal,
    Side,
    SignalStrength,
    SignalType,
)

logger = structlog.get_logger()


@dataclass
class ScoringWeights:
    """Weights for sharp score components."""

    base_score: float = 50.0

    # Per signal type
    steam_move_weight: float = 15.0
    reverse_line_weight: float = 12.0
    whale_bet_weight: float = 10.0
    syndicate_play_weight: float = 10.0
    line_freeze_weight: float = 8.0

    # Per strength
    weak_multiplier: float = 0.5
    moderate_multiplier: float = 1.0
    strong_multiplier: float = 1.5

    # Confidence
    confidence_base: float = 40.0
    confidence_per_type: float = 10.0

    @classmethod
    def from_settings(cls, scoring: ScoringSettings) -> "ScoringWeights":
        return cls(**scoring.model_dump())

    def type_weight(self, signal_type: SignalType) -> float:
        return {
            SignalType.STEAM_MOVE: self.steam_move_weight,
            SignalType.REVERSE_LINE: self.reverse_line_weight,
            SignalType.WHALE_BET: self.whale_bet_weight,
            SignalType.SYNDICATE_PLAY: self.syndicate_play_weight,
            SignalType.LINE_FREEZE: self.line_freeze_weight,
        }[signal_type]

    def strength_multiplier(self, strength: SignalStrength) -> float:
        return {
            SignalStrength.WEAK: self.weak_multiplier,
            SignalStrength.MODERATE: self.moderate_multiplier,
            SignalStrength.STRONG: self.strong_multiplier,
        }[strength]


class SharpScoreAggregator:
    """Scores a match from its active sharp signals."""

    def __init__(self, weights: Optional[ScoringWeights] = None):
        self.weights = weights or ScoringWeights()
        self.logger = logger.bind(component="sharp_score")

    def contribution(self, signal: SharpSignal) -> float:
        """Unsigned weighted delta for one signal."""
        return self.weights.type_weight(signal.type) * self.weights.strength_multiplier(signal.strength)

    def score(
        self,
        signals: Iterable[SharpSignal],
        snapshot: MarketSnapshot,
    ) -> SharpScoreResult:
        """
        Calculate the sharp score for the snapshot's match.

        Args:
            signals: Signals for the match; other matches' signals are ignored,
                     older signals of the same type are superseded
            snapshot: Latest market snapshot for the match

        Returns:
            SharpScoreResult
        """
        active = supersede(s for s in signals if s.match_id == snapshot.match_id)
        active.sort(key=signal_sort_key)

        net_side = 0.0    # + home / - away
        net_total = 0.0   # + over / - under
        for signal in active:
            delta = self.contribution(signal)
            if signal.side == Side.HOME:
                net_side += delta
            elif signal.side == Side.AWAY:
                net_side -= delta
            elif signal.side == Side.OVER:
                net_total += delta
            else:
                net_total -= delta

        raw = self.weights.base_score + abs(net_side) + abs(net_total)
        sharp_score = max(0.0, min(100.0, raw))

        if net_side > 0:
            sharp_side = SharpSide.HOME
        elif net_side < 0:
            sharp_side = SharpSide.AWAY
        else:
            sharp_side = SharpSide.NEUTRAL

        if net_total > 0:
            total_side = Side.OVER
        elif net_total < 0:
            total_side = Side.UNDER
        else:
            total_side = None

        signal_types = tuple(t for t in SignalType if any(s.type == t for s in active))
        confidence = min(
            100.0,
            self.weights.confidence_base + self.weights.confidence_per_type * len(signal_types),
        )

        skew = 0.0
        if snapshot.money_pct_home is not None and snapshot.public_pct_home is not None:
            skew = snapshot.money_pct_home - snapshot.public_pct_home

        result = SharpScoreResult(
            match_id=snapshot.match_id,
            sharp_score=round(sharp_score, 2),
            confidence=confidence,
            sharp_side=sharp_side,
            has_reverse_line_movement=SignalType.REVERSE_LINE in signal_types,
            signal_types=signal_types,
            money_flow_skew=skew,
            total_side=total_side,
        )

        self.logger.debug(
            "Scored match",
            match_id=snapshot.match_id,
            score=result.sharp_score,
            side=sharp_side.value,
            confidence=confidence,
            signals=len(active),
        )
        return result
