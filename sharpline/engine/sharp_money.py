"""
Synchronous sharp-money evaluation API.

Ties the line history store, the detector and the aggregator together:
ingest snapshots, then ask for a match's signals or score, or scan every
tracked match for sharp action.
"""

from dataclasses import dataclass
from typing import Any, Optional, Union

import structlog

from sharpline.engine.line_history import LineHistoryStore
from sharpline.engine.sharp_score import SharpScoreAggregator
from sharpline.engine.signal_detector import SharpSignalDetector
from sharpline.models.schemas import (
    MarketSnapshot,
    SharpScoreResult,
    SharpSignal,
    SignalType,
)

logger = structlog.get_logger()

STRONG_SCORE = 60.0


@dataclass
class SharpMoneyGame:
    """A match with sharp action."""
    match_id: str
    result: SharpScoreResult
    signals: list[SharpSignal]

    @property
    def sharp_score(self) -> float:
        return self.result.sharp_score


class SharpMoneyEngine:
    """On-demand sharp signal evaluation over a line history store."""

    def __init__(
        self,
        store: Optional[LineHistoryStore] = None,
        detector: Optional[SharpSignalDetector] = None,
        aggregator: Optional[SharpScoreAggregator] = None,
    ):
        self.store = store or LineHistoryStore()
        self.detector = detector or SharpSignalDetector()
        self.aggregator = aggregator or SharpScoreAggregator()
        self.logger = logger.bind(component="sharp_money")

    def ingest(self, snapshot: Union[MarketSnapshot, dict[str, Any]]) -> MarketSnapshot:
        """Record a snapshot (rejects malformed / out-of-order data)."""
        return self.store.append(snapshot)

    def signals(self, match_id: str) -> list[SharpSignal]:
        """Current signals for a match."""
        return self.detector.detect(self.store.history(match_id))

    def score(self, match_id: str) -> Optional[SharpScoreResult]:
        """Sharp score for a match, None if it has never been seen."""
        latest = self.store.latest(match_id)
        if latest is None:
            return None
        return self.aggregator.score(self.signals(match_id), latest)

    def scan(self, min_sharp_score: float = 0.0) -> list[SharpMoneyGame]:
        """
        Score every tracked match.

        Only matches with at least one signal and a score of at least
        ``min_sharp_score`` are returned, highest score first.
        """
        games = []
        for match_id in self.store.match_ids():
            signals = self.signals(match_id)
            if not signals:
                continue
            result = self.aggregator.score(signals, self.store.latest(match_id))
            if result.sharp_score < min_sharp_score:
                continue
            games.append(SharpMoneyGame(match_id=match_id, result=result, signals=signals))

        games.sort(key=lambda g: (-g.sharp_score, g.match_id))
        return games

    @staticmethod
    def summarize(games: list[SharpMoneyGame]) -> dict:
        """Summary statistics for a scan."""
        total = len(games)
        return {
            "total": total,
            "with_rlm": sum(1 for g in games if g.result.has_reverse_line_movement),
            "steam_moves": sum(1 for g in games if SignalType.STEAM_MOVE in g.result.signal_types),
            "strong_signals": sum(1 for g in games if g.sharp_score >= STRONG_SCORE),
            "avg_confidence": round(sum(g.result.confidence for g in games) / total) if total else 0,
        }
