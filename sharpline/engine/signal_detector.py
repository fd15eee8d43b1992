"""
Sharp Signal Detection Engine.

Evaluates one match's line history and classifies sharp-money patterns:

    steam_move      rapid one-directional line move inside a short window
    reverse_line    line moves against the side the public is betting
    line_freeze     lopsided public action, line refuses to move
    whale_bet       money% well above ticket% on one side
    syndicate_play  the whale gap persists across consecutive snapshots

Detection is deterministic: the same history always yields the same signals
(timestamps come from the snapshots, never from the wall clock).
"""

from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import structlog

from config.settings import SignalSettings
from sharpline.models.schemas import (
    LineMove,
    MarketSnapshot,
    MarketType,
    SharpSignal,
    Side,
    SignalStrength,
    SignalType,
)

logger = structlog.get_logger()


@dataclass
class SignalConfig:
    """Configuration for sharp signal detection."""

    # Steam moves
    steam_window_seconds: float = 300.0
    steam_spread_points: float = 2.0
    steam_total_points: float = 2.0
    steam_moneyline_cents: float = 30.0
    steam_strength_unit: float = 0.5  # one strength step = 0.5x the trigger

    # Reverse line movement
    rlm_public_threshold_pct: float = 60.0
    rlm_min_move_points: float = 0.5

    # Line freeze
    freeze_public_threshold_pct: float = 65.0
    freeze_tolerance_points: float = 0.5
    freeze_min_duration_seconds: float = 1800.0

    # Money vs. tickets
    whale_gap_pct: float = 10.0
    syndicate_min_consecutive: int = 3

    @classmethod
    def from_settings(cls, signals: SignalSettings) -> "SignalConfig":
        return cls(**signals.model_dump())

    def steam_threshold(self, market: MarketType) -> float:
        if market == MarketType.SPREAD:
            return self.steam_spread_points
        if market == MarketType.TOTAL:
            return self.steam_total_points
        return self.steam_moneyline_cents


# =============================================================================
# Steam rule (shared with the continuous monitor)
# =============================================================================

def _moneyline_cents(american: float) -> float:
    """Map American odds onto a continuous scale (-105 -> -5, +105 -> +5)."""
    return american - 100 if american > 0 else american + 100


def _market_value(snapshot: MarketSnapshot, market: MarketType) -> Optional[float]:
    if market == MarketType.SPREAD:
        return snapshot.spread_home
    if market == MarketType.TOTAL:
        return snapshot.total
    if snapshot.moneyline_home is None:
        return None
    return _moneyline_cents(snapshot.moneyline_home)


def _move_side(market: MarketType, movement: float) -> Side:
    """Side the line moved toward (the side getting more expensive)."""
    if market == MarketType.TOTAL:
        return Side.OVER if movement > 0 else Side.UNDER
    # Spread or home moneyline dropping = home priced up
    return Side.HOME if movement < 0 else Side.AWAY


def _best_window(
    points: Sequence[tuple[MarketSnapshot, float]],
    window_seconds: float,
) -> Optional[tuple[int, int]]:
    """
    Largest one-directional move inside any window of ``window_seconds``.

    For every window end, walk back while samples stay inside the window and
    every step keeps the same direction (flat steps allowed).

    Returns:
        (start_index, end_index) of the largest move, or None
    """
    best: Optional[tuple[int, int]] = None
    best_size = 0.0

    for end in range(1, len(points)):
        end_ts = points[end][0].epoch
        direction = 0
        start = end
        while start > 0 and end_ts - points[start - 1][0].epoch <= window_seconds:
            step = points[start][1] - points[start - 1][1]
            if step:
                sign = 1 if step > 0 else -1
                if direction == 0:
                    direction = sign
                elif sign != direction:
                    break
            start -= 1

        size = abs(points[end][1] - points[start][1])
        if size > best_size:
            best, best_size = (start, end), size

    return best


def find_line_moves(
    history: Sequence[MarketSnapshot],
    config: SignalConfig,
    markets: Iterable[MarketType] = (MarketType.SPREAD, MarketType.TOTAL, MarketType.MONEYLINE),
) -> list[LineMove]:
    """
    Apply the steam rule to one sportsbook series.

    Returns at most one move per market: the largest one-directional move
    inside the window that meets the market's trigger.
    """
    moves: list[LineMove] = []
    if len(history) < 2:
        return moves

    for market in markets:
        points = [
            (s, value) for s in history
            if (value := _market_value(s, market)) is not None
        ]
        if len(points) < 2:
            continue

        window = _best_window(points, config.steam_window_seconds)
        if window is None:
            continue

        start, end = window
        start_snap, start_value = points[start]
        end_snap, end_value = points[end]
        movement = end_value - start_value
        threshold = config.steam_threshold(market)
        if abs(movement) < threshold:
            continue

        ratio = abs(movement) / (threshold * config.steam_strength_unit)
        if market == MarketType.MONEYLINE:
            previous, current = start_snap.moneyline_home, end_snap.moneyline_home
        else:
            previous, current = start_value, end_value

        moves.append(LineMove(
            match_id=end_snap.match_id,
            sportsbook=end_snap.sportsbook,
            market_type=market,
            side=_move_side(market, movement),
            previous_value=previous,
            current_value=current,
            started_at=start_snap.timestamp,
            ended_at=end_snap.timestamp,
            strength=SignalStrength.from_ratio(ratio),
            strength_ratio=ratio,
        ))

    return moves


def split_by_sportsbook(history: Iterable[MarketSnapshot]) -> dict[str, list[MarketSnapshot]]:
    """Group a match history into timestamp-ordered per-book series."""
    series: dict[str, list[MarketSnapshot]] = {}
    for snapshot in history:
        series.setdefault(snapshot.sportsbook, []).append(snapshot)
    for book in series:
        series[book].sort(key=lambda s: s.timestamp)
    return series


# =============================================================================
# Detector
# =============================================================================

class SharpSignalDetector:
    """
    Classifies sharp-money signals from a match's line history.

    Each sportsbook series is evaluated on its own. When several books (or
    markets) produce the same signal type on the same axis in one pass, the
    strongest wins, then the largest move, then the newest.
    """

    def __init__(self, config: Optional[SignalConfig] = None):
        self.config = config or SignalConfig()
        self.logger = logger.bind(component="signal_detector")

        self._detected_counts: Counter = Counter()
        self._insufficient_history = 0

    # =========================================================================
    # Core Detection
    # =========================================================================

    def detect(self, history: Sequence[MarketSnapshot]) -> list[SharpSignal]:
        """
        Detect sharp signals for one match.

        Args:
            history: Snapshots for a single match (any books), oldest first

        Returns:
            Signals sorted by type then side; empty for fewer than 2 snapshots
        """
        if len(history) < 2:
            self._insufficient_history += 1
            return []

        signals: list[SharpSignal] = []
        for book, series in sorted(split_by_sportsbook(history).items()):
            if len(series) < 2:
                continue
            signals.extend(self._detect_steam(series))
            signals.extend(self._detect_reverse_line(series))
            signals.extend(self._detect_line_freeze(series))
            signals.extend(self._detect_money_divergence(series))

        active = supersede(signals, strongest_first=True)
        for signal in active:
            self._detected_counts[signal.type.value] += 1
            self.logger.debug("Sharp signal", **signal.to_log())
        return active

    # =========================================================================
    # Rules
    # =========================================================================

    def _detect_steam(self, series: list[MarketSnapshot]) -> list[SharpSignal]:
        signals = []
        for move in find_line_moves(series, self.config):
            unit = "cents" if move.market_type == MarketType.MONEYLINE else "pts"
            signals.append(self._signal(
                series[-1],
                SignalType.STEAM_MOVE,
                move.side,
                move.strength,
                detected_at=move.ended_at,
                magnitude=abs(move.movement),
                description=(
                    f"Steam move: {move.market_type.value} moved "
                    f"{move.movement:+.1f} {unit} toward {move.side.value} "
                    f"in {move.window_seconds / 60:.0f} min"
                ),
            ))
        return signals

    def _detect_reverse_line(self, series: list[MarketSnapshot]) -> list[SharpSignal]:
        lines = [s for s in series if s.spread_home is not None]
        public = [s for s in series if s.public_pct_home is not None]
        if len(lines) < 2 or not public:
            return []

        movement = lines[-1].spread_home - lines[0].spread_home
        latest = public[-1]
        public_home = latest.public_pct_home
        public_away = latest.public_pct_away if latest.public_pct_away is not None else 100 - public_home

        threshold = self.config.rlm_public_threshold_pct
        min_move = self.config.rlm_min_move_points

        # Home spread rising = line moving toward away
        if public_home > threshold and movement >= min_move:
            sharp_side, majority, public_side = Side.AWAY, public_home, Side.HOME
        elif public_away > threshold and movement <= -min_move:
            sharp_side, majority, public_side = Side.HOME, public_away, Side.AWAY
        else:
            return []

        divergence = abs(movement) * (majority - 50) / 10
        strength = SignalStrength.from_ratio(divergence, moderate_at=1.5, strong_at=3.0)
        return [self._signal(
            lines[-1],
            SignalType.REVERSE_LINE,
            sharp_side,
            strength,
            magnitude=divergence,
            description=(
                f"Line moved {movement:+.1f} against {public_side.value} "
                f"despite {majority:.0f}% public action"
            ),
        )]

    def _detect_line_freeze(self, series: list[MarketSnapshot]) -> list[SharpSignal]:
        lines = [s for s in series if s.spread_home is not None]
        if len(lines) < 2:
            return []

        latest = lines[-1]
        public_side = self._public_majority(latest, self.config.freeze_public_threshold_pct)
        if public_side is None:
            return []

        # Anchor on the last sample at or before the start of the period
        cutoff = latest.epoch - self.config.freeze_min_duration_seconds
        anchor = None
        for i, s in enumerate(lines):
            if s.epoch <= cutoff:
                anchor = i
            else:
                break
        if anchor is None:
            return []

        window = lines[anchor:]
        for s in window:
            if s.public_pct_home is not None and \
                    self._public_majority(s, self.config.freeze_public_threshold_pct) != public_side:
                return []

        values = [s.spread_home for s in window]
        if max(values) - min(values) > self.config.freeze_tolerance_points:
            return []

        majority = latest.public_pct_home if public_side == Side.HOME else latest.public_pct_away
        if majority >= 80:
            strength = SignalStrength.STRONG
        elif majority >= 72.5:
            strength = SignalStrength.MODERATE
        else:
            strength = SignalStrength.WEAK

        held_minutes = (latest.epoch - window[0].epoch) / 60
        return [self._signal(
            latest,
            SignalType.LINE_FREEZE,
            public_side.opposite,
            strength,
            magnitude=majority,
            description=(
                f"Line held within {self.config.freeze_tolerance_points:.1f} pts for "
                f"{held_minutes:.0f} min despite {majority:.0f}% on {public_side.value}"
            ),
        )]

    def _detect_money_divergence(self, series: list[MarketSnapshot]) -> list[SharpSignal]:
        gaps = [self._money_gap(s) for s in series]
        if gaps[-1] is None:
            return []

        side, _ = gaps[-1]
        streak: list[float] = []
        for gap in reversed(gaps):
            if gap is None or gap[0] != side:
                break
            streak.append(gap[1])

        latest = series[-1]
        threshold = self.config.whale_gap_pct
        if len(streak) >= self.config.syndicate_min_consecutive:
            avg_gap = sum(streak) / len(streak)
            return [self._signal(
                latest,
                SignalType.SYNDICATE_PLAY,
                side,
                SignalStrength.from_ratio(avg_gap / threshold),
                magnitude=avg_gap,
                description=(
                    f"Money outpacing tickets on {side.value} by {avg_gap:.0f} pts "
                    f"across {len(streak)} consecutive snapshots"
                ),
            )]

        gap = streak[0]
        return [self._signal(
            latest,
            SignalType.WHALE_BET,
            side,
            SignalStrength.from_ratio(gap / threshold),
            magnitude=gap,
            description=f"Money {gap:.0f} pts ahead of tickets on {side.value}",
        )]

    # =========================================================================
    # Helpers
    # =========================================================================

    def _money_gap(self, s: MarketSnapshot) -> Optional[tuple[Side, float]]:
        """Side whose money% leads its ticket% by at least the whale gap."""
        candidates = []
        for side, money, public in (
            (Side.HOME, s.money_pct_home, s.public_pct_home),
            (Side.AWAY, s.money_pct_away, s.public_pct_away),
        ):
            if money is None or public is None:
                continue
            gap = money - public
            if gap >= self.config.whale_gap_pct:
                candidates.append((gap, side))
        if not candidates:
            return None
        gap, side = max(candidates, key=lambda c: (c[0], c[1].value))
        return side, gap

    @staticmethod
    def _public_majority(s: MarketSnapshot, threshold: float) -> Optional[Side]:
        if s.public_pct_home is None:
            return None
        if s.public_pct_home > threshold:
            return Side.HOME
        away = s.public_pct_away if s.public_pct_away is not None else 100 - s.public_pct_home
        if away > threshold:
            return Side.AWAY
        return None

    @staticmethod
    def _signal(
        snapshot: MarketSnapshot,
        signal_type: SignalType,
        side: Side,
        strength: SignalStrength,
        description: str,
        magnitude: float = 0.0,
        detected_at=None,
    ) -> SharpSignal:
        detected_at = detected_at or snapshot.timestamp
        return SharpSignal(
            id=(
                f"{snapshot.match_id}:{signal_type.value}:{side.value}:"
                f"{snapshot.sportsbook}:{int(detected_at.timestamp())}"
            ),
            match_id=snapshot.match_id,
            type=signal_type,
            side=side,
            strength=strength,
            detected_at=detected_at,
            description=description,
            sportsbook=snapshot.sportsbook,
            magnitude=magnitude,
        )

    # =========================================================================
    # Metrics
    # =========================================================================

    def get_metrics(self) -> dict:
        """Get detector metrics."""
        return {
            "detected": dict(self._detected_counts),
            "insufficient_history": self._insufficient_history,
            "steam_window_s": self.config.steam_window_seconds,
        }


_TYPE_ORDER = {t: i for i, t in enumerate(SignalType)}
_SIDE_ORDER = {s: i for i, s in enumerate(Side)}


def signal_sort_key(signal: SharpSignal) -> tuple:
    """Canonical ordering for signals (type, side, time, book)."""
    return (
        _TYPE_ORDER[signal.type],
        _SIDE_ORDER[signal.side],
        signal.detected_at,
        signal.sportsbook or "",
        signal.id,
    )


def supersede(signals: Iterable[SharpSignal], strongest_first: bool = False) -> list[SharpSignal]:
    """
    Keep one signal per (type, axis): spread/moneyline sides and totals are
    separate axes.

    Across detections the newest wins, then strongest, then largest
    magnitude. Within one detection pass (``strongest_first``) the
    strongest wins, then largest magnitude, then newest, so a bigger move
    in any book can never lower the reported strength.
    """
    rank = _rank_strongest if strongest_first else _rank
    winners: dict[tuple[SignalType, bool], SharpSignal] = {}
    for signal in sorted(signals, key=signal_sort_key):
        key = (signal.type, signal.side.is_total)
        current = winners.get(key)
        if current is None or rank(signal) > rank(current):
            winners[key] = signal
    return sorted(winners.values(), key=signal_sort_key)


def _rank(signal: SharpSignal) -> tuple:
    return (signal.detected_at, signal.strength.rank, signal.magnitude)


def _rank_strongest(signal: SharpSignal) -> tuple:
    return (signal.strength.rank, signal.magnitude, signal.detected_at)
