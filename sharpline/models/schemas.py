"""
Sharp-money data models and schemas.

Defines the core data structures for:
- Market snapshots (line + public/money split per sportsbook)
- Sharp signals and the aggregated sharp score
- Steam move alerts
- Bet records, guardrail rules and lockout state
- Exposure and withdrawal results

Inputs that arrive from collaborators (snapshots, bets, rules) are Pydantic
models so malformed payloads are rejected at the edge. Derived results are
plain dataclasses.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# =============================================================================
# Errors
# =============================================================================

class SharplineError(Exception):
    """Base error for the sharp-money engine."""


class SnapshotRejected(SharplineError, ValueError):
    """A market snapshot was refused at ingestion."""


class OutOfOrderSnapshot(SnapshotRejected):
    """Snapshot timestamp is not after the last one for its series."""


class LedgerError(SharplineError, ValueError):
    """Invalid bet ledger operation."""


# =============================================================================
# Enums
# =============================================================================

class SignalType(str, Enum):
    """Sharp signal classification."""
    STEAM_MOVE = "steam_move"
    REVERSE_LINE = "reverse_line"
    LINE_FREEZE = "line_freeze"
    WHALE_BET = "whale_bet"
    SYNDICATE_PLAY = "syndicate_play"


class Side(str, Enum):
    """Side of a market a signal points to."""
    HOME = "home"
    AWAY = "away"
    OVER = "over"
    UNDER = "under"

    @property
    def opposite(self) -> "Side":
        return _OPPOSITE_SIDE[self]

    @property
    def is_total(self) -> bool:
        return self in (Side.OVER, Side.UNDER)


_OPPOSITE_SIDE = {
    Side.HOME: Side.AWAY,
    Side.AWAY: Side.HOME,
    Side.OVER: Side.UNDER,
    Side.UNDER: Side.OVER,
}


class SignalStrength(str, Enum):
    """Signal strength tiers."""
    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"

    @property
    def rank(self) -> int:
        return _STRENGTH_RANK[self]

    @classmethod
    def from_ratio(
        cls,
        ratio: float,
        moderate_at: float = 1.5,
        strong_at: float = 2.5,
    ) -> "SignalStrength":
        """Bucket a magnitude ratio into a strength tier."""
        if ratio >= strong_at:
            return cls.STRONG
        if ratio >= moderate_at:
            return cls.MODERATE
        return cls.WEAK


_STRENGTH_RANK = {
    SignalStrength.WEAK: 0,
    SignalStrength.MODERATE: 1,
    SignalStrength.STRONG: 2,
}


class SharpSide(str, Enum):
    """Aggregated sharp side for a match."""
    HOME = "home"
    AWAY = "away"
    NEUTRAL = "neutral"


class MarketType(str, Enum):
    """Market a line move was observed in."""
    SPREAD = "spread"
    TOTAL = "total"
    MONEYLINE = "moneyline"


class BetStatus(str, Enum):
    """Lifecycle status of a bet."""
    PENDING = "pending"
    WON = "won"
    LOST = "lost"
    PUSH = "push"
    CANCELLED = "cancelled"


class GuardrailType(str, Enum):
    """Responsible-betting rule types."""
    LOSS_STREAK_LOCKOUT = "loss_streak_lockout"
    MAX_BET_LIMIT = "max_bet_limit"
    DAILY_LOSS_LIMIT = "daily_loss_limit"
    SESSION_TIME_LIMIT = "session_time_limit"
    COOL_DOWN_PERIOD = "cool_down_period"


class GuardrailAction(str, Enum):
    """What a triggered guardrail asks the caller to do."""
    WARN = "warn"
    BLOCK = "block"
    LOCKOUT = "lockout"


class RiskLevel(str, Enum):
    """Overall exposure risk classification."""
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# Market data
# =============================================================================

class MarketSnapshot(BaseModel):
    """
    One observation of a match's market at a sportsbook.

    Immutable once recorded. Percentages are 0-100; a missing away/under
    percentage is filled in as the complement of the home one.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    match_id: str = Field(alias="matchId", min_length=1)
    timestamp: datetime
    sportsbook: str = "consensus"

    spread_home: Optional[float] = Field(default=None, alias="spreadHome")
    spread_away: Optional[float] = Field(default=None, alias="spreadAway")
    total: Optional[float] = None
    moneyline_home: Optional[float] = Field(default=None, alias="moneylineHome")
    moneyline_away: Optional[float] = Field(default=None, alias="moneylineAway")

    public_pct_home: Optional[float] = Field(default=None, alias="publicPctHome", ge=0, le=100)
    public_pct_away: Optional[float] = Field(default=None, alias="publicPctAway", ge=0, le=100)
    money_pct_home: Optional[float] = Field(default=None, alias="moneyPctHome", ge=0, le=100)
    money_pct_away: Optional[float] = Field(default=None, alias="moneyPctAway", ge=0, le=100)

    @field_validator("timestamp")
    @classmethod
    def _tz_aware(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @model_validator(mode="before")
    @classmethod
    def _fill_complements(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for home, away in (
            ("public_pct_home", "public_pct_away"),
            ("money_pct_home", "money_pct_away"),
        ):
            home_alias = _camel(home)
            away_alias = _camel(away)
            home_val = data.get(home, data.get(home_alias))
            away_val = data.get(away, data.get(away_alias))
            if home_val is not None and away_val is None:
                data[away] = 100.0 - float(home_val)
            elif away_val is not None and home_val is None:
                data[home] = 100.0 - float(away_val)
        if data.get("spread_away") is None and data.get("spreadAway") is None:
            spread_home = data.get("spread_home", data.get("spreadHome"))
            if spread_home is not None:
                data["spread_away"] = -float(spread_home)
        return data

    @property
    def epoch(self) -> float:
        """Timestamp as POSIX seconds."""
        return self.timestamp.timestamp()


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass(frozen=True)
class SharpSignal:
    """
    A classified sharp-money signal for one match.

    Immutable; a newer signal of the same type supersedes an older one.
    """
    id: str
    match_id: str
    type: SignalType
    side: Side
    strength: SignalStrength
    detected_at: datetime
    description: str
    sportsbook: Optional[str] = None
    magnitude: float = 0.0  # rule-specific size (points, pct gap, ...)

    def to_log(self) -> dict:
        """Convert to loggable dict."""
        return {
            "id": self.id,
            "match_id": self.match_id,
            "type": self.type.value,
            "side": self.side.value,
            "strength": self.strength.value,
            "detected_at": self.detected_at.isoformat(),
            "sportsbook": self.sportsbook,
            "magnitude": round(self.magnitude, 3),
        }


@dataclass(frozen=True)
class SharpScoreResult:
    """Aggregated sharp score for a match (derived, never stored)."""
    match_id: str
    sharp_score: float
    confidence: float
    sharp_side: SharpSide
    has_reverse_line_movement: bool
    signal_types: tuple[SignalType, ...]

    # Informational: money% - public% on the home side of the latest snapshot
    money_flow_skew: float = 0.0
    total_side: Optional[Side] = None


@dataclass
class LineMove:
    """A one-directional line move found inside the steam window."""
    match_id: str
    sportsbook: str
    market_type: MarketType
    side: Side
    previous_value: float
    current_value: float
    started_at: datetime
    ended_at: datetime
    strength: SignalStrength
    strength_ratio: float

    @property
    def movement(self) -> float:
        return self.current_value - self.previous_value

    @property
    def window_seconds(self) -> float:
        return (self.ended_at - self.started_at).total_seconds()

    @property
    def movement_pct(self) -> float:
        base = abs(self.previous_value) or 1.0
        return abs(self.movement) / base * 100


@dataclass
class SteamMove:
    """A steam move alert owned by the monitor."""
    id: str
    match_id: str
    sportsbook: str
    market_type: MarketType
    side: Side
    previous_value: float
    current_value: float
    movement: float
    movement_pct: float
    window_seconds: float
    strength: SignalStrength
    detected_at: datetime
    last_seen_at: datetime
    window_end: datetime
    dismissed: bool = False

    @property
    def dedup_key(self) -> tuple[str, MarketType, Side]:
        return (self.match_id, self.market_type, self.side)

    def to_log(self) -> dict:
        """Convert to loggable dict."""
        return {
            "id": self.id,
            "match_id": self.match_id,
            "sportsbook": self.sportsbook,
            "market": self.market_type.value,
            "side": self.side.value,
            "movement": round(self.movement, 2),
            "window_s": round(self.window_seconds),
            "strength": self.strength.value,
        }


# =============================================================================
# Bettor position
# =============================================================================

class BetRecord(BaseModel):
    """
    A user's bet.

    Created at placement, settled exactly once by the ledger, never deleted.
    Odds are American. League/selection/bet type are optional metadata used
    for exposure breakdowns.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(min_length=1)
    match_id: str = Field(alias="matchId")
    placed_at: datetime = Field(alias="placedAt")
    stake: float = Field(ge=0)
    odds: float = -110.0
    status: BetStatus = BetStatus.PENDING
    settled_at: Optional[datetime] = Field(default=None, alias="settledAt")
    result_profit: Optional[float] = Field(default=None, alias="resultProfit")

    league: Optional[str] = None
    side: Optional[str] = None        # home / away / over / under
    bet_type: Optional[str] = Field(default=None, alias="betType")
    selection: Optional[str] = None
    match_title: Optional[str] = Field(default=None, alias="matchTitle")

    @field_validator("placed_at", "settled_at")
    @classmethod
    def _tz_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v) if v is not None else None

    @property
    def is_settled(self) -> bool:
        return self.status != BetStatus.PENDING

    @property
    def resolved_at(self) -> datetime:
        """Settlement time, falling back to placement time."""
        return self.settled_at or self.placed_at

    @property
    def profit(self) -> float:
        """Realised profit, zero when unknown."""
        if self.result_profit is not None:
            return self.result_profit
        if self.status == BetStatus.WON:
            return self.stake * (american_to_decimal(self.odds) - 1)
        if self.status == BetStatus.LOST:
            return -self.stake
        return 0.0


def american_to_decimal(american: float) -> float:
    """Convert American odds to Decimal."""
    if american > 0:
        return (american / 100) + 1
    elif american < 0:
        return (100 / abs(american)) + 1
    return 1.0


class GuardrailRule(BaseModel):
    """User-editable guardrail configuration. Evaluated, never mutated."""
    model_config = ConfigDict(frozen=True)

    type: GuardrailType
    threshold: float
    action: GuardrailAction = GuardrailAction.WARN
    enabled: bool = True
    lockout_hours: Optional[float] = None


@dataclass
class GuardrailResult:
    """Evaluation of one guardrail rule."""
    id: str
    type: GuardrailType
    enabled: bool
    threshold: float
    action: GuardrailAction
    current_value: float
    is_triggered: bool
    description: str
    lockout_hours: Optional[float] = None


@dataclass
class BlockDecision:
    """Whether a new bet should be blocked."""
    blocked: bool
    reason: str = ""


@dataclass
class LockoutState:
    """Current self-exclusion / lockout state."""
    is_locked: bool = False
    reason: str = ""
    locked_at: Optional[datetime] = None
    locked_until: Optional[datetime] = None
    remaining_minutes: int = 0


@dataclass
class ExposureBucket:
    """Aggregated pending stake for one group."""
    amount: float = 0.0
    count: int = 0
    percentage: float = 0.0  # share of total pending stake


@dataclass
class LargestBet:
    """The single largest pending bet."""
    bet_id: str
    match_title: str
    amount: float
    percentage: float  # of bankroll


@dataclass
class ExposureWarning:
    """An exposure limit that has been exceeded."""
    type: str
    severity: str  # warning / danger
    message: str
    value: float
    threshold: float


@dataclass
class RiskExposure:
    """Current risk exposure from pending bets (derived)."""
    total_exposure: float
    open_bets_count: int
    exposure_pct: float
    by_league: dict[str, ExposureBucket] = field(default_factory=dict)
    by_outcome: dict[str, ExposureBucket] = field(default_factory=dict)
    by_bet_type: dict[str, ExposureBucket] = field(default_factory=dict)
    largest_single_bet: Optional[LargestBet] = None
    warnings: list[ExposureWarning] = field(default_factory=list)
    risk_level: RiskLevel = RiskLevel.LOW


@dataclass
class WithdrawalRecommendation:
    """Sustainable withdrawal tiers."""
    recommended_amount: float
    safe_amount: float
    aggressive_amount: float
    sustainability_score: float
    protected_bankroll: float
    growth_reserve: float
    can_meet_target: bool
    reasoning: str


@dataclass
class GoalProgress:
    """Progress towards a profit goal over a period."""
    current_progress: float
    progress_pct: float
    remaining_amount: float
    days_remaining: int
    projected_days_to_goal: int
    is_on_track: bool
    daily_target_required: float
    recommendation: str
