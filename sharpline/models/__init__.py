"""Sharp-money data models and schemas."""

from sharpline.models.schemas import (
    SharplineError,
    SnapshotRejected,
    OutOfOrderSnapshot,
    LedgerError,
    SignalType,
    Side,
    SignalStrength,
    SharpSide,
    MarketType,
    BetStatus,
    GuardrailType,
    GuardrailAction,
    RiskLevel,
    MarketSnapshot,
    SharpSignal,
    SharpScoreResult,
    LineMove,
    SteamMove,
    BetRecord,
    GuardrailRule,
    GuardrailResult,
    BlockDecision,
    LockoutState,
    ExposureBucket,
    ExposureWarning,
    LargestBet,
    RiskExposure,
    WithdrawalRecommendation,
    GoalProgress,
    american_to_decimal,
)

__all__ = [
    "SharplineError",
    "SnapshotRejected",
    "OutOfOrderSnapshot",
    "LedgerError",
    "SignalType",
    "Side",
    "SignalStrength",
    "SharpSide",
    "MarketType",
    "BetStatus",
    "GuardrailType",
    "GuardrailAction",
    "RiskLevel",
    "MarketSnapshot",
    "SharpSignal",
    "SharpScoreResult",
    "LineMove",
    "SteamMove",
    "BetRecord",
    "GuardrailRule",
    "GuardrailResult",
    "BlockDecision",
    "LockoutState",
    "ExposureBucket",
    "ExposureWarning",
    "LargestBet",
    "RiskExposure",
    "WithdrawalRecommendation",
    "GoalProgress",
    "american_to_decimal",
]
