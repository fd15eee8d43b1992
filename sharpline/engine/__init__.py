"""Sharp signal detection engines."""

from sharpline.engine.line_history import LineHistoryStore
from sharpline.engine.signal_detector import SharpSignalDetector, SignalConfig, find_line_moves
from sharpline.engine.sharp_score import SharpScoreAggregator, ScoringWeights
from sharpline.engine.sharp_money import SharpMoneyEngine, SharpMoneyGame
from sharpline.engine.steam_monitor import SteamMoveMonitor, MonitorConfig

__all__ = [
    "LineHistoryStore",
    "SharpSignalDetector",
    "SignalConfig",
    "find_line_moves",
    "SharpScoreAggregator",
    "ScoringWeights",
    "SharpMoneyEngine",
    "SharpMoneyGame",
    "SteamMoveMonitor",
    "MonitorConfig",
]
