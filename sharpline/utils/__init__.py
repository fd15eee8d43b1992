"""Utility modules."""

from sharpline.utils.logging import setup_logging
from sharpline.utils.alerts import DiscordAlerter
from sharpline.utils.clock import Clock, ManualClock, SystemClock

__all__ = [
    "setup_logging",
    "DiscordAlerter",
    "Clock",
    "ManualClock",
    "SystemClock",
]
