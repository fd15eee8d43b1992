"""
Injectable clocks.

Stateful components (lockout store, session timer, steam monitor) read the
time through a clock so tests can drive it explicitly.
"""

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional, Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    """Anything that can tell the current time."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock, timezone-aware UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """A clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        if self._now.tzinfo is None:
            self._now = self._now.replace(tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float = 0.0, **kwargs) -> datetime:
        """Move forward by seconds (or any timedelta kwargs)."""
        self._now += timedelta(seconds=seconds, **kwargs)
        return self._now

    def set(self, when: datetime) -> None:
        self._now = when


def local_midnight(now: datetime, tz: tzinfo) -> datetime:
    """Start of the local day containing ``now``."""
    local = now.astimezone(tz)
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def resolve_timezone(name: str) -> tzinfo:
    """Look up a timezone by name, UTC for empty/"UTC"."""
    if not name or name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)
