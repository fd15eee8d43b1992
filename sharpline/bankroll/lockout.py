"""
Lockout store for self-exclusion.

Holds the single LockoutState for a session. Written by manual triggers,
by triggered lockout guardrails, and cleared by explicit override or by
expiry. Reads and writes go through one lock.
"""

import asyncio
import inspect
import math
import threading
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional, Union

import structlog

from sharpline.models.schemas import LockoutState
from sharpline.utils.clock import Clock, SystemClock

logger = structlog.get_logger()

LockoutCallback = Callable[[LockoutState], Union[None, Awaitable[None]]]


class LockoutStore:
    """
    Betting lockout with automatic expiry.

    Features:
    - Manual trigger (re-triggering overwrites reason and unlock time)
    - Manual clear (no-op when already clear)
    - Expired lockouts clear themselves on read
    - Optional callback on every trigger
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        on_lockout: Optional[LockoutCallback] = None,
    ):
        self.clock = clock or SystemClock()
        self.on_lockout = on_lockout
        self.logger = logger.bind(component="lockout")

        self._lock = threading.Lock()
        self._reason = ""
        self._locked_at: Optional[datetime] = None
        self._locked_until: Optional[datetime] = None
        self._tasks: set[asyncio.Task] = set()

    def trigger_lockout(self, reason: str, hours: float) -> LockoutState:
        """Lock betting for ``hours`` from now."""
        if hours <= 0:
            raise ValueError("Lockout duration must be positive")

        with self._lock:
            state = self._lock_locked(reason, hours, self.clock.now())
        self._announce(state, hours)
        return state

    def trigger_if_unlocked(self, reason: str, hours: float) -> bool:
        """Lock only when not already locked. Returns True if it locked."""
        if hours <= 0:
            raise ValueError("Lockout duration must be positive")

        with self._lock:
            now = self.clock.now()
            if self._active(now):
                return False
            state = self._lock_locked(reason, hours, now)
        self._announce(state, hours)
        return True

    def clear_lockout(self) -> None:
        """Manual override. Clearing an unlocked store does nothing."""
        with self._lock:
            was_locked = self._locked_until is not None
            self._clear()
        if was_locked:
            self.logger.info("Lockout manually cleared")

    def state(self) -> LockoutState:
        """Current state; an expired lockout is cleared here."""
        now = self.clock.now()
        with self._lock:
            if self._locked_until is not None and now >= self._locked_until:
                self.logger.info("Lockout expired", reason=self._reason)
                self._clear()
            return self._state_locked(now)

    @property
    def is_locked(self) -> bool:
        return self.state().is_locked

    def get_status(self) -> dict:
        """Get current lockout status."""
        state = self.state()
        return {
            "is_locked": state.is_locked,
            "reason": state.reason,
            "locked_until": state.locked_until.isoformat() if state.locked_until else None,
            "remaining_minutes": state.remaining_minutes,
        }

    def _active(self, now: datetime) -> bool:
        return self._locked_until is not None and now < self._locked_until

    def _clear(self) -> None:
        self._reason = ""
        self._locked_at = None
        self._locked_until = None

    def _state_locked(self, now: datetime) -> LockoutState:
        if not self._active(now):
            return LockoutState()
        remaining = (self._locked_until - now).total_seconds() / 60
        return LockoutState(
            is_locked=True,
            reason=self._reason,
            locked_at=self._locked_at,
            locked_until=self._locked_until,
            remaining_minutes=math.ceil(remaining),
        )

    def _lock_locked(self, reason: str, hours: float, now: datetime) -> LockoutState:
        self._reason = reason
        self._locked_at = now
        self._locked_until = now + timedelta(hours=hours)
        return self._state_locked(now)

    def _announce(self, state: LockoutState, hours: float) -> None:
        self.logger.warning(
            "🔒 BETTING LOCKED",
            reason=state.reason,
            hours=hours,
            locked_until=state.locked_until.isoformat(),
        )
        if self.on_lockout:
            self._fire_callback(state)

    def _fire_callback(self, state: LockoutState) -> None:
        try:
            result = self.on_lockout(state)
            if inspect.isawaitable(result):
                try:
                    loop = asyncio.get_running_loop()
                except RuntimeError:
                    asyncio.run(result)
                else:
                    task = loop.create_task(result)
                    self._tasks.add(task)
                    task.add_done_callback(self._on_callback_done)
        except Exception as e:
            self.logger.error("Lockout callback failed", error=str(e))

    def _on_callback_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.error("Lockout callback failed", error=str(error))
