"""
Steam Move Monitor.

Always-on loop that re-runs the steam rule against the tail of the line
history at a fixed interval and keeps a deduplicated alert list:
- One live alert per (match, market, side) inside the steam window;
  repeat detections update it in place
- Alerts never expire on their own; callers dismiss them
- A failed fetch leaves every existing alert untouched and is retried on
  the next tick
- A slow poll is never overlapped: the next tick is skipped, not queued
"""

import asyncio
import inspect
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional, Union

import structlog

from config.settings import MonitorSettings
from sharpline.engine.line_history import LineHistoryStore
from sharpline.engine.signal_detector import SignalConfig, find_line_moves, split_by_sportsbook
from sharpline.feeds.base import SnapshotSource
from sharpline.models.schemas import (
    LineMove,
    MarketSnapshot,
    MarketType,
    SignalStrength,
    SnapshotRejected,
    SteamMove,
)
from sharpline.utils.clock import Clock, SystemClock

logger = structlog.get_logger()

AlertCallback = Callable[[SteamMove], Union[None, Awaitable[None]]]


@dataclass
class MonitorConfig:
    """Steam monitor scheduling."""
    poll_interval_seconds: float = 30.0
    tail_horizon_multiplier: float = 2.0

    @classmethod
    def from_settings(cls, monitor: MonitorSettings) -> "MonitorConfig":
        return cls(
            poll_interval_seconds=monitor.poll_interval_seconds,
            tail_horizon_multiplier=monitor.tail_horizon_multiplier,
        )


class SteamMoveMonitor:
    """
    Continuous steam move detector for one set of matches.

    Owns its alert set and the poll schedule. Alert queries and mutations
    may come from another thread than the poll writer; all of them go
    through a single lock.
    """

    def __init__(
        self,
        source: SnapshotSource,
        store: Optional[LineHistoryStore] = None,
        signal_config: Optional[SignalConfig] = None,
        config: Optional[MonitorConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.source = source
        self.store = store or LineHistoryStore()
        self.signal_config = signal_config or SignalConfig()
        self.config = config or MonitorConfig()
        self.clock = clock or SystemClock()
        self.logger = logger.bind(component="steam_monitor")

        self._alerts: dict[str, SteamMove] = {}
        self._lock = threading.Lock()
        self._subscribers: list[AlertCallback] = []

        # Newest snapshot timestamp ingested, per (match, sportsbook) series
        self._cursors: dict[tuple[str, str], datetime] = {}

        self._stop_event = asyncio.Event()
        self._poll_task: Optional[asyncio.Task] = None
        self._polling = False
        self._running = False

        # Stats
        self._polls = 0
        self._polls_skipped = 0
        self._failed_fetches = 0
        self._rejected_snapshots = 0
        self._replayed_snapshots = 0
        self._alerts_created = 0
        self._alerts_updated = 0

    # =========================================================================
    # Loop
    # =========================================================================

    async def run(self) -> None:
        """Poll at a fixed interval until stop() is called."""
        self._running = True
        self._stop_event.clear()
        self.logger.info(
            "Steam monitor started",
            interval=self.config.poll_interval_seconds,
            window=self.signal_config.steam_window_seconds,
        )

        try:
            while not self._stop_event.is_set():
                if self._poll_task is None or self._poll_task.done():
                    self._poll_task = asyncio.create_task(self._guarded_poll())
                else:
                    self._polls_skipped += 1
                    self.logger.debug("Previous poll still running, skipping tick")

                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(),
                        timeout=self.config.poll_interval_seconds,
                    )
                except asyncio.TimeoutError:
                    pass

            # Let the in-flight poll finish, schedule nothing after it
            if self._poll_task is not None and not self._poll_task.done():
                await self._poll_task
        finally:
            self._running = False
            self.logger.info("Steam monitor stopped", **self.get_metrics())

    def stop(self) -> None:
        """Request a clean stop."""
        self._stop_event.set()

    @property
    def is_running(self) -> bool:
        return self._running

    async def _guarded_poll(self) -> None:
        try:
            await self.poll_once()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.error("Steam poll failed", error=str(e))

    async def poll_once(self) -> list[SteamMove]:
        """
        Run one poll cycle.

        Returns:
            Alerts created by this cycle (updates to existing alerts are not
            included). Empty when another poll is already in flight.
        """
        if self._polling:
            self._polls_skipped += 1
            return []

        self._polling = True
        try:
            self._polls += 1
            try:
                match_ids = await self.source.list_matches()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._failed_fetches += 1
                self.logger.warning("Match listing failed, keeping alerts", source=self.source.name, error=str(e))
                return []

            results = await asyncio.gather(
                *(self._fetch(match_id) for match_id in match_ids),
                return_exceptions=True,
            )

            created: list[SteamMove] = []
            for match_id, result in zip(match_ids, results):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                if isinstance(result, Exception):
                    self._failed_fetches += 1
                    self.logger.warning(
                        "Snapshot fetch failed, keeping alerts",
                        match_id=match_id,
                        source=self.source.name,
                        error=str(result),
                    )
                    continue

                if self._ingest(match_id, result):
                    created.extend(self._evaluate(match_id))

            await self._notify(created)
            return [replace(a) for a in created]
        finally:
            self._polling = False

    async def _fetch(self, match_id: str) -> list[MarketSnapshot]:
        # No single timestamp covers every sportsbook (a book can lag or
        # appear late), so replays are dropped per series in _ingest
        return await self.source.fetch(match_id)

    def _ingest(self, match_id: str, snapshots: list[MarketSnapshot]) -> int:
        accepted = 0
        for snapshot in snapshots:
            key = (match_id, snapshot.sportsbook)
            cursor = self._cursors.get(key)
            if cursor is not None and snapshot.timestamp <= cursor:
                self._replayed_snapshots += 1
                continue
            try:
                self.store.append(snapshot)
            except SnapshotRejected:
                self._rejected_snapshots += 1
                continue
            self._cursors[key] = snapshot.timestamp
            accepted += 1
        return accepted

    def _evaluate(self, match_id: str) -> list[SteamMove]:
        horizon = self.signal_config.steam_window_seconds * self.config.tail_horizon_multiplier
        since = self.clock.now() - timedelta(seconds=horizon)
        tail = self.store.history(match_id, since=since)

        created = []
        for series in split_by_sportsbook(tail).values():
            for move in find_line_moves(series, self.signal_config):
                alert = self._merge(move)
                if alert is not None:
                    created.append(alert)
        return created

    # =========================================================================
    # Alert set
    # =========================================================================

    def _merge(self, move: LineMove) -> Optional[SteamMove]:
        """Fold a raw detection into the alert set; returns the alert if new."""
        window = timedelta(seconds=self.signal_config.steam_window_seconds)
        key = (move.match_id, move.market_type, move.side)

        with self._lock:
            for alert in self._alerts.values():
                if alert.dedup_key != key:
                    continue
                if alert.dismissed:
                    if move.ended_at <= alert.window_end:
                        return None
                    continue
                if abs(move.ended_at - alert.last_seen_at) <= window:
                    self._update(alert, move)
                    return None

            alert_id = f"{move.match_id}-{move.market_type.value}-{move.side.value}-{int(move.started_at.timestamp())}"
            if alert_id in self._alerts:
                alert_id = f"{alert_id}-{int(move.ended_at.timestamp())}"

            alert = SteamMove(
                id=alert_id,
                match_id=move.match_id,
                sportsbook=move.sportsbook,
                market_type=move.market_type,
                side=move.side,
                previous_value=move.previous_value,
                current_value=move.current_value,
                movement=move.movement,
                movement_pct=move.movement_pct,
                window_seconds=move.window_seconds,
                strength=move.strength,
                detected_at=move.ended_at,
                last_seen_at=move.ended_at,
                window_end=move.ended_at,
            )
            self._alerts[alert_id] = alert
            self._alerts_created += 1

        self.logger.info("🔥 Steam move detected", **alert.to_log())
        return alert

    def _update(self, alert: SteamMove, move: LineMove) -> None:
        # Caller holds the lock
        changed = alert.strength != move.strength or alert.movement != move.movement
        alert.sportsbook = move.sportsbook
        alert.previous_value = move.previous_value
        alert.current_value = move.current_value
        alert.movement = move.movement
        alert.movement_pct = move.movement_pct
        alert.window_seconds = move.window_seconds
        alert.strength = move.strength
        alert.last_seen_at = max(alert.last_seen_at, move.ended_at)
        alert.window_end = max(alert.window_end, move.ended_at)
        self._alerts_updated += 1
        if changed:
            self.logger.info("Steam move updated", **alert.to_log())

    def alerts(self) -> list[SteamMove]:
        """Visible (undismissed) alerts, newest first."""
        with self._lock:
            visible = [replace(a) for a in self._alerts.values() if not a.dismissed]
        visible.sort(key=lambda a: (a.detected_at, a.id), reverse=True)
        return visible

    def all_alerts(self) -> list[SteamMove]:
        """Every alert ever raised, including dismissed ones."""
        with self._lock:
            return sorted((replace(a) for a in self._alerts.values()), key=lambda a: (a.detected_at, a.id))

    def dismiss(self, alert_id: str) -> bool:
        """Dismiss one alert. Returns False if unknown or already dismissed."""
        with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None or alert.dismissed:
                return False
            alert.dismissed = True
        self.logger.info("Steam alert dismissed", id=alert_id)
        return True

    def clear_all(self) -> int:
        """Dismiss every visible alert; returns how many were dismissed."""
        with self._lock:
            count = 0
            for alert in self._alerts.values():
                if not alert.dismissed:
                    alert.dismissed = True
                    count += 1
        if count:
            self.logger.info("Steam alerts cleared", count=count)
        return count

    # =========================================================================
    # Subscribers
    # =========================================================================

    def subscribe(self, callback: AlertCallback) -> None:
        """Call ``callback`` once for every newly created alert."""
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: AlertCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    async def _notify(self, created: list[SteamMove]) -> None:
        for alert in created:
            for callback in list(self._subscribers):
                try:
                    result = callback(replace(alert))
                    if inspect.isawaitable(result):
                        await result
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self.logger.error("Alert subscriber failed", id=alert.id, error=str(e))

    # =========================================================================
    # Stats
    # =========================================================================

    def get_stats(self) -> dict:
        """Counts of visible alerts by strength and market."""
        visible = self.alerts()
        return {
            "total": len(visible),
            "by_strength": {s.value: sum(1 for a in visible if a.strength == s) for s in SignalStrength},
            "by_market": {m.value: sum(1 for a in visible if a.market_type == m) for m in MarketType},
        }

    def get_metrics(self) -> dict:
        return {
            "polls": self._polls,
            "polls_skipped": self._polls_skipped,
            "failed_fetches": self._failed_fetches,
            "rejected_snapshots": self._rejected_snapshots,
            "replayed_snapshots": self._replayed_snapshots,
            "alerts_created": self._alerts_created,
            "alerts_updated": self._alerts_updated,
            "visible_alerts": len(self.alerts()),
        }
