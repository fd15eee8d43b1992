"""
Sharpline - Main Entry Point.

Runs the sharp-money monitor:
1. Tail a JSON-lines snapshot feed written by a market-data collector
2. Re-run the steam rule on every poll and keep a deduplicated alert list
3. Post new steam moves to Discord (optional)
4. Periodically log sharp scores for every tracked match

Usage:
    python -m sharpline.main

Environment Variables:
    MONITOR__SNAPSHOT_FILE         - JSON-lines snapshot feed (default: data/snapshots.jsonl)
    MONITOR__POLL_INTERVAL_SECONDS - Steam poll interval (default: 30)
    ALERTS__DISCORD_WEBHOOK_URL    - Discord webhook for steam alerts
    LOG_LEVEL / JSON_LOGS          - Logging
"""

import asyncio
import signal
import sys
import time
from typing import Optional

import structlog

from config.settings import Settings, get_settings
from sharpline.engine.line_history import LineHistoryStore
from sharpline.engine.sharp_money import SharpMoneyEngine
from sharpline.engine.sharp_score import ScoringWeights, SharpScoreAggregator
from sharpline.engine.signal_detector import SharpSignalDetector, SignalConfig
from sharpline.engine.steam_monitor import MonitorConfig, SteamMoveMonitor
from sharpline.feeds.jsonl import JsonlSnapshotSource
from sharpline.models.schemas import SteamMove
from sharpline.utils.alerts import DiscordAlerter
from sharpline.utils.logging import setup_logging

logger = structlog.get_logger()


class SharplineService:
    """
    Long-running sharp-money monitor.

    The steam monitor owns polling; this service wires it to a snapshot
    source, the notifier and the periodic score report.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.logger = logger.bind(component="sharpline")

        signal_config = SignalConfig.from_settings(self.settings.signals)

        self.store = LineHistoryStore(max_per_series=self.settings.monitor.max_snapshots_per_series)
        self.source = JsonlSnapshotSource(self.settings.monitor.snapshot_file)

        self.monitor = SteamMoveMonitor(
            source=self.source,
            store=self.store,
            signal_config=signal_config,
            config=MonitorConfig.from_settings(self.settings.monitor),
        )
        self.engine = SharpMoneyEngine(
            store=self.store,
            detector=SharpSignalDetector(signal_config),
            aggregator=SharpScoreAggregator(ScoringWeights.from_settings(self.settings.scoring)),
        )

        self.alerter: Optional[DiscordAlerter] = None
        if self.settings.alerts.discord_webhook_url:
            self.alerter = DiscordAlerter(self.settings.alerts.discord_webhook_url)
            self.monitor.subscribe(self._on_steam_move)

        self._running = False
        self._shutdown_event = asyncio.Event()
        self._start_time = 0.0

    async def start(self) -> None:
        """Run until shutdown() is called."""
        self.logger.info(
            "Starting Sharpline",
            snapshot_file=self.settings.monitor.snapshot_file,
            poll_interval=self.settings.monitor.poll_interval_seconds,
            steam_window=self.settings.signals.steam_window_seconds,
            discord=self.alerter is not None,
        )

        self._running = True
        self._start_time = time.time()

        try:
            await asyncio.gather(
                self.monitor.run(),
                self._status_loop(),
            )
        except asyncio.CancelledError:
            self.logger.info("Service cancelled")

        await self.stop()

    async def stop(self) -> None:
        """Release resources."""
        self._running = False
        await self.source.close()
        if self.alerter:
            await self.alerter.close()

        self.logger.info(
            "Sharpline stopped",
            runtime=f"{(time.time() - self._start_time) / 60:.1f} min",
            **self.monitor.get_stats(),
        )

    def shutdown(self) -> None:
        """Trigger graceful shutdown; the in-flight poll is allowed to finish."""
        self._running = False
        self._shutdown_event.set()
        self.monitor.stop()

    # =========================================================================
    # Loops
    # =========================================================================

    async def _status_loop(self) -> None:
        """Periodic sharp score report."""
        while self._running and not self._shutdown_event.is_set():
            try:
                try:
                    await asyncio.wait_for(
                        self._shutdown_event.wait(),
                        timeout=self.settings.monitor.status_interval_seconds,
                    )
                    return
                except asyncio.TimeoutError:
                    pass

                games = self.engine.scan()
                for game in games:
                    self.logger.info(
                        "📊 Sharp score",
                        match_id=game.match_id,
                        score=game.sharp_score,
                        side=game.result.sharp_side.value,
                        confidence=game.result.confidence,
                        signals=[t.value for t in game.result.signal_types],
                    )

                self.logger.info(
                    "📊 STATUS",
                    runtime=f"{(time.time() - self._start_time) / 60:.1f} min",
                    **self.engine.summarize(games),
                    **self.monitor.get_metrics(),
                )

            except asyncio.CancelledError:
                return
            except Exception as e:
                self.logger.error("Status loop error", error=str(e))

    async def _on_steam_move(self, move: SteamMove) -> None:
        if self.alerter:
            await self.alerter.send_steam_move(move)


def main():
    """Main entry point."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.json_logs)

    service = SharplineService(settings)

    def signal_handler(sig, frame):
        print("\n🛑 Shutdown requested...")
        service.shutdown()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        asyncio.run(service.start())
    except KeyboardInterrupt:
        print("\n⚠️ Interrupted")
    except Exception as e:
        print(f"❌ Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
