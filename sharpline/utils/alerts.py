"""
Discord alerting for steam moves and lockouts.

Uses a persistent HTTP client with retries. Delivery failures are logged
and reported as False, never raised into the monitor loop.
"""

import asyncio
import time
from typing import Optional

import httpx
import structlog

from sharpline.models.schemas import LockoutState, SignalStrength, SteamMove

logger = structlog.get_logger()

STRENGTH_COLORS = {
    SignalStrength.STRONG: 0xFF0000,    # Red
    SignalStrength.MODERATE: 0xFFA500,  # Orange
    SignalStrength.WEAK: 0xFFFF00,      # Yellow
}


class DiscordAlerter:
    """
    Discord webhook alerter.

    Features:
    - Persistent HTTP client, recreated after repeated failures
    - Progressive backoff on transport errors
    - Honors Discord's 429 retry_after
    """

    MAX_RETRIES = 3
    RETRY_DELAYS = [1.0, 2.0, 5.0]

    def __init__(
        self,
        webhook_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_delays: Optional[list[float]] = None,
    ):
        self.webhook_url = webhook_url
        self.logger = logger.bind(component="discord_alerter")
        self._transport = transport
        self._retry_delays = retry_delays if retry_delays is not None else self.RETRY_DELAYS

        self._client: Optional[httpx.AsyncClient] = None
        self._client_lock = asyncio.Lock()
        self._rate_limit_until: float = 0
        self._consecutive_failures = 0

        self._sent = 0
        self._failed = 0

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the persistent HTTP client."""
        async with self._client_lock:
            if self._client is None or self._consecutive_failures >= self.MAX_RETRIES:
                if self._client is not None:
                    await self._client.aclose()
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(connect=10.0, read=15.0, write=10.0, pool=10.0),
                    limits=httpx.Limits(max_keepalive_connections=2, max_connections=4),
                    transport=self._transport,
                )
                self._consecutive_failures = 0
                self.logger.debug("Created new Discord HTTP client")
            return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ==========================================================================
    # Core
    # ==========================================================================

    async def _send_with_retry(self, payload: dict) -> bool:
        if not self.webhook_url:
            return False
        if time.monotonic() < self._rate_limit_until:
            return False

        for attempt in range(self.MAX_RETRIES):
            try:
                client = await self._get_client()
                response = await client.post(self.webhook_url, json=payload)

                if response.status_code == 429:
                    retry_after = response.json().get("retry_after", 5)
                    self._rate_limit_until = time.monotonic() + float(retry_after)
                    self.logger.debug("Discord rate limited", retry_after=retry_after)
                    self._failed += 1
                    return False

                response.raise_for_status()
                self._consecutive_failures = 0
                self._sent += 1
                return True

            except (httpx.TransportError, httpx.HTTPStatusError) as e:
                self._consecutive_failures += 1
                self.logger.debug(
                    "Discord send failed",
                    error_type=type(e).__name__,
                    attempt=attempt + 1,
                )
                if attempt < self.MAX_RETRIES - 1 and self._retry_delays:
                    delay = self._retry_delays[min(attempt, len(self._retry_delays) - 1)]
                    await asyncio.sleep(delay)

        self._failed += 1
        self.logger.warning("Discord delivery failed", failures=self._consecutive_failures)
        return False

    async def send_message(self, content: str) -> bool:
        return await self._send_with_retry({"content": content})

    async def send_embed(self, embed: dict) -> bool:
        return await self._send_with_retry({"embeds": [embed]})

    # ==========================================================================
    # Alerts
    # ==========================================================================

    async def send_steam_move(self, move: SteamMove) -> bool:
        """Post one new steam move alert."""
        if move.market_type.value == "moneyline":
            values = f"{move.previous_value:+.0f} → {move.current_value:+.0f}"
        else:
            values = f"{move.previous_value:+.1f} → {move.current_value:+.1f}"

        embed = {
            "title": f"🔥 STEAM MOVE: {move.side.value.upper()} {move.market_type.value}",
            "description": f"Match `{move.match_id}` at {move.sportsbook}",
            "color": STRENGTH_COLORS[move.strength],
            "fields": [
                {"name": "Line", "value": values, "inline": True},
                {"name": "Move", "value": f"{move.movement:+.1f} ({move.movement_pct:.1f}%)", "inline": True},
                {"name": "Window", "value": f"{move.window_seconds:.0f}s", "inline": True},
                {"name": "Strength", "value": move.strength.value.upper(), "inline": True},
            ],
            "timestamp": move.detected_at.isoformat(),
            "footer": {"text": f"Alert {move.id}"},
        }
        return await self.send_embed(embed)

    async def send_lockout(self, state: LockoutState) -> bool:
        """Post a lockout notice."""
        until = state.locked_until.isoformat() if state.locked_until else "unknown"
        embed = {
            "title": "🔒 BETTING LOCKED",
            "description": state.reason or "Manual lockout",
            "color": 0x808080,
            "fields": [
                {"name": "Until", "value": until, "inline": True},
                {"name": "Remaining", "value": f"{state.remaining_minutes} min", "inline": True},
            ],
        }
        return await self.send_embed(embed)

    def get_metrics(self) -> dict:
        return {"sent": self._sent, "failed": self._failed}
