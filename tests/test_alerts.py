"""Tests for the Discord alerter."""

import asyncio
import json

import httpx

from sharpline.models.schemas import LockoutState, MarketType, Side, SignalStrength, SteamMove
from sharpline.utils.alerts import DiscordAlerter

WEBHOOK = "https://discord.test/api/webhooks/1/abc"


def recording_transport(responses):
    """Mock transport replaying ``responses`` and recording request bodies."""
    requests = []
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(json.loads(request.content))
        result = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(result, Exception):
            raise result
        return result

    return httpx.MockTransport(handler), requests


def send(alerter, coro):
    async def _run():
        try:
            return await coro
        finally:
            await alerter.close()
    return asyncio.run(_run())


def steam_move(t0):
    return SteamMove(
        id="m1-spread-home-1704110400",
        match_id="m1",
        sportsbook="pinnacle",
        market_type=MarketType.SPREAD,
        side=Side.HOME,
        previous_value=-3.0,
        current_value=-5.5,
        movement=-2.5,
        movement_pct=83.3,
        window_seconds=120,
        strength=SignalStrength.STRONG,
        detected_at=t0,
        last_seen_at=t0,
        window_end=t0,
    )


class TestDiscordAlerter:
    """Tests for DiscordAlerter."""

    def test_steam_move_embed(self, t0):
        transport, requests = recording_transport([httpx.Response(204)])
        alerter = DiscordAlerter(WEBHOOK, transport=transport)

        assert send(alerter, alerter.send_steam_move(steam_move(t0))) is True

        embed = requests[0]["embeds"][0]
        assert embed["title"] == "🔥 STEAM MOVE: HOME spread"
        assert embed["color"] == 0xFF0000
        assert embed["fields"][0]["value"] == "-3.0 → -5.5"
        assert embed["footer"]["text"] == "Alert m1-spread-home-1704110400"
        assert alerter.get_metrics() == {"sent": 1, "failed": 0}

    def test_lockout_message(self, t0):
        transport, requests = recording_transport([httpx.Response(204)])
        alerter = DiscordAlerter(WEBHOOK, transport=transport)
        state = LockoutState(is_locked=True, reason="Lock betting after 3 consecutive losses",
                             locked_at=t0, locked_until=t0, remaining_minutes=1440)

        assert send(alerter, alerter.send_lockout(state)) is True
        assert requests[0]["embeds"][0]["description"] == "Lock betting after 3 consecutive losses"

    def test_rate_limited(self):
        transport, requests = recording_transport([httpx.Response(429, json={"retry_after": 30})])
        alerter = DiscordAlerter(WEBHOOK, transport=transport)

        async def scenario():
            first = await alerter.send_message("one")
            second = await alerter.send_message("two")
            await alerter.close()
            return first, second

        assert asyncio.run(scenario()) == (False, False)
        assert len(requests) == 1

    def test_retries_then_gives_up(self):
        transport, requests = recording_transport([httpx.ConnectError("down")])
        alerter = DiscordAlerter(WEBHOOK, transport=transport, retry_delays=[0])

        assert send(alerter, alerter.send_message("hello")) is False
        assert len(requests) == DiscordAlerter.MAX_RETRIES
        assert alerter.get_metrics()["failed"] == 1

    def test_recovers_after_server_error(self):
        transport, requests = recording_transport([httpx.Response(500), httpx.Response(204)])
        alerter = DiscordAlerter(WEBHOOK, transport=transport, retry_delays=[0])

        assert send(alerter, alerter.send_message("hello")) is True
        assert len(requests) == 2

    def test_disabled_without_url(self):
        alerter = DiscordAlerter("")

        assert alerter.enabled is False
        assert send(alerter, alerter.send_message("hello")) is False
