"""Shared fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

from sharpline.models.schemas import BetRecord, BetStatus, MarketSnapshot
from sharpline.utils.clock import ManualClock

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def clock():
    """Manual clock starting at T0."""
    return ManualClock(T0)


@pytest.fixture
def make_snapshot():
    """Build a snapshot `seconds` after T0."""
    def _make(seconds: float = 0, match_id: str = "m1", sportsbook: str = "pinnacle", **fields):
        return MarketSnapshot(
            match_id=match_id,
            timestamp=T0 + timedelta(seconds=seconds),
            sportsbook=sportsbook,
            **fields,
        )
    return _make


@pytest.fixture
def make_bet():
    """Build a bet placed `placed_minutes` after T0."""
    counter = {"n": 0}

    def _make(
        stake: float = 10.0,
        status: BetStatus = BetStatus.PENDING,
        placed_minutes: float = 0,
        settled_minutes: float = None,
        **fields,
    ):
        counter["n"] += 1
        fields.setdefault("id", f"bet-{counter['n']}")
        fields.setdefault("match_id", "m1")
        return BetRecord(
            stake=stake,
            status=status,
            placed_at=T0 + timedelta(minutes=placed_minutes),
            settled_at=T0 + timedelta(minutes=settled_minutes) if settled_minutes is not None else None,
            **fields,
        )
    return _make
