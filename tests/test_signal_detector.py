"""Tests for the sharp signal detector."""

import pytest

from sharpline.engine.signal_detector import (
    SharpSignalDetector,
    SignalConfig,
    find_line_moves,
    supersede,
)
from sharpline.models.schemas import MarketType, Side, SignalStrength, SignalType


@pytest.fixture
def detector():
    return SharpSignalDetector(SignalConfig())


def types(signals):
    return {s.type for s in signals}


class TestInsufficientHistory:
    """Histories with fewer than 2 snapshots."""

    def test_empty(self, detector):
        assert detector.detect([]) == []

    def test_single_snapshot(self, detector, make_snapshot):
        assert detector.detect([make_snapshot(0, spread_home=-3.0, public_pct_home=80)]) == []

    def test_single_snapshot_per_book(self, detector, make_snapshot):
        history = [
            make_snapshot(0, sportsbook="a", spread_home=-3.0),
            make_snapshot(10, sportsbook="b", spread_home=-6.0),
        ]
        assert detector.detect(history) == []


class TestSteamMove:
    """Tests for steam move detection."""

    def test_reference_scenario(self, detector, make_snapshot):
        history = [
            make_snapshot(0, spread_home=-3.0, public_pct_home=70),
            make_snapshot(120, spread_home=-5.5, public_pct_home=70),
        ]

        signals = detector.detect(history)

        steam = [s for s in signals if s.type == SignalType.STEAM_MOVE]
        assert len(steam) == 1
        assert steam[0].side == Side.HOME
        assert steam[0].strength == SignalStrength.STRONG
        assert SignalType.REVERSE_LINE not in types(signals)

    def test_threshold_move_is_moderate(self, detector, make_snapshot):
        history = [
            make_snapshot(0, spread_home=-3.0),
            make_snapshot(60, spread_home=-5.0),
        ]

        steam = detector.detect(history)

        assert [(s.type, s.strength) for s in steam] == [(SignalType.STEAM_MOVE, SignalStrength.MODERATE)]

    def test_small_move_ignored(self, detector, make_snapshot):
        history = [
            make_snapshot(0, spread_home=-3.0),
            make_snapshot(60, spread_home=-4.5),
        ]
        assert detector.detect(history) == []

    def test_move_outside_window_ignored(self, detector, make_snapshot):
        history = [
            make_snapshot(0, spread_home=-3.0),
            make_snapshot(600, spread_home=-6.0),
        ]
        assert SignalType.STEAM_MOVE not in types(detector.detect(history))

    def test_reversal_breaks_direction(self, make_snapshot):
        history = [
            make_snapshot(0, spread_home=-3.0),
            make_snapshot(60, spread_home=-4.5),
            make_snapshot(120, spread_home=-3.5),
            make_snapshot(180, spread_home=-4.5),
        ]
        assert find_line_moves(history, SignalConfig()) == []

    def test_flat_steps_keep_direction(self, make_snapshot):
        history = [
            make_snapshot(0, spread_home=-3.0),
            make_snapshot(60, spread_home=-4.0),
            make_snapshot(120, spread_home=-4.0),
            make_snapshot(180, spread_home=-5.5),
        ]

        moves = find_line_moves(history, SignalConfig(), markets=(MarketType.SPREAD,))

        assert len(moves) == 1
        assert moves[0].movement == pytest.approx(-2.5)
        assert moves[0].window_seconds == 180

    def test_line_moving_toward_away(self, detector, make_snapshot):
        history = [
            make_snapshot(0, spread_home=-7.0),
            make_snapshot(90, spread_home=-4.5),
        ]

        signals = detector.detect(history)

        assert signals[0].type == SignalType.STEAM_MOVE
        assert signals[0].side == Side.AWAY

    def test_total_steam(self, detector, make_snapshot):
        history = [
            make_snapshot(0, total=210.5),
            make_snapshot(90, total=213.0),
        ]

        signals = detector.detect(history)

        assert [(s.type, s.side) for s in signals] == [(SignalType.STEAM_MOVE, Side.OVER)]

    def test_moneyline_steam(self, make_snapshot):
        history = [
            make_snapshot(0, moneyline_home=-110),
            make_snapshot(60, moneyline_home=-145),
        ]

        moves = find_line_moves(history, SignalConfig())

        assert len(moves) == 1
        assert moves[0].market_type == MarketType.MONEYLINE
        assert moves[0].side == Side.HOME
        assert moves[0].previous_value == -110
        assert moves[0].current_value == -145

    def test_moneyline_crossing_even(self, make_snapshot):
        # +120 -> -115 is 35 cents toward home
        history = [
            make_snapshot(0, moneyline_home=120),
            make_snapshot(60, moneyline_home=-115),
        ]

        moves = find_line_moves(history, SignalConfig())

        assert [m.side for m in moves] == [Side.HOME]

    @pytest.mark.parametrize("smaller,larger", [(2.0, 2.4), (2.4, 2.5), (2.5, 4.0), (1.9, 2.0)])
    def test_strength_monotonic_in_movement(self, detector, make_snapshot, smaller, larger):
        def strength(move):
            history = [
                make_snapshot(0, spread_home=-3.0),
                make_snapshot(120, spread_home=-3.0 - move),
            ]
            steam = [s for s in detector.detect(history) if s.type == SignalType.STEAM_MOVE]
            return steam[0].strength.rank if steam else -1

        assert strength(larger) >= strength(smaller)


class TestReverseLine:
    """Tests for reverse line movement."""

    def test_line_moves_against_public_home(self, detector, make_snapshot):
        history = [
            make_snapshot(0, spread_home=-3.0, public_pct_home=75),
            make_snapshot(3600, spread_home=-2.0, public_pct_home=75),
        ]

        rlm = [s for s in detector.detect(history) if s.type == SignalType.REVERSE_LINE]

        assert len(rlm) == 1
        assert rlm[0].side == Side.AWAY
        # 1.0 pt * (75 - 50) / 10 = 2.5
        assert rlm[0].strength == SignalStrength.MODERATE

    def test_line_moves_against_public_away(self, detector, make_snapshot):
        history = [
            make_snapshot(0, spread_home=3.0, public_pct_home=20),
            make_snapshot(3600, spread_home=1.5, public_pct_home=20),
        ]

        rlm = [s for s in detector.detect(history) if s.type == SignalType.REVERSE_LINE]

        assert [s.side for s in rlm] == [Side.HOME]
        assert rlm[0].strength == SignalStrength.STRONG

    @pytest.mark.parametrize("public_home,end_spread", [
        (75, -4.0),   # public on home, line toward home
        (25, -2.0),   # public on away, line toward away
        (55, -2.0),   # no clear majority
        (75, -2.75),  # move below minimum
    ])
    def test_no_rlm_when_line_agrees_or_too_small(self, detector, make_snapshot, public_home, end_spread):
        history = [
            make_snapshot(0, spread_home=-3.0, public_pct_home=public_home),
            make_snapshot(3600, spread_home=end_spread, public_pct_home=public_home),
        ]

        assert SignalType.REVERSE_LINE not in types(detector.detect(history))


class TestLineFreeze:
    """Tests for line freeze detection."""

    def test_frozen_line_with_lopsided_public(self, detector, make_snapshot):
        history = [
            make_snapshot(minutes * 60, spread_home=-3.0 - (0.5 if minutes == 20 else 0), public_pct_home=82)
            for minutes in (0, 10, 20, 30, 40)
        ]

        freeze = [s for s in detector.detect(history) if s.type == SignalType.LINE_FREEZE]

        assert len(freeze) == 1
        assert freeze[0].side == Side.AWAY
        assert freeze[0].strength == SignalStrength.STRONG

    def test_period_too_short(self, detector, make_snapshot):
        history = [
            make_snapshot(0, spread_home=-3.0, public_pct_home=82),
            make_snapshot(1200, spread_home=-3.0, public_pct_home=82),
        ]
        assert SignalType.LINE_FREEZE not in types(detector.detect(history))

    def test_line_moved(self, detector, make_snapshot):
        history = [
            make_snapshot(0, spread_home=-3.0, public_pct_home=70),
            make_snapshot(1800, spread_home=-4.0, public_pct_home=70),
        ]
        assert SignalType.LINE_FREEZE not in types(detector.detect(history))

    def test_public_not_lopsided(self, detector, make_snapshot):
        history = [
            make_snapshot(0, spread_home=-3.0, public_pct_home=60),
            make_snapshot(1800, spread_home=-3.0, public_pct_home=60),
        ]
        assert SignalType.LINE_FREEZE not in types(detector.detect(history))


class TestMoneyDivergence:
    """Tests for whale bet / syndicate play."""

    def test_single_gap_is_whale(self, detector, make_snapshot):
        history = [
            make_snapshot(0, public_pct_home=40, money_pct_home=45),
            make_snapshot(60, public_pct_home=40, money_pct_home=62),
        ]

        signals = detector.detect(history)

        assert [(s.type, s.side) for s in signals] == [(SignalType.WHALE_BET, Side.HOME)]
        assert signals[0].strength == SignalStrength.MODERATE

    def test_persistent_gap_is_syndicate(self, detector, make_snapshot):
        history = [
            make_snapshot(seconds, public_pct_home=70, money_pct_home=55)
            for seconds in (0, 60, 120)
        ]

        signals = detector.detect(history)

        assert [(s.type, s.side) for s in signals] == [(SignalType.SYNDICATE_PLAY, Side.AWAY)]

    def test_gap_below_threshold(self, detector, make_snapshot):
        history = [
            make_snapshot(0, public_pct_home=50, money_pct_home=55),
            make_snapshot(60, public_pct_home=50, money_pct_home=58),
        ]
        assert detector.detect(history) == []


class TestSupersede:
    """Tests for signal supersession."""

    def test_strongest_book_wins_within_one_pass(self, detector, make_snapshot):
        history = [
            make_snapshot(0, sportsbook="a", spread_home=-3.0),
            make_snapshot(30, sportsbook="b", spread_home=-3.0),
            make_snapshot(60, sportsbook="a", spread_home=-5.5),
            make_snapshot(90, sportsbook="b", spread_home=-5.0),
        ]

        steam = [s for s in detector.detect(history) if s.type == SignalType.STEAM_MOVE]

        assert len(steam) == 1
        assert steam[0].sportsbook == "a"
        assert steam[0].strength == SignalStrength.STRONG

    @pytest.mark.parametrize("smaller,larger", [(-4.5, -5.0), (-5.0, -5.5), (-5.5, -6.0)])
    def test_larger_move_in_another_book_never_lowers_strength(self, detector, make_snapshot, smaller, larger):
        def steam_strength(book_b_end):
            history = [
                make_snapshot(0, sportsbook="a", spread_home=-3.0),
                make_snapshot(30, sportsbook="b", spread_home=-3.0),
                make_snapshot(60, sportsbook="a", spread_home=-5.5),
                make_snapshot(90, sportsbook="b", spread_home=book_b_end),
            ]
            steam = [s for s in detector.detect(history) if s.type == SignalType.STEAM_MOVE]
            return steam[0].strength.rank

        assert steam_strength(larger) >= steam_strength(smaller)

    def test_totals_are_a_separate_axis(self, detector, make_snapshot):
        history = [
            make_snapshot(0, spread_home=-3.0, total=210.0),
            make_snapshot(60, spread_home=-5.5, total=207.5),
        ]

        steam = [s for s in detector.detect(history) if s.type == SignalType.STEAM_MOVE]

        assert {s.side for s in steam} == {Side.HOME, Side.UNDER}

    def test_supersede_is_order_independent(self, detector, make_snapshot):
        history = [
            make_snapshot(0, sportsbook="a", spread_home=-3.0, public_pct_home=70, money_pct_home=50),
            make_snapshot(30, sportsbook="b", spread_home=-3.0),
            make_snapshot(60, sportsbook="a", spread_home=-5.5, public_pct_home=70, money_pct_home=50),
            make_snapshot(90, sportsbook="b", spread_home=-5.0),
        ]
        signals = detector.detect(history)

        assert supersede(reversed(signals)) == supersede(signals)
