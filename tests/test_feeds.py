"""Tests for snapshot sources and provider merging."""

import asyncio

import orjson
import pytest

from sharpline.feeds.base import merge_snapshots
from sharpline.feeds.jsonl import JsonlSnapshotSource


def line(**record) -> bytes:
    return orjson.dumps(record) + b"\n"


class TestMergeSnapshots:
    """Tests for merge_snapshots."""

    def test_field_priority_and_fallback(self, make_snapshot):
        candidates = {
            "odds_api": make_snapshot(0, sportsbook="pinnacle", spread_home=-3.0),
            "action": make_snapshot(30, sportsbook="circa", spread_home=-4.0, total=210.5, public_pct_home=62),
        }

        merged = merge_snapshots(candidates, priority=["odds_api", "action"])

        assert merged.sportsbook == "pinnacle"
        assert merged.spread_home == -3.0
        assert merged.total == 210.5
        assert merged.public_pct_home == 62
        assert merged.public_pct_away == 38
        assert merged.timestamp == candidates["action"].timestamp

    def test_unlisted_providers_rank_last(self, make_snapshot):
        candidates = {
            "zeta": make_snapshot(0, total=200.0),
            "alpha": make_snapshot(0, total=201.0),
            "listed": make_snapshot(0, spread_home=1.0),
        }

        merged = merge_snapshots(candidates, priority=["listed"])

        assert merged.spread_home == 1.0
        assert merged.total == 201.0

    def test_no_candidates(self):
        assert merge_snapshots({}, priority=[]) is None

    def test_different_matches_rejected(self, make_snapshot):
        with pytest.raises(ValueError):
            merge_snapshots(
                {"a": make_snapshot(0, match_id="m1"), "b": make_snapshot(0, match_id="m2")},
                priority=["a", "b"],
            )


class TestJsonlSource:
    """Tests for JsonlSnapshotSource."""

    def test_reads_and_skips_bad_lines(self, tmp_path):
        path = tmp_path / "snapshots.jsonl"
        path.write_bytes(
            line(matchId="m1", timestamp="2024-01-01T12:00:00Z", spreadHome=-3.0)
            + b"{not json\n"
            + line(matchId="m1", timestamp="2024-01-01T12:01:00Z", publicPctHome=140)
            + line(match_id="m2", timestamp="2024-01-01T12:00:00Z", total=210.0)
        )
        source = JsonlSnapshotSource(path)

        matches = asyncio.run(source.list_matches())

        assert matches == ["m1", "m2"]
        assert source.get_metrics()["bad_lines"] == 2
        assert source.get_metrics()["lines_read"] == 4

    def test_partial_line_waits_for_newline(self, tmp_path):
        path = tmp_path / "snapshots.jsonl"
        first = line(matchId="m1", timestamp="2024-01-01T12:00:00Z", spreadHome=-3.0)
        second = line(matchId="m1", timestamp="2024-01-01T12:02:00Z", spreadHome=-5.5)
        path.write_bytes(first + second[:20])
        source = JsonlSnapshotSource(path)

        async def scenario():
            before = await source.refresh()
            with open(path, "ab") as f:
                f.write(second[20:])
            after = await source.refresh()
            return before, after, await source.fetch("m1")

        before, after, snapshots = asyncio.run(scenario())

        assert (before, after) == (1, 1)
        assert [s.spread_home for s in snapshots] == [-3.0, -5.5]

    def test_fetch_since(self, tmp_path, t0):
        path = tmp_path / "snapshots.jsonl"
        path.write_bytes(
            line(matchId="m1", timestamp="2024-01-01T12:02:00Z", spreadHome=-4.0)
            + line(matchId="m1", timestamp="2024-01-01T12:00:00Z", spreadHome=-3.0)
        )
        first, second = JsonlSnapshotSource(path), JsonlSnapshotSource(path)

        async def scenario():
            await first.refresh()
            await second.refresh()
            return await first.fetch("m1"), await second.fetch("m1", since=t0), await first.fetch("nope")

        everything, newer, unknown = asyncio.run(scenario())

        assert [s.spread_home for s in everything] == [-3.0, -4.0]
        assert [s.spread_home for s in newer] == [-4.0]
        assert unknown == []

    def test_fetch_hands_over_each_record_once(self, tmp_path):
        path = tmp_path / "snapshots.jsonl"
        path.write_bytes(
            line(matchId="m1", timestamp="2024-01-01T12:00:00Z", spreadHome=-3.0)
            + line(matchId="m2", timestamp="2024-01-01T12:00:00Z", total=210.0)
        )
        source = JsonlSnapshotSource(path)

        async def scenario():
            await source.refresh()
            first = await source.fetch("m1")
            drained = await source.fetch("m1")
            with open(path, "ab") as f:
                f.write(line(matchId="m1", timestamp="2024-01-01T12:01:00Z", spreadHome=-4.0))
            matches = await source.list_matches()
            return first, drained, matches, await source.fetch("m1")

        first, drained, matches, appended = asyncio.run(scenario())

        assert [s.spread_home for s in first] == [-3.0]
        assert drained == []
        assert matches == ["m1", "m2"]
        assert [s.spread_home for s in appended] == [-4.0]
        assert source.get_metrics()["buffered"] == 1  # m2 not fetched yet

    def test_missing_file_raises(self, tmp_path):
        source = JsonlSnapshotSource(tmp_path / "missing.jsonl")

        with pytest.raises(FileNotFoundError):
            asyncio.run(source.list_matches())
