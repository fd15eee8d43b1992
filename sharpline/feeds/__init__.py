"""Market snapshot sources."""

from sharpline.feeds.base import SnapshotSource, merge_snapshots
from sharpline.feeds.jsonl import JsonlSnapshotSource

__all__ = [
    "SnapshotSource",
    "merge_snapshots",
    "JsonlSnapshotSource",
]
