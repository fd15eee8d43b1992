"""
JSON-lines snapshot source.

Tails a file that an external collector appends MarketSnapshot records to,
one JSON object per line (camelCase or snake_case keys).
"""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

import orjson
import structlog
from pydantic import ValidationError

from sharpline.feeds.base import SnapshotSource
from sharpline.models.schemas import MarketSnapshot

logger = structlog.get_logger()


class JsonlSnapshotSource(SnapshotSource):
    """
    Reads newly appended lines on every refresh.

    Each record is handed over by ``fetch`` once and then dropped from the
    buffer.
    """

    name = "jsonl"

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.logger = logger.bind(component="jsonl_source", path=str(self.path))

        self._offset = 0
        self._buffer: dict[str, list[MarketSnapshot]] = {}
        self._matches: set[str] = set()
        self._lock = asyncio.Lock()

        self._lines_read = 0
        self._bad_lines = 0

    async def refresh(self) -> int:
        """Read lines appended since the last refresh."""
        async with self._lock:
            lines = await asyncio.to_thread(self._read_new_lines)
            added = 0
            for line in lines:
                self._lines_read += 1
                try:
                    snapshot = MarketSnapshot.model_validate(orjson.loads(line))
                except (orjson.JSONDecodeError, ValidationError) as e:
                    self._bad_lines += 1
                    self.logger.warning("Skipping bad snapshot line", error=str(e)[:200])
                    continue
                self._buffer.setdefault(snapshot.match_id, []).append(snapshot)
                self._matches.add(snapshot.match_id)
                added += 1
            return added

    def _read_new_lines(self) -> list[bytes]:
        if not self.path.exists():
            raise FileNotFoundError(self.path)
        with open(self.path, "rb") as f:
            f.seek(self._offset)
            data = f.read()
        # Keep a partially written last line for the next refresh
        end = data.rfind(b"\n")
        if end < 0:
            return []
        self._offset += end + 1
        return [line for line in data[:end].splitlines() if line.strip()]

    async def list_matches(self) -> list[str]:
        await self.refresh()
        return sorted(self._matches)

    async def fetch(self, match_id: str, since: Optional[datetime] = None) -> list[MarketSnapshot]:
        async with self._lock:
            snapshots = self._buffer.pop(match_id, [])
        if since is not None:
            snapshots = [s for s in snapshots if s.timestamp > since]
        return sorted(snapshots, key=lambda s: (s.timestamp, s.sportsbook))

    def get_metrics(self) -> dict:
        return {
            "offset": self._offset,
            "lines_read": self._lines_read,
            "bad_lines": self._bad_lines,
            "matches": len(self._matches),
            "buffered": sum(len(s) for s in self._buffer.values()),
        }
