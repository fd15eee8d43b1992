"""
Line History Store.

Append-only, per-match time series of market snapshots, one series per
(match, sportsbook). Snapshots must arrive in strictly increasing timestamp
order per series; anything else is rejected, never reordered.
"""

from collections import deque
from datetime import datetime
from typing import Any, Iterable, Optional, Union

import structlog
from pydantic import ValidationError

from sharpline.models.schemas import (
    MarketSnapshot,
    OutOfOrderSnapshot,
    SnapshotRejected,
)

logger = structlog.get_logger()


class LineHistoryStore:
    """
    In-memory line history.

    Series are bounded by ``max_per_series`` (oldest samples fall off the
    front); nothing already recorded is ever changed.
    """

    def __init__(self, max_per_series: Optional[int] = None):
        self.max_per_series = max_per_series
        self.logger = logger.bind(component="line_history")

        # match_id -> sportsbook -> snapshots (timestamp ordered)
        self._series: dict[str, dict[str, deque[MarketSnapshot]]] = {}

        self._accepted = 0
        self._rejected = 0

    # =========================================================================
    # Ingestion
    # =========================================================================

    def append(self, snapshot: Union[MarketSnapshot, dict[str, Any]]) -> MarketSnapshot:
        """
        Record one snapshot.

        Raises:
            SnapshotRejected: payload fails validation
            OutOfOrderSnapshot: timestamp <= last timestamp of its series
        """
        if not isinstance(snapshot, MarketSnapshot):
            try:
                snapshot = MarketSnapshot.model_validate(snapshot)
            except ValidationError as e:
                self._rejected += 1
                self.logger.warning("Malformed snapshot rejected", errors=e.error_count())
                raise SnapshotRejected(f"Malformed snapshot: {e}") from e

        books = self._series.setdefault(snapshot.match_id, {})
        series = books.get(snapshot.sportsbook)
        if series is None:
            series = deque(maxlen=self.max_per_series)
            books[snapshot.sportsbook] = series

        if series and snapshot.timestamp <= series[-1].timestamp:
            self._rejected += 1
            self.logger.warning(
                "Out-of-order snapshot rejected",
                match_id=snapshot.match_id,
                sportsbook=snapshot.sportsbook,
                timestamp=snapshot.timestamp.isoformat(),
                last=series[-1].timestamp.isoformat(),
            )
            raise OutOfOrderSnapshot(
                f"{snapshot.match_id}/{snapshot.sportsbook}: "
                f"{snapshot.timestamp.isoformat()} <= {series[-1].timestamp.isoformat()}"
            )

        series.append(snapshot)
        self._accepted += 1
        return snapshot

    def extend(self, snapshots: Iterable[Union[MarketSnapshot, dict[str, Any]]]) -> int:
        """
        Record a batch in order. Stops at the first rejected snapshot.

        Returns:
            Number of snapshots recorded before any rejection
        """
        count = 0
        for snapshot in snapshots:
            self.append(snapshot)
            count += 1
        return count

    # =========================================================================
    # Queries
    # =========================================================================

    def match_ids(self) -> list[str]:
        """All matches with at least one snapshot."""
        return sorted(self._series)

    def sportsbooks(self, match_id: str) -> list[str]:
        """Sportsbooks with a series for this match."""
        return sorted(self._series.get(match_id, {}))

    def history(
        self,
        match_id: str,
        sportsbook: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> list[MarketSnapshot]:
        """
        Snapshots for a match, ordered by timestamp.

        Without ``sportsbook`` every book's series is returned, merged by
        timestamp (ties ordered by sportsbook name).
        """
        books = self._series.get(match_id, {})
        if sportsbook is not None:
            snapshots = list(books.get(sportsbook, ()))
        else:
            snapshots = sorted(
                (s for series in books.values() for s in series),
                key=lambda s: (s.timestamp, s.sportsbook),
            )
        if since is not None:
            snapshots = [s for s in snapshots if s.timestamp >= since]
        return snapshots

    def latest(self, match_id: str, sportsbook: Optional[str] = None) -> Optional[MarketSnapshot]:
        """Most recent snapshot for a match (any book unless given)."""
        books = self._series.get(match_id, {})
        if sportsbook is not None:
            series = books.get(sportsbook)
            return series[-1] if series else None
        tails = [series[-1] for series in books.values() if series]
        if not tails:
            return None
        return max(tails, key=lambda s: (s.timestamp, s.sportsbook))

    def last_timestamp(self, match_id: str, sportsbook: str) -> Optional[datetime]:
        """Timestamp of the last recorded snapshot for a series."""
        latest = self.latest(match_id, sportsbook)
        return latest.timestamp if latest else None

    def get_metrics(self) -> dict:
        """Get store metrics."""
        return {
            "matches": len(self._series),
            "series": sum(len(books) for books in self._series.values()),
            "accepted": self._accepted,
            "rejected": self._rejected,
        }

    def __len__(self) -> int:
        return sum(len(series) for books in self._series.values() for series in books.values())
