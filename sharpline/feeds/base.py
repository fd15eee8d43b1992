"""
Base classes for market snapshot sources.

Market data providers (odds aggregators, league feeds, scrapers) live
outside the engine. They only have to hand over resolved MarketSnapshot
records through this interface.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Mapping, Optional, Sequence

import structlog

from sharpline.models.schemas import MarketSnapshot

logger = structlog.get_logger()

# Fields taken provider-by-provider when merging
MERGEABLE_FIELDS = (
    "spread_home",
    "spread_away",
    "total",
    "moneyline_home",
    "moneyline_away",
    "public_pct_home",
    "public_pct_away",
    "money_pct_home",
    "money_pct_away",
)


class SnapshotSource(ABC):
    """A collaborator that supplies market snapshots."""

    name: str = "source"

    @abstractmethod
    async def list_matches(self) -> list[str]:
        """Match ids currently worth monitoring."""

    @abstractmethod
    async def fetch(self, match_id: str, since: Optional[datetime] = None) -> list[MarketSnapshot]:
        """
        Snapshots for a match newer than ``since``, oldest first.

        Implementations raise on transport failure; callers decide how to
        recover.
        """

    async def close(self) -> None:
        """Release any resources."""


def merge_snapshots(
    candidates: Mapping[str, MarketSnapshot],
    priority: Sequence[str],
) -> Optional[MarketSnapshot]:
    """
    Merge one match's snapshots from several providers.

    Each field is taken from the highest-priority provider that supplied it.
    Providers missing from ``priority`` rank after the listed ones, by name.
    The merged snapshot carries the newest timestamp among the candidates.

    Args:
        candidates: provider name -> snapshot (all for the same match)
        priority: provider names, most trusted first

    Returns:
        Merged snapshot, or None when there are no candidates
    """
    if not candidates:
        return None

    match_ids = {s.match_id for s in candidates.values()}
    if len(match_ids) > 1:
        raise ValueError(f"Cannot merge snapshots for different matches: {sorted(match_ids)}")

    rank = {name: i for i, name in enumerate(priority)}
    ordered = sorted(candidates.items(), key=lambda kv: (rank.get(kv[0], len(rank)), kv[0]))
    primary_name, primary = ordered[0]

    merged: dict = {
        "match_id": primary.match_id,
        "timestamp": max(s.timestamp for s in candidates.values()),
        "sportsbook": primary.sportsbook,
    }
    sources: dict[str, str] = {}
    for field_name in MERGEABLE_FIELDS:
        for provider, snapshot in ordered:
            value = getattr(snapshot, field_name)
            if value is not None:
                merged[field_name] = value
                sources[field_name] = provider
                break

    logger.debug(
        "Merged provider snapshots",
        match_id=primary.match_id,
        primary=primary_name,
        providers=[name for name, _ in ordered],
        fallbacks={f: p for f, p in sources.items() if p != primary_name},
    )
    return MarketSnapshot(**merged)
