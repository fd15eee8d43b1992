"""
Bet Ledger.

Append-only record of a user's bets. A bet is placed once, settled at most
once, and never deleted.
"""

import threading
from datetime import datetime
from typing import Any, Iterable, Optional, Union

import structlog
from pydantic import ValidationError

from sharpline.models.schemas import BetRecord, BetStatus, LedgerError
from sharpline.utils.clock import Clock, SystemClock

logger = structlog.get_logger()

SETTLED_STATUSES = (BetStatus.WON, BetStatus.LOST, BetStatus.PUSH, BetStatus.CANCELLED)


class BetLedger:
    """In-memory bet ledger keyed by bet id (insertion ordered)."""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()
        self.logger = logger.bind(component="bet_ledger")
        self._bets: dict[str, BetRecord] = {}
        self._lock = threading.Lock()

    def place(self, bet: Union[BetRecord, dict[str, Any]]) -> BetRecord:
        """
        Record a new bet.

        Raises:
            LedgerError: malformed bet, duplicate id, or a bet that is not pending
        """
        if not isinstance(bet, BetRecord):
            try:
                bet = BetRecord.model_validate(bet)
            except ValidationError as e:
                raise LedgerError(f"Malformed bet: {e.error_count()} validation error(s)") from e

        if bet.status != BetStatus.PENDING:
            raise LedgerError(f"Bet {bet.id} must be placed as pending, got {bet.status.value}")

        with self._lock:
            if bet.id in self._bets:
                raise LedgerError(f"Duplicate bet id: {bet.id}")
            self._bets[bet.id] = bet

        self.logger.debug("Bet placed", bet_id=bet.id, match_id=bet.match_id, stake=bet.stake)
        return bet

    def load(self, bets: Iterable[Union[BetRecord, dict[str, Any]]]) -> int:
        """
        Bulk import bets in any status (e.g. from a ledger collaborator).

        All or nothing: the whole batch is validated before any bet is
        recorded.

        Returns:
            Number of bets recorded

        Raises:
            LedgerError: a malformed bet, or an id already in the ledger or
                repeated within the batch
        """
        batch: dict[str, BetRecord] = {}
        for bet in bets:
            if not isinstance(bet, BetRecord):
                try:
                    bet = BetRecord.model_validate(bet)
                except ValidationError as e:
                    raise LedgerError(f"Malformed bet: {e.error_count()} validation error(s)") from e
            if bet.id in batch:
                raise LedgerError(f"Duplicate bet id: {bet.id}")
            batch[bet.id] = bet

        with self._lock:
            duplicates = sorted(batch.keys() & self._bets.keys())
            if duplicates:
                raise LedgerError(f"Duplicate bet id: {duplicates[0]}")
            self._bets.update(batch)

        self.logger.info("Bets loaded", count=len(batch))
        return len(batch)

    def settle(
        self,
        bet_id: str,
        status: BetStatus,
        result_profit: Optional[float] = None,
        settled_at: Optional[datetime] = None,
    ) -> BetRecord:
        """
        Settle a pending bet exactly once.

        Profit is derived from the American odds when not given.

        Raises:
            LedgerError: unknown bet, already settled, or a non-final status
        """
        status = BetStatus(status)
        if status not in SETTLED_STATUSES:
            raise LedgerError(f"Cannot settle bet {bet_id} as {status.value}")

        with self._lock:
            bet = self._bets.get(bet_id)
            if bet is None:
                raise LedgerError(f"Unknown bet id: {bet_id}")
            if bet.is_settled:
                raise LedgerError(f"Bet {bet_id} already settled as {bet.status.value}")

            # Validated again: naive settlement times are stored as UTC
            fields = bet.model_dump()
            fields.update(status=status, settled_at=settled_at or self.clock.now())
            try:
                settled = BetRecord.model_validate(fields)
                if result_profit is None:
                    result_profit = settled.profit
                settled = BetRecord.model_validate({**fields, "result_profit": result_profit})
            except ValidationError as e:
                raise LedgerError(f"Invalid settlement for bet {bet_id}: {e.error_count()} validation error(s)") from e
            self._bets[bet_id] = settled

        self.logger.info(
            "Bet settled",
            bet_id=bet_id,
            status=status.value,
            profit=f"${result_profit:.2f}",
        )
        return settled

    def get(self, bet_id: str) -> Optional[BetRecord]:
        return self._bets.get(bet_id)

    def all(self) -> list[BetRecord]:
        with self._lock:
            return list(self._bets.values())

    def pending(self) -> list[BetRecord]:
        return [b for b in self.all() if b.status == BetStatus.PENDING]

    def settled(self) -> list[BetRecord]:
        return [b for b in self.all() if b.is_settled]

    def __len__(self) -> int:
        return len(self._bets)
