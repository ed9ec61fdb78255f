"""
Cash ledger view: balance and history, recomputed from the append-only
cash log on every read.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func, select

from patota.data_models.finance import CashSummary
from patota.database.models import CashDirection, CashEntry
from patota.services.base import BaseService

logger = logging.getLogger(__name__)


def fold_balance(entries: Iterable[Tuple[CashDirection, int]]) -> int:
    """IN entries add, OUT entries subtract."""
    balance = 0
    for direction, amount in entries:
        balance += amount if direction == CashDirection.IN else -amount
    return balance


def summarize(entries: Iterable[Tuple[CashDirection, int]]) -> CashSummary:
    total_in = total_out = 0
    for direction, amount in entries:
        if direction == CashDirection.IN:
            total_in += amount
        else:
            total_out += amount
    return CashSummary(total_in=total_in, total_out=total_out)


class CashLedgerService(BaseService):

    def _window(self, query, from_date: Optional[datetime], to_date: Optional[datetime]):
        # both bounds inclusive
        if from_date is not None:
            query = query.where(CashEntry.created_at >= from_date)
        if to_date is not None:
            query = query.where(CashEntry.created_at <= to_date)
        return query

    async def _totals(self, from_date: Optional[datetime] = None,
                      to_date: Optional[datetime] = None) -> List[Tuple[CashDirection, int]]:
        query = self._window(
            select(CashEntry.direction, func.coalesce(func.sum(CashEntry.amount), 0))
            .group_by(CashEntry.direction),
            from_date, to_date,
        )
        async with self.get_session() as session:
            result = await session.execute(query)
            return [(direction, int(total)) for direction, total in result.all()]

    async def balance(self) -> int:
        """Current club balance in cents: sum(IN) - sum(OUT)."""
        return fold_balance(await self._totals())

    async def summary(self, from_date: Optional[datetime] = None,
                      to_date: Optional[datetime] = None) -> CashSummary:
        return summarize(await self._totals(from_date, to_date))

    async def ledger(self, from_date: Optional[datetime] = None, to_date: Optional[datetime] = None,
                     limit: Optional[int] = None) -> List[CashEntry]:
        """Entries in reverse chronological order, ties broken by newest id."""
        query = self._window(
            select(CashEntry).order_by(CashEntry.created_at.desc(), CashEntry.id.desc()),
            from_date, to_date,
        )
        if limit:
            query = query.limit(limit)
        async with self.get_session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())
