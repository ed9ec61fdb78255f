"""
Cash Operations Module

Appends entries to the club cash log. The log is append-only: the balance
is always re-derived from it (see ``CashLedgerService``).
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from patota.data_models.members import Actor
from patota.database.models import CashEntry, CashDirection, CashCategory, CASH_OUT_CATEGORIES
from patota.operations.base import BaseOperations, coerce_enum, require_admin, validate_positive_int
from patota.utils.exceptions import ValidationError


class CashOperations(BaseOperations):

    async def post_entry(
        self,
        session: AsyncSession,
        direction: CashDirection,
        category: CashCategory,
        amount: int,
        reference: Optional[str] = None,
        note: Optional[str] = None,
        posted_by: Optional[int] = None,
    ) -> CashEntry:
        """
        Append one entry inside the caller's transaction.

        The caller owns the session so the entry commits (or rolls back)
        together with whatever produced it.
        """
        validate_positive_int(amount, "Amount")
        entry = CashEntry(
            direction=direction,
            category=category,
            amount=amount,
            reference=reference,
            note=note,
            posted_by=posted_by,
        )
        session.add(entry)
        await session.flush()
        self.logger.info(
            f"Cash {direction.name} {amount} ({category.name}) ref={reference or '-'} entry={entry.id}"
        )
        return entry

    async def record_cash_out(self, actor: Actor, category, amount: int,
                              note: Optional[str] = None) -> CashEntry:
        """Admin withdrawal: field rental, equipment, social events or other."""
        require_admin(actor, "record cash withdrawals")
        category = coerce_enum(CashCategory, category, "category")
        if category not in CASH_OUT_CATEGORIES:
            allowed = ', '.join(c.name for c in CASH_OUT_CATEGORIES)
            raise ValidationError(f"Withdrawals must use one of: {allowed}")
        validate_positive_int(amount, "Amount")
        note = (note or '').strip() or None

        async with self.store_guard("record the withdrawal"):
            async with self.db.transaction() as session:
                entry = await self.post_entry(
                    session, CashDirection.OUT, category, amount,
                    note=note, posted_by=actor.member_id,
                )
                await self._audit(session, actor, 'cash_out', f"cash:{entry.id}",
                                  category=category.name, amount=amount, note=note)
                return entry
