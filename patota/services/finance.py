"""
Member-facing finance views: dues, fines, open pendencies and the admin's
queue of payments waiting for confirmation.
"""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from patota.data_models.finance import DueTarget, FineTarget, Pendencies, PendingItem
from patota.database.models import Due, DueStatus, Fine, Payment, PaymentStatus
from patota.services.base import BaseService

logger = logging.getLogger(__name__)


class FinanceService(BaseService):

    async def member_dues(self, member_id: int) -> List[Due]:
        async with self.get_session() as session:
            result = await session.execute(
                select(Due).where(Due.member_id == member_id).order_by(Due.period.desc())
            )
            return list(result.scalars().all())

    async def member_fines(self, member_id: int) -> List[Fine]:
        async with self.get_session() as session:
            result = await session.execute(
                select(Fine).where(Fine.member_id == member_id)
                .order_by(Fine.created_at.desc(), Fine.id.desc())
            )
            return list(result.scalars().all())

    async def pendencies(self, member_id: int) -> Pendencies:
        """Pending dues and unpaid fines, oldest first."""
        async with self.get_session() as session:
            dues = (await session.execute(
                select(Due)
                .where(Due.member_id == member_id, Due.status == DueStatus.PENDING)
                .order_by(Due.period)
            )).scalars().all()
            fines = (await session.execute(
                select(Fine)
                .where(Fine.member_id == member_id, Fine.paid == False)
                .order_by(Fine.created_at, Fine.id)
            )).scalars().all()

        return Pendencies(
            member_id=member_id,
            dues=tuple(
                PendingItem(DueTarget(due.id), f"Dues {due.period} (due {due.due_date:%d/%m})", due.amount)
                for due in dues
            ),
            fines=tuple(
                PendingItem(FineTarget(fine.id), f"Fine #{fine.id} {fine.kind.name}"
                            + (f" ({fine.note})" if fine.note else ''), fine.amount)
                for fine in fines
            ),
        )

    async def pending_payments(self) -> List[Payment]:
        async with self.get_session() as session:
            result = await session.execute(
                select(Payment)
                .options(selectinload(Payment.member))
                .where(Payment.status == PaymentStatus.PENDING)
                .order_by(Payment.created_at, Payment.id)
            )
            return list(result.scalars().all())
