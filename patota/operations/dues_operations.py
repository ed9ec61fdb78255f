"""
Dues Operations Module

Monthly membership charges:
- generate_monthly_dues(): one Due per active member per period, idempotent
- create_exemption(): waives a period for a member, before or after generation
- update_due(): admin correction of a single due

The (member, period) unique key is what makes generation safe to re-run.
"""

from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import selectinload

from patota.data_models.finance import DuesGenerationResult
from patota.data_models.members import Actor
from patota.database.models import Due, DueStatus, Exemption, Member, Payment, PaymentStatus
from patota.operations.base import BaseOperations, coerce_enum, require_admin, validate_non_negative_int
from patota.utils.exceptions import Conflict, NotFoundError, ValidationError
from patota.utils.time_parser import due_date_for, period_key, utcnow


def _period(year: int, month: int) -> str:
    try:
        return period_key(year, month)
    except ValueError as e:
        raise ValidationError(str(e)) from e


class DuesOperations(BaseOperations):

    async def generate_monthly_dues(self, actor: Actor, year: int, month: int) -> DuesGenerationResult:
        """
        Create the period's Due for every active member that lacks one.

        Members with an exemption for the period get amount 0 / EXEMPT; the
        rest get the policy fee / PENDING. Re-running creates nothing new.

        Raises:
            Forbidden: Caller is not an admin
            StoreError: The batch was rejected; nothing was saved
        """
        require_admin(actor, "generate monthly dues")
        period = _period(year, month)
        due_date = due_date_for(year, month, self.policy.due_day)

        async with self.store_guard(
            f"generate dues for {period}",
            f"Dues for {period} were being generated at the same time. Run the command again.",
        ):
            async with self.db.transaction() as session:
                active_ids = (await session.execute(
                    select(Member.id).where(Member.is_active == True).order_by(Member.id)
                )).scalars().all()
                billed = set((await session.execute(
                    select(Due.member_id).where(Due.period == period)
                )).scalars().all())
                exempt = set((await session.execute(
                    select(Exemption.member_id).where(Exemption.period == period)
                )).scalars().all())

                created = 0
                for member_id in active_ids:
                    if member_id in billed:
                        continue
                    if member_id in exempt:
                        session.add(Due(member_id=member_id, period=period, amount=0,
                                        status=DueStatus.EXEMPT, due_date=due_date))
                    else:
                        session.add(Due(member_id=member_id, period=period, amount=self.policy.monthly_fee,
                                        status=DueStatus.PENDING, due_date=due_date))
                    created += 1

                await session.flush()
                await self._audit(session, actor, 'dues_generate', period, created=created)

        result = DuesGenerationResult(period=period, created=created, skipped=len(active_ids) - created)
        self.logger.info(f"{actor.name} generated dues for {period}: {result.created} created, {result.skipped} skipped")
        return result

    async def create_exemption(self, actor: Actor, member_id: int, year: int, month: int,
                               reason: str) -> Exemption:
        """
        Waive a member's due for a period.

        An already generated Due for the key is switched to EXEMPT / 0 in the
        same transaction and any payment still waiting on it is dropped;
        otherwise generation picks the exemption up later.
        """
        require_admin(actor, "grant exemptions")
        period = _period(year, month)
        reason = (reason or '').strip()
        if not reason:
            raise ValidationError("An exemption needs a reason")

        async with self.store_guard("create the exemption",
                                    f"Member {member_id} already has an exemption for {period}."):
            async with self.db.transaction() as session:
                if await session.get(Member, member_id) is None:
                    raise NotFoundError("Member", member_id)

                existing = await session.execute(
                    select(Exemption.id).where(Exemption.member_id == member_id, Exemption.period == period)
                )
                if existing.scalar_one_or_none() is not None:
                    raise Conflict(f"Member {member_id} already has an exemption for {period}.")

                exemption = Exemption(member_id=member_id, period=period, reason=reason,
                                      approved_by=actor.member_id)
                session.add(exemption)

                result = await session.execute(
                    update(Due)
                    .where(Due.member_id == member_id, Due.period == period)
                    .values(status=DueStatus.EXEMPT, amount=0)
                )
                cancelled = await session.execute(
                    delete(Payment)
                    .where(
                        Payment.status == PaymentStatus.PENDING,
                        Payment.due_id.in_(
                            select(Due.id).where(Due.member_id == member_id, Due.period == period)
                        ),
                    )
                    .execution_options(synchronize_session=False)
                )
                await session.flush()
                await self._audit(session, actor, 'exemption_create', f"member:{member_id}",
                                  period=period, reason=reason, dues_updated=result.rowcount,
                                  payments_cancelled=cancelled.rowcount)

        self.logger.info(f"{actor.name} exempted member {member_id} for {period} ({result.rowcount} due updated)")
        return exemption

    async def update_due(self, actor: Actor, due_id: int, amount: Optional[int] = None,
                         status=None) -> Due:
        require_admin(actor, "edit dues")
        if amount is None and status is None:
            raise ValidationError("Nothing to change: give a new amount or status")
        if amount is not None:
            validate_non_negative_int(amount, "Amount")
        if status is not None:
            status = coerce_enum(DueStatus, status, "due status")

        async with self.store_guard("update the due"):
            async with self.db.transaction() as session:
                due = await session.get(Due, due_id)
                if due is None:
                    raise NotFoundError("Due", due_id)
                changes = {}
                if amount is not None:
                    changes['amount'] = (due.amount, amount)
                    due.amount = amount
                if status is not None:
                    changes['status'] = (due.status.name, status.name)
                    due.status = status
                    due.paid_at = utcnow() if status == DueStatus.PAID else None
                await self._audit(session, actor, 'due_update', f"due:{due_id}", **changes)
                self.logger.info(f"{actor.name} updated due {due_id}: {changes}")
                return due

    async def list_dues(self, period: Optional[str] = None, member_id: Optional[int] = None) -> List[Due]:
        async with self._get_session_context() as session:
            query = select(Due).options(selectinload(Due.member))
            if period is not None:
                query = query.where(Due.period == period)
            if member_id is not None:
                query = query.where(Due.member_id == member_id)
            result = await session.execute(query.order_by(Due.period.desc(), Due.member_id))
            return list(result.scalars().all())
