"""
Payment Operations Module

Members submit a payment (with a proof URL) against exactly one of their
dues or fines; an admin confirms it, which settles the target and posts the
money to the cash log in one transaction.
"""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from patota.config import ClubPolicy
from patota.data_models.finance import DueTarget, FineTarget, PaymentTarget
from patota.data_models.members import Actor
from patota.database.models import (
    CashCategory, CashDirection, Due, DueStatus, Fine, Member, Payment, PaymentStatus
)
from patota.operations.base import BaseOperations, require_admin, validate_positive_int
from patota.operations.cash_operations import CashOperations
from patota.utils.exceptions import Conflict, Forbidden, NotFoundError, PaymentAlreadyConfirmed, ValidationError
from patota.utils.time_parser import utcnow


class PaymentOperations(BaseOperations):

    def __init__(self, database, policy: Optional[ClubPolicy] = None,
                 cash_ops: Optional[CashOperations] = None):
        super().__init__(database, policy)
        self.cash_ops = cash_ops or CashOperations(database, self.policy)

    async def _open_amount(self, session: AsyncSession, member_id: int, target: PaymentTarget) -> int:
        """Validate the target is the member's and still open; return its amount."""
        if isinstance(target, DueTarget):
            due = await session.get(Due, target.due_id)
            if due is None:
                raise NotFoundError("Due", target.due_id)
            if due.member_id != member_id:
                raise Forbidden("pay another member's due", "This due belongs to another member.")
            if due.status == DueStatus.PAID:
                raise Conflict(f"The due for {due.period} is already paid.")
            if due.status == DueStatus.EXEMPT:
                raise Conflict(f"You are exempt for {due.period}; there is nothing to pay.")
            pending = Payment.due_id == due.id
            amount = due.amount
        elif isinstance(target, FineTarget):
            fine = await session.get(Fine, target.fine_id)
            if fine is None:
                raise NotFoundError("Fine", target.fine_id)
            if fine.member_id != member_id:
                raise Forbidden("pay another member's fine", "This fine belongs to another member.")
            if fine.paid:
                raise Conflict(f"Fine {fine.id} is already paid.")
            pending = Payment.fine_id == fine.id
            amount = fine.amount
        else:
            raise ValidationError("A payment must target a due or a fine")

        waiting = await session.execute(
            select(Payment.id).where(pending, Payment.status == PaymentStatus.PENDING)
        )
        if waiting.first() is not None:
            raise Conflict("A payment for this item is already waiting for an admin to confirm it.")
        return amount

    async def submit_payment(self, member_id: int, target: PaymentTarget, amount: Optional[int] = None,
                             proof_url: Optional[str] = None) -> Payment:
        """
        Register a member's payment for confirmation.

        The amount defaults to the open amount of the due or fine.
        """
        if amount is not None:
            validate_positive_int(amount, "Amount")

        async with self.store_guard("submit the payment"):
            async with self.db.transaction() as session:
                if await session.get(Member, member_id) is None:
                    raise NotFoundError("Member", member_id)
                open_amount = await self._open_amount(session, member_id, target)

                payment = Payment(
                    member_id=member_id,
                    due_id=target.due_id if isinstance(target, DueTarget) else None,
                    fine_id=target.fine_id if isinstance(target, FineTarget) else None,
                    amount=amount if amount is not None else open_amount,
                    status=PaymentStatus.PENDING,
                    proof_url=(proof_url or '').strip() or None,
                )
                session.add(payment)
                await session.flush()

        self.logger.info(f"Member {member_id} submitted payment {payment.id} for {target} ({payment.amount})")
        return payment

    async def confirm_payment(self, actor: Actor, payment_id: int) -> Payment:
        """
        Confirm a pending payment.

        Flips the due to PAID or the fine to paid and posts a cash IN entry
        referencing ``payment:<id>``.

        Raises:
            PaymentAlreadyConfirmed: The payment was confirmed before
            Conflict: The due is no longer pending or the fine is already paid
        """
        require_admin(actor, "confirm payments")

        async with self.store_guard("confirm the payment"):
            async with self.db.transaction() as session:
                payment = await session.get(Payment, payment_id)
                if payment is None:
                    raise NotFoundError("Payment", payment_id)
                if payment.status == PaymentStatus.CONFIRMED:
                    raise PaymentAlreadyConfirmed(payment_id)

                now = utcnow()
                flipped = await session.execute(
                    update(Payment)
                    .where(Payment.id == payment_id, Payment.status == PaymentStatus.PENDING)
                    .values(status=PaymentStatus.CONFIRMED, confirmed_by=actor.member_id, confirmed_at=now)
                    .execution_options(synchronize_session=False)
                )
                if flipped.rowcount != 1:
                    raise PaymentAlreadyConfirmed(payment_id)

                member = await session.get(Member, payment.member_id)
                who = member.name if member else f"member {payment.member_id}"
                target = payment.target
                if isinstance(target, DueTarget):
                    due = await session.get(Due, target.due_id)
                    if due.status != DueStatus.PENDING:
                        raise Conflict(f"The due for {due.period} is {due.status.name.lower()}; this payment cannot be confirmed.")
                    due.status = DueStatus.PAID
                    due.paid_at = now
                    category = CashCategory.DUES
                    note = f"Dues {due.period} - {who}"
                else:
                    fine = await session.get(Fine, target.fine_id)
                    if fine.paid:
                        raise Conflict(f"Fine {fine.id} is already paid; this payment cannot be confirmed.")
                    fine.paid = True
                    fine.paid_at = now
                    category = CashCategory.FINE
                    note = f"Fine #{fine.id} ({fine.kind.name}) - {who}"

                await self.cash_ops.post_entry(
                    session, CashDirection.IN, category, payment.amount,
                    reference=f"payment:{payment_id}", note=note, posted_by=actor.member_id,
                )
                await self._audit(session, actor, 'payment_confirm', f"payment:{payment_id}",
                                  paid_for=str(target), amount=payment.amount)

                payment.status = PaymentStatus.CONFIRMED
                payment.confirmed_by = actor.member_id
                payment.confirmed_at = now

        self.logger.info(f"{actor.name} confirmed payment {payment_id} ({note})")
        return payment
