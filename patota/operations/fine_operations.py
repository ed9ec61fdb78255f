"""
Fine Operations Module

Derives fines from attendance outcomes and guest registrations, and posts
each one to the cash log in the same transaction:

- LATE                       -> LATE fine (policy late fee)
- ABSENT after RSVP GOING    -> CONFIRMED_NO_SHOW fine (policy no-show fee)
- ABSENT without GOING RSVP  -> nothing; only a broken promise is fined
- add_guest()                -> GUEST fine (count x policy guest fee)

A fine never exists without its cash entry: both rows are flushed on the
same session and commit or roll back together.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from patota.config import ClubPolicy
from patota.data_models.members import Actor
from patota.database.models import (
    AttendanceStatus, CashCategory, CashDirection, Event, EventRsvp, Fine, FineKind, Member, RsvpStatus
)
from patota.operations.base import BaseOperations, validate_positive_int
from patota.operations.cash_operations import CashOperations
from patota.utils.exceptions import Forbidden, NotFoundError, ValidationError


class FineOperations(BaseOperations):

    def __init__(self, database, policy: Optional[ClubPolicy] = None,
                 cash_ops: Optional[CashOperations] = None):
        super().__init__(database, policy)
        self.cash_ops = cash_ops or CashOperations(database, self.policy)

    async def post_fine(
        self,
        session: AsyncSession,
        member_id: int,
        kind: FineKind,
        amount: int,
        event_id: Optional[int] = None,
        note: Optional[str] = None,
        posted_by: Optional[int] = None,
        category: CashCategory = CashCategory.FINE,
    ) -> Fine:
        """Insert a fine and its matching cash IN entry on the caller's session."""
        fine = Fine(
            member_id=member_id,
            event_id=event_id,
            kind=kind,
            amount=amount,
            note=note,
            created_by=posted_by,
        )
        session.add(fine)
        await session.flush()

        await self.cash_ops.post_entry(
            session, CashDirection.IN, category, amount,
            reference=f"fine:{fine.id}",
            note=note or f"{kind.name} fine",
            posted_by=posted_by,
        )
        self.logger.info(f"Fine {fine.id} ({kind.name}, {amount}) posted for member {member_id}")
        return fine

    async def apply_attendance_fine(
        self,
        session: AsyncSession,
        event: Event,
        member_id: int,
        status: AttendanceStatus,
        posted_by: Optional[int] = None,
    ) -> Optional[Fine]:
        """
        Post the fine an attendance status triggers, if any.

        Runs inside the attendance transaction; the caller decides whether the
        status actually changed.
        """
        if status == AttendanceStatus.LATE:
            if self.policy.late_fee <= 0:
                return None
            return await self.post_fine(
                session, member_id, FineKind.LATE, self.policy.late_fee,
                event_id=event.id, posted_by=posted_by,
            )

        if status == AttendanceStatus.ABSENT:
            result = await session.execute(
                select(EventRsvp.status).where(
                    EventRsvp.event_id == event.id,
                    EventRsvp.member_id == member_id,
                )
            )
            rsvp_status = result.scalar_one_or_none()
            if rsvp_status != RsvpStatus.GOING:
                self.logger.debug(f"Member {member_id} absent from event {event.id} without confirming, no fine")
                return None
            if self.policy.no_show_fee <= 0:
                return None
            return await self.post_fine(
                session, member_id, FineKind.CONFIRMED_NO_SHOW, self.policy.no_show_fee,
                event_id=event.id, posted_by=posted_by,
            )

        return None

    async def add_guest(self, actor: Actor, event_id: int, member_id: int, count: int) -> Fine:
        """
        Charge a member for bringing guests to an event.

        Members register their own guests; admins may register for anyone.
        """
        validate_positive_int(count, "Guest count")
        if member_id is None:
            raise ValidationError("Choose the member who brought the guests")
        if not actor.is_admin and actor.member_id != member_id:
            raise Forbidden("register guests for another member",
                            "You can only register guests you brought yourself.")

        amount = count * self.policy.guest_fee
        if amount <= 0:
            raise ValidationError("The guest fee is not configured for this club.")
        note = f"{count} guest{'s' if count != 1 else ''}"

        async with self.store_guard("register the guests"):
            async with self.db.transaction() as session:
                event = await session.get(Event, event_id)
                if event is None:
                    raise NotFoundError("Event", event_id)
                member = await session.get(Member, member_id)
                if member is None:
                    raise NotFoundError("Member", member_id)

                fine = await self.post_fine(
                    session, member_id, FineKind.GUEST, amount,
                    event_id=event_id, note=note,
                    posted_by=actor.member_id, category=CashCategory.GUEST,
                )
                await self._audit(session, actor, 'guest_add', f"fine:{fine.id}",
                                  event_id=event_id, member_id=member_id, count=count)
                return fine

    async def list_fines(self, member_id: Optional[int] = None, unpaid_only: bool = False) -> List[Fine]:
        async with self._get_session_context() as session:
            query = select(Fine)
            if member_id is not None:
                query = query.where(Fine.member_id == member_id)
            if unpaid_only:
                query = query.where(Fine.paid == False)
            result = await session.execute(query.order_by(Fine.created_at.desc(), Fine.id.desc()))
            return list(result.scalars().all())
