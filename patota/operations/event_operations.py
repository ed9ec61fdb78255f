"""
Event Operations Module

Event scheduling, RSVPs and attendance:
- create_event() / update_event() / delete_event(): admin scheduling
- confirm_presence(): member RSVP, upsert by (event, member), last write wins
- record_attendance(): admin mark that triggers fines and attendance points
- update_named_score(): free-form score for events played without a draw
- close_event_list(): active members who never answered the RSVP

Attendance side effects fire only when the stored status changes into the
triggering status, so re-saving the same mark never charges twice.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import selectinload

from patota.config import ClubPolicy
from patota.data_models.events import AttendanceOutcome, EventDetails, MemberLine
from patota.data_models.members import Actor
from patota.database.models import (
    AttendanceStatus, Event, EventAttendance, EventRsvp, EventType, Fine, Member,
    PointsEntry, PointsReason, RsvpStatus
)
from patota.operations.base import BaseOperations, coerce_enum, require_admin, validate_non_negative_int
from patota.operations.fine_operations import FineOperations
from patota.operations.team_operations import is_confirmation_open
from patota.utils.exceptions import ConfirmationsClosed, Forbidden, NotFoundError, ValidationError
from patota.utils.time_parser import utcnow

EDITABLE_EVENT_FIELDS = ('event_type', 'starts_at', 'location', 'rsvp_deadline', 'title')


class EventOperations(BaseOperations):

    def __init__(self, database, policy: Optional[ClubPolicy] = None,
                 fine_ops: Optional[FineOperations] = None):
        super().__init__(database, policy)
        self.fine_ops = fine_ops or FineOperations(database, self.policy)

    @staticmethod
    def _validate_schedule(starts_at, rsvp_deadline, location) -> None:
        if not isinstance(starts_at, datetime):
            raise ValidationError("Event date/time is required")
        if not (location or '').strip():
            raise ValidationError("Event location is required")
        if rsvp_deadline is not None:
            if not isinstance(rsvp_deadline, datetime):
                raise ValidationError("RSVP deadline must be a date/time")
            if rsvp_deadline > starts_at:
                raise ValidationError("The RSVP deadline must be before the event starts")

    async def create_event(self, actor: Actor, event_type, starts_at: datetime, location: str,
                           rsvp_deadline: Optional[datetime] = None, title: Optional[str] = None) -> Event:
        require_admin(actor, "create events")
        event_type = coerce_enum(EventType, event_type, "event type")
        self._validate_schedule(starts_at, rsvp_deadline, location)

        async with self.store_guard("create the event"):
            async with self.db.transaction() as session:
                event = Event(
                    event_type=event_type,
                    starts_at=starts_at,
                    location=location.strip(),
                    rsvp_deadline=rsvp_deadline,
                    title=(title or '').strip() or None,
                    created_by=actor.member_id,
                )
                session.add(event)
                await session.flush()
                await self._audit(session, actor, 'event_create', f"event:{event.id}",
                                  event_type=event_type.name, starts_at=starts_at, location=event.location)

        self.logger.info(f"{actor.name} created {event_type.name} event {event.id} at {starts_at}")
        return event

    async def update_event(self, actor: Actor, event_id: int, **fields) -> Event:
        require_admin(actor, "edit events")
        unknown = set(fields) - set(EDITABLE_EVENT_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot edit event field(s): {', '.join(sorted(unknown))}")
        if 'event_type' in fields:
            fields['event_type'] = coerce_enum(EventType, fields['event_type'], "event type")
        if 'title' in fields:
            fields['title'] = (fields['title'] or '').strip() or None

        async with self.store_guard("update the event"):
            async with self.db.transaction() as session:
                event = await session.get(Event, event_id)
                if event is None:
                    raise NotFoundError("Event", event_id)
                self._validate_schedule(
                    fields.get('starts_at', event.starts_at),
                    fields.get('rsvp_deadline', event.rsvp_deadline),
                    fields.get('location', event.location),
                )
                for column, value in fields.items():
                    setattr(event, column, value.strip() if column == 'location' else value)
                await self._audit(session, actor, 'event_update', f"event:{event_id}", **fields)

        self.logger.info(f"{actor.name} updated event {event_id}: {sorted(fields)}")
        return event

    async def delete_event(self, actor: Actor, event_id: int) -> None:
        """
        Delete an event with its RSVPs, attendance and points.

        Fines charged at the event are kept (their cash is already in the
        log) and simply lose the event link.
        """
        require_admin(actor, "delete events")

        async with self.store_guard("delete the event"):
            async with self.db.transaction() as session:
                event = await session.get(Event, event_id)
                if event is None:
                    raise NotFoundError("Event", event_id)
                for model in (PointsEntry, EventRsvp, EventAttendance):
                    await session.execute(
                        delete(model).where(model.event_id == event_id)
                        .execution_options(synchronize_session=False)
                    )
                await session.execute(
                    update(Fine).where(Fine.event_id == event_id).values(event_id=None)
                    .execution_options(synchronize_session=False)
                )
                await session.execute(
                    delete(Event).where(Event.id == event_id).execution_options(synchronize_session=False)
                )
                await self._audit(session, actor, 'event_delete', f"event:{event_id}",
                                  starts_at=event.starts_at, location=event.location)

        self.logger.info(f"{actor.name} deleted event {event_id}")

    async def get_event(self, event_id: int) -> Event:
        async with self._get_session_context() as session:
            event = await session.get(Event, event_id)
            if event is None:
                raise NotFoundError("Event", event_id)
            return event

    async def list_events(self, limit: Optional[int] = None) -> List[Event]:
        async with self._get_session_context() as session:
            query = select(Event).order_by(Event.starts_at.desc(), Event.id.desc())
            if limit:
                query = query.limit(limit)
            result = await session.execute(query)
            return list(result.scalars().all())

    async def list_upcoming_events(self, now: Optional[datetime] = None,
                                   limit: Optional[int] = None) -> List[Event]:
        async with self._get_session_context() as session:
            query = (
                select(Event)
                .where(Event.starts_at >= (now or utcnow()))
                .order_by(Event.starts_at, Event.id)
            )
            if limit:
                query = query.limit(limit)
            result = await session.execute(query)
            return list(result.scalars().all())

    async def get_next_event(self, now: Optional[datetime] = None) -> Optional[Event]:
        events = await self.list_upcoming_events(now=now, limit=1)
        return events[0] if events else None

    async def get_event_details(self, event_id: int, now: Optional[datetime] = None) -> EventDetails:
        """The event with its RSVP lists and attendance marks, names resolved."""
        async with self._get_session_context() as session:
            result = await session.execute(
                select(Event)
                .where(Event.id == event_id)
                .options(
                    selectinload(Event.rsvps).selectinload(EventRsvp.member),
                    selectinload(Event.attendance).selectinload(EventAttendance.member),
                )
            )
            event = result.scalar_one_or_none()
            if event is None:
                raise NotFoundError("Event", event_id)

            lists = {status: [] for status in RsvpStatus}
            for rsvp in sorted(event.rsvps, key=lambda r: (r.updated_at, r.id)):
                lists[rsvp.status].append(MemberLine(rsvp.member_id, rsvp.member.name))
            attendance = [
                (MemberLine(mark.member_id, mark.member.name), mark.status)
                for mark in sorted(event.attendance, key=lambda a: a.member.name.casefold())
            ]

            return EventDetails(
                event=event,
                going=lists[RsvpStatus.GOING],
                maybe=lists[RsvpStatus.MAYBE],
                not_going=lists[RsvpStatus.NOT_GOING],
                attendance=attendance,
                confirmations_open=is_confirmation_open(event, now),
            )

    async def confirm_presence(self, member_id: int, event_id: int, status,
                               responded_at: Optional[datetime] = None) -> EventRsvp:
        """
        Upsert a member's RSVP.

        A response older than the stored one is ignored, so out-of-order
        deliveries cannot resurrect a stale answer.

        Raises:
            ConfirmationsClosed: Teams drawn or deadline passed
            Forbidden: Member is inactive
        """
        status = coerce_enum(RsvpStatus, status, "RSVP status")
        responded_at = responded_at or utcnow()

        async with self.store_guard("save your RSVP", "Your RSVP was saved at the same time elsewhere. Try again."):
            async with self.db.transaction() as session:
                event = await session.get(Event, event_id)
                if event is None:
                    raise NotFoundError("Event", event_id)
                member = await session.get(Member, member_id)
                if member is None:
                    raise NotFoundError("Member", member_id)
                if not member.is_active:
                    raise Forbidden("confirm presence", "Inactive members cannot confirm presence. Talk to an admin.")
                if not is_confirmation_open(event):
                    self.logger.warning(f"RSVP from member {member_id} for closed event {event_id} rejected")
                    raise ConfirmationsClosed(event_id)

                result = await session.execute(
                    select(EventRsvp).where(EventRsvp.event_id == event_id, EventRsvp.member_id == member_id)
                )
                rsvp = result.scalar_one_or_none()

                if rsvp is None:
                    rsvp = EventRsvp(event_id=event_id, member_id=member_id, status=status, updated_at=responded_at)
                    session.add(rsvp)
                elif rsvp.updated_at is not None and responded_at < rsvp.updated_at:
                    self.logger.debug(
                        f"Ignoring stale RSVP from member {member_id} for event {event_id} "
                        f"({responded_at} < {rsvp.updated_at})"
                    )
                    return rsvp
                else:
                    rsvp.status = status
                    rsvp.updated_at = responded_at
                await session.flush()

        self.logger.info(f"Member {member_id} answered {status.name} for event {event_id}")
        return rsvp

    async def record_attendance(self, actor: Actor, event_id: int, member_id: int, status) -> AttendanceOutcome:
        """
        Record an attendance mark and apply its consequences in one transaction.

        - into LATE: late fine + cash entry
        - into ABSENT after a GOING RSVP: no-show fine + cash entry
        - into PRESENT at a GAME: +1 ATTENDANCE point
        - out of PRESENT: the ATTENDANCE point is removed

        Fines are not reversed when a mark changes again; an admin settles
        those by hand.
        """
        require_admin(actor, "record attendance")
        status = coerce_enum(AttendanceStatus, status, "attendance status")

        async with self.store_guard("record attendance"):
            async with self.db.transaction() as session:
                event = await session.get(Event, event_id)
                if event is None:
                    raise NotFoundError("Event", event_id)
                if await session.get(Member, member_id) is None:
                    raise NotFoundError("Member", member_id)

                result = await session.execute(
                    select(EventAttendance).where(
                        EventAttendance.event_id == event_id, EventAttendance.member_id == member_id
                    )
                )
                mark = result.scalar_one_or_none()
                previous = mark.status if mark else None

                if previous == status:
                    self.logger.debug(f"Attendance for member {member_id} at event {event_id} unchanged ({status.name})")
                    return AttendanceOutcome(event_id, member_id, status, previous)

                if mark is None:
                    mark = EventAttendance(event_id=event_id, member_id=member_id, status=status,
                                           recorded_by=actor.member_id)
                    session.add(mark)
                else:
                    mark.status = status
                    mark.recorded_by = actor.member_id
                    mark.recorded_at = utcnow()
                await session.flush()

                fine = await self.fine_ops.apply_attendance_fine(
                    session, event, member_id, status, posted_by=actor.member_id
                )

                points_awarded = False
                points_removed = 0
                if status == AttendanceStatus.PRESENT and event.is_game:
                    session.add(PointsEntry(
                        member_id=member_id, event_id=event_id, points=1, goals=0,
                        reason=PointsReason.ATTENDANCE,
                    ))
                    points_awarded = True
                elif previous == AttendanceStatus.PRESENT:
                    removed = await session.execute(
                        delete(PointsEntry).where(
                            PointsEntry.event_id == event_id,
                            PointsEntry.member_id == member_id,
                            PointsEntry.reason == PointsReason.ATTENDANCE,
                        ).execution_options(synchronize_session=False)
                    )
                    points_removed = removed.rowcount

                await self._audit(session, actor, 'attendance_record', f"event:{event_id}",
                                  member_id=member_id, status=status.name,
                                  previous=previous.name if previous else None,
                                  fine_id=fine.id if fine else None)

        self.logger.info(
            f"{actor.name} marked member {member_id} {status.name} at event {event_id}"
            f"{f', fine {fine.id}' if fine else ''}"
        )
        return AttendanceOutcome(
            event_id=event_id,
            member_id=member_id,
            status=status,
            previous_status=previous,
            fine=fine,
            points_awarded=points_awarded,
            points_removed=points_removed,
        )

    async def update_named_score(self, actor: Actor, event_id: int, team_a_name: str, team_b_name: str,
                                 team_a_score: int, team_b_score: int) -> Event:
        """Free-form score for events played without a draw. Posts no points."""
        require_admin(actor, "register scores")
        validate_non_negative_int(team_a_score, "Team A score")
        validate_non_negative_int(team_b_score, "Team B score")
        team_a_name = (team_a_name or '').strip() or "Team A"
        team_b_name = (team_b_name or '').strip() or "Team B"
        if len(team_a_name) > 50 or len(team_b_name) > 50:
            raise ValidationError("Team names must be at most 50 characters")

        async with self.store_guard("save the score"):
            async with self.db.transaction() as session:
                event = await session.get(Event, event_id)
                if event is None:
                    raise NotFoundError("Event", event_id)
                event.team_a_name = team_a_name
                event.team_b_name = team_b_name
                event.team_a_score = team_a_score
                event.team_b_score = team_b_score
                await self._audit(session, actor, 'named_score_update', f"event:{event_id}",
                                  team_a=(team_a_name, team_a_score), team_b=(team_b_name, team_b_score))

        self.logger.info(f"{actor.name} set {team_a_name} {team_a_score} x {team_b_score} {team_b_name} for event {event_id}")
        return event

    async def close_event_list(self, actor: Actor, event_id: int) -> List[Member]:
        """Active members who have not answered the event's RSVP."""
        require_admin(actor, "close the event list")
        async with self._get_session_context() as session:
            if await session.get(Event, event_id) is None:
                raise NotFoundError("Event", event_id)
            answered = select(EventRsvp.member_id).where(EventRsvp.event_id == event_id)
            result = await session.execute(
                select(Member)
                .where(Member.is_active == True, Member.id.not_in(answered))
                .order_by(Member.name, Member.id)
            )
            return list(result.scalars().all())
