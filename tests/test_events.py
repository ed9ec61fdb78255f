from datetime import timedelta

import pytest
from sqlalchemy import func, select

from patota.database.models import (
    AttendanceStatus, CashCategory, CashDirection, EventType, FineKind, PointsEntry, PointsReason, RsvpStatus
)
from patota.utils.exceptions import ConfirmationsClosed, Forbidden, NotFoundError, ValidationError
from patota.utils.time_parser import utcnow


async def _points(db, member_id, reason=None):
    async with db.get_session() as session:
        query = select(func.count(PointsEntry.id)).where(PointsEntry.member_id == member_id)
        if reason is not None:
            query = query.where(PointsEntry.reason == reason)
        return await session.scalar(query)


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------

async def test_create_event_validates_deadline(event_ops, admin):
    starts = utcnow() + timedelta(days=3)
    event = await event_ops.create_event(admin, "GAME", starts, " Arena CCC ",
                                         rsvp_deadline=starts - timedelta(hours=2), title="Saturday game")
    assert event.event_type == EventType.GAME
    assert event.location == "Arena CCC"
    assert event.drawn is False

    with pytest.raises(ValidationError):
        await event_ops.create_event(admin, "GAME", starts, "Arena", rsvp_deadline=starts + timedelta(hours=1))


async def test_create_event_rejects_unknown_type(event_ops, admin):
    with pytest.raises(ValidationError):
        await event_ops.create_event(admin, "TOURNAMENT", utcnow() + timedelta(days=1), "Arena")


async def test_create_event_requires_admin(event_ops, make_member, as_actor):
    regular = await make_member()
    with pytest.raises(Forbidden):
        await event_ops.create_event(as_actor(regular), "GAME", utcnow() + timedelta(days=1), "Arena")


async def test_update_event_rejects_unknown_fields(event_ops, admin, make_event):
    event = await make_event()
    with pytest.raises(ValidationError):
        await event_ops.update_event(admin, event.id, drawn=True)

    updated = await event_ops.update_event(admin, event.id, location="New field", event_type="internal")
    assert updated.location == "New field"
    assert updated.event_type == EventType.INTERNAL


async def test_next_event_is_the_earliest_upcoming(event_ops, make_event):
    now = utcnow()
    await make_event(starts_at=now - timedelta(days=1))
    later = await make_event(starts_at=now + timedelta(days=5))
    sooner = await make_event(starts_at=now + timedelta(days=1))

    assert (await event_ops.get_next_event(now=now)).id == sooner.id
    assert [e.id for e in await event_ops.list_upcoming_events(now=now)] == [sooner.id, later.id]


async def test_delete_event_removes_rsvps_and_points(db, event_ops, admin, make_event, make_member):
    event = await make_event()
    member = await make_member()
    await event_ops.confirm_presence(member.id, event.id, "GOING")
    await event_ops.record_attendance(admin, event.id, member.id, "PRESENT")

    await event_ops.delete_event(admin, event.id)

    with pytest.raises(NotFoundError):
        await event_ops.get_event(event.id)
    assert await _points(db, member.id) == 0


# ---------------------------------------------------------------------------
# RSVP
# ---------------------------------------------------------------------------

async def test_confirm_presence_upserts(event_ops, make_event, make_member):
    event = await make_event()
    member = await make_member(name="Ana")

    first = await event_ops.confirm_presence(member.id, event.id, "GOING")
    second = await event_ops.confirm_presence(member.id, event.id, RsvpStatus.MAYBE)

    assert first.id == second.id
    details = await event_ops.get_event_details(event.id)
    assert [line.name for line in details.maybe] == ["Ana"]
    assert details.going == []


async def test_stale_rsvp_is_ignored(event_ops, make_event, make_member):
    event = await make_event()
    member = await make_member()
    now = utcnow()

    await event_ops.confirm_presence(member.id, event.id, "NOT_GOING", responded_at=now)
    stale = await event_ops.confirm_presence(member.id, event.id, "GOING", responded_at=now - timedelta(minutes=5))

    assert stale.status == RsvpStatus.NOT_GOING


async def test_rsvp_rejected_after_deadline(event_ops, make_event, make_member):
    event = await make_event(rsvp_deadline=utcnow() - timedelta(minutes=1))
    member = await make_member()
    with pytest.raises(ConfirmationsClosed):
        await event_ops.confirm_presence(member.id, event.id, "GOING")


async def test_rsvp_rejected_for_inactive_member(event_ops, make_event, make_member):
    event = await make_event()
    member = await make_member(active=False)
    with pytest.raises(Forbidden):
        await event_ops.confirm_presence(member.id, event.id, "GOING")


async def test_close_event_list_lists_silent_active_members(event_ops, admin, make_event, make_member):
    event = await make_event()
    answered = await make_member(name="Answered")
    silent = await make_member(name="Silent")
    await make_member(name="Gone", active=False)
    await event_ops.confirm_presence(answered.id, event.id, "NOT_GOING")

    missing = await event_ops.close_event_list(admin, event.id)
    names = [m.name for m in missing]
    assert "Silent" in names
    assert "Answered" not in names
    assert "Gone" not in names
    assert silent.id in {m.id for m in missing}


# ---------------------------------------------------------------------------
# Attendance, fines and attendance points
# ---------------------------------------------------------------------------

async def test_late_without_rsvp_creates_one_fine_and_cash_entry(
    event_ops, fine_ops, cash_service, admin, make_event, make_member
):
    event = await make_event()
    member = await make_member()
    before = await cash_service.balance()

    outcome = await event_ops.record_attendance(admin, event.id, member.id, "LATE")

    fines = await fine_ops.list_fines(member_id=member.id)
    assert len(fines) == 1
    assert fines[0].kind == FineKind.LATE
    assert fines[0].amount == 500
    assert outcome.fine.id == fines[0].id

    entries = await cash_service.ledger()
    assert len(entries) == 1
    assert entries[0].direction == CashDirection.IN
    assert entries[0].category == CashCategory.FINE
    assert entries[0].reference == f"fine:{fines[0].id}"
    assert await cash_service.balance() == before + 500


async def test_absent_after_going_is_a_no_show(event_ops, fine_ops, admin, make_event, make_member):
    event = await make_event()
    member = await make_member()
    await event_ops.confirm_presence(member.id, event.id, "GOING")

    await event_ops.record_attendance(admin, event.id, member.id, "ABSENT")

    fines = await fine_ops.list_fines(member_id=member.id)
    assert [(f.kind, f.amount) for f in fines] == [(FineKind.CONFIRMED_NO_SHOW, 1000)]


@pytest.mark.parametrize("rsvp", ["NOT_GOING", "MAYBE", None])
async def test_absent_without_going_is_not_fined(event_ops, fine_ops, cash_service, admin, make_event, make_member, rsvp):
    event = await make_event()
    member = await make_member()
    if rsvp:
        await event_ops.confirm_presence(member.id, event.id, rsvp)

    outcome = await event_ops.record_attendance(admin, event.id, member.id, "ABSENT")

    assert outcome.fine is None
    assert await fine_ops.list_fines(member_id=member.id) == []
    assert await cash_service.balance() == 0


async def test_repeating_the_same_mark_does_not_charge_twice(event_ops, fine_ops, admin, make_event, make_member):
    event = await make_event()
    member = await make_member()

    await event_ops.record_attendance(admin, event.id, member.id, "LATE")
    outcome = await event_ops.record_attendance(admin, event.id, member.id, AttendanceStatus.LATE)

    assert outcome.changed is False
    assert len(await fine_ops.list_fines(member_id=member.id)) == 1


async def test_present_at_game_earns_a_point_that_leaving_present_removes(
    db, event_ops, admin, make_event, make_member
):
    event = await make_event(event_type=EventType.GAME)
    member = await make_member()

    outcome = await event_ops.record_attendance(admin, event.id, member.id, "PRESENT")
    assert outcome.points_awarded is True
    await event_ops.record_attendance(admin, event.id, member.id, "PRESENT")
    assert await _points(db, member.id, PointsReason.ATTENDANCE) == 1

    outcome = await event_ops.record_attendance(admin, event.id, member.id, "EXCUSED")
    assert outcome.points_removed == 1
    assert await _points(db, member.id, PointsReason.ATTENDANCE) == 0


async def test_present_at_internal_event_earns_nothing(db, event_ops, admin, make_event, make_member):
    event = await make_event(event_type=EventType.INTERNAL)
    member = await make_member()

    outcome = await event_ops.record_attendance(admin, event.id, member.id, "PRESENT")

    assert outcome.points_awarded is False
    assert await _points(db, member.id) == 0


async def test_record_attendance_requires_admin(event_ops, make_event, make_member, as_actor):
    event = await make_event()
    member = await make_member()
    with pytest.raises(Forbidden):
        await event_ops.record_attendance(as_actor(member), event.id, member.id, "PRESENT")


async def test_named_score_posts_no_points(db, event_ops, admin, make_event, make_member):
    event = await make_event()
    updated = await event_ops.update_named_score(admin, event.id, "Veteranos", "", 4, 2)

    assert (updated.team_a_name, updated.team_b_name) == ("Veteranos", "Team B")
    assert (updated.team_a_score, updated.team_b_score) == (4, 2)
    async with db.get_session() as session:
        assert await session.scalar(select(func.count(PointsEntry.id))) == 0

    with pytest.raises(ValidationError):
        await event_ops.update_named_score(admin, event.id, "A", "B", -1, 0)
