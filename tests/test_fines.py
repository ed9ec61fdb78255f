from dataclasses import replace

import pytest
from sqlalchemy.exc import SQLAlchemyError

from patota.database.models import CashCategory, FineKind
from patota.operations.event_operations import EventOperations
from patota.operations.fine_operations import FineOperations
from patota.utils.exceptions import Forbidden, NotFoundError, StoreError, ValidationError


async def test_member_registers_own_guests(fine_ops, cash_service, make_event, make_member, as_actor):
    event = await make_event()
    member = await make_member()

    fine = await fine_ops.add_guest(as_actor(member), event.id, member.id, 2)

    assert fine.kind == FineKind.GUEST
    assert fine.amount == 1000
    assert fine.note == "2 guests"
    (entry,) = await cash_service.ledger()
    assert entry.category == CashCategory.GUEST
    assert entry.amount == 1000
    assert await cash_service.balance() == 1000


async def test_admin_registers_guests_for_anyone(fine_ops, admin, make_event, make_member):
    event = await make_event()
    member = await make_member()

    fine = await fine_ops.add_guest(admin, event.id, member.id, 1)

    assert fine.member_id == member.id
    assert fine.note == "1 guest"


async def test_member_cannot_register_guests_for_others(fine_ops, make_event, make_member, as_actor):
    event = await make_event()
    member = await make_member()
    other = await make_member()
    with pytest.raises(Forbidden):
        await fine_ops.add_guest(as_actor(member), event.id, other.id, 1)


@pytest.mark.parametrize("count", [0, -2])
async def test_guest_count_must_be_positive(fine_ops, admin, make_event, make_member, count):
    event = await make_event()
    member = await make_member()
    with pytest.raises(ValidationError):
        await fine_ops.add_guest(admin, event.id, member.id, count)


async def test_guests_for_unknown_event(fine_ops, admin, make_member):
    member = await make_member()
    with pytest.raises(NotFoundError):
        await fine_ops.add_guest(admin, 4040, member.id, 1)


async def test_failed_cash_post_rolls_back_the_fine(monkeypatch, fine_ops, cash_ops, cash_service,
                                                   admin, make_event, make_member):
    event = await make_event()
    member = await make_member()

    async def broken_post_entry(*args, **kwargs):
        raise SQLAlchemyError("disk I/O error")

    monkeypatch.setattr(cash_ops, "post_entry", broken_post_entry)

    with pytest.raises(StoreError):
        await fine_ops.add_guest(admin, event.id, member.id, 1)

    assert await fine_ops.list_fines(member_id=member.id) == []
    assert await cash_service.ledger() == []


async def test_zero_late_fee_skips_the_fine(db, make_event, make_member, admin, policy):
    lenient = replace(policy, late_fee=0)
    fine_ops = FineOperations(db, lenient)
    event_ops = EventOperations(db, lenient, fine_ops=fine_ops)
    event = await make_event()
    member = await make_member()

    outcome = await event_ops.record_attendance(admin, event.id, member.id, "LATE")

    assert outcome.fine is None
    assert await fine_ops.list_fines(member_id=member.id) == []
