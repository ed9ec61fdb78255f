from datetime import date

import pytest
from sqlalchemy.exc import SQLAlchemyError

from patota.database.models import DueStatus
from patota.utils.exceptions import Conflict, Forbidden, NotFoundError, StoreError, ValidationError


async def test_generation_bills_active_members_once(dues_ops, admin, make_member):
    first = await make_member(name="First")
    second = await make_member(name="Second")
    await make_member(name="Inactive", active=False)

    result = await dues_ops.generate_monthly_dues(admin, 2024, 3)
    # admin + two active players
    assert result.period == "2024-03"
    assert result.created == 3
    assert result.skipped == 0

    again = await dues_ops.generate_monthly_dues(admin, 2024, 3)
    assert again.created == 0
    assert again.skipped == 3

    dues = await dues_ops.list_dues(period="2024-03")
    assert len(dues) == 3
    by_member = {d.member_id: d for d in dues}
    for member in (first, second):
        due = by_member[member.id]
        assert due.amount == 3500
        assert due.status == DueStatus.PENDING
        assert due.due_date == date(2024, 3, 10)


async def test_generation_picks_up_new_members(dues_ops, admin, make_member):
    await dues_ops.generate_monthly_dues(admin, 2024, 4)
    late_joiner = await make_member(name="Late joiner")

    result = await dues_ops.generate_monthly_dues(admin, 2024, 4)

    assert result.created == 1
    assert [d.member_id for d in await dues_ops.list_dues(member_id=late_joiner.id)] == [late_joiner.id]


async def test_exemption_before_generation(dues_ops, admin, make_member):
    member = await make_member()
    await dues_ops.create_exemption(admin, member.id, 2024, 5, "Injured")

    await dues_ops.generate_monthly_dues(admin, 2024, 5)

    (due,) = await dues_ops.list_dues(period="2024-05", member_id=member.id)
    assert due.status == DueStatus.EXEMPT
    assert due.amount == 0


async def test_exemption_after_generation_updates_the_due(dues_ops, admin, make_member):
    member = await make_member()
    await dues_ops.generate_monthly_dues(admin, 2024, 6)

    await dues_ops.create_exemption(admin, member.id, 2024, 6, "Travelling")

    (due,) = await dues_ops.list_dues(period="2024-06", member_id=member.id)
    assert due.status == DueStatus.EXEMPT
    assert due.amount == 0


async def test_duplicate_exemption_conflicts(dues_ops, admin, make_member):
    member = await make_member()
    await dues_ops.create_exemption(admin, member.id, 2024, 7, "Injured")
    with pytest.raises(Conflict):
        await dues_ops.create_exemption(admin, member.id, 2024, 7, "Still injured")


async def test_exemption_requires_reason_and_member(dues_ops, admin, make_member):
    member = await make_member()
    with pytest.raises(ValidationError):
        await dues_ops.create_exemption(admin, member.id, 2024, 7, "  ")
    with pytest.raises(NotFoundError):
        await dues_ops.create_exemption(admin, 9999, 2024, 7, "Ghost")


@pytest.mark.parametrize("month", [0, 13])
async def test_generation_rejects_invalid_month(dues_ops, admin, month):
    with pytest.raises(ValidationError):
        await dues_ops.generate_monthly_dues(admin, 2024, month)


async def test_generation_requires_admin(dues_ops, make_member, as_actor):
    member = await make_member()
    with pytest.raises(Forbidden):
        await dues_ops.generate_monthly_dues(as_actor(member), 2024, 1)


async def test_update_due(dues_ops, admin, make_member):
    member = await make_member()
    await dues_ops.generate_monthly_dues(admin, 2024, 8)
    (due,) = await dues_ops.list_dues(period="2024-08", member_id=member.id)

    updated = await dues_ops.update_due(admin, due.id, amount=2000, status="paid")

    assert updated.amount == 2000
    assert updated.status == DueStatus.PAID
    assert updated.paid_at is not None

    with pytest.raises(ValidationError):
        await dues_ops.update_due(admin, due.id)
    with pytest.raises(ValidationError):
        await dues_ops.update_due(admin, due.id, amount=-1)


async def test_failed_generation_leaves_no_dues(monkeypatch, dues_ops, admin, make_member):
    await make_member()

    async def broken_audit(*args, **kwargs):
        raise SQLAlchemyError("database is locked")

    monkeypatch.setattr(dues_ops, "_audit", broken_audit)

    with pytest.raises(StoreError):
        await dues_ops.generate_monthly_dues(admin, 2024, 10)

    assert await dues_ops.list_dues(period="2024-10") == []
