from datetime import datetime

import pytest

from patota.database.models import CashCategory, CashDirection, CashEntry
from patota.services.cash_ledger import fold_balance, summarize
from patota.utils.exceptions import Forbidden, ValidationError


def test_fold_balance():
    entries = [(CashDirection.IN, 3500), (CashDirection.OUT, 1200), (CashDirection.IN, 500)]
    assert fold_balance(entries) == 2800
    summary = summarize(entries)
    assert (summary.total_in, summary.total_out, summary.net) == (4000, 1200, 2800)


async def test_cash_out_reduces_balance(cash_ops, cash_service, fine_ops, admin, make_event, make_member):
    event = await make_event()
    member = await make_member()
    await fine_ops.add_guest(admin, event.id, member.id, 4)

    entry = await cash_ops.record_cash_out(admin, "field", 1500, note="Field rental")

    assert entry.direction == CashDirection.OUT
    assert entry.category == CashCategory.FIELD
    assert await cash_service.balance() == 2000 - 1500


async def test_balance_may_go_negative(cash_ops, cash_service, admin):
    await cash_ops.record_cash_out(admin, CashCategory.EQUIPMENT, 800)
    assert await cash_service.balance() == -800


@pytest.mark.parametrize("category", ["fine", "dues", "GUEST", "bogus"])
async def test_cash_out_category_is_restricted(cash_ops, admin, category):
    with pytest.raises(ValidationError):
        await cash_ops.record_cash_out(admin, category, 100)


@pytest.mark.parametrize("amount", [0, -5])
async def test_cash_out_amount_must_be_positive(cash_ops, admin, amount):
    with pytest.raises(ValidationError):
        await cash_ops.record_cash_out(admin, "other", amount)


async def test_cash_out_requires_admin(cash_ops, make_member, as_actor):
    member = await make_member()
    with pytest.raises(Forbidden):
        await cash_ops.record_cash_out(as_actor(member), "field", 100)


async def test_ledger_order_and_window(db, cash_service):
    async with db.transaction() as session:
        for day, amount in ((1, 100), (5, 200), (5, 300), (9, 400)):
            session.add(CashEntry(direction=CashDirection.IN, category=CashCategory.OTHER,
                                  amount=amount, created_at=datetime(2024, 4, day, 12, 0)))

    entries = await cash_service.ledger()
    assert [e.amount for e in entries] == [400, 300, 200, 100]

    window = await cash_service.ledger(from_date=datetime(2024, 4, 5), to_date=datetime(2024, 4, 9, 12, 0))
    assert [e.amount for e in window] == [400, 300, 200]

    before_last = await cash_service.ledger(to_date=datetime(2024, 4, 9, 11, 59))
    assert [e.amount for e in before_last] == [300, 200, 100]

    assert [e.amount for e in await cash_service.ledger(limit=1)] == [400]

    summary = await cash_service.summary(from_date=datetime(2024, 4, 2))
    assert summary.total_in == 900
