import pytest

from patota.data_models.finance import DueTarget, FineTarget
from patota.database.models import CashCategory, DueStatus, PaymentStatus
from patota.utils.exceptions import Conflict, Forbidden, NotFoundError, PaymentAlreadyConfirmed
from patota.utils.time_parser import to_local, utcnow


@pytest.fixture
def billed_member(dues_ops, admin, make_member):
    async def _billed(year=2024, month=9):
        member = await make_member(name="Payer")
        await dues_ops.generate_monthly_dues(admin, year, month)
        (due,) = await dues_ops.list_dues(period=f"{year}-{month:02d}", member_id=member.id)
        return member, due

    return _billed


async def test_due_payment_flow(payment_ops, finance_service, cash_service, admin, billed_member):
    member, due = await billed_member()
    pendencies = await finance_service.pendencies(member.id)
    assert pendencies.total == 3500
    assert pendencies.dues[0].target == DueTarget(due.id)

    payment = await payment_ops.submit_payment(member.id, DueTarget(due.id), proof_url="https://cdn.example/proof.png")
    assert payment.status == PaymentStatus.PENDING
    assert payment.amount == 3500
    assert [p.id for p in await finance_service.pending_payments()] == [payment.id]

    confirmed = await payment_ops.confirm_payment(admin, payment.id)

    assert confirmed.status == PaymentStatus.CONFIRMED
    (settled,) = await finance_service.member_dues(member.id)
    assert settled.status == DueStatus.PAID
    assert settled.paid_at is not None
    (entry,) = await cash_service.ledger()
    assert entry.category == CashCategory.DUES
    assert entry.reference == f"payment:{payment.id}"
    assert await cash_service.balance() == 3500
    assert (await finance_service.pendencies(member.id)).is_clear
    assert await finance_service.pending_payments() == []


async def test_second_confirmation_is_rejected(payment_ops, cash_service, admin, billed_member):
    member, due = await billed_member()
    payment = await payment_ops.submit_payment(member.id, DueTarget(due.id))
    await payment_ops.confirm_payment(admin, payment.id)

    with pytest.raises(PaymentAlreadyConfirmed):
        await payment_ops.confirm_payment(admin, payment.id)

    assert len(await cash_service.ledger()) == 1


async def test_fine_payment_flow(payment_ops, fine_ops, finance_service, cash_service, admin,
                                 make_event, make_member, as_actor):
    event = await make_event()
    member = await make_member()
    fine = await fine_ops.add_guest(as_actor(member), event.id, member.id, 1)
    assert (await finance_service.pendencies(member.id)).fines[0].target == FineTarget(fine.id)

    payment = await payment_ops.submit_payment(member.id, FineTarget(fine.id))
    await payment_ops.confirm_payment(admin, payment.id)

    (paid,) = await finance_service.member_fines(member.id)
    assert paid.paid is True
    assert (await finance_service.pendencies(member.id)).is_clear
    categories = sorted(e.category.name for e in await cash_service.ledger())
    assert categories == ["FINE", "GUEST"]


async def test_cannot_pay_another_members_due(payment_ops, make_member, billed_member):
    _, due = await billed_member()
    intruder = await make_member(name="Intruder")
    with pytest.raises(Forbidden):
        await payment_ops.submit_payment(intruder.id, DueTarget(due.id))


async def test_duplicate_pending_payment_conflicts(payment_ops, billed_member):
    member, due = await billed_member()
    await payment_ops.submit_payment(member.id, DueTarget(due.id))
    with pytest.raises(Conflict):
        await payment_ops.submit_payment(member.id, DueTarget(due.id))


async def test_exempt_due_has_nothing_to_pay(payment_ops, dues_ops, admin, billed_member):
    member, due = await billed_member()
    await dues_ops.create_exemption(admin, member.id, 2024, 9, "Injured")
    with pytest.raises(Conflict):
        await payment_ops.submit_payment(member.id, DueTarget(due.id))


async def test_confirm_requires_admin(payment_ops, as_actor, billed_member):
    member, due = await billed_member()
    payment = await payment_ops.submit_payment(member.id, DueTarget(due.id))
    with pytest.raises(Forbidden):
        await payment_ops.confirm_payment(as_actor(member), payment.id)


async def test_monthly_report(payment_ops, dues_ops, cash_ops, event_ops, report_service, admin,
                              make_event, make_member):
    local_now = to_local(utcnow(), "America/Sao_Paulo")
    year, month = local_now.year, local_now.month
    payer = await make_member(name="Payer")
    exempt = await make_member(name="Exempt")
    await dues_ops.create_exemption(admin, exempt.id, year, month, "Injured")
    await dues_ops.generate_monthly_dues(admin, year, month)
    (due,) = await dues_ops.list_dues(member_id=payer.id)
    payment = await payment_ops.submit_payment(payer.id, DueTarget(due.id))
    await payment_ops.confirm_payment(admin, payment.id)

    event = await make_event(starts_at=utcnow())
    await event_ops.record_attendance(admin, event.id, payer.id, "LATE")
    await cash_ops.record_cash_out(admin, "field", 1000)

    report = await report_service.monthly_report(year, month)

    # admin, payer and exempt member were all active
    assert report.dues.count == 3
    assert (report.dues.paid, report.dues.pending, report.dues.exempt) == (1, 1, 1)
    assert report.dues.amount_paid == 3500
    assert report.cash.total_in == 3500 + 500
    assert report.cash.total_out == 1000
    assert report.fines.amount == 500
    assert report.fines.by_kind == {"LATE": 1}
    assert report.events.games == 1
    assert report.balance == 3000


async def test_exemption_drops_a_waiting_payment(payment_ops, dues_ops, finance_service, cash_service,
                                                 admin, billed_member):
    member, due = await billed_member()
    payment = await payment_ops.submit_payment(member.id, DueTarget(due.id))

    await dues_ops.create_exemption(admin, member.id, 2024, 9, "Injured")

    assert await finance_service.pending_payments() == []
    with pytest.raises(NotFoundError):
        await payment_ops.confirm_payment(admin, payment.id)
    (exempt,) = await finance_service.member_dues(member.id)
    assert (exempt.status, exempt.amount) == (DueStatus.EXEMPT, 0)
    assert await cash_service.balance() == 0


async def test_confirm_rejects_a_due_settled_in_the_meantime(payment_ops, dues_ops, finance_service,
                                                             cash_service, admin, billed_member):
    member, due = await billed_member()
    payment = await payment_ops.submit_payment(member.id, DueTarget(due.id))
    await dues_ops.update_due(admin, due.id, amount=0, status="exempt")

    with pytest.raises(Conflict):
        await payment_ops.confirm_payment(admin, payment.id)

    (settled,) = await finance_service.member_dues(member.id)
    assert settled.status == DueStatus.EXEMPT
    assert [p.id for p in await finance_service.pending_payments()] == [payment.id]
    assert await cash_service.ledger() == []
