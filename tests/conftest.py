import os
import tempfile
from datetime import timedelta

# Keep test logs out of the working tree; must happen before patota.config is imported
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="patota-logs-"))

import pytest
import pytest_asyncio

from patota.config import ClubPolicy
from patota.data_models.members import Actor
from patota.database.database import Database
from patota.database.models import Event, EventType, Member
from patota.operations.cash_operations import CashOperations
from patota.operations.dues_operations import DuesOperations
from patota.operations.event_operations import EventOperations
from patota.operations.fine_operations import FineOperations
from patota.operations.member_operations import MemberOperations
from patota.operations.payment_operations import PaymentOperations
from patota.operations.team_operations import TeamOperations
from patota.services.cash_ledger import CashLedgerService
from patota.services.finance import FinanceService
from patota.services.ranking import RankingService
from patota.services.reports import ReportService
from patota.utils.time_parser import utcnow

OWNER_DISCORD_ID = 999_000_001


@pytest_asyncio.fixture
async def db(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'patota_test.db'}")
    await database.initialize()
    try:
        yield database
    finally:
        await database.close()


@pytest.fixture
def policy():
    return ClubPolicy(
        monthly_fee=3500,
        due_day=10,
        late_fee=500,
        no_show_fee=1000,
        guest_fee=500,
        confirmation_reopen=timedelta(hours=6),
        min_players_for_draw=2,
    )


@pytest.fixture
def make_member(db):
    counter = {"n": 0}

    async def _make(name=None, active=True, is_admin=False, discord_id=None):
        counter["n"] += 1
        async with db.transaction() as session:
            member = Member(
                name=name or f"Player {counter['n']}",
                discord_id=discord_id if discord_id is not None else 100_000 + counter["n"],
                is_active=active,
                is_admin=is_admin,
            )
            session.add(member)
            await session.flush()
        return member

    return _make


@pytest.fixture
def make_event(db):
    async def _make(event_type=EventType.GAME, starts_at=None, location="Arena CCC",
                    rsvp_deadline=None, title=None):
        async with db.transaction() as session:
            event = Event(
                event_type=event_type,
                starts_at=starts_at or utcnow() + timedelta(days=2),
                location=location,
                rsvp_deadline=rsvp_deadline,
                title=title,
            )
            session.add(event)
            await session.flush()
        return event

    return _make


@pytest_asyncio.fixture
async def admin(make_member):
    member = await make_member(name="Admin", is_admin=True, discord_id=555)
    return Actor(member_id=member.id, name=member.name, is_admin=True, discord_id=555)


@pytest.fixture
def as_actor():
    def _actor(member, is_admin=False):
        return Actor(member_id=member.id, name=member.name, is_admin=is_admin, discord_id=member.discord_id)

    return _actor


@pytest.fixture
def cash_ops(db, policy):
    return CashOperations(db, policy)


@pytest.fixture
def fine_ops(db, policy, cash_ops):
    return FineOperations(db, policy, cash_ops=cash_ops)


@pytest.fixture
def member_ops(db):
    return MemberOperations(db, owner_discord_id=OWNER_DISCORD_ID)


@pytest.fixture
def event_ops(db, policy, fine_ops):
    return EventOperations(db, policy, fine_ops=fine_ops)


@pytest.fixture
def dues_ops(db, policy):
    return DuesOperations(db, policy)


@pytest.fixture
def payment_ops(db, policy, cash_ops):
    return PaymentOperations(db, policy, cash_ops=cash_ops)


@pytest.fixture
def team_ops(db, policy):
    return TeamOperations(db, policy)


@pytest.fixture
def ranking_service(db):
    return RankingService(db.session_factory, tz_name="America/Sao_Paulo")


@pytest.fixture
def cash_service(db):
    return CashLedgerService(db.session_factory)


@pytest.fixture
def finance_service(db):
    return FinanceService(db.session_factory)


@pytest.fixture
def report_service(db):
    return ReportService(db.session_factory, tz_name="America/Sao_Paulo")


@pytest.fixture
def going(event_ops):
    """RSVP a list of members as GOING to an event."""
    async def _going(event, members):
        for member in members:
            await event_ops.confirm_presence(member.id, event.id, "GOING")

    return _going
