"""
Monthly report: dues, cash movement, fines and events of one club-local
calendar month.
"""

import logging

from sqlalchemy import select

from patota.data_models.finance import DuesSummary, EventsSummary, FinesSummary, MonthlyReport
from patota.database.models import CashEntry, Due, DueStatus, Event, EventType, Fine
from patota.services.base import BaseService
from patota.services.cash_ledger import fold_balance, summarize
from patota.utils.exceptions import ValidationError
from patota.utils.time_parser import month_bounds, period_key

logger = logging.getLogger(__name__)


class ReportService(BaseService):

    def __init__(self, session_factory, tz_name: str = None):
        super().__init__(session_factory)
        self.tz_name = tz_name

    async def monthly_report(self, year: int, month: int) -> MonthlyReport:
        try:
            period = period_key(year, month)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        start, end = month_bounds(year, month, self.tz_name)

        async with self.get_session() as session:
            dues = (await session.execute(
                select(Due.status, Due.amount).where(Due.period == period)
            )).all()
            cash = (await session.execute(
                select(CashEntry.direction, CashEntry.amount)
                .where(CashEntry.created_at >= start, CashEntry.created_at < end)
            )).all()
            fines = (await session.execute(
                select(Fine.kind, Fine.amount)
                .where(Fine.created_at >= start, Fine.created_at < end)
            )).all()
            events = (await session.execute(
                select(Event.event_type)
                .where(Event.starts_at >= start, Event.starts_at < end)
            )).scalars().all()
            all_cash = (await session.execute(
                select(CashEntry.direction, CashEntry.amount)
            )).all()

        by_kind = {}
        for kind, _ in fines:
            by_kind[kind.name] = by_kind.get(kind.name, 0) + 1

        report = MonthlyReport(
            period=period,
            dues=DuesSummary(
                count=len(dues),
                paid=sum(1 for status, _ in dues if status == DueStatus.PAID),
                pending=sum(1 for status, _ in dues if status == DueStatus.PENDING),
                exempt=sum(1 for status, _ in dues if status == DueStatus.EXEMPT),
                amount_total=sum(amount for _, amount in dues),
                amount_paid=sum(amount for status, amount in dues if status == DueStatus.PAID),
            ),
            cash=summarize((row.direction, row.amount) for row in cash),
            fines=FinesSummary(
                count=len(fines),
                amount=sum(amount for _, amount in fines),
                by_kind=by_kind,
            ),
            events=EventsSummary(
                total=len(events),
                games=sum(1 for event_type in events if event_type == EventType.GAME),
                internal=sum(1 for event_type in events if event_type == EventType.INTERNAL),
            ),
            balance=fold_balance((row.direction, row.amount) for row in all_cash),
        )
        logger.info(f"Monthly report {period}: {report.dues.count} dues, net cash {report.cash.net}")
        return report
