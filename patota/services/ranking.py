"""
Ranking service: all-time and monthly standings plus per-member statistics,
folded from the points ledger on every call.
"""

import logging
from typing import List

from sqlalchemy import select

from patota.data_models.ranking import MemberStats, RankingEntry, RankingTable
from patota.database.models import (
    AttendanceStatus, Event, EventAttendance, Member, PointsEntry, PointsReason
)
from patota.services.base import BaseService
from patota.utils.exceptions import NotFoundError, ValidationError
from patota.utils.ranking import aggregate_ranking, average, percentage, position_of, tally_results
from patota.utils.time_parser import month_bounds, period_key

logger = logging.getLogger(__name__)


class RankingService(BaseService):
    """Points standings. No cache: the ledger is small and always authoritative."""

    def __init__(self, session_factory, tz_name: str = None):
        super().__init__(session_factory)
        self.tz_name = tz_name

    async def _ledger_rows(self, start=None, end=None) -> List[tuple]:
        query = (
            select(PointsEntry.member_id, Member.name, PointsEntry.points, PointsEntry.goals)
            .join(Member, Member.id == PointsEntry.member_id)
        )
        if start is not None:
            query = query.where(PointsEntry.created_at >= start)
        if end is not None:
            query = query.where(PointsEntry.created_at < end)
        async with self.get_session() as session:
            result = await session.execute(query)
            return [tuple(row) for row in result.all()]

    async def general_ranking(self) -> RankingTable:
        entries = aggregate_ranking(await self._ledger_rows())
        logger.debug(f"General ranking built with {len(entries)} members")
        return RankingTable(entries=entries)

    async def monthly_ranking(self, year: int, month: int) -> RankingTable:
        """Standings from entries created within the club-local calendar month."""
        try:
            period = period_key(year, month)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        start, end = month_bounds(year, month, self.tz_name)
        entries = aggregate_ranking(await self._ledger_rows(start, end))
        logger.debug(f"Monthly ranking {period} built with {len(entries)} members")
        return RankingTable(entries=entries, period=period)

    async def member_stats(self, member_id: int) -> MemberStats:
        async with self.get_session() as session:
            member = await session.get(Member, member_id)
            if member is None:
                raise NotFoundError("Member", member_id)

            points_rows = (await session.execute(
                select(PointsEntry.points, PointsEntry.goals).where(PointsEntry.member_id == member_id)
            )).all()
            games = (await session.execute(
                select(PointsEntry.team, Event.score_black, Event.score_white)
                .join(Event, Event.id == PointsEntry.event_id)
                .where(
                    PointsEntry.member_id == member_id,
                    PointsEntry.reason == PointsReason.TEAM_GOALS,
                    Event.score_finalized == True,
                )
            )).all()
            marks = (await session.execute(
                select(EventAttendance.status).where(EventAttendance.member_id == member_id)
            )).scalars().all()

        points = sum(row.points for row in points_rows)
        goals = sum(row.goals for row in points_rows)
        wins, draws, losses = tally_results(
            (row.team, row.score_black, row.score_white) for row in games if row.team is not None
        )
        counts = {status: 0 for status in AttendanceStatus}
        for status in marks:
            counts[status] += 1
        played = len(games)

        ranking = await self.general_ranking()
        return MemberStats(
            member_id=member.id,
            name=member.name,
            points=points,
            goals=goals,
            games=played,
            wins=wins,
            draws=draws,
            losses=losses,
            present=counts[AttendanceStatus.PRESENT],
            late=counts[AttendanceStatus.LATE],
            absent=counts[AttendanceStatus.ABSENT],
            excused=counts[AttendanceStatus.EXCUSED],
            attendance_rate=percentage(counts[AttendanceStatus.PRESENT], len(marks)),
            goals_per_game=average(goals, played),
            win_rate=percentage(wins, played),
            position=position_of(ranking.entries, member_id),
        )

    async def top(self, limit: int = 3) -> List[RankingEntry]:
        return (await self.general_ranking()).entries[:limit]
