"""
Team Operations Module

The RSVP -> draw -> score -> points pipeline for pickup games.

Draw policy is pure randomness: confirmed players are uniformly shuffled and
split at ceil(n/2), first half Black. Scoring credits every player on a team
with that team's full goal tally, as both points and goals. Score
corrections delete the event's TEAM_GOALS entries and re-insert them, so
the points ledger never double counts an edited game.
"""

import math
import random
from datetime import datetime
from typing import List, Optional, Sequence, Tuple, TypeVar

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from patota.data_models.members import Actor
from patota.data_models.teams import DrawnTeams, MemberRef, ScoreResult, Team
from patota.database.models import Event, EventRsvp, Member, PointsEntry, PointsReason, RsvpStatus
from patota.operations.base import BaseOperations, require_admin, validate_non_negative_int
from patota.utils.exceptions import (
    AlreadyDrawn, InsufficientPlayers, NotFoundError, ScoreAlreadyFinalized, TeamsNotDrawn
)
from patota.utils.time_parser import utcnow

T = TypeVar('T')


def draw_squads(players: Sequence[T], rng: Optional[random.Random] = None) -> Tuple[List[T], List[T]]:
    """
    Uniformly shuffle ``players`` and split at ceil(n/2).

    Returns (black, white); black gets the extra player for odd counts.
    """
    shuffled = list(players)
    (rng or random.Random()).shuffle(shuffled)
    cut = math.ceil(len(shuffled) / 2)
    return shuffled[:cut], shuffled[cut:]


def is_confirmation_open(event: Event, now: Optional[datetime] = None) -> bool:
    """False once drawn; otherwise open until the deadline, if there is one."""
    if event.drawn:
        return False
    if event.rsvp_deadline is None:
        return True
    return (now or utcnow()) < event.rsvp_deadline


class TeamOperations(BaseOperations):

    def __init__(self, database, policy=None, rng: Optional[random.Random] = None):
        super().__init__(database, policy)
        self.rng = rng

    async def _load_event(self, session: AsyncSession, event_id: int) -> Event:
        event = await session.get(Event, event_id)
        if event is None:
            raise NotFoundError("Event", event_id)
        return event

    async def confirmed_players(self, session: AsyncSession, event_id: int) -> List[MemberRef]:
        """Active members whose RSVP is GOING, in a stable order."""
        result = await session.execute(
            select(Member.id, Member.name)
            .join(EventRsvp, EventRsvp.member_id == Member.id)
            .where(
                EventRsvp.event_id == event_id,
                EventRsvp.status == RsvpStatus.GOING,
                Member.is_active == True,
            )
            .order_by(Member.id)
        )
        return [MemberRef(member_id=row.id, name=row.name) for row in result.all()]

    async def generate_teams(self, actor: Actor, event_id: int,
                             rng: Optional[random.Random] = None) -> DrawnTeams:
        """
        Draw Black and White squads from the confirmed players.

        The drawn flag is flipped with a conditional update, so of two
        concurrent draws only one commits; the other gets AlreadyDrawn.

        Raises:
            AlreadyDrawn: Teams exist; reset them first
            InsufficientPlayers: Fewer confirmed players than the policy minimum
        """
        require_admin(actor, "draw teams")

        async with self.store_guard("draw the teams"):
            async with self.db.transaction() as session:
                event = await self._load_event(session, event_id)
                if event.drawn:
                    raise AlreadyDrawn(event_id)

                players = await self.confirmed_players(session, event_id)
                if len(players) < self.policy.min_players_for_draw:
                    self.logger.warning(
                        f"Draw for event {event_id} rejected: {len(players)} confirmed, "
                        f"{self.policy.min_players_for_draw} required"
                    )
                    raise InsufficientPlayers(len(players), self.policy.min_players_for_draw)

                black, white = draw_squads(players, rng or self.rng)
                now = utcnow()
                teams = DrawnTeams(black=tuple(black), white=tuple(white),
                                   drawn_at=now, drawn_by=actor.member_id)

                result = await session.execute(
                    update(Event)
                    .where(Event.id == event_id, Event.drawn == False)
                    .values(drawn=True, teams_json=teams.to_json(), drawn_at=now, drawn_by=actor.member_id)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise AlreadyDrawn(event_id)

                await self._audit(session, actor, 'teams_draw', f"event:{event_id}",
                                  black=[p.member_id for p in black], white=[p.member_id for p in white])

        self.logger.info(f"{actor.name} drew teams for event {event_id}: {len(black)} x {len(white)}")
        return teams

    async def reset_teams(self, actor: Actor, event_id: int) -> Event:
        """
        Undo a draw and reopen confirmations for the policy window.

        A registered score and its points are left as they are.
        """
        require_admin(actor, "reset teams")

        async with self.store_guard("reset the teams"):
            async with self.db.transaction() as session:
                event = await self._load_event(session, event_id)
                event.drawn = False
                event.teams_json = None
                event.drawn_at = None
                event.drawn_by = None
                event.rsvp_deadline = utcnow() + self.policy.confirmation_reopen
                await self._audit(session, actor, 'teams_reset', f"event:{event_id}",
                                  rsvp_deadline=event.rsvp_deadline)

        self.logger.info(f"{actor.name} reset teams for event {event_id}; confirmations open until {event.rsvp_deadline}")
        return event

    async def get_teams(self, event_id: int) -> Optional[DrawnTeams]:
        async with self._get_session_context() as session:
            event = await self._load_event(session, event_id)
            return event.drawn_teams if event.drawn else None

    async def _credit_score(self, session: AsyncSession, event: Event,
                            score_black: int, score_white: int) -> ScoreResult:
        teams = event.drawn_teams
        credited = 0
        for team, score in ((Team.BLACK, score_black), (Team.WHITE, score_white)):
            for ref in teams.members_of(team):
                session.add(PointsEntry(
                    member_id=ref.member_id,
                    event_id=event.id,
                    points=score,
                    goals=score,
                    team=team,
                    reason=PointsReason.TEAM_GOALS,
                ))
                credited += 1

        event.score_black = score_black
        event.score_white = score_white
        event.score_finalized = True
        await session.flush()

        return ScoreResult(
            event_id=event.id,
            score_black=score_black,
            score_white=score_white,
            winner=ScoreResult.outcome_for(score_black, score_white),
            credited_players=credited,
        )

    async def _clear_score(self, session: AsyncSession, event: Event) -> int:
        result = await session.execute(
            delete(PointsEntry)
            .where(PointsEntry.event_id == event.id, PointsEntry.reason == PointsReason.TEAM_GOALS)
            .execution_options(synchronize_session=False)
        )
        event.score_black = 0
        event.score_white = 0
        event.score_finalized = False
        await session.flush()
        return result.rowcount

    async def register_score(self, actor: Actor, event_id: int,
                             score_black: int, score_white: int) -> ScoreResult:
        """
        Finalize the score of a drawn game and credit every player.

        Raises:
            TeamsNotDrawn: No teams to credit
            ScoreAlreadyFinalized: Use edit_score to change a registered score
        """
        require_admin(actor, "register scores")
        validate_non_negative_int(score_black, "Black team score")
        validate_non_negative_int(score_white, "White team score")

        async with self.store_guard("register the score"):
            async with self.db.transaction() as session:
                event = await self._load_event(session, event_id)
                if not event.drawn or event.drawn_teams is None:
                    raise TeamsNotDrawn(event_id)
                if event.score_finalized:
                    raise ScoreAlreadyFinalized(event_id)

                outcome = await self._credit_score(session, event, score_black, score_white)
                await self._audit(session, actor, 'score_register', f"event:{event_id}",
                                  score_black=score_black, score_white=score_white)

        self.logger.info(f"{actor.name} registered {score_black} x {score_white} for event {event_id}")
        return outcome

    async def edit_score(self, actor: Actor, event_id: int,
                         new_black: int, new_white: int) -> ScoreResult:
        """Replace a score: reverse the old team credit and post the new one atomically."""
        require_admin(actor, "edit scores")
        validate_non_negative_int(new_black, "Black team score")
        validate_non_negative_int(new_white, "White team score")

        async with self.store_guard("edit the score"):
            async with self.db.transaction() as session:
                event = await self._load_event(session, event_id)
                if not event.drawn or event.drawn_teams is None:
                    raise TeamsNotDrawn(event_id)

                previous = (event.score_black, event.score_white, event.score_finalized)
                removed = await self._clear_score(session, event)
                outcome = await self._credit_score(session, event, new_black, new_white)
                await self._audit(session, actor, 'score_edit', f"event:{event_id}",
                                  previous=previous, score_black=new_black, score_white=new_white,
                                  entries_removed=removed)

        self.logger.info(
            f"{actor.name} edited score of event {event_id} from {previous[0]} x {previous[1]} "
            f"to {new_black} x {new_white} ({removed} entries replaced)"
        )
        return outcome

    async def reset_score(self, actor: Actor, event_id: int) -> int:
        """Clear the score and reverse its team credit. Returns entries removed."""
        require_admin(actor, "reset scores")

        async with self.store_guard("reset the score"):
            async with self.db.transaction() as session:
                event = await self._load_event(session, event_id)
                removed = await self._clear_score(session, event)
                await self._audit(session, actor, 'score_reset', f"event:{event_id}", entries_removed=removed)

        self.logger.info(f"{actor.name} reset score of event {event_id} ({removed} entries removed)")
        return removed
