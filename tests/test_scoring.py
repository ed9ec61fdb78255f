import random

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from patota.data_models.teams import MatchOutcome
from patota.database.models import PointsEntry, PointsReason
from patota.utils.exceptions import ScoreAlreadyFinalized, StoreError, TeamsNotDrawn, ValidationError


@pytest.fixture
def drawn_game(team_ops, admin, make_event, make_member, going):
    """A game with five confirmed players and teams already drawn."""
    async def _drawn_game():
        event = await make_event()
        players = [await make_member(name=f"Player {i}") for i in range(5)]
        await going(event, players)
        teams = await team_ops.generate_teams(admin, event.id, rng=random.Random(11))
        return event, teams

    return _drawn_game


async def _team_goal_entries(db, event_id):
    async with db.get_session() as session:
        return await session.scalar(
            select(func.count(PointsEntry.id)).where(
                PointsEntry.event_id == event_id, PointsEntry.reason == PointsReason.TEAM_GOALS
            )
        )


async def test_register_score_credits_each_player_with_team_goals(
    db, team_ops, ranking_service, admin, drawn_game
):
    event, teams = await drawn_game()

    result = await team_ops.register_score(admin, event.id, 3, 1)

    assert result.winner == MatchOutcome.BLACK
    assert result.credited_players == 5
    assert await _team_goal_entries(db, event.id) == 5

    table = await ranking_service.general_ranking()
    points = {entry.member_id: (entry.points, entry.goals) for entry in table.entries}
    for ref in teams.black:
        assert points[ref.member_id] == (3, 3)
    for ref in teams.white:
        assert points[ref.member_id] == (1, 1)
    # black players come first
    assert {e.member_id for e in table.entries[:3]} == {ref.member_id for ref in teams.black}


async def test_edit_score_replaces_previous_credit(db, team_ops, ranking_service, admin, drawn_game):
    event, teams = await drawn_game()
    await team_ops.register_score(admin, event.id, 3, 1)

    result = await team_ops.edit_score(admin, event.id, 2, 2)

    assert result.winner == MatchOutcome.DRAW
    assert await _team_goal_entries(db, event.id) == 5
    table = await ranking_service.general_ranking()
    assert [(e.points, e.goals) for e in table.entries] == [(2, 2)] * 5


async def test_register_twice_is_rejected(team_ops, admin, drawn_game):
    event, _ = await drawn_game()
    await team_ops.register_score(admin, event.id, 1, 0)
    with pytest.raises(ScoreAlreadyFinalized):
        await team_ops.register_score(admin, event.id, 2, 0)


async def test_score_needs_drawn_teams(team_ops, admin, make_event):
    event = await make_event()
    with pytest.raises(TeamsNotDrawn):
        await team_ops.register_score(admin, event.id, 1, 0)
    with pytest.raises(TeamsNotDrawn):
        await team_ops.edit_score(admin, event.id, 1, 0)


@pytest.mark.parametrize("black, white", [(-1, 0), (0, -3), ("2", 1), (1.5, 0)])
async def test_invalid_scores_are_rejected(team_ops, admin, drawn_game, black, white):
    event, _ = await drawn_game()
    with pytest.raises(ValidationError):
        await team_ops.register_score(admin, event.id, black, white)


async def test_reset_score_reverses_credit(db, team_ops, ranking_service, admin, drawn_game):
    event, _ = await drawn_game()
    await team_ops.register_score(admin, event.id, 4, 2)

    removed = await team_ops.reset_score(admin, event.id)

    assert removed == 5
    assert await _team_goal_entries(db, event.id) == 0
    assert (await ranking_service.general_ranking()).is_empty

    # the score can be registered again after a reset
    result = await team_ops.register_score(admin, event.id, 0, 1)
    assert result.winner == MatchOutcome.WHITE


async def test_attendance_point_adds_to_team_goals(event_ops, team_ops, ranking_service, admin, drawn_game):
    event, teams = await drawn_game()
    scorer = teams.black[0]
    await team_ops.register_score(admin, event.id, 2, 0)

    await event_ops.record_attendance(admin, event.id, scorer.member_id, "PRESENT")

    table = await ranking_service.general_ranking()
    assert table.entries[0].member_id == scorer.member_id
    assert (table.entries[0].points, table.entries[0].goals) == (3, 2)


async def test_failed_edit_keeps_the_previous_score(monkeypatch, db, team_ops, event_ops, ranking_service,
                                                    admin, drawn_game):
    event, _ = await drawn_game()
    await team_ops.register_score(admin, event.id, 3, 1)
    before = [(e.member_id, e.points) for e in (await ranking_service.general_ranking()).entries]

    async def broken_credit(*args, **kwargs):
        raise SQLAlchemyError("disk I/O error")

    monkeypatch.setattr(team_ops, "_credit_score", broken_credit)

    with pytest.raises(StoreError):
        await team_ops.edit_score(admin, event.id, 0, 5)

    stored = await event_ops.get_event(event.id)
    assert (stored.score_black, stored.score_white, stored.score_finalized) == (3, 1, True)
    assert await _team_goal_entries(db, event.id) == 5
    assert [(e.member_id, e.points) for e in (await ranking_service.general_ranking()).entries] == before
