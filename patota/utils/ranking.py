"""
Pure folds over the points ledger.

The ranking is never stored: services load ledger rows and pass them
through these functions on every read, so the standings are always
re-derivable from the entries.
"""

from typing import Dict, Iterable, List, Optional, Tuple

from patota.data_models.ranking import RankingEntry
from patota.data_models.teams import MatchOutcome, ScoreResult, Team


def ranking_sort_key(member_id: int, name: str, points: int, goals: int) -> Tuple:
    """Points desc, goals desc, name (case-insensitive) asc, member id asc."""
    return (-points, -goals, name.casefold(), member_id)


def aggregate_ranking(rows: Iterable[Tuple[int, str, int, int]]) -> List[RankingEntry]:
    """
    Group (member_id, name, points, goals) rows by member and rank them.

    Positions run 1..n in sort order.
    """
    totals: Dict[int, List] = {}
    for member_id, name, points, goals in rows:
        bucket = totals.setdefault(member_id, [name, 0, 0])
        bucket[1] += points or 0
        bucket[2] += goals or 0

    ordered = sorted(
        totals.items(),
        key=lambda item: ranking_sort_key(item[0], item[1][0], item[1][1], item[1][2]),
    )
    return [
        RankingEntry(position=position, member_id=member_id, name=name, points=points, goals=goals)
        for position, (member_id, (name, points, goals)) in enumerate(ordered, start=1)
    ]


def position_of(ranking: List[RankingEntry], member_id: int) -> Optional[int]:
    for entry in ranking:
        if entry.member_id == member_id:
            return entry.position
    return None


def tally_results(games: Iterable[Tuple[Team, int, int]]) -> Tuple[int, int, int]:
    """
    Count (wins, draws, losses) from (team, score_black, score_white) tuples.
    """
    wins = draws = losses = 0
    for team, score_black, score_white in games:
        outcome = ScoreResult.outcome_for(score_black, score_white)
        if outcome is MatchOutcome.DRAW:
            draws += 1
        elif outcome.value == team.value:
            wins += 1
        else:
            losses += 1
    return wins, draws, losses


def percentage(part: int, whole: int) -> float:
    if not whole:
        return 0.0
    return round(part * 100.0 / whole, 1)


def average(total: int, count: int) -> float:
    if not count:
        return 0.0
    return round(total / count, 1)
