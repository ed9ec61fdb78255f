"""
Team draw data models.

Immutable value objects for drawn squads and score outcomes. ``DrawnTeams``
is what gets serialized onto the event row once the teams are drawn.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple


class Team(Enum):
    BLACK = "black"
    WHITE = "white"


class MatchOutcome(Enum):
    BLACK = "black"
    WHITE = "white"
    DRAW = "draw"


@dataclass(frozen=True)
class MemberRef:
    """A member as captured at draw time (the name is frozen with the roster)."""
    member_id: int
    name: str


@dataclass(frozen=True)
class DrawnTeams:
    black: Tuple[MemberRef, ...]
    white: Tuple[MemberRef, ...]
    drawn_at: Optional[datetime] = None
    drawn_by: Optional[int] = None

    @property
    def total_players(self) -> int:
        return len(self.black) + len(self.white)

    def members_of(self, team: Team) -> Tuple[MemberRef, ...]:
        return self.black if team is Team.BLACK else self.white

    def team_of(self, member_id: int) -> Optional[Team]:
        if any(ref.member_id == member_id for ref in self.black):
            return Team.BLACK
        if any(ref.member_id == member_id for ref in self.white):
            return Team.WHITE
        return None

    def to_json(self) -> str:
        return json.dumps({
            'black': [{'member_id': r.member_id, 'name': r.name} for r in self.black],
            'white': [{'member_id': r.member_id, 'name': r.name} for r in self.white],
            'drawn_at': self.drawn_at.isoformat() if self.drawn_at else None,
            'drawn_by': self.drawn_by,
        })

    @classmethod
    def from_json(cls, raw: Optional[str]) -> Optional["DrawnTeams"]:
        if not raw:
            return None
        data = json.loads(raw)
        drawn_at = data.get('drawn_at')
        return cls(
            black=tuple(MemberRef(p['member_id'], p.get('name') or 'Player') for p in data.get('black') or []),
            white=tuple(MemberRef(p['member_id'], p.get('name') or 'Player') for p in data.get('white') or []),
            drawn_at=datetime.fromisoformat(drawn_at) if drawn_at else None,
            drawn_by=data.get('drawn_by'),
        )


@dataclass(frozen=True)
class ScoreResult:
    event_id: int
    score_black: int
    score_white: int
    winner: MatchOutcome
    credited_players: int = 0

    @staticmethod
    def outcome_for(score_black: int, score_white: int) -> MatchOutcome:
        if score_black > score_white:
            return MatchOutcome.BLACK
        if score_white > score_black:
            return MatchOutcome.WHITE
        return MatchOutcome.DRAW
