"""
Ranking data models.

Provides immutable data transfer objects for the points ranking and per-member
statistics. Both are derived views over the points ledger and are rebuilt on
every read.
"""

from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class RankingEntry:
    """Single ranking row."""
    position: int
    member_id: int
    name: str
    points: int
    goals: int


@dataclass(frozen=True)
class RankingTable:
    entries: List[RankingEntry]
    period: Optional[str] = None  # None for the all-time ranking

    @property
    def is_empty(self) -> bool:
        return not self.entries


@dataclass(frozen=True)
class MemberStats:
    member_id: int
    name: str
    points: int
    goals: int
    games: int
    wins: int
    draws: int
    losses: int
    present: int
    late: int
    absent: int
    excused: int
    attendance_rate: float
    goals_per_game: float
    win_rate: float
    position: Optional[int] = None
