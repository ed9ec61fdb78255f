"""
Event data models returned by the attendance and event detail workflows.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from patota.database.models import AttendanceStatus, Event, Fine, RsvpStatus


@dataclass(frozen=True)
class AttendanceOutcome:
    """What recording one attendance mark changed."""
    event_id: int
    member_id: int
    status: AttendanceStatus
    previous_status: Optional[AttendanceStatus] = None
    fine: Optional[Fine] = None
    points_awarded: bool = False
    points_removed: int = 0

    @property
    def changed(self) -> bool:
        return self.status != self.previous_status


@dataclass(frozen=True)
class MemberLine:
    member_id: int
    name: str


@dataclass(frozen=True)
class EventDetails:
    event: Event
    going: List[MemberLine] = field(default_factory=list)
    maybe: List[MemberLine] = field(default_factory=list)
    not_going: List[MemberLine] = field(default_factory=list)
    attendance: List[tuple] = field(default_factory=list)  # (MemberLine, AttendanceStatus)
    confirmations_open: bool = True

    @property
    def going_count(self) -> int:
        return len(self.going)

    def rsvp_lines(self, status: RsvpStatus) -> List[MemberLine]:
        return {
            RsvpStatus.GOING: self.going,
            RsvpStatus.MAYBE: self.maybe,
            RsvpStatus.NOT_GOING: self.not_going,
        }[status]
