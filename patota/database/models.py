from sqlalchemy import (
    Column, Integer, String, DateTime, Date, Boolean, Text,
    ForeignKey, BigInteger, Enum as SQLEnum, UniqueConstraint, CheckConstraint, Index
)
from sqlalchemy.orm import declarative_base, relationship
from enum import Enum
from typing import Optional

from patota.data_models.finance import DueTarget, FineTarget, PaymentTarget
from patota.data_models.teams import DrawnTeams, Team
from patota.utils.time_parser import utcnow

Base = declarative_base()

class EventType(Enum):
    GAME = "game"
    INTERNAL = "internal"

class RsvpStatus(Enum):
    GOING = "going"
    NOT_GOING = "not_going"
    MAYBE = "maybe"

class AttendanceStatus(Enum):
    PRESENT = "present"
    LATE = "late"
    ABSENT = "absent"
    EXCUSED = "excused"

class DueStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    EXEMPT = "exempt"

class FineKind(Enum):
    LATE = "late"
    CONFIRMED_NO_SHOW = "confirmed_no_show"
    GUEST = "guest"

class PaymentStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"

class CashDirection(Enum):
    IN = "in"
    OUT = "out"

class CashCategory(Enum):
    FINE = "fine"
    GUEST = "guest"
    DUES = "dues"
    FIELD = "field"
    EQUIPMENT = "equipment"
    SOCIAL = "social"
    OTHER = "other"

# Categories an admin may post a withdrawal under
CASH_OUT_CATEGORIES = (
    CashCategory.FIELD, CashCategory.EQUIPMENT, CashCategory.SOCIAL, CashCategory.OTHER
)

class PointsReason(Enum):
    ATTENDANCE = "attendance"
    TEAM_GOALS = "team_goals"


class Member(Base):
    __tablename__ = 'members'

    id = Column(Integer, primary_key=True)
    discord_id = Column(BigInteger, unique=True, nullable=True, index=True)  # NULL for members added by email only
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=True)

    # Active flag gates dues generation and team draw eligibility
    is_active = Column(Boolean, default=True, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)

    joined_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<Member(id={self.id}, name='{self.name}', active={self.is_active})>"


class Event(Base):
    __tablename__ = 'events'

    id = Column(Integer, primary_key=True)
    event_type = Column(SQLEnum(EventType), nullable=False, default=EventType.GAME)
    title = Column(String(200), nullable=True)
    starts_at = Column(DateTime, nullable=False, index=True)  # naive UTC
    location = Column(String(200), nullable=False)
    rsvp_deadline = Column(DateTime, nullable=True)

    # Team draw state; drawn == True closes confirmations regardless of deadline
    drawn = Column(Boolean, default=False, nullable=False)
    teams_json = Column(Text, nullable=True)
    drawn_at = Column(DateTime, nullable=True)
    drawn_by = Column(Integer, ForeignKey('members.id'), nullable=True)

    # Final score of the drawn teams
    score_black = Column(Integer, default=0, nullable=False)
    score_white = Column(Integer, default=0, nullable=False)
    score_finalized = Column(Boolean, default=False, nullable=False)

    # Free-form score for events played without a draw
    team_a_name = Column(String(50), nullable=True)
    team_b_name = Column(String(50), nullable=True)
    team_a_score = Column(Integer, nullable=True)
    team_b_score = Column(Integer, nullable=True)

    created_by = Column(Integer, ForeignKey('members.id'), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    rsvps = relationship("EventRsvp", back_populates="event", cascade="all, delete-orphan")
    attendance = relationship("EventAttendance", back_populates="event", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint('score_black >= 0 AND score_white >= 0', name='ck_event_score_non_negative'),
    )

    @property
    def drawn_teams(self) -> Optional[DrawnTeams]:
        return DrawnTeams.from_json(self.teams_json)

    @property
    def is_game(self) -> bool:
        return self.event_type == EventType.GAME

    @property
    def display_title(self) -> str:
        if self.title:
            return self.title
        return "Game" if self.is_game else "Internal event"

    def __repr__(self):
        return f"<Event(id={self.id}, type={self.event_type}, starts_at={self.starts_at}, drawn={self.drawn})>"


class EventRsvp(Base):
    __tablename__ = 'event_rsvps'

    id = Column(Integer, primary_key=True)
    event_id = Column(Integer, ForeignKey('events.id', ondelete='CASCADE'), nullable=False)
    member_id = Column(Integer, ForeignKey('members.id'), nullable=False)
    status = Column(SQLEnum(RsvpStatus), nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    event = relationship("Event", back_populates="rsvps")
    member = relationship("Member")

    __table_args__ = (UniqueConstraint('event_id', 'member_id', name='uq_rsvp_event_member'),)

    def __repr__(self):
        return f"<EventRsvp(event={self.event_id}, member={self.member_id}, status={self.status})>"


class EventAttendance(Base):
    __tablename__ = 'event_attendance'

    id = Column(Integer, primary_key=True)
    event_id = Column(Integer, ForeignKey('events.id', ondelete='CASCADE'), nullable=False)
    member_id = Column(Integer, ForeignKey('members.id'), nullable=False)
    status = Column(SQLEnum(AttendanceStatus), nullable=False)
    recorded_by = Column(Integer, ForeignKey('members.id'), nullable=True)
    recorded_at = Column(DateTime, default=utcnow, nullable=False)

    event = relationship("Event", back_populates="attendance")
    member = relationship("Member", foreign_keys=[member_id])

    __table_args__ = (UniqueConstraint('event_id', 'member_id', name='uq_attendance_event_member'),)


class Due(Base):
    __tablename__ = 'dues'

    id = Column(Integer, primary_key=True)
    member_id = Column(Integer, ForeignKey('members.id'), nullable=False, index=True)
    period = Column(String(7), nullable=False, index=True)  # YYYY-MM
    amount = Column(Integer, nullable=False)  # cents
    status = Column(SQLEnum(DueStatus), default=DueStatus.PENDING, nullable=False)
    due_date = Column(Date, nullable=False)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    member = relationship("Member")

    __table_args__ = (
        UniqueConstraint('member_id', 'period', name='uq_due_member_period'),
        CheckConstraint('amount >= 0', name='ck_due_amount_non_negative'),
    )

    def __repr__(self):
        return f"<Due(member={self.member_id}, period='{self.period}', status={self.status})>"


class Exemption(Base):
    __tablename__ = 'exemptions'

    id = Column(Integer, primary_key=True)
    member_id = Column(Integer, ForeignKey('members.id'), nullable=False)
    period = Column(String(7), nullable=False)
    reason = Column(Text, nullable=False)
    approved_by = Column(Integer, ForeignKey('members.id'), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (UniqueConstraint('member_id', 'period', name='uq_exemption_member_period'),)


class Fine(Base):
    __tablename__ = 'fines'

    id = Column(Integer, primary_key=True)
    member_id = Column(Integer, ForeignKey('members.id'), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey('events.id', ondelete='SET NULL'), nullable=True)
    kind = Column(SQLEnum(FineKind), nullable=False)
    amount = Column(Integer, nullable=False)
    paid = Column(Boolean, default=False, nullable=False)
    note = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey('members.id'), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    paid_at = Column(DateTime, nullable=True)

    member = relationship("Member", foreign_keys=[member_id])

    __table_args__ = (CheckConstraint('amount > 0', name='ck_fine_amount_positive'),)

    def __repr__(self):
        return f"<Fine(id={self.id}, member={self.member_id}, kind={self.kind}, amount={self.amount})>"


class Payment(Base):
    __tablename__ = 'payments'

    id = Column(Integer, primary_key=True)
    member_id = Column(Integer, ForeignKey('members.id'), nullable=False, index=True)
    due_id = Column(Integer, ForeignKey('dues.id'), nullable=True)
    fine_id = Column(Integer, ForeignKey('fines.id'), nullable=True)
    amount = Column(Integer, nullable=False)
    status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    proof_url = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    confirmed_by = Column(Integer, ForeignKey('members.id'), nullable=True)
    confirmed_at = Column(DateTime, nullable=True)

    member = relationship("Member", foreign_keys=[member_id])

    __table_args__ = (
        # Exactly one of due/fine is set
        CheckConstraint('(due_id IS NULL) <> (fine_id IS NULL)', name='ck_payment_single_target'),
        CheckConstraint('amount > 0', name='ck_payment_amount_positive'),
    )

    @property
    def target(self) -> PaymentTarget:
        if self.due_id is not None:
            return DueTarget(self.due_id)
        return FineTarget(self.fine_id)

    def __repr__(self):
        return f"<Payment(id={self.id}, member={self.member_id}, target={self.target}, status={self.status})>"


class CashEntry(Base):
    """Append-only cash log; the balance is always sum(IN) - sum(OUT)."""
    __tablename__ = 'cash_entries'

    id = Column(Integer, primary_key=True)
    direction = Column(SQLEnum(CashDirection), nullable=False)
    category = Column(SQLEnum(CashCategory), nullable=False)
    amount = Column(Integer, nullable=False)
    reference = Column(String(50), nullable=True)  # fine:<id> / payment:<id>
    note = Column(Text, nullable=True)
    posted_by = Column(Integer, ForeignKey('members.id'), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    __table_args__ = (CheckConstraint('amount > 0', name='ck_cash_amount_positive'),)

    @property
    def signed_amount(self) -> int:
        return self.amount if self.direction == CashDirection.IN else -self.amount

    def __repr__(self):
        return f"<CashEntry(id={self.id}, {self.direction}, {self.category}, amount={self.amount})>"


class PointsEntry(Base):
    """Append-only points ledger. Corrections delete and reinsert, never update."""
    __tablename__ = 'points_entries'

    id = Column(Integer, primary_key=True)
    member_id = Column(Integer, ForeignKey('members.id'), nullable=False)
    event_id = Column(Integer, ForeignKey('events.id', ondelete='CASCADE'), nullable=False)
    points = Column(Integer, nullable=False, default=0)
    goals = Column(Integer, nullable=False, default=0)
    team = Column(SQLEnum(Team), nullable=True)
    reason = Column(SQLEnum(PointsReason), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    member = relationship("Member")

    __table_args__ = (
        Index('idx_points_event_reason', 'event_id', 'reason'),
        Index('idx_points_created_at', 'created_at'),
    )


class Configuration(Base):
    __tablename__ = 'configuration'

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)  # JSON encoded
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class AuditLog(Base):
    __tablename__ = 'audit_log'

    id = Column(Integer, primary_key=True)
    user_id = Column(BigInteger, nullable=True)  # Discord ID of the caller
    member_id = Column(Integer, ForeignKey('members.id'), nullable=True)
    action = Column(String(50), nullable=False)
    target = Column(String(100), nullable=True)
    details = Column(Text, nullable=True)  # JSON encoded
    created_at = Column(DateTime, default=utcnow)
