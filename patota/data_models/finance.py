"""
Finance data models: payment targets, dues generation results, pendencies
and the monthly report.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple, Union


@dataclass(frozen=True)
class DueTarget:
    """A payment that settles a monthly due."""
    due_id: int


@dataclass(frozen=True)
class FineTarget:
    """A payment that settles a fine."""
    fine_id: int


PaymentTarget = Union[DueTarget, FineTarget]


@dataclass(frozen=True)
class DuesGenerationResult:
    period: str
    created: int
    skipped: int

    @property
    def total_active(self) -> int:
        return self.created + self.skipped


@dataclass(frozen=True)
class PendingItem:
    """One open charge owed by a member."""
    target: PaymentTarget
    description: str
    amount: int


@dataclass(frozen=True)
class Pendencies:
    member_id: int
    dues: Tuple[PendingItem, ...] = ()
    fines: Tuple[PendingItem, ...] = ()

    @property
    def items(self) -> Tuple[PendingItem, ...]:
        return self.dues + self.fines

    @property
    def total(self) -> int:
        return sum(item.amount for item in self.items)

    @property
    def is_clear(self) -> bool:
        return not self.items


@dataclass(frozen=True)
class DuesSummary:
    count: int = 0
    paid: int = 0
    pending: int = 0
    exempt: int = 0
    amount_total: int = 0
    amount_paid: int = 0


@dataclass(frozen=True)
class CashSummary:
    total_in: int = 0
    total_out: int = 0

    @property
    def net(self) -> int:
        return self.total_in - self.total_out


@dataclass(frozen=True)
class FinesSummary:
    count: int = 0
    amount: int = 0
    by_kind: Dict[str, int] = field(default_factory=dict)  # fine count per kind name


@dataclass(frozen=True)
class EventsSummary:
    total: int = 0
    games: int = 0
    internal: int = 0


@dataclass(frozen=True)
class MonthlyReport:
    period: str
    dues: DuesSummary
    cash: CashSummary
    fines: FinesSummary
    events: EventsSummary
    balance: Optional[int] = None
