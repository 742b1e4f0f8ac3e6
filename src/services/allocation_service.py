"""FIFO allocation engine for patient charges and payments.

Applies the patient's total paid amount to charges oldest-first using a
cumulative threshold:

- Sort charges by (date, created_at, kind, id) and payments by (date, created_at, id)
- total_paid = sum of all payment amounts
- A charge is paid iff the running total of charge amounts up to and
  including it is <= total_paid

There is no partially-paid state: a charge is either fully covered by the
cumulative total or unpaid, and once one charge is unpaid every later
positive charge is unpaid too. Zero-amount charges never move the running
total and are treated as paid.

The engine is a pure function of its inputs. It performs no I/O, holds no
state and never raises on well-formed input, including empty lists.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from src.services.money import ZERO, as_ledger_datetime, to_money


class ChargeKind(str, Enum):
    """Clinical record types that produce patient charges."""

    APPOINTMENT = "appointment"
    LABWORK = "labwork"
    EXPENSE = "expense"


ChargeKey = Tuple[ChargeKind, int]


def _created_sort_value(created_at: Optional[datetime]) -> datetime:
    if created_at is None:
        return datetime.min
    return as_ledger_datetime(created_at)


@dataclass(frozen=True)
class BillableItem:
    """Snapshot of one chargeable record.

    ``is_paid`` is the flag as last persisted; the engine never reads it when
    allocating, it is only compared against the result to find changed flags.
    """

    kind: ChargeKind
    id: int
    date: date | datetime
    amount: Decimal
    created_at: Optional[datetime] = None
    is_paid: bool = False

    def __post_init__(self):
        object.__setattr__(self, "kind", ChargeKind(self.kind))
        amount = to_money(self.amount)
        if amount < ZERO:
            raise ValueError(f"Charge {self.kind.value}#{self.id} has negative amount {amount}")
        object.__setattr__(self, "amount", amount)

    @property
    def key(self) -> ChargeKey:
        return (self.kind, self.id)

    @property
    def sort_key(self) -> tuple:
        return (
            as_ledger_datetime(self.date),
            _created_sort_value(self.created_at),
            self.kind.value,
            self.id,
        )


@dataclass(frozen=True)
class PaymentEntry:
    """Snapshot of one active payment."""

    id: int
    date: date | datetime
    amount: Decimal
    created_at: Optional[datetime] = None

    def __post_init__(self):
        amount = to_money(self.amount)
        if amount < ZERO:
            raise ValueError(f"Payment #{self.id} has negative amount {amount}")
        object.__setattr__(self, "amount", amount)

    @property
    def sort_key(self) -> tuple:
        return (as_ledger_datetime(self.date), _created_sort_value(self.created_at), self.id)


@dataclass(frozen=True)
class AllocationLine:
    """One charge in allocation order with its running total."""

    item: BillableItem
    cumulative: Decimal
    is_paid: bool


@dataclass(frozen=True)
class AllocationResult:
    """Outcome of a full allocation run."""

    paid_item_keys: FrozenSet[ChargeKey]
    total_debt: Decimal
    total_paid: Decimal
    raw_outstanding: Decimal
    lines: Tuple[AllocationLine, ...] = field(default_factory=tuple)
    ordered_payments: Tuple[PaymentEntry, ...] = field(default_factory=tuple)

    @property
    def outstanding(self) -> Decimal:
        """Outstanding balance floored at zero for reporting."""
        return max(ZERO, self.raw_outstanding)

    @property
    def overpaid(self) -> bool:
        """True when payments exceed charges (charges were edited down after payment)."""
        return self.raw_outstanding < ZERO

    def is_paid(self, key: ChargeKey) -> bool:
        return key in self.paid_item_keys


class AllocationService:
    """Stateless FIFO allocation engine."""

    def order_items(self, items: Iterable[BillableItem]) -> List[BillableItem]:
        """Sort charges oldest-first with the stable tie-break.

        Args:
            items: Charges in any order

        Returns:
            New list sorted by (date, created_at, kind, id)
        """
        return sorted(items, key=lambda item: item.sort_key)

    def order_payments(self, payments: Iterable[PaymentEntry]) -> List[PaymentEntry]:
        """Sort payments oldest-first by (date, created_at, id)."""
        return sorted(payments, key=lambda payment: payment.sort_key)

    def allocate(
        self,
        items: Iterable[BillableItem],
        payments: Iterable[PaymentEntry],
    ) -> AllocationResult:
        """Allocate payments to charges using the cumulative FIFO threshold.

        Args:
            items: Current charges of one patient (any order)
            payments: Current active payments of the same patient (any order)

        Returns:
            AllocationResult with paid charge keys, totals and ordered lines
        """
        ordered_items = self.order_items(items)
        ordered_payments = self.order_payments(payments)

        # Payment order only matters for presentation, the total drives allocation
        total_paid = sum((p.amount for p in ordered_payments), ZERO)

        lines: List[AllocationLine] = []
        paid_keys = set()
        cumulative = ZERO
        for item in ordered_items:
            cumulative += item.amount
            paid = item.amount == ZERO or cumulative <= total_paid
            if paid:
                paid_keys.add(item.key)
            lines.append(AllocationLine(item=item, cumulative=cumulative, is_paid=paid))

        total_debt = cumulative
        return AllocationResult(
            paid_item_keys=frozenset(paid_keys),
            total_debt=total_debt,
            total_paid=total_paid,
            raw_outstanding=total_debt - total_paid,
            lines=tuple(lines),
            ordered_payments=tuple(ordered_payments),
        )

    def changed_flags(
        self,
        result: AllocationResult,
        items: Iterable[BillableItem],
    ) -> Dict[ChargeKey, bool]:
        """List charges whose persisted flag differs from the allocation.

        Args:
            result: Output of allocate() over the same items
            items: Charges carrying their persisted is_paid flag

        Returns:
            Dict mapping charge key to the flag value that must be written
        """
        changes = {}
        for item in items:
            should_be_paid = result.is_paid(item.key)
            if item.is_paid != should_be_paid:
                changes[item.key] = should_be_paid
        return changes


__all__ = [
    "ChargeKind",
    "ChargeKey",
    "BillableItem",
    "PaymentEntry",
    "AllocationLine",
    "AllocationResult",
    "AllocationService",
]
