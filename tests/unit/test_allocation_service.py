"""Unit tests for the FIFO allocation engine."""

import random
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from src.services.allocation_service import (
    AllocationService,
    BillableItem,
    ChargeKind,
    PaymentEntry,
)

A = ChargeKind.APPOINTMENT
L = ChargeKind.LABWORK


def item(charge_id, day, amount, kind=A, created_at=None, is_paid=False):
    return BillableItem(
        kind=kind,
        id=charge_id,
        date=date(2025, 1, 1) + timedelta(days=day),
        amount=Decimal(amount),
        created_at=created_at,
        is_paid=is_paid,
    )


def payment(payment_id, day, amount):
    return PaymentEntry(id=payment_id, date=date(2025, 1, 1) + timedelta(days=day), amount=Decimal(amount))


def random_ledger(rng, max_items=8, max_payments=6):
    items = [
        item(i, rng.randint(0, 60), f"{rng.randint(0, 300)}.{rng.randint(0, 99):02d}", kind=rng.choice([A, L]))
        for i in range(1, rng.randint(0, max_items) + 1)
    ]
    payments = [
        payment(i, rng.randint(0, 60), f"{rng.randint(1, 200)}.{rng.randint(0, 99):02d}")
        for i in range(1, rng.randint(0, max_payments) + 1)
    ]
    return items, payments


class TestAllocationService:
    """Test allocation engine behaviour."""

    @pytest.fixture
    def service(self):
        """Create allocation service instance."""
        return AllocationService()

    @pytest.fixture
    def three_charges(self):
        # Jan 1, Feb 1, Mar 1 - deliberately shuffled
        return [item(3, 59, "100"), item(1, 0, "100"), item(2, 31, "100")]

    def test_empty_inputs(self, service):
        """Zero items and zero payments allocate nothing."""
        result = service.allocate([], [])

        assert result.paid_item_keys == frozenset()
        assert result.total_debt == Decimal("0.00")
        assert result.total_paid == Decimal("0.00")
        assert result.outstanding == Decimal("0.00")
        assert result.lines == ()

    def test_no_payments_leaves_everything_unpaid(self, service, three_charges):
        result = service.allocate(three_charges, [])

        assert result.paid_item_keys == frozenset()
        assert result.total_paid == Decimal("0.00")
        assert result.outstanding == Decimal("300.00")

    @pytest.mark.parametrize(
        "payment_amounts, expected_paid_ids, expected_outstanding",
        [
            ([], set(), "300.00"),
            (["50"], set(), "250.00"),
            (["50", "60"], {1}, "190.00"),
            (["50", "60", "100"], {1, 2}, "90.00"),
            (["50", "60", "100", "90"], {1, 2, 3}, "0.00"),
        ],
    )
    def test_three_charge_scenario(
        self, service, three_charges, payment_amounts, expected_paid_ids, expected_outstanding
    ):
        """$100 x 3 charges paid down step by step."""
        payments = [payment(i, 70 + i, amount) for i, amount in enumerate(payment_amounts, start=1)]

        result = service.allocate(three_charges, payments)

        assert result.paid_item_keys == {(A, i) for i in expected_paid_ids}
        assert result.total_debt == Decimal("300.00")
        assert result.outstanding == Decimal(expected_outstanding)

    def test_deleting_last_payment_restores_previous_state(self, service, three_charges):
        """Removing a payment gives exactly the allocation from before it was added."""
        before = [payment(1, 70, "50"), payment(2, 71, "60"), payment(3, 72, "100")]
        after = before + [payment(4, 73, "90")]

        assert service.allocate(three_charges, after).paid_item_keys == {(A, 1), (A, 2), (A, 3)}
        restored = service.allocate(three_charges, before)
        assert restored == service.allocate(three_charges, list(before))
        assert restored.paid_item_keys == {(A, 1), (A, 2)}

    def test_later_small_charge_not_paid_before_older_one(self, service):
        """Strict FIFO: a cheap newer charge waits for the older expensive one."""
        charges = [item(1, 0, "100"), item(2, 1, "20")]

        result = service.allocate(charges, [payment(1, 5, "50")])

        assert result.paid_item_keys == frozenset()
        assert [line.cumulative for line in result.lines] == [Decimal("100.00"), Decimal("120.00")]

    def test_payment_dates_do_not_affect_allocation(self, service, three_charges):
        early = service.allocate(three_charges, [payment(1, -30, "150")])
        late = service.allocate(three_charges, [payment(1, 400, "150")])

        assert early.paid_item_keys == late.paid_item_keys == {(A, 1)}

    def test_zero_amount_charge_is_paid_by_construction(self, service):
        charges = [item(1, 0, "100"), item(2, 1, "0"), item(3, 2, "50")]

        result = service.allocate(charges, [])

        assert result.paid_item_keys == {(A, 2)}
        assert result.total_debt == Decimal("100.00") + Decimal("50.00")

    def test_same_date_ties_broken_by_creation_then_kind_then_id(self, service):
        created = datetime(2025, 1, 1, tzinfo=timezone.utc)
        charges = [
            item(9, 0, "10", kind=A, created_at=created + timedelta(seconds=2)),
            item(5, 0, "10", kind=L, created_at=created),
            item(7, 0, "10", kind=A, created_at=created),
            item(1, 0, "10", kind=L, created_at=created),
        ]

        ordered = service.order_items(charges)

        assert [c.key for c in ordered] == [(A, 7), (L, 1), (L, 5), (A, 9)]

    def test_mixed_date_types_sort_together(self, service):
        """Aware datetimes and plain dates share one timeline."""
        appointment = BillableItem(
            kind=A, id=1, date=datetime(2025, 1, 2, 9, 0, tzinfo=timezone.utc), amount=Decimal("40")
        )
        labwork = BillableItem(kind=L, id=1, date=date(2025, 1, 1), amount=Decimal("60"))

        result = service.allocate([appointment, labwork], [payment(1, 0, "60")])

        assert [line.item.kind for line in result.lines] == [L, A]
        assert result.paid_item_keys == {(L, 1)}

    def test_overpaid_keeps_signed_outstanding(self, service):
        """Charges edited below what was paid: reported outstanding floors at zero."""
        result = service.allocate([item(1, 0, "80")], [payment(1, 1, "100")])

        assert result.outstanding == Decimal("0.00")
        assert result.raw_outstanding == Decimal("-20.00")
        assert result.overpaid

    def test_changed_flags_only_lists_differences(self, service):
        charges = [item(1, 0, "100", is_paid=True), item(2, 1, "100", is_paid=True), item(3, 2, "100")]

        result = service.allocate(charges, [payment(1, 5, "100")])

        assert service.changed_flags(result, charges) == {(A, 2): False}

    def test_rejects_negative_amounts(self):
        with pytest.raises(ValueError, match="negative"):
            item(1, 0, "-1")
        with pytest.raises(ValueError, match="negative"):
            payment(1, 0, "-5")

    def test_rejects_float_amounts(self):
        with pytest.raises(TypeError):
            BillableItem(kind=A, id=1, date=date(2025, 1, 1), amount=0.1)

    def test_accepts_kind_as_string(self):
        charge = BillableItem(kind="labwork", id=3, date=date(2025, 1, 1), amount=Decimal("5"))
        assert charge.key == (L, 3)


class TestAllocationProperties:
    """Randomized checks of the allocation laws (seeded, reproducible)."""

    @pytest.fixture
    def service(self):
        return AllocationService()

    @pytest.mark.parametrize("seed", range(25))
    def test_determinism(self, service, seed):
        rng = random.Random(seed)
        items, payments = random_ledger(rng)
        shuffled_items = items[:]
        shuffled_payments = payments[:]
        rng.shuffle(shuffled_items)
        rng.shuffle(shuffled_payments)

        assert service.allocate(items, payments) == service.allocate(shuffled_items, shuffled_payments)

    @pytest.mark.parametrize("seed", range(25))
    def test_conservation(self, service, seed):
        items, payments = random_ledger(random.Random(seed))

        result = service.allocate(items, payments)

        assert result.total_debt == sum((i.amount for i in items), Decimal("0.00"))
        assert result.total_paid == sum((p.amount for p in payments), Decimal("0.00"))
        assert result.raw_outstanding == result.total_debt - result.total_paid

    @pytest.mark.parametrize("seed", range(25))
    def test_threshold_law(self, service, seed):
        items, payments = random_ledger(random.Random(seed))

        result = service.allocate(items, payments)

        running = Decimal("0.00")
        for charge in sorted(items, key=lambda c: c.sort_key):
            running += charge.amount
            expected = charge.amount == 0 or running <= result.total_paid
            assert result.is_paid(charge.key) is expected

    @pytest.mark.parametrize("seed", range(25))
    def test_monotonicity(self, service, seed):
        rng = random.Random(seed)
        items, payments = random_ledger(rng)
        extra = payment(999, rng.randint(0, 60), f"{rng.randint(1, 150)}.00")

        without = service.allocate(items, payments)
        with_extra = service.allocate(items, payments + [extra])

        # Adding never un-pays; removing (the reverse direction) never pays
        assert without.paid_item_keys <= with_extra.paid_item_keys
