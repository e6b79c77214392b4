# tests/unit/test_reservation_engine.py

import threading
from datetime import timedelta

import pytest

from reservation_engine.application.reservation_engine import ReservationEngine
from reservation_engine.domain.exceptions import (
    EventNotFoundError,
    InvalidArgumentError,
    InvalidStateTransitionError,
    InvariantViolationError,
    OrderNotFoundError,
    PersistenceFailureError,
    SeatUnavailableError,
)
from reservation_engine.domain.state_machine import PayStatus, SeatStatus
from reservation_engine.infrastructure.repositories.order_repository import OrderStore
from reservation_engine.infrastructure.repositories.seat_repository import SeatInventory

UNIT_PRICE = 600


def statuses(engine, *seat_ids):
    return [engine.inventory.seat(seat_id).status for seat_id in seat_ids]


# ---------------------
# FINALIZE
# ---------------------

def test_finalize_holds_seats_and_creates_pending_order(engine, clock):
    order = engine.finalize(requester_id=1, event_id=1, seat_ids=[101, 102], unit_price=UNIT_PRICE)

    assert order.amount == 1200
    assert order.pay_status is PayStatus.PENDING
    assert order.seat_ids == frozenset({101, 102})
    assert order.created_at == clock.now
    assert statuses(engine, 101, 102) == [SeatStatus.HELD, SeatStatus.HELD]
    assert engine.inventory.seat(101).held_by_order == order.id


def test_finalize_then_seats_for_never_shows_held_as_free(engine):
    engine.finalize(1, 1, [105], UNIT_PRICE)

    view = {seat.id: seat.status for seat in engine.seats_for(1)}
    assert view[105] is SeatStatus.HELD


def test_overlapping_finalize_reports_only_taken_seats(engine):
    engine.finalize(1, 1, [101, 102], UNIT_PRICE)

    with pytest.raises(SeatUnavailableError) as info:
        engine.finalize(2, 1, [102, 103], UNIT_PRICE)

    assert info.value.conflicting_ids == [102]
    assert engine.inventory.seat(103).status is SeatStatus.FREE
    assert len(engine.orders) == 1


def test_finalize_empty_selection(engine, persistence):
    before = engine.inventory.status_map()

    with pytest.raises(InvalidArgumentError):
        engine.finalize(1, 1, [], UNIT_PRICE)

    assert engine.inventory.status_map() == before
    assert persistence.seat_writes == 0


def test_finalize_seat_from_other_event_is_usage_error(engine):
    with pytest.raises(InvalidArgumentError):
        engine.finalize(1, 1, [101, 201], UNIT_PRICE)

    assert statuses(engine, 101, 201) == [SeatStatus.FREE, SeatStatus.FREE]


def test_finalize_unknown_seat_is_usage_error(engine):
    with pytest.raises(InvalidArgumentError):
        engine.finalize(1, 1, [101, 150], UNIT_PRICE)


def test_finalize_unknown_event(engine):
    with pytest.raises(EventNotFoundError):
        engine.finalize(1, 9, [901], UNIT_PRICE)


def test_finalize_rejects_duplicates_and_bad_price(engine):
    with pytest.raises(InvalidArgumentError):
        engine.finalize(1, 1, [101, 101], UNIT_PRICE)
    with pytest.raises(InvalidArgumentError):
        engine.finalize(1, 1, [101], 0)


def test_finalize_persists_both_snapshots(engine, persistence):
    order = engine.finalize(1, 1, [101], UNIT_PRICE)

    assert [o.id for o in persistence.orders] == [order.id]
    held = [s for s in persistence.seats if s.id == 101][0]
    assert held.status is SeatStatus.HELD


# ---------------------
# CONFIRM
# ---------------------

def test_confirm_payment_marks_seats_paid(engine):
    order = engine.finalize(1, 1, [101, 102], UNIT_PRICE)

    paid = engine.confirm_payment(order.id, "1234")

    assert paid.pay_status is PayStatus.PAID
    assert paid.payment_proof == "1234"
    assert statuses(engine, 101, 102) == [SeatStatus.PAID, SeatStatus.PAID]


def test_confirm_payment_is_idempotent(engine, persistence):
    order = engine.finalize(1, 1, [101], UNIT_PRICE)
    first = engine.confirm_payment(order.id, "1234")
    writes = persistence.order_writes

    second = engine.confirm_payment(order.id, "9999")

    assert second == first
    assert second.payment_proof == "1234"
    assert persistence.order_writes == writes


@pytest.mark.parametrize("proof", ["", "123", "12345", "abcd", None])
def test_confirm_payment_validates_proof(engine, proof):
    order = engine.finalize(1, 1, [101], UNIT_PRICE)

    with pytest.raises(InvalidArgumentError):
        engine.confirm_payment(order.id, proof)

    assert engine.get_order(order.id).is_pending


def test_confirm_unknown_order(engine):
    with pytest.raises(OrderNotFoundError):
        engine.confirm_payment("NOPE42", "1234")


def test_confirm_with_inconsistent_seats_is_invariant_violation(engine):
    order = engine.finalize(1, 1, [101, 102], UNIT_PRICE)
    # simulate an earlier bug: one seat silently freed behind the engine's back
    engine.inventory.try_transition({102}, {SeatStatus.HELD}, SeatStatus.FREE, owner=None)

    with pytest.raises(InvariantViolationError):
        engine.confirm_payment(order.id, "1234")

    assert engine.get_order(order.id).is_pending
    assert engine.inventory.seat(101).status is SeatStatus.HELD


# ---------------------
# CANCEL
# ---------------------

def test_cancel_releases_held_seats_and_removes_order(engine):
    order = engine.finalize(1, 1, [101, 102], UNIT_PRICE)

    cancelled = engine.cancel(order.id)

    assert cancelled.pay_status is PayStatus.CANCELLED
    assert statuses(engine, 101, 102) == [SeatStatus.FREE, SeatStatus.FREE]
    with pytest.raises(OrderNotFoundError):
        engine.get_order(order.id)


def test_cancel_never_unsells_paid_seats(engine):
    order = engine.finalize(1, 1, [101, 102], UNIT_PRICE)
    engine.confirm_payment(order.id, "1234")

    with pytest.raises(InvalidStateTransitionError):
        engine.cancel(order.id)

    assert statuses(engine, 101, 102) == [SeatStatus.PAID, SeatStatus.PAID]
    assert engine.get_order(order.id).pay_status is PayStatus.PAID


def test_cancel_unknown_order(engine):
    with pytest.raises(OrderNotFoundError):
        engine.cancel("NOPE42")


def test_released_seats_can_be_held_again(engine):
    order = engine.finalize(1, 1, [101], UNIT_PRICE)
    engine.cancel(order.id)

    again = engine.finalize(2, 1, [101], UNIT_PRICE)

    assert engine.inventory.seat(101).held_by_order == again.id


# ---------------------
# EXPIRY
# ---------------------

def test_expire_releases_only_stale_pending_orders(engine, clock):
    stale = engine.finalize(1, 1, [101], UNIT_PRICE)
    paid = engine.finalize(2, 1, [102], UNIT_PRICE)
    engine.confirm_payment(paid.id, "1234")
    clock.advance(minutes=10)
    fresh = engine.finalize(3, 1, [103], UNIT_PRICE)
    clock.advance(minutes=5)

    released = engine.expire_stale_holds(clock.now, timedelta(minutes=15))

    assert released == 1
    with pytest.raises(OrderNotFoundError):
        engine.get_order(stale.id)
    assert engine.get_order(fresh.id).is_pending
    assert engine.get_order(paid.id).pay_status is PayStatus.PAID
    assert statuses(engine, 101, 102, 103) == [SeatStatus.FREE, SeatStatus.PAID, SeatStatus.HELD]


def test_expire_twice_is_a_noop(engine, clock, persistence):
    engine.finalize(1, 1, [101], UNIT_PRICE)
    clock.advance(minutes=20)

    assert engine.expire_stale_holds(clock.now, timedelta(minutes=15)) == 1
    writes = persistence.seat_writes
    assert engine.expire_stale_holds(clock.now, timedelta(minutes=15)) == 0
    assert persistence.seat_writes == writes


def test_expire_requires_aware_now(engine, clock):
    with pytest.raises(InvalidArgumentError):
        engine.expire_stale_holds(clock.now.replace(tzinfo=None), timedelta(minutes=15))


# ---------------------
# PERSISTENCE FAILURE
# ---------------------

class FlakyPersistence:

    def __init__(self, inner):
        self.inner = inner
        self.failing = True

    def persist_seats(self, snapshot):
        if self.failing:
            raise OSError("disk full")
        self.inner.persist_seats(snapshot)

    def persist_orders(self, snapshot):
        self.inner.persist_orders(snapshot)


def test_persistence_failure_keeps_memory_and_retries(engine, persistence):
    flaky = FlakyPersistence(persistence)
    engine.persistence = flaky

    order = engine.finalize(1, 1, [101], UNIT_PRICE)

    assert engine.inventory.seat(101).status is SeatStatus.HELD
    assert engine.persistence_pending
    with pytest.raises(PersistenceFailureError):
        engine.retry_persistence()

    flaky.failing = False
    engine.retry_persistence()

    assert not engine.persistence_pending
    assert [o.id for o in persistence.orders] == [order.id]


def test_build_wires_one_shared_lock(catalog, persistence):
    lock = threading.RLock()
    inventory = SeatInventory.bootstrap(catalog, seats_per_event=5, lock=lock)
    orders = OrderStore(lock=lock)

    engine = ReservationEngine(catalog, inventory, orders, persistence, lock=lock)
    built = ReservationEngine.build(catalog, inventory.snapshot(), [], persistence)

    assert engine.inventory._lock is engine.orders._lock is engine._lock is lock
    assert built.inventory._lock is built.orders._lock is built._lock
