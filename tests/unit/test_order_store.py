# tests/unit/test_order_store.py

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from reservation_engine.domain.exceptions import InvariantViolationError, OrderNotFoundError
from reservation_engine.domain.models import Order
from reservation_engine.domain.state_machine import PayStatus
from reservation_engine.infrastructure.repositories.order_repository import (
    ORDER_ID_ALPHABET,
    ORDER_ID_LENGTH,
    OrderStore,
    generate_order_id,
)

T0 = datetime(2025, 8, 9, 18, 0, tzinfo=timezone.utc)


def make_order(order_id: str, minutes: int = 0, pay_status=PayStatus.PENDING) -> Order:
    return Order(
        id=order_id,
        requester_id=1,
        event_id=1,
        seat_ids=frozenset({101}),
        amount=600,
        created_at=T0 + timedelta(minutes=minutes),
        pay_status=pay_status,
    )


def test_generated_ids_use_restricted_alphabet():
    for _ in range(50):
        order_id = generate_order_id()
        assert len(order_id) == ORDER_ID_LENGTH
        assert set(order_id) <= set(ORDER_ID_ALPHABET)


def test_new_id_skips_taken_ids():
    ids = iter(["AAAAAA", "AAAAAA", "BBBBBB"])
    store = OrderStore([make_order("AAAAAA")], id_generator=lambda: next(ids))

    assert store.new_id() == "BBBBBB"


def test_new_id_gives_up_on_a_stuck_generator():
    store = OrderStore([make_order("AAAAAA")], id_generator=lambda: "AAAAAA")

    with pytest.raises(InvariantViolationError):
        store.new_id()


def test_create_get_remove():
    store = OrderStore()
    assert store.create(make_order("AAAAAA")) == "AAAAAA"
    assert store.get("AAAAAA").amount == 600

    store.remove("AAAAAA")
    with pytest.raises(OrderNotFoundError):
        store.get("AAAAAA")
    with pytest.raises(OrderNotFoundError):
        store.remove("AAAAAA")


def test_duplicate_create_is_rejected():
    store = OrderStore([make_order("AAAAAA")])

    with pytest.raises(InvariantViolationError):
        store.create(make_order("AAAAAA"))


def test_update_applies_mutator():
    store = OrderStore([make_order("AAAAAA")])

    updated = store.update("AAAAAA", lambda o: replace(o, pay_status=PayStatus.PAID))

    assert updated.pay_status is PayStatus.PAID
    assert store.get("AAAAAA").pay_status is PayStatus.PAID


def test_update_cannot_change_id():
    store = OrderStore([make_order("AAAAAA")])

    with pytest.raises(InvariantViolationError):
        store.update("AAAAAA", lambda o: replace(o, id="BBBBBB"))


def test_list_pending_newest_first_with_limit():
    store = OrderStore(
        [
            make_order("OLDEST", minutes=0),
            make_order("MIDDLE", minutes=5),
            make_order("NEWEST", minutes=10),
            make_order("PAIDXX", minutes=20, pay_status=PayStatus.PAID),
        ]
    )

    assert [o.id for o in store.list_pending()] == ["NEWEST", "MIDDLE", "OLDEST"]
    assert [o.id for o in store.list_pending(limit=2)] == ["NEWEST", "MIDDLE"]
    assert [o.id for o in store.list_pending(newest_first=False)] == ["OLDEST", "MIDDLE", "NEWEST"]
