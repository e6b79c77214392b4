# reservation_engine/infrastructure/repositories/order_repository.py

import secrets
import threading
from typing import Callable, Iterable

from reservation_engine.domain.exceptions import InvariantViolationError, OrderNotFoundError
from reservation_engine.domain.models import Order

ORDER_ID_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZ"
ORDER_ID_LENGTH = 6

_MAX_ID_ATTEMPTS = 20


def generate_order_id() -> str:
    """Short, unguessable, no look-alike characters (no 0/O, I)."""
    return "".join(secrets.choice(ORDER_ID_ALPHABET) for _ in range(ORDER_ID_LENGTH))


class OrderStore:
    """
    Active orders keyed by id.

    Knows nothing about seat status; cross-order invariants belong to
    the engine.
    """

    def __init__(
        self,
        orders: Iterable[Order] = (),
        id_generator: Callable[[], str] = generate_order_id,
        lock: "threading.RLock | None" = None,
    ):
        self._lock = lock or threading.RLock()
        self._id_generator = id_generator
        self._orders: dict[str, Order] = {order.id: order for order in orders}

    def new_id(self) -> str:
        with self._lock:
            for _ in range(_MAX_ID_ATTEMPTS):
                candidate = self._id_generator()
                if candidate not in self._orders:
                    return candidate
        raise InvariantViolationError("Order id generator keeps returning taken ids")

    def create(self, order: Order) -> str:
        with self._lock:
            if order.id in self._orders:
                raise InvariantViolationError(f"Order id {order.id} already exists")
            self._orders[order.id] = order
            return order.id

    def get(self, order_id: str) -> Order:
        order = self.find(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def find(self, order_id: str) -> Order | None:
        with self._lock:
            return self._orders.get(order_id)

    def update(self, order_id: str, mutator: Callable[[Order], Order]) -> Order:
        with self._lock:
            current = self.get(order_id)
            updated = mutator(current)
            if updated.id != current.id:
                raise InvariantViolationError("Order id cannot change on update")
            self._orders[order_id] = updated
            return updated

    def remove(self, order_id: str) -> Order:
        with self._lock:
            order = self._orders.pop(order_id, None)
            if order is None:
                raise OrderNotFoundError(order_id)
            return order

    def list_pending(self, limit: int | None = None, newest_first: bool = True) -> list[Order]:
        with self._lock:
            pending = [o for o in self._orders.values() if o.is_pending]
        pending.sort(key=lambda o: (o.created_at, o.id), reverse=newest_first)
        if limit is not None:
            pending = pending[: max(limit, 0)]
        return pending

    def snapshot(self) -> list[Order]:
        with self._lock:
            return list(self._orders.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._orders)
