import logging
import re
import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable

from reservation_engine.domain.catalog import Catalog
from reservation_engine.domain.exceptions import (
    InvalidArgumentError,
    InvalidStateTransitionError,
    InvariantViolationError,
    PersistenceFailureError,
    SeatConflictError,
    SeatNotFoundError,
    SeatUnavailableError,
)
from reservation_engine.domain.models import Event, Order, Seat
from reservation_engine.domain.state_machine import (
    OrderStateMachine,
    PayStatus,
    SeatStatus,
)
from reservation_engine.infrastructure.persistence.interfaces import SnapshotPersistence
from reservation_engine.infrastructure.repositories.order_repository import (
    OrderStore,
    generate_order_id,
)
from reservation_engine.infrastructure.repositories.seat_repository import SeatInventory

logger = logging.getLogger(__name__)

PAYMENT_PROOF_PATTERN = re.compile(r"[0-9]{4}")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReservationEngine:
    """
    Owns the seat and order lifecycle.

    The only component allowed to mutate the inventory or the order
    store. Every mutation runs under one lock; persistence happens
    afterwards, outside it, and never rolls memory back.
    """

    def __init__(
        self,
        catalog: Catalog,
        inventory: SeatInventory,
        orders: OrderStore,
        persistence: SnapshotPersistence,
        lock: "threading.RLock | None" = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.catalog = catalog
        self.inventory = inventory
        self.orders = orders
        self.persistence = persistence
        self._lock = lock or threading.RLock()
        self._persist_lock = threading.Lock()
        self._clock = clock
        self._persistence_pending = False

    @classmethod
    def build(
        cls,
        catalog: Catalog,
        seats: Iterable[Seat],
        orders: Iterable[Order],
        persistence: SnapshotPersistence,
        id_generator: Callable[[], str] = generate_order_id,
        clock: Callable[[], datetime] = utc_now,
    ) -> "ReservationEngine":
        """Wires inventory, order store and engine around one shared lock."""
        lock = threading.RLock()
        return cls(
            catalog=catalog,
            inventory=SeatInventory(seats, lock=lock),
            orders=OrderStore(orders, id_generator=id_generator, lock=lock),
            persistence=persistence,
            lock=lock,
            clock=clock,
        )

    # -----------------------------
    # Reads
    # -----------------------------
    def list_events(self) -> list[Event]:
        return self.catalog.events()

    def seats_for(self, event_id: int) -> list[Seat]:
        self.catalog.get(event_id)
        return self.inventory.seats_for(event_id)

    def get_order(self, order_id: str) -> Order:
        return self.orders.get(order_id)

    @property
    def persistence_pending(self) -> bool:
        return self._persistence_pending

    # -----------------------------
    # Requester operations
    # -----------------------------
    def finalize(
        self,
        requester_id: int,
        event_id: int,
        seat_ids: Iterable[int],
        unit_price: int,
    ) -> Order:
        """
        Holds the selected seats and creates a pending order in one step.

        Raises:
            InvalidArgumentError: empty or duplicate selection, bad price,
                or a seat that does not belong to event_id.
            EventNotFoundError: unknown event.
            SeatUnavailableError: some seats are no longer free. No order
                is created and no seat changes.
        """
        seat_ids = list(seat_ids)
        if not seat_ids:
            raise InvalidArgumentError("Select at least one seat")
        if len(set(seat_ids)) != len(seat_ids):
            raise InvalidArgumentError("Seat selection contains duplicates")
        if unit_price <= 0:
            raise InvalidArgumentError("Unit price must be positive")

        self.catalog.get(event_id)
        selected = frozenset(seat_ids)

        with self._lock:
            self._ensure_seats_belong(event_id, selected)
            order_id = self.orders.new_id()

            try:
                self.inventory.try_transition(
                    selected, {SeatStatus.FREE}, SeatStatus.HELD, owner=order_id
                )
            except SeatConflictError as exc:
                logger.info(
                    "Hold rejected. requester_id=%s event_id=%s conflicting=%s",
                    requester_id,
                    event_id,
                    exc.conflicting_ids,
                )
                raise SeatUnavailableError(exc.conflicting_ids) from exc

            order = Order(
                id=order_id,
                requester_id=requester_id,
                event_id=event_id,
                seat_ids=selected,
                amount=len(selected) * unit_price,
                created_at=self._clock(),
            )
            try:
                self.orders.create(order)
            except InvariantViolationError:
                self.inventory.try_transition(
                    selected, {SeatStatus.HELD}, SeatStatus.FREE, owner=None,
                    expected_owner=order_id,
                )
                raise

        logger.info(
            "Seats held. order_id=%s requester_id=%s event_id=%s seats=%s amount=%s",
            order.id,
            requester_id,
            event_id,
            sorted(selected),
            order.amount,
        )
        self._persist()
        return order

    def confirm_payment(self, order_id: str, proof: str) -> Order:
        """
        Marks an order paid on the requester's own payment proof.

        A second confirmation of a paid order is a no-op.
        """
        proof = (proof or "").strip()
        if not PAYMENT_PROOF_PATTERN.fullmatch(proof):
            raise InvalidArgumentError("Payment proof must be exactly 4 digits")
        return self.mark_paid(order_id, proof)

    def cancel(self, order_id: str) -> Order:
        """
        Releases a pending order's held seats and drops the order.

        Paid orders cannot be cancelled here; that needs an operator
        release, so a plain cancel never un-sells a seat.
        """
        with self._lock:
            order = self.orders.get(order_id)
            if not order.is_pending:
                logger.info(
                    "Cancel refused for non-pending order. order_id=%s status=%s",
                    order_id,
                    order.pay_status.value,
                )
                raise InvalidStateTransitionError(
                    from_state=order.pay_status.value,
                    to_state=PayStatus.CANCELLED.value,
                )
            released = self._release_locked(order, {SeatStatus.HELD})

        logger.info("Order cancelled. order_id=%s order=%s", order_id, released)
        self._persist()
        return released

    def expire_stale_holds(self, now: datetime, ttl: timedelta) -> int:
        """
        Releases every pending order created at or before now - ttl.

        Returns the number of orders released. Running it again right
        away releases nothing.
        """
        if now.tzinfo is None:
            raise InvalidArgumentError("now must be timezone-aware")
        if ttl < timedelta(0):
            raise InvalidArgumentError("ttl cannot be negative")

        cutoff = now - ttl
        expired: list[Order] = []
        with self._lock:
            for order in self.orders.list_pending(newest_first=False):
                if order.created_at <= cutoff:
                    expired.append(self._release_locked(order, {SeatStatus.HELD}))

        if not expired:
            return 0

        for order in expired:
            logger.info(
                "Hold expired. order_id=%s requester_id=%s seats=%s created_at=%s",
                order.id,
                order.requester_id,
                sorted(order.seat_ids),
                order.created_at.isoformat(),
            )
        self._persist()
        return len(expired)

    # -----------------------------
    # Shared transitions (also used by reconciliation)
    # -----------------------------
    def mark_paid(self, order_id: str, proof: str | None) -> Order:
        with self._lock:
            order = self.orders.get(order_id)
            if order.pay_status is PayStatus.PAID:
                logger.info("Order already paid, nothing to do. order_id=%s", order_id)
                return order

            OrderStateMachine.validate_transition(order.pay_status, PayStatus.PAID)
            try:
                self.inventory.try_transition(
                    order.seat_ids,
                    {SeatStatus.HELD},
                    SeatStatus.PAID,
                    owner=order.id,
                    expected_owner=order.id,
                )
            except SeatConflictError as exc:
                raise self._invariant_violation(
                    f"Order {order.id} seats {exc.conflicting_ids} not held by it",
                ) from exc

            order = self.orders.update(
                order_id,
                lambda current: replace(
                    current,
                    pay_status=PayStatus.PAID,
                    payment_proof=proof if proof is not None else current.payment_proof,
                ),
            )

        logger.info("Order paid. order_id=%s amount=%s", order.id, order.amount)
        self._persist()
        return order

    def release(self, order_id: str) -> Order:
        """Frees every seat of the order, paid ones included, and drops it."""
        with self._lock:
            order = self.orders.get(order_id)
            released = self._release_locked(order, {SeatStatus.HELD, SeatStatus.PAID})

        logger.info("Order released. order_id=%s order=%s", order_id, released)
        self._persist()
        return released

    def list_pending(self, limit: int | None = None) -> list[Order]:
        return self.orders.list_pending(limit=limit, newest_first=True)

    # -----------------------------
    # Persistence
    # -----------------------------
    def retry_persistence(self) -> None:
        """
        Re-issues the durable write after an earlier failure.

        Raises PersistenceFailureError if it fails again.
        """
        if self._persistence_pending:
            self.flush()

    def flush(self) -> None:
        """Writes the current snapshots now. Raises PersistenceFailureError on failure."""
        if not self._persist():
            raise PersistenceFailureError("Snapshot write failed")

    def _persist(self) -> bool:
        # the snapshot is taken after acquiring the write lock, so a
        # later write never carries older state than an earlier one
        with self._persist_lock:
            with self._lock:
                seats = self.inventory.snapshot()
                orders = self.orders.snapshot()
            try:
                self.persistence.persist_seats(seats)
                self.persistence.persist_orders(orders)
            except Exception:
                self._persistence_pending = True
                logger.warning(
                    "Snapshot write failed; in-memory state kept, will retry.",
                    exc_info=True,
                )
                return False
            self._persistence_pending = False
            return True

    # -----------------------------
    # Internals (caller holds the lock)
    # -----------------------------
    def _ensure_seats_belong(self, event_id: int, seat_ids: frozenset[int]) -> None:
        foreign = []
        for seat_id in seat_ids:
            try:
                seat = self.inventory.seat(seat_id)
            except SeatNotFoundError:
                foreign.append(seat_id)
                continue
            if seat.event_id != event_id:
                foreign.append(seat_id)

        if foreign:
            raise InvalidArgumentError(
                f"Seats {sorted(foreign)} do not belong to event {event_id}"
            )

    def _release_locked(self, order: Order, releasable: set[SeatStatus]) -> Order:
        owned = [
            seat.id
            for seat in (self.inventory.seat(seat_id) for seat_id in order.seat_ids)
            if seat.held_by_order == order.id and seat.status in releasable
        ]
        if owned:
            try:
                self.inventory.try_transition(
                    owned,
                    releasable,
                    SeatStatus.FREE,
                    owner=None,
                    expected_owner=order.id,
                )
            except SeatConflictError as exc:
                raise self._invariant_violation(
                    f"Could not free seats {exc.conflicting_ids} of order {order.id}",
                ) from exc

        removed = self.orders.remove(order.id)
        return replace(removed, pay_status=PayStatus.CANCELLED)

    def _invariant_violation(self, message: str) -> InvariantViolationError:
        logger.critical("Invariant violation: %s", message)
        return InvariantViolationError(message)
