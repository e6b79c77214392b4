"""Domain models for events, seats and orders.

These are immutable value snapshots. The inventory and the order store
replace whole records on change, so a reader never sees a half-applied
update.
"""

from dataclasses import dataclass
from datetime import datetime

from reservation_engine.domain.state_machine import PayStatus, SeatStatus


@dataclass(frozen=True)
class Event:
    """A scheduled show. Immutable for the life of the process."""

    id: int
    start_time: datetime
    title: str


@dataclass(frozen=True)
class Seat:

    id: int
    seat_number: int
    event_id: int
    status: SeatStatus = SeatStatus.FREE
    held_by_order: str | None = None

    @property
    def is_free(self) -> bool:
        return self.status is SeatStatus.FREE


@dataclass(frozen=True)
class Order:

    id: str
    requester_id: int
    event_id: int
    seat_ids: frozenset[int]
    amount: int
    created_at: datetime
    pay_status: PayStatus = PayStatus.PENDING
    payment_proof: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.pay_status is PayStatus.PENDING


@dataclass(frozen=True)
class PendingOrderView:
    """Operator-facing projection of a pending order."""

    order_id: str
    requester_id: int
    event_id: int
    event_title: str
    seat_numbers: tuple[int, ...]
    amount: int
    created_at: datetime


def seat_id_for(event_id: int, seat_number: int) -> int:
    """Seat ids are unique across the inventory: event_id * 100 + seat number."""
    return event_id * 100 + seat_number
