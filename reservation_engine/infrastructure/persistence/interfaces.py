"""Persistence collaborator interface.

Backends must be swappable. The engine calls persist_* after each
successful mutation, always with a full snapshot, and never from two
threads at once.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone

from reservation_engine.domain.models import Event, Order, Seat


def as_utc(value: datetime) -> datetime:
    """Timestamps stored without an offset are read back as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SnapshotPersistence(ABC):
    """Durable storage for catalog, seat and order snapshots."""

    @abstractmethod
    def load_events(self) -> list[Event]:
        """Return the stored catalog, or an empty list if none was saved."""
        ...

    @abstractmethod
    def save_events(self, events: list[Event]) -> None:
        ...

    @abstractmethod
    def load_seats(self) -> list[Seat]:
        """Return the last persisted seat snapshot, or an empty list."""
        ...

    @abstractmethod
    def load_orders(self) -> list[Order]:
        """Return the last persisted order snapshot, or an empty list."""
        ...

    @abstractmethod
    def persist_seats(self, snapshot: list[Seat]) -> None:
        """Replace the stored seat state with snapshot."""
        ...

    @abstractmethod
    def persist_orders(self, snapshot: list[Order]) -> None:
        """Replace the stored active orders with snapshot."""
        ...


class InMemoryPersistence(SnapshotPersistence):
    """Keeps the last snapshot in process memory. Used by tests and dry runs."""

    def __init__(self) -> None:
        self.events: list[Event] = []
        self.seats: list[Seat] = []
        self.orders: list[Order] = []
        self.seat_writes = 0
        self.order_writes = 0

    def load_events(self) -> list[Event]:
        return list(self.events)

    def save_events(self, events: list[Event]) -> None:
        self.events = list(events)

    def load_seats(self) -> list[Seat]:
        return list(self.seats)

    def load_orders(self) -> list[Order]:
        return list(self.orders)

    def persist_seats(self, snapshot: list[Seat]) -> None:
        self.seats = list(snapshot)
        self.seat_writes += 1

    def persist_orders(self, snapshot: list[Order]) -> None:
        self.orders = list(snapshot)
        self.order_writes += 1
