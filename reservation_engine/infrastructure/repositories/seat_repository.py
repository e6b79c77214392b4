# reservation_engine/infrastructure/repositories/seat_repository.py

import threading
from dataclasses import replace
from typing import Iterable

from reservation_engine.domain.catalog import Catalog
from reservation_engine.domain.exceptions import (
    EventNotFoundError,
    InvalidArgumentError,
    SeatConflictError,
    SeatNotFoundError,
)
from reservation_engine.domain.models import Seat, seat_id_for
from reservation_engine.domain.state_machine import SeatStateMachine, SeatStatus

MAX_SEATS_PER_EVENT = 99


class SeatInventory:
    """
    Single source of truth for seat occupancy.

    Every read and write takes the shared lock, so a reader never
    observes a seat as FREE after a hold on it has returned.
    """

    def __init__(self, seats: Iterable[Seat], lock: "threading.RLock | None" = None):
        self._lock = lock or threading.RLock()
        self._seats: dict[int, Seat] = {}
        self._by_event: dict[int, list[int]] = {}

        for seat in sorted(seats, key=lambda s: (s.event_id, s.seat_number)):
            if seat.id in self._seats:
                raise InvalidArgumentError(f"Duplicate seat id {seat.id}")
            self._seats[seat.id] = seat
            self._by_event.setdefault(seat.event_id, []).append(seat.id)

    @classmethod
    def bootstrap(
        cls,
        catalog: Catalog,
        seats_per_event: int,
        lock: "threading.RLock | None" = None,
    ) -> "SeatInventory":
        """Fresh inventory: seats_per_event FREE seats for every event."""
        if not 1 <= seats_per_event <= MAX_SEATS_PER_EVENT:
            raise InvalidArgumentError(
                f"seats_per_event must be between 1 and {MAX_SEATS_PER_EVENT}"
            )

        seats = [
            Seat(
                id=seat_id_for(event.id, number),
                seat_number=number,
                event_id=event.id,
            )
            for event in catalog.events()
            for number in range(1, seats_per_event + 1)
        ]
        return cls(seats, lock=lock)

    def seats_for(self, event_id: int) -> list[Seat]:
        with self._lock:
            ids = self._by_event.get(event_id)
            if ids is None:
                raise EventNotFoundError(event_id)
            return [self._seats[seat_id] for seat_id in ids]

    def seat(self, seat_id: int) -> Seat:
        with self._lock:
            seat = self._seats.get(seat_id)
            if seat is None:
                raise SeatNotFoundError(seat_id)
            return seat

    def try_transition(
        self,
        ids: Iterable[int],
        from_statuses: set[SeatStatus],
        to: SeatStatus,
        owner: str | None,
        expected_owner: str | None = None,
    ) -> None:
        """
        Moves every seat in ids to `to`, or none of them.

        Raises SeatConflictError listing the offending ids when any seat
        is unknown, is not in one of from_statuses, is not held by
        expected_owner (when given), or (for holds) when the seats span
        more than one event.
        """
        ids = set(ids)
        if not ids:
            raise InvalidArgumentError("No seats given")
        if to is not SeatStatus.FREE and not owner:
            raise InvalidArgumentError(f"Owner required for {to.value}")

        with self._lock:
            conflicting = {
                seat_id
                for seat_id in ids
                if seat_id not in self._seats
                or self._seats[seat_id].status not in from_statuses
                or not SeatStateMachine.can_transition(self._seats[seat_id].status, to)
                or (
                    expected_owner is not None
                    and self._seats[seat_id].held_by_order != expected_owner
                )
            }

            if to is SeatStatus.HELD and not conflicting:
                events = {self._seats[seat_id].event_id for seat_id in ids}
                if len(events) > 1:
                    conflicting = ids

            if conflicting:
                raise SeatConflictError(conflicting)

            holder = None if to is SeatStatus.FREE else owner
            for seat_id in ids:
                self._seats[seat_id] = replace(
                    self._seats[seat_id],
                    status=to,
                    held_by_order=holder,
                )

    def snapshot(self) -> list[Seat]:
        with self._lock:
            return list(self._seats.values())

    def status_map(self) -> dict[int, SeatStatus]:
        with self._lock:
            return {seat_id: seat.status for seat_id, seat in self._seats.items()}
