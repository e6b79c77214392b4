"""Read-only list of schedulable events."""

from datetime import datetime, timezone
from typing import Iterable

from reservation_engine.domain.exceptions import EventNotFoundError, InvalidArgumentError
from reservation_engine.domain.models import Event


DEFAULT_EVENTS: tuple[Event, ...] = (
    Event(id=1, start_time=datetime(2025, 8, 9, 21, 0, tzinfo=timezone.utc), title="Dune: Part Two"),
    Event(id=2, start_time=datetime(2025, 8, 10, 21, 0, tzinfo=timezone.utc), title="Interstellar"),
)


class Catalog:
    """Events ordered by start time. Built once, never mutated."""

    def __init__(self, events: Iterable[Event]):
        ordered = sorted(events, key=lambda e: (e.start_time, e.id))
        by_id: dict[int, Event] = {}
        for event in ordered:
            if event.id in by_id:
                raise InvalidArgumentError(f"Duplicate event id {event.id}")
            by_id[event.id] = event
        self._events = tuple(ordered)
        self._by_id = by_id

    def events(self) -> list[Event]:
        return list(self._events)

    def get(self, event_id: int) -> Event:
        event = self._by_id.get(event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        return event

    def __len__(self) -> int:
        return len(self._events)
