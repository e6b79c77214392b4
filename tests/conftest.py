"""Shared fixtures: an engine over an in-memory snapshot store and a fake clock."""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from reservation_engine.application.reservation_engine import ReservationEngine
from reservation_engine.config import Settings
from reservation_engine.domain.catalog import Catalog
from reservation_engine.domain.models import Event
from reservation_engine.infrastructure.persistence.interfaces import InMemoryPersistence
from reservation_engine.infrastructure.repositories.seat_repository import SeatInventory
from reservation_engine.main import create_app

OPERATOR_ID = 777
UNIT_PRICE = 600


class FakeClock:

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 8, 9, 18, 0, tzinfo=timezone.utc))


@pytest.fixture
def catalog() -> Catalog:
    return Catalog(
        [
            Event(id=1, start_time=datetime(2025, 8, 9, 21, 0, tzinfo=timezone.utc), title="Dune: Part Two"),
            Event(id=2, start_time=datetime(2025, 8, 10, 21, 0, tzinfo=timezone.utc), title="Interstellar"),
        ]
    )


@pytest.fixture
def persistence() -> InMemoryPersistence:
    return InMemoryPersistence()


@pytest.fixture
def engine(catalog, persistence, clock) -> ReservationEngine:
    seats = SeatInventory.bootstrap(catalog, seats_per_event=25).snapshot()
    return ReservationEngine.build(catalog, seats, [], persistence, clock=clock)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        ticket_price=UNIT_PRICE,
        seats_per_event=25,
        hold_ttl_seconds=900,
        admin_ids=frozenset({OPERATOR_ID}),
    )


@pytest.fixture
def client(settings, engine) -> TestClient:
    return TestClient(create_app(settings=settings, engine=engine))


@pytest.fixture
def operator_headers() -> dict:
    return {"X-Operator-Id": str(OPERATOR_ID)}
