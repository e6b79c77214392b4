# reservation_engine/infrastructure/persistence/sql_persistence.py

import logging

from sqlalchemy import delete, select
from sqlalchemy.orm import sessionmaker

from reservation_engine.domain.models import Event, Order, Seat
from reservation_engine.infrastructure.db.models import (
    EventRecord,
    OrderRecord,
    OrderSeatRecord,
    SeatRecord,
)
from reservation_engine.infrastructure.db.session import Base, session_scope
from reservation_engine.infrastructure.persistence.interfaces import (
    SnapshotPersistence,
    as_utc,
)

logger = logging.getLogger(__name__)


class SqlAlchemyPersistence(SnapshotPersistence):
    """Stores snapshots in a relational database through SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def create_schema(self) -> None:
        Base.metadata.create_all(bind=self.session_factory.kw["bind"])

    def load_events(self) -> list[Event]:
        with session_scope(self.session_factory) as db:
            stmt = select(EventRecord).order_by(EventRecord.start_time, EventRecord.id)
            return [
                Event(id=row.id, start_time=as_utc(row.start_time), title=row.title)
                for row in db.execute(stmt).scalars().all()
            ]

    def save_events(self, events: list[Event]) -> None:
        with session_scope(self.session_factory) as db:
            for event in events:
                db.merge(
                    EventRecord(
                        id=event.id,
                        title=event.title,
                        start_time=event.start_time,
                    )
                )

    def load_seats(self) -> list[Seat]:
        with session_scope(self.session_factory) as db:
            stmt = select(SeatRecord).order_by(SeatRecord.event_id, SeatRecord.seat_number)
            return [
                Seat(
                    id=row.id,
                    seat_number=row.seat_number,
                    event_id=row.event_id,
                    status=row.status,
                    held_by_order=row.held_by_order,
                )
                for row in db.execute(stmt).scalars().all()
            ]

    def load_orders(self) -> list[Order]:
        with session_scope(self.session_factory) as db:
            stmt = select(OrderRecord).order_by(OrderRecord.created_at)
            return [
                Order(
                    id=row.id,
                    requester_id=row.requester_id,
                    event_id=row.event_id,
                    seat_ids=frozenset(link.seat_id for link in row.seats),
                    amount=row.amount,
                    created_at=as_utc(row.created_at),
                    pay_status=row.pay_status,
                    payment_proof=row.payment_proof,
                )
                for row in db.execute(stmt).scalars().all()
            ]

    def persist_seats(self, snapshot: list[Seat]) -> None:
        with session_scope(self.session_factory) as db:
            for seat in snapshot:
                db.merge(
                    SeatRecord(
                        id=seat.id,
                        seat_number=seat.seat_number,
                        event_id=seat.event_id,
                        status=seat.status,
                        held_by_order=seat.held_by_order,
                    )
                )
        logger.debug("Persisted %s seats", len(snapshot))

    def persist_orders(self, snapshot: list[Order]) -> None:
        with session_scope(self.session_factory) as db:
            # the snapshot is the whole active set; anything else was released
            db.execute(delete(OrderSeatRecord))
            db.execute(delete(OrderRecord))
            for order in snapshot:
                db.add(
                    OrderRecord(
                        id=order.id,
                        requester_id=order.requester_id,
                        event_id=order.event_id,
                        amount=order.amount,
                        pay_status=order.pay_status,
                        payment_proof=order.payment_proof,
                        created_at=order.created_at,
                        seats=[
                            OrderSeatRecord(seat_id=seat_id)
                            for seat_id in sorted(order.seat_ids)
                        ],
                    )
                )
        logger.debug("Persisted %s orders", len(snapshot))
