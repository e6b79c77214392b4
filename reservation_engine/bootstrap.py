"""Wiring: persistence backend, catalog, inventory and engine at startup.

Seats and orders are written as two separate snapshots, seats first.
A crash between the two writes can leave them disagreeing, so
load_engine repairs the pair before the engine sees it.
"""

import logging
from dataclasses import replace

from reservation_engine.application.reservation_engine import ReservationEngine
from reservation_engine.config import Settings
from reservation_engine.domain.catalog import DEFAULT_EVENTS, Catalog
from reservation_engine.domain.models import Order, Seat
from reservation_engine.domain.state_machine import PayStatus, SeatStatus
from reservation_engine.infrastructure.db.session import build_engine, build_session_factory
from reservation_engine.infrastructure.persistence.interfaces import SnapshotPersistence
from reservation_engine.infrastructure.persistence.json_persistence import JsonFilePersistence
from reservation_engine.infrastructure.persistence.sql_persistence import SqlAlchemyPersistence
from reservation_engine.infrastructure.repositories.seat_repository import SeatInventory

logger = logging.getLogger(__name__)


def build_persistence(settings: Settings) -> SnapshotPersistence:
    if settings.persistence_backend == "json":
        return JsonFilePersistence(settings.data_dir)

    persistence = SqlAlchemyPersistence(build_session_factory(build_engine(settings.database_url)))
    persistence.create_schema()
    return persistence


def load_catalog(persistence: SnapshotPersistence, default_events=DEFAULT_EVENTS) -> Catalog:
    events = persistence.load_events()
    if not events:
        events = list(default_events)
        persistence.save_events(events)
        logger.info("Catalog empty, seeded %s default events", len(events))
    return Catalog(events)


def reconcile_snapshots(seats: list[Seat], orders: list[Order]) -> tuple[list[Seat], list[Order]]:
    """
    Makes a loaded seat/order pair consistent again.

    - An order whose seats are missing, belong to another event, or are
      no longer held by it is dropped (its release reached the seats
      file but not the orders file).
    - A pending order whose seats are all PAID is promoted to PAID.
    - A paid order's seats are set to PAID.
    - A seat held by an order that does not exist is freed.
    """
    by_id = {seat.id: seat for seat in seats}
    kept: list[Order] = []

    for order in orders:
        owned = [by_id.get(seat_id) for seat_id in order.seat_ids]
        if any(
            seat is None or seat.event_id != order.event_id or seat.held_by_order != order.id
            for seat in owned
        ):
            logger.warning("Dropping order with unowned seats on load. order=%s", order)
            continue

        statuses = {seat.status for seat in owned}
        if order.pay_status is PayStatus.PENDING and statuses == {SeatStatus.PAID}:
            logger.warning("Promoting order to PAID to match its seats. order_id=%s", order.id)
            order = replace(order, pay_status=PayStatus.PAID)
        elif order.pay_status is PayStatus.PAID and statuses != {SeatStatus.PAID}:
            logger.warning("Marking seats PAID to match paid order. order_id=%s", order.id)
            for seat in owned:
                by_id[seat.id] = replace(seat, status=SeatStatus.PAID)
        kept.append(order)

    live = {order.id for order in kept}
    for seat_id, seat in list(by_id.items()):
        if seat.held_by_order is not None and seat.held_by_order not in live:
            logger.warning(
                "Freeing orphaned seat on load. seat_id=%s order_id=%s",
                seat_id,
                seat.held_by_order,
            )
            by_id[seat_id] = replace(seat, status=SeatStatus.FREE, held_by_order=None)

    return list(by_id.values()), kept


def load_engine(
    persistence: SnapshotPersistence,
    seats_per_event: int,
    default_events=DEFAULT_EVENTS,
) -> ReservationEngine:
    catalog = load_catalog(persistence, default_events)

    seats = persistence.load_seats()
    known_events = {seat.event_id for seat in seats}
    missing = [event for event in catalog.events() if event.id not in known_events]
    if missing:
        fresh = SeatInventory.bootstrap(Catalog(missing), seats_per_event).snapshot()
        seats.extend(fresh)
        logger.info("Created %s seats for %s events", len(fresh), len(missing))

    seats, orders = reconcile_snapshots(seats, persistence.load_orders())
    engine = ReservationEngine.build(catalog, seats, orders, persistence)
    # write back whatever bootstrap or repair changed
    engine.flush()

    logger.info(
        "Engine ready. events=%s seats=%s active_orders=%s",
        len(catalog),
        len(seats),
        len(orders),
    )
    return engine


def create_engine_from_settings(settings: Settings) -> ReservationEngine:
    return load_engine(build_persistence(settings), settings.seats_per_event)
