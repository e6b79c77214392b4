# reservation_engine/infrastructure/persistence/json_persistence.py

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path

from reservation_engine.domain.models import Event, Order, Seat
from reservation_engine.domain.state_machine import PayStatus, SeatStatus
from reservation_engine.infrastructure.persistence.interfaces import (
    SnapshotPersistence,
    as_utc,
)

logger = logging.getLogger(__name__)

SHOWS_FILE = "shows.json"
SEATS_FILE = "seats.json"
ORDERS_FILE = "orders.json"


class JsonFilePersistence(SnapshotPersistence):
    """
    One JSON document per collection under data_dir.

    Writes go to a temp file in the same directory and are swapped in
    with os.replace, so a crash leaves either the old or the new file.
    """

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def load_events(self) -> list[Event]:
        return [
            Event(
                id=item["id"],
                start_time=as_utc(datetime.fromisoformat(item["start_time"])),
                title=item["title"],
            )
            for item in self._read(SHOWS_FILE)
        ]

    def save_events(self, events: list[Event]) -> None:
        self._write(
            SHOWS_FILE,
            [
                {
                    "id": event.id,
                    "start_time": event.start_time.isoformat(),
                    "title": event.title,
                }
                for event in events
            ],
        )

    def load_seats(self) -> list[Seat]:
        return [
            Seat(
                id=item["id"],
                seat_number=item["seat_number"],
                event_id=item["event_id"],
                status=SeatStatus(item["status"]),
                held_by_order=item.get("held_by_order"),
            )
            for item in self._read(SEATS_FILE)
        ]

    def load_orders(self) -> list[Order]:
        return [
            Order(
                id=item["id"],
                requester_id=item["requester_id"],
                event_id=item["event_id"],
                seat_ids=frozenset(item["seat_ids"]),
                amount=item["amount"],
                created_at=as_utc(datetime.fromisoformat(item["created_at"])),
                pay_status=PayStatus(item["pay_status"]),
                payment_proof=item.get("payment_proof"),
            )
            for item in self._read(ORDERS_FILE)
        ]

    def persist_seats(self, snapshot: list[Seat]) -> None:
        self._write(
            SEATS_FILE,
            [
                {
                    "id": seat.id,
                    "seat_number": seat.seat_number,
                    "event_id": seat.event_id,
                    "status": seat.status.value,
                    "held_by_order": seat.held_by_order,
                }
                for seat in sorted(snapshot, key=lambda s: s.id)
            ],
        )

    def persist_orders(self, snapshot: list[Order]) -> None:
        self._write(
            ORDERS_FILE,
            [
                {
                    "id": order.id,
                    "requester_id": order.requester_id,
                    "event_id": order.event_id,
                    "seat_ids": sorted(order.seat_ids),
                    "amount": order.amount,
                    "pay_status": order.pay_status.value,
                    "payment_proof": order.payment_proof,
                    "created_at": order.created_at.isoformat(),
                }
                for order in sorted(snapshot, key=lambda o: (o.created_at, o.id))
            ],
        )

    def _read(self, name: str) -> list[dict]:
        path = self.data_dir / name
        if not path.exists():
            return []
        with path.open("r", encoding="utf-8") as fh:
            return json.load(fh)

    def _write(self, name: str, payload: list[dict]) -> None:
        path = self.data_dir / name
        fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=f".{name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2, ensure_ascii=False)
            os.replace(tmp_name, path)
        except Exception:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug("Wrote %s records to %s", len(payload), path)
