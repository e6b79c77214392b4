"""Requester-side booking flow.

Drives a PickSession through show selection, seat toggling, hold and
payment, calling the engine at the two points where inventory changes.
The session is owned by the caller; this class keeps no per-requester
state, so any number of sessions may exist for one requester.
"""

import logging

from reservation_engine.application.reservation_engine import ReservationEngine
from reservation_engine.domain.exceptions import (
    InvalidArgumentError,
    OrderNotFoundError,
    SeatUnavailableError,
)
from reservation_engine.domain.models import Order, Seat
from reservation_engine.domain.pick_session import (
    AwaitingPayment,
    Idle,
    Picking,
    PickSession,
    Stage,
    expect_stage,
)
from reservation_engine.domain.state_machine import SeatStatus

logger = logging.getLogger(__name__)


class BookingFlow:

    def __init__(self, engine: ReservationEngine, unit_price: int):
        self.engine = engine
        self.unit_price = unit_price

    def select_event(self, session: PickSession, event_id: int) -> tuple[Picking, list[Seat]]:
        """Starts (or restarts) picking for a show and returns its seat map."""
        if session.stage is Stage.AWAITING_PAYMENT:
            expect_stage(session, Stage.PICKING)
        seats = self.engine.seats_for(event_id)
        return session.start_picking(event_id), seats

    def toggle_seat(self, session: PickSession, seat_id: int) -> Picking:
        """
        Adds the seat to the selection, or removes it if already picked.
        Inventory is not touched.
        """
        expect_stage(session, Stage.PICKING)
        seat = self.engine.inventory.seat(seat_id)
        if seat.event_id != session.event_id:
            raise InvalidArgumentError(
                f"Seat {seat_id} does not belong to event {session.event_id}"
            )
        if seat_id not in session.selected_seat_ids and seat.status is not SeatStatus.FREE:
            raise SeatUnavailableError([seat_id])
        return session.toggle(seat_id)

    def refresh(self, session: PickSession) -> tuple[Picking, list[Seat]]:
        """Drops seats taken meanwhile from the selection and returns the live seat map."""
        expect_stage(session, Stage.PICKING)
        seats = self.engine.seats_for(session.event_id)
        taken = [seat.id for seat in seats if seat.status is not SeatStatus.FREE]
        return session.without(taken), seats

    def submit(self, session: PickSession, requester_id: int) -> tuple[AwaitingPayment, Order]:
        """
        Holds the selected seats.

        On SeatUnavailableError the session is unchanged; call refresh()
        before showing the seat map again.
        """
        expect_stage(session, Stage.PICKING)
        if not session.selected_seat_ids:
            raise InvalidArgumentError("Select at least one seat")

        order = self.engine.finalize(
            requester_id=requester_id,
            event_id=session.event_id,
            seat_ids=session.selected_seat_ids,
            unit_price=self.unit_price,
        )
        return session.awaiting_payment(order.id), order

    def submit_proof(self, session: PickSession, proof: str) -> tuple[Idle, Order]:
        expect_stage(session, Stage.AWAITING_PAYMENT)
        order = self.engine.confirm_payment(session.order_id, proof)
        return Idle(), order

    def abandon(self, session: PickSession) -> Idle:
        """Leaves the flow, cancelling the pending order if there is one."""
        if isinstance(session, AwaitingPayment):
            try:
                self.engine.cancel(session.order_id)
            except OrderNotFoundError:
                logger.info(
                    "Order already gone when abandoning session. order_id=%s",
                    session.order_id,
                )
        return Idle()
