"""Per-requester seat picking state.

A session is one of three variants. Each variant carries only the
fields valid in that stage, and every operation returns a new session.
Calling an operation from the wrong stage raises
InvalidStateTransitionError.
"""

from dataclasses import dataclass
from enum import Enum

from reservation_engine.domain.exceptions import InvalidStateTransitionError


class Stage(str, Enum):
    IDLE = "IDLE"
    PICKING = "PICKING"
    AWAITING_PAYMENT = "AWAITING_PAYMENT"


@dataclass(frozen=True)
class Idle:
    stage = Stage.IDLE

    def start_picking(self, event_id: int) -> "Picking":
        return Picking(event_id=event_id)


@dataclass(frozen=True)
class Picking:
    event_id: int
    selected_seat_ids: tuple[int, ...] = ()

    stage = Stage.PICKING

    def start_picking(self, event_id: int) -> "Picking":
        # switching shows drops the current selection
        return Picking(event_id=event_id)

    def toggle(self, seat_id: int) -> "Picking":
        if seat_id in self.selected_seat_ids:
            remaining = tuple(s for s in self.selected_seat_ids if s != seat_id)
            return Picking(event_id=self.event_id, selected_seat_ids=remaining)
        return Picking(
            event_id=self.event_id,
            selected_seat_ids=self.selected_seat_ids + (seat_id,),
        )

    def without(self, seat_ids) -> "Picking":
        drop = set(seat_ids)
        return Picking(
            event_id=self.event_id,
            selected_seat_ids=tuple(s for s in self.selected_seat_ids if s not in drop),
        )

    def awaiting_payment(self, order_id: str) -> "AwaitingPayment":
        return AwaitingPayment(event_id=self.event_id, order_id=order_id)


@dataclass(frozen=True)
class AwaitingPayment:
    event_id: int
    order_id: str

    stage = Stage.AWAITING_PAYMENT


PickSession = Idle | Picking | AwaitingPayment


def expect_stage(session: PickSession, stage: Stage) -> None:
    if session.stage is not stage:
        raise InvalidStateTransitionError(
            from_state=session.stage.value,
            to_state=stage.value,
        )
