# reservation_engine/domain/state_machine.py

from enum import Enum
from typing import Dict, Set

from reservation_engine.domain.exceptions import InvalidStateTransitionError


class SeatStatus(str, Enum):
    FREE = "FREE"
    HELD = "HELD"
    PAID = "PAID"


class PayStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class _StateMachine:
    """
    Table-driven lifecycle controller.
    Subclasses declare the status enum and the legal transitions.
    """

    _STATUS_TYPE: type = Enum
    _ALLOWED_TRANSITIONS: Dict[Enum, Set[Enum]] = {}

    @classmethod
    def can_transition(cls, from_status, to_status) -> bool:
        """
        Returns True if transition is allowed.
        """
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)

        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(cls, from_status, to_status) -> None:
        """
        Raises InvalidStateTransitionError if transition is illegal.
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransitionError(
                from_state=from_status.value,
                to_state=to_status.value,
            )

    @classmethod
    def is_terminal(cls, status) -> bool:
        """
        Returns True if the state is terminal (no further transitions allowed).
        """
        cls._ensure_valid_status(status)
        return len(cls._ALLOWED_TRANSITIONS.get(status, set())) == 0

    @classmethod
    def _ensure_valid_status(cls, status) -> None:
        if not isinstance(status, cls._STATUS_TYPE):
            raise TypeError(
                f"Expected {cls._STATUS_TYPE.__name__}, got {type(status)}"
            )


class SeatStateMachine(_StateMachine):
    """
    Per-seat occupancy. There is no direct FREE -> PAID edge.
    PAID -> FREE exists for operator release only; the engine gates it.
    """

    _STATUS_TYPE = SeatStatus
    _ALLOWED_TRANSITIONS: Dict[SeatStatus, Set[SeatStatus]] = {
        SeatStatus.FREE: {
            SeatStatus.HELD,
        },
        SeatStatus.HELD: {
            SeatStatus.PAID,
            SeatStatus.FREE,
        },
        SeatStatus.PAID: {
            SeatStatus.FREE,
        },
    }


class OrderStateMachine(_StateMachine):
    """
    Order payment lifecycle. CANCELLED is terminal and means the
    order has left the active set.
    """

    _STATUS_TYPE = PayStatus
    _ALLOWED_TRANSITIONS: Dict[PayStatus, Set[PayStatus]] = {
        PayStatus.PENDING: {
            PayStatus.PAID,
            PayStatus.CANCELLED,
        },
        PayStatus.PAID: {
            PayStatus.CANCELLED,
        },
        PayStatus.CANCELLED: set(),
    }
