

class ReservationEngineError(Exception):
    """
    Base exception for all domain-level errors
    inside the reservation engine.
    """


class NotFoundError(ReservationEngineError):
    """Raised when an event, seat or order id is unknown."""


class EventNotFoundError(NotFoundError):

    def __init__(self, event_id: int):
        self.event_id = event_id
        super().__init__(f"Event {event_id} not found")


class SeatNotFoundError(NotFoundError):

    def __init__(self, seat_id: int):
        self.seat_id = seat_id
        super().__init__(f"Seat {seat_id} not found")


class OrderNotFoundError(NotFoundError):

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class SeatConflictError(ReservationEngineError):
    """
    Raised by the inventory when a batch transition cannot be applied.
    No seat has been mutated when this is raised.
    """

    def __init__(self, conflicting_ids):
        self.conflicting_ids = sorted(conflicting_ids)
        super().__init__(
            f"Seats not in an allowed status: {self.conflicting_ids}"
        )


class SeatUnavailableError(ReservationEngineError):
    """
    Raised when a hold cannot be placed because some seats are taken.
    The caller should refresh availability and retry with a new selection.
    """

    def __init__(self, conflicting_ids):
        self.conflicting_ids = sorted(conflicting_ids)
        super().__init__(
            f"Seats already taken: {self.conflicting_ids}"
        )


class InvalidArgumentError(ReservationEngineError):
    """Raised for malformed caller input. Nothing is mutated."""


class InvalidStateTransitionError(ReservationEngineError):
    """
    Raised when an illegal state transition is attempted.
    """

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Illegal state transition attempted: "
            f"{from_state} -> {to_state}"
        )
        super().__init__(message)


class UnauthorizedError(ReservationEngineError):
    """Raised when a reconciliation call is made without operator privilege."""


class InvariantViolationError(ReservationEngineError):
    """
    Seat and order state were found inconsistent during an operation
    that must always succeed. Signals an earlier engine bug.
    """


class PersistenceFailureError(ReservationEngineError):
    """Raised when a durable write keeps failing after the in-memory change."""
