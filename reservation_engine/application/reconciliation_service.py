import logging

from reservation_engine.application.reservation_engine import ReservationEngine
from reservation_engine.domain.exceptions import EventNotFoundError, SeatNotFoundError, UnauthorizedError
from reservation_engine.domain.models import Order, PendingOrderView

logger = logging.getLogger(__name__)

DEFAULT_PENDING_LIMIT = 30


class ReconciliationService:
    """
    Operator overrides on top of the engine.

    The engine trusts whoever calls it; this class is where the
    privilege check happens, and every call is refused before the
    engine is touched when is_privileged is False.
    """

    def __init__(self, engine: ReservationEngine):
        self.engine = engine

    def force_confirm(
        self,
        order_id: str,
        is_privileged: bool,
        proof: str | None = None,
    ) -> Order:
        """Marks the order paid on an out-of-band verified payment."""
        self._require_privilege("force_confirm", order_id, is_privileged)
        order = self.engine.mark_paid(order_id, proof)
        logger.info("Operator confirmed order. order_id=%s", order_id)
        return order

    def force_release(self, order_id: str, is_privileged: bool) -> Order:
        """Frees all seats of the order, paid ones included, and drops it."""
        self._require_privilege("force_release", order_id, is_privileged)
        order = self.engine.release(order_id)
        logger.info(
            "Operator released order. order_id=%s seats=%s",
            order_id,
            sorted(order.seat_ids),
        )
        return order

    def list_pending(
        self,
        is_privileged: bool,
        limit: int = DEFAULT_PENDING_LIMIT,
    ) -> list[PendingOrderView]:
        self._require_privilege("list_pending", None, is_privileged)
        return [self._view(order) for order in self.engine.list_pending(limit=limit)]

    def _view(self, order: Order) -> PendingOrderView:
        try:
            title = self.engine.catalog.get(order.event_id).title
        except EventNotFoundError:
            title = ""

        numbers = []
        for seat_id in order.seat_ids:
            try:
                numbers.append(self.engine.inventory.seat(seat_id).seat_number)
            except SeatNotFoundError:
                continue

        return PendingOrderView(
            order_id=order.id,
            requester_id=order.requester_id,
            event_id=order.event_id,
            event_title=title,
            seat_numbers=tuple(sorted(numbers)),
            amount=order.amount,
            created_at=order.created_at,
        )

    @staticmethod
    def _require_privilege(operation: str, order_id: str | None, is_privileged: bool) -> None:
        if not is_privileged:
            logger.warning(
                "Unauthorized reconciliation attempt. operation=%s order_id=%s",
                operation,
                order_id,
            )
            raise UnauthorizedError(f"{operation} requires operator privilege")
