import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from reservation_engine.api.schemas.schemas import (
    EventResponse,
    ExpireHoldsRequest,
    ExpireHoldsResponse,
    FinalizeRequest,
    ForceConfirmRequest,
    OrderResponse,
    PaymentProofRequest,
    PendingOrderResponse,
    SeatResponse,
)
from reservation_engine.application.operator_auth import OperatorDirectory
from reservation_engine.application.reconciliation_service import (
    DEFAULT_PENDING_LIMIT,
    ReconciliationService,
)
from reservation_engine.application.reservation_engine import ReservationEngine, utc_now
from reservation_engine.config import Settings
from reservation_engine.domain.exceptions import (
    InvalidArgumentError,
    InvalidStateTransitionError,
    InvariantViolationError,
    NotFoundError,
    ReservationEngineError,
    SeatUnavailableError,
    UnauthorizedError,
)
from reservation_engine.domain.models import Order

router = APIRouter()
logger = logging.getLogger(__name__)


def get_engine(request: Request) -> ReservationEngine:
    return request.app.state.engine


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_reconciliation(engine: ReservationEngine = Depends(get_engine)) -> ReconciliationService:
    return ReconciliationService(engine)


def is_privileged_caller(
    request: Request,
    x_operator_id: int | None = Header(default=None),
) -> bool:
    directory: OperatorDirectory = request.app.state.operators
    return directory.is_privileged(x_operator_id)


def _to_http(exc: ReservationEngineError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, SeatUnavailableError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": "Some seats are already taken. Refresh the seat map.",
                "conflicting_seat_ids": exc.conflicting_ids,
            },
        )
    if isinstance(exc, (InvalidArgumentError, InvalidStateTransitionError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, UnauthorizedError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, InvariantViolationError):
        logger.critical("Invariant violation surfaced to API: %s", exc)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal reservation error",
    )


def _order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        order_id=order.id,
        requester_id=order.requester_id,
        event_id=order.event_id,
        seat_ids=sorted(order.seat_ids),
        amount=order.amount,
        pay_status=order.pay_status.value,
        payment_proof=order.payment_proof,
        created_at=order.created_at.isoformat(),
    )


@router.get("/health")
def health(engine: ReservationEngine = Depends(get_engine)):
    return {
        "message": "Reservation engine is running",
        "persistence_pending": engine.persistence_pending,
    }


@router.get("/events", response_model=list[EventResponse])
def list_events(engine: ReservationEngine = Depends(get_engine)):
    return [
        EventResponse(
            id=event.id,
            title=event.title,
            start_time=event.start_time.isoformat(),
        )
        for event in engine.list_events()
    ]


@router.get("/events/{event_id}/seats", response_model=list[SeatResponse])
def list_seats(event_id: int, engine: ReservationEngine = Depends(get_engine)):
    try:
        seats = engine.seats_for(event_id)
    except ReservationEngineError as exc:
        raise _to_http(exc) from exc

    return [
        SeatResponse(
            id=seat.id,
            seat_number=seat.seat_number,
            event_id=seat.event_id,
            status=seat.status.value,
        )
        for seat in seats
    ]


@router.post("/orders", response_model=OrderResponse)
def finalize_order(
    request: FinalizeRequest,
    engine: ReservationEngine = Depends(get_engine),
    settings: Settings = Depends(get_settings),
):
    try:
        order = engine.finalize(
            requester_id=request.requester_id,
            event_id=request.event_id,
            seat_ids=request.seat_ids,
            unit_price=settings.ticket_price,
        )
    except ReservationEngineError as exc:
        raise _to_http(exc) from exc

    return _order_response(order)


@router.get("/orders/{order_id}", response_model=OrderResponse)
def get_order(order_id: str, engine: ReservationEngine = Depends(get_engine)):
    try:
        order = engine.get_order(order_id)
    except ReservationEngineError as exc:
        raise _to_http(exc) from exc

    return _order_response(order)


@router.post("/orders/{order_id}/pay", response_model=OrderResponse)
def pay_order(
    order_id: str,
    request: PaymentProofRequest,
    engine: ReservationEngine = Depends(get_engine),
):
    try:
        order = engine.confirm_payment(order_id, request.proof)
    except ReservationEngineError as exc:
        raise _to_http(exc) from exc

    return _order_response(order)


@router.post("/orders/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(order_id: str, engine: ReservationEngine = Depends(get_engine)):
    try:
        order = engine.cancel(order_id)
    except ReservationEngineError as exc:
        raise _to_http(exc) from exc

    return _order_response(order)


@router.get("/admin/orders/pending", response_model=list[PendingOrderResponse])
def list_pending_orders(
    limit: int = DEFAULT_PENDING_LIMIT,
    privileged: bool = Depends(is_privileged_caller),
    reconciliation: ReconciliationService = Depends(get_reconciliation),
):
    safe_limit = max(1, min(limit, 200))
    try:
        views = reconciliation.list_pending(is_privileged=privileged, limit=safe_limit)
    except ReservationEngineError as exc:
        raise _to_http(exc) from exc

    return [
        PendingOrderResponse(
            order_id=view.order_id,
            requester_id=view.requester_id,
            event_id=view.event_id,
            event_title=view.event_title,
            seat_numbers=list(view.seat_numbers),
            amount=view.amount,
            created_at=view.created_at.isoformat(),
        )
        for view in views
    ]


@router.post("/admin/orders/{order_id}/confirm", response_model=OrderResponse)
def force_confirm_order(
    order_id: str,
    request: ForceConfirmRequest | None = None,
    privileged: bool = Depends(is_privileged_caller),
    reconciliation: ReconciliationService = Depends(get_reconciliation),
):
    proof = request.proof if request else None
    try:
        order = reconciliation.force_confirm(order_id, is_privileged=privileged, proof=proof)
    except ReservationEngineError as exc:
        raise _to_http(exc) from exc

    return _order_response(order)


@router.post("/admin/orders/{order_id}/release", response_model=OrderResponse)
def force_release_order(
    order_id: str,
    privileged: bool = Depends(is_privileged_caller),
    reconciliation: ReconciliationService = Depends(get_reconciliation),
):
    try:
        order = reconciliation.force_release(order_id, is_privileged=privileged)
    except ReservationEngineError as exc:
        raise _to_http(exc) from exc

    return _order_response(order)


@router.post("/admin/holds/expire", response_model=ExpireHoldsResponse)
def expire_holds(
    request: ExpireHoldsRequest | None = None,
    privileged: bool = Depends(is_privileged_caller),
    engine: ReservationEngine = Depends(get_engine),
    settings: Settings = Depends(get_settings),
):
    if not privileged:
        raise _to_http(UnauthorizedError("expire_stale_holds requires operator privilege"))

    ttl = settings.hold_ttl
    if request is not None and request.ttl_seconds is not None:
        ttl = timedelta(seconds=request.ttl_seconds)

    try:
        released = engine.expire_stale_holds(utc_now(), ttl)
    except ReservationEngineError as exc:
        raise _to_http(exc) from exc

    return ExpireHoldsResponse(released=released)
