from pydantic import BaseModel, Field


class EventResponse(BaseModel):
    id: int
    title: str
    start_time: str


class SeatResponse(BaseModel):
    id: int
    seat_number: int
    event_id: int
    status: str


class FinalizeRequest(BaseModel):
    requester_id: int
    event_id: int
    seat_ids: list[int]


class PaymentProofRequest(BaseModel):
    proof: str = Field(min_length=1, max_length=64)


class ForceConfirmRequest(BaseModel):
    proof: str | None = Field(default=None, max_length=64)


class OrderResponse(BaseModel):
    order_id: str
    requester_id: int
    event_id: int
    seat_ids: list[int]
    amount: int
    pay_status: str
    payment_proof: str | None = None
    created_at: str


class PendingOrderResponse(BaseModel):
    order_id: str
    requester_id: int
    event_id: int
    event_title: str
    seat_numbers: list[int]
    amount: int
    created_at: str


class ExpireHoldsRequest(BaseModel):
    ttl_seconds: int | None = Field(default=None, ge=0)


class ExpireHoldsResponse(BaseModel):
    released: int
