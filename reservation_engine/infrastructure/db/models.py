# reservation_engine/infrastructure/db/models.py

from datetime import datetime

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    Enum,
    UniqueConstraint,
    CheckConstraint,
    ForeignKey,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reservation_engine.infrastructure.db.session import Base
from reservation_engine.domain.state_machine import PayStatus, SeatStatus


class EventRecord(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class SeatRecord(Base):
    """
    Seat table mirroring the in-memory inventory.
    The engine owns transitions; the table only stores the latest snapshot.
    """

    __tablename__ = "seats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    seat_number: Mapped[int] = mapped_column(Integer, nullable=False)
    event_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("events.id"),
        nullable=False,
    )
    status: Mapped[SeatStatus] = mapped_column(
        Enum(SeatStatus, name="seat_status"),
        nullable=False,
        default=SeatStatus.FREE,
    )
    held_by_order: Mapped[str | None] = mapped_column(String(16), nullable=True)

    __table_args__ = (
        UniqueConstraint("event_id", "seat_number", name="uq_event_seat_number"),
        CheckConstraint("seat_number > 0", name="ck_seat_number_positive"),
        CheckConstraint(
            "(status = 'FREE') = (held_by_order IS NULL)",
            name="ck_seat_holder_matches_status",
        ),
    )


class OrderRecord(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(16), primary_key=True)
    requester_id: Mapped[int] = mapped_column(Integer, nullable=False)
    event_id: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    pay_status: Mapped[PayStatus] = mapped_column(
        Enum(PayStatus, name="pay_status"),
        nullable=False,
        default=PayStatus.PENDING,
    )
    payment_proof: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    seats: Mapped[list["OrderSeatRecord"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_order_amount_nonnegative"),
    )


class OrderSeatRecord(Base):
    """One row per seat referenced by an active order."""

    __tablename__ = "order_seats"

    order_id: Mapped[str] = mapped_column(
        String(16),
        ForeignKey("orders.id", ondelete="CASCADE"),
        primary_key=True,
    )
    seat_id: Mapped[int] = mapped_column(Integer, primary_key=True)

    order: Mapped[OrderRecord] = relationship(back_populates="seats")

    __table_args__ = (
        # a seat may belong to at most one active order
        UniqueConstraint("seat_id", name="uq_order_seat_single_owner"),
    )
