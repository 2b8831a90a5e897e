from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from services.booking.app.checkout import Quote


class ReservationStatus(StrEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELED = "CANCELED"


ReservationAction = Literal["confirm", "cancel"]

_TRANSITIONS: dict[tuple[ReservationStatus, str], ReservationStatus] = {
    (ReservationStatus.PENDING, "confirm"): ReservationStatus.CONFIRMED,
    (ReservationStatus.PENDING, "cancel"): ReservationStatus.CANCELED,
    (ReservationStatus.CONFIRMED, "cancel"): ReservationStatus.CANCELED,
}


class InvalidTransition(ValueError):
    pass


def transition(current: ReservationStatus, action: ReservationAction) -> ReservationStatus:
    nxt = _TRANSITIONS.get((ReservationStatus(current), action))
    if nxt is None:
        raise InvalidTransition(f"cannot {action} a {current} reservation")
    return nxt


class Guest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    document: str | None = None
    age: int | None = Field(default=None, ge=0)
    email: str | None = None
    phone: str | None = None


class ReservedRoom(BaseModel):
    room_id: str
    name: str
    package_id: str | None = None
    price_snapshot: int


class ReservedExtra(BaseModel):
    extra_id: str
    name: str
    quantity: int
    price_snapshot: Decimal


class AppliedDiscount(BaseModel):
    code: str
    amount: int


class Reservation(BaseModel):
    """A booking with its price snapshot; totals are stored verbatim, never recomputed."""

    id: UUID
    created_at: datetime
    check_in: date
    check_out: date
    nights: int
    main_guest: Guest
    additional_guests: list[Guest] = Field(default_factory=list)
    observations: str = ""
    rooms: list[ReservedRoom]
    extras: list[ReservedExtra] = Field(default_factory=list)
    accommodation_subtotal: int
    discount: AppliedDiscount | None = None
    total_price: Decimal
    payment_method: Literal["PIX", "CREDIT_CARD"]
    status: ReservationStatus = ReservationStatus.PENDING


def new_reservation(
    quote: Quote,
    main_guest: Guest,
    payment_method: Literal["PIX", "CREDIT_CARD"],
    *,
    additional_guests: list[Guest] | None = None,
    observations: str = "",
) -> Reservation:
    discount = None
    if quote.discount is not None and quote.discount.accepted and quote.discount.code:
        discount = AppliedDiscount(code=quote.discount.code, amount=quote.discount.amount)
    return Reservation(
        id=uuid4(),
        created_at=datetime.now(tz=UTC),
        check_in=quote.stay.check_in,
        check_out=quote.stay.check_out,
        nights=quote.nights,
        main_guest=main_guest,
        additional_guests=additional_guests or [],
        observations=observations,
        rooms=[
            ReservedRoom(room_id=r.room_id, name=r.name, package_id=r.package_id, price_snapshot=r.price_snapshot)
            for r in quote.rooms
        ],
        extras=[
            ReservedExtra(extra_id=e.extra_id, name=e.name, quantity=e.quantity, price_snapshot=e.line_total)
            for e in quote.extras
        ],
        accommodation_subtotal=quote.accommodation_subtotal,
        discount=discount,
        total_price=quote.total,
        payment_method=payment_method,
        status=ReservationStatus.PENDING,
    )
