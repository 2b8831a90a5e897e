from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from services.booking.app.models import StayRange
from services.booking.app.reservations import Guest


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class AvailabilityRequest(StrictModel):
    # Without a stay the listing shows "from" prices and base stock only.
    stay: StayRange | None = None


class RoomAvailability(StrictModel):
    room_id: str
    name: str
    available: bool
    price: int


class AvailabilityResponse(StrictModel):
    rooms: list[RoomAvailability]
    currency: str


class SelectionRequest(StrictModel):
    stay: StayRange
    room_ids: list[str] = Field(default_factory=list)


class SelectionResponse(StrictModel):
    ok: bool
    violations: list[str]


class CartRoomIn(StrictModel):
    room_id: str
    package_id: str | None = None


class QuoteRequest(StrictModel):
    stay: StayRange
    rooms: list[CartRoomIn] = Field(min_length=1)
    extras: dict[str, Annotated[int, Field(ge=0)]] = Field(default_factory=dict)
    discount_code: str | None = None


class RoomLineOut(StrictModel):
    room_id: str
    name: str
    package_id: str | None
    price: int


class ExtraLineOut(StrictModel):
    extra_id: str
    name: str
    quantity: int
    unit_price: float
    line_total: float


class DiscountOut(StrictModel):
    accepted: bool
    amount: int
    code: str | None = None
    percentage: float | None = None
    reason: str | None = None


class QuoteResponse(StrictModel):
    check_in: date
    check_out: date
    nights: int
    rooms: list[RoomLineOut]
    extras: list[ExtraLineOut]
    accommodation_subtotal: int
    discount: DiscountOut | None
    accommodation_total: int
    extras_total: float
    total: float
    currency: str


class DiscountValidateRequest(StrictModel):
    code: str
    accommodation_subtotal: int = Field(ge=0)
    stay: StayRange


class PackagePriceResponse(StrictModel):
    package_id: str
    room_id: str
    price: int
    check_in: date
    check_out: date


class ReservationRequest(StrictModel):
    cart: QuoteRequest
    main_guest: Guest
    additional_guests: list[Guest] = Field(default_factory=list)
    observations: str = ""
    payment_method: Literal["PIX", "CREDIT_CARD"]


class OverrideIn(StrictModel):
    price: Decimal | None = Field(default=None, ge=0)
    available_quantity: int | None = Field(default=None, ge=0)
    is_closed: bool | None = None
    no_check_in: bool | None = None
    no_check_out: bool | None = None


class DiscountIn(StrictModel):
    percentage: Decimal = Field(ge=0, le=100)
    active: bool = True
    start_date: date | None = None
    end_date: date | None = None
    min_nights: int | None = Field(default=None, ge=0)
    full_period_required: bool = False

    @field_validator("end_date")
    @classmethod
    def _window(cls, v, info):
        start = info.data.get("start_date")
        if v is not None and start is not None and v < start:
            raise ValueError("end_date must not be before start_date")
        return v


class HistoryResponse(StrictModel):
    ok: bool
    can_undo: bool
    can_redo: bool


class RoomIn(StrictModel):
    name: str = Field(min_length=1)
    description: str = ""
    base_price: Decimal = Field(ge=0)
    base_quantity: int = Field(ge=0)
    capacity: int | None = Field(default=None, ge=1)
    active: bool = True


class PackageIn(StrictModel):
    name: str = Field(min_length=1)
    description: str = ""
    start_iso_date: date
    end_iso_date: date
    room_prices: dict[str, Annotated[Decimal, Field(ge=0)]] = Field(default_factory=dict)
    no_check_in_dates: list[date] = Field(default_factory=list)
    no_check_out_dates: list[date] = Field(default_factory=list)
    active: bool = True

    @field_validator("end_iso_date")
    @classmethod
    def _window(cls, v, info):
        start = info.data.get("start_iso_date")
        if start is not None and v < start:
            raise ValueError("end_iso_date must not be before start_iso_date")
        return v


class PackageOut(StrictModel):
    package_id: str
    name: str
    description: str
    start_iso_date: date
    end_iso_date: date
    room_ids: list[str]
    room_prices: dict[str, int]
    no_check_in_dates: list[date]
    no_check_out_dates: list[date]


class ExtraIn(StrictModel):
    name: str = Field(min_length=1)
    description: str = ""
    price: Decimal = Field(ge=0)
    active: bool = True


class ExtraOut(StrictModel):
    extra_id: str
    name: str
    description: str
    price: float
