from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from services.booking.app.models import DEFAULT_RULES, PricingRules, Room, StayRange
from services.booking.app.nightly import price_stay
from services.booking.app.overrides import resolve_override


def night_units(room: Room, day: date) -> int:
    """
    Sellable units for one night; 0 when the night is not for sale.

    A closed flag, an effective price of exactly 0 or an effective quantity of 0 each
    make the night unavailable. Weekend surcharges play no part here.
    """
    override = resolve_override(room, day)
    quantity = room.base_quantity
    price = room.base_price
    if override is not None:
        if override.is_closed:
            return 0
        if override.available_quantity is not None:
            quantity = override.available_quantity
        if override.price is not None:
            price = override.price
    if price == 0:
        return 0
    return quantity


def units_available(room: Room, stay: StayRange | None) -> int:
    if not room.active:
        return 0
    if stay is None:
        return room.base_quantity if room.base_price > 0 else 0
    # One failing night vetoes the whole range.
    return min(night_units(room, d) for d in stay.days())


def is_available(room: Room, stay: StayRange | None) -> bool:
    return units_available(room, stay) > 0


@dataclass(frozen=True)
class RoomOffer:
    room: Room
    available: bool
    price: int


def list_offers(rooms: Iterable[Room], stay: StayRange | None, rules: PricingRules = DEFAULT_RULES) -> list[RoomOffer]:
    """Listing surface: every active room with its availability and stay price."""
    return [
        RoomOffer(room=r, available=is_available(r, stay), price=price_stay(r, stay, rules))
        for r in rooms
        if r.active
    ]
