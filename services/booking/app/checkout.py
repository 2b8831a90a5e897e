from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal

from services.booking.app.availability import units_available
from services.booking.app.discounts import DiscountResult, apply_discount, select_package
from services.booking.app.models import DEFAULT_RULES, Catalog, PricingRules, Room, StayRange
from services.booking.app.nightly import price_stay


class CheckoutError(ValueError):
    pass


class RoomNotFound(CheckoutError):
    pass


class RoomUnavailable(CheckoutError):
    pass


class PackageNotFound(CheckoutError):
    pass


class PackageRoomNotOffered(CheckoutError):
    pass


class PackageStayMismatch(CheckoutError):
    pass


class ExtraNotFound(CheckoutError):
    pass


class CartTooLarge(CheckoutError):
    pass


@dataclass(frozen=True)
class CartRoom:
    room_id: str
    package_id: str | None = None


@dataclass(frozen=True)
class Cart:
    stay: StayRange
    rooms: list[CartRoom]
    extras: dict[str, int] = field(default_factory=dict)
    discount_code: str | None = None


@dataclass(frozen=True)
class RoomLine:
    room_id: str
    name: str
    package_id: str | None
    price_snapshot: int


@dataclass(frozen=True)
class ExtraLine:
    extra_id: str
    name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class Quote:
    stay: StayRange
    rooms: list[RoomLine]
    extras: list[ExtraLine]
    accommodation_subtotal: int
    discount: DiscountResult | None
    accommodation_total: int
    extras_total: Decimal
    total: Decimal

    @property
    def nights(self) -> int:
        return self.stay.nights


def _room_lines(cart: Cart, catalog: Catalog, rules: PricingRules) -> list[RoomLine]:
    lines: list[RoomLine] = []
    rooms: dict[str, Room] = {}
    for sel in cart.rooms:
        room = catalog.room(sel.room_id)
        if room is None or not room.active:
            raise RoomNotFound(f"room {sel.room_id} not found")

        if sel.package_id is None:
            price = price_stay(room, cart.stay, rules)
        else:
            package = catalog.package(sel.package_id)
            if package is None or not package.active:
                raise PackageNotFound(f"package {sel.package_id} not found")
            # Package pricing is scoped to this one selected room.
            fixed = select_package(package, room.id)
            if fixed is None:
                raise PackageRoomNotOffered(f"room {room.id} is not offered in package {package.id}")
            # The fixed total buys exactly the package window.
            if (cart.stay.check_in, cart.stay.check_out) != (package.start_iso_date, package.end_iso_date):
                raise PackageStayMismatch(
                    f"package {package.id} covers {package.start_iso_date.isoformat()} to "
                    f"{package.end_iso_date.isoformat()}, not the selected dates"
                )
            price = fixed
        rooms[room.id] = room
        lines.append(RoomLine(room_id=room.id, name=room.name, package_id=sel.package_id, price_snapshot=price))

    wanted = Counter(sel.room_id for sel in cart.rooms)
    for room_id, count in wanted.items():
        if units_available(rooms[room_id], cart.stay) < count:
            raise RoomUnavailable(f"room {room_id} is not available for {count} unit(s) in the selected dates")
    return lines


def _extra_lines(cart: Cart, catalog: Catalog) -> list[ExtraLine]:
    lines: list[ExtraLine] = []
    for extra_id, qty in cart.extras.items():
        if qty <= 0:
            continue
        extra = catalog.extra(extra_id)
        if extra is None or not extra.active:
            raise ExtraNotFound(f"extra {extra_id} not found")
        lines.append(
            ExtraLine(
                extra_id=extra.id,
                name=extra.name,
                quantity=qty,
                unit_price=extra.price,
                line_total=extra.price * qty,
            )
        )
    return lines


def build_quote(
    cart: Cart,
    catalog: Catalog,
    rules: PricingRules = DEFAULT_RULES,
    *,
    max_rooms: int | None = None,
) -> Quote:
    """
    Price a whole cart the way checkout charges it.

    accommodation subtotal -> discount (accommodation only) -> + extras flat total.
    Availability is a point-in-time check and does not reserve inventory.
    """
    if not cart.rooms:
        raise CheckoutError("cart has no rooms")
    if max_rooms is not None and len(cart.rooms) > max_rooms:
        raise CartTooLarge(f"cart has more than {max_rooms} rooms")

    room_lines = _room_lines(cart, catalog, rules)
    extra_lines = _extra_lines(cart, catalog)

    subtotal = sum(line.price_snapshot for line in room_lines)
    discount = None
    if cart.discount_code:
        discount = apply_discount(cart.discount_code, subtotal, cart.stay, catalog.discount_codes)
    discount_amount = discount.amount if discount and discount.accepted else 0
    accommodation_total = subtotal - discount_amount

    extras_total = sum((line.line_total for line in extra_lines), Decimal(0))
    return Quote(
        stay=cart.stay,
        rooms=room_lines,
        extras=extra_lines,
        accommodation_subtotal=subtotal,
        discount=discount,
        accommodation_total=accommodation_total,
        extras_total=extras_total,
        total=accommodation_total + extras_total,
    )
