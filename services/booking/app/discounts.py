from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import StrEnum

from services.booking.app.models import DiscountCode, Package, StayRange
from services.booking.app.nightly import round_money


class RejectReason(StrEnum):
    NOT_FOUND = "NOT_FOUND"
    MIN_NIGHTS = "MIN_NIGHTS"
    OUT_OF_WINDOW = "OUT_OF_WINDOW"
    FULL_PERIOD_REQUIRED = "FULL_PERIOD_REQUIRED"


@dataclass(frozen=True)
class DiscountResult:
    accepted: bool
    amount: int = 0
    code: str | None = None
    percentage: Decimal | None = None
    reason: RejectReason | None = None

    @classmethod
    def reject(cls, reason: RejectReason, code: str | None = None) -> DiscountResult:
        return cls(accepted=False, amount=0, code=code, reason=reason)


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def find_discount(code: str | None, discount_codes: Iterable[DiscountCode]) -> DiscountCode | None:
    wanted = normalize_code(code)
    if not wanted:
        return None
    return next((d for d in discount_codes if d.code == wanted and d.active), None)


def check_eligibility(discount: DiscountCode, stay: StayRange) -> RejectReason | None:
    if discount.min_nights and stay.nights < discount.min_nights:
        return RejectReason.MIN_NIGHTS

    if discount.full_period_required and discount.start_date and discount.end_date:
        # Both ends of the stay must fall inside the window.
        if stay.check_in < discount.start_date or stay.check_out > discount.end_date:
            return RejectReason.FULL_PERIOD_REQUIRED
        return None

    if discount.start_date and stay.check_in < discount.start_date:
        return RejectReason.OUT_OF_WINDOW
    if discount.end_date and stay.check_out > discount.end_date:
        return RejectReason.OUT_OF_WINDOW
    return None


def apply_discount(
    code: str | None,
    accommodation_subtotal: int | Decimal,
    stay: StayRange,
    discount_codes: Iterable[DiscountCode],
) -> DiscountResult:
    """
    Validate a guest-entered code against the stay and price it.

    The amount is a percentage of the accommodation subtotal only; extras are added after
    the discount by the caller. Rejections carry a reason instead of raising.
    """
    normalized = normalize_code(code)
    discount = find_discount(normalized, discount_codes)
    if discount is None:
        return DiscountResult.reject(RejectReason.NOT_FOUND, code=normalized or None)

    reason = check_eligibility(discount, stay)
    if reason is not None:
        return DiscountResult.reject(reason, code=discount.code)

    amount = round_money(Decimal(accommodation_subtotal) * discount.percentage / Decimal(100))
    return DiscountResult(accepted=True, amount=amount, code=discount.code, percentage=discount.percentage)


def select_package(package: Package, room_id: str) -> int | None:
    """Fixed total stay price for the room under this package; None when the room is not offered."""
    price = package.room_prices.get(room_id)
    if price is None:
        return None
    return round_money(price)


def offered_rooms(package: Package) -> list[str]:
    return sorted(package.room_prices)


def package_is_live(package: Package, day: date) -> bool:
    return package.active and package.start_iso_date <= day <= package.end_iso_date


def live_packages(packages: Iterable[Package], day: date) -> list[Package]:
    return sorted((p for p in packages if package_is_live(p, day)), key=lambda p: p.start_iso_date)


def package_stay(package: Package) -> StayRange:
    # Selecting a package books its whole window; the end date is the departure day.
    return StayRange(check_in=package.start_iso_date, check_out=package.end_iso_date)
