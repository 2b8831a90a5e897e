from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Literal

from services.booking.app.models import DEFAULT_RULES, PricingRules, Room, StayRange
from services.booking.app.overrides import resolve_override


RateSource = Literal["OVERRIDE", "BASE", "WEEKEND"]

_HUNDRED = Decimal(100)


@dataclass(frozen=True)
class NightlyRate:
    day: date
    rate: Decimal
    source: RateSource


def round_money(x: Decimal) -> int:
    return int(x.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def nightly_rate(room: Room, day: date, rules: PricingRules = DEFAULT_RULES) -> NightlyRate:
    override = resolve_override(room, day)
    if override is not None and override.price is not None:
        # An explicit override price is authoritative: no surcharge.
        return NightlyRate(day=day, rate=override.price, source="OVERRIDE")
    if day.weekday() in rules.weekend_days:
        rate = room.base_price * (_HUNDRED + rules.weekend_surcharge_pct) / _HUNDRED
        return NightlyRate(day=day, rate=rate, source="WEEKEND")
    return NightlyRate(day=day, rate=room.base_price, source="BASE")


def price_breakdown(room: Room, stay: StayRange, rules: PricingRules = DEFAULT_RULES) -> list[NightlyRate]:
    return [nightly_rate(room, d, rules) for d in stay.days()]


def price_stay(room: Room, stay: StayRange | None, rules: PricingRules = DEFAULT_RULES) -> int:
    """
    Total accommodation price for one room over the stay.

    Without a stay this is the listing "from" price (the base price, one night).
    Rounding is applied once on the summed nightly rates, never per night.
    A result of 0 means "price on request", not free.
    """
    if stay is None:
        return round_money(room.base_price)
    total = sum((n.rate for n in price_breakdown(room, stay, rules)), Decimal(0))
    return round_money(total)
