from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from enum import StrEnum

from services.booking.app.models import Package, Room, StayRange
from services.booking.app.overrides import resolve_override


class SelectionViolation(StrEnum):
    NO_CHECK_IN = "NO_CHECK_IN"
    NO_CHECK_OUT = "NO_CHECK_OUT"
    MIN_STAY = "MIN_STAY"


def restricted_check_in_dates(packages: Iterable[Package]) -> set[date]:
    out: set[date] = set()
    for p in packages:
        if p.active:
            out |= p.no_check_in_dates
    return out


def restricted_check_out_dates(packages: Iterable[Package]) -> set[date]:
    out: set[date] = set()
    for p in packages:
        if p.active:
            out |= p.no_check_out_dates
    return out


def can_check_in(day: date, packages: Iterable[Package], room: Room | None = None) -> bool:
    if day in restricted_check_in_dates(packages):
        return False
    if room is not None:
        override = resolve_override(room, day)
        if override is not None and override.no_check_in:
            return False
    return True


def can_check_out(day: date, packages: Iterable[Package], room: Room | None = None) -> bool:
    if day in restricted_check_out_dates(packages):
        return False
    if room is not None:
        override = resolve_override(room, day)
        if override is not None and override.no_check_out:
            return False
    return True


def validate_selection(
    stay: StayRange,
    packages: Iterable[Package],
    rooms: Iterable[Room] = (),
    min_stay: int = 1,
) -> list[SelectionViolation]:
    """
    Check a date pick before it reaches pricing.

    Package restrictions apply to every room; room override flags only to the rooms
    being booked. Returns an empty list when the selection is valid.
    """
    packages = list(packages)
    rooms = list(rooms) or [None]
    violations: list[SelectionViolation] = []
    if not all(can_check_in(stay.check_in, packages, r) for r in rooms):
        violations.append(SelectionViolation.NO_CHECK_IN)
    if not all(can_check_out(stay.check_out, packages, r) for r in rooms):
        violations.append(SelectionViolation.NO_CHECK_OUT)
    if stay.nights < min_stay:
        violations.append(SelectionViolation.MIN_STAY)
    return violations
