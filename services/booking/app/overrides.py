from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime

from services.booking.app.dates import as_day
from services.booking.app.models import Room, RoomDateOverride


def resolve_override(room: Room, day: date | datetime | str) -> RoomDateOverride | None:
    """Return the override for exactly this calendar day, or None (empty overrides count as None)."""
    return room.override_index.get(as_day(day))


def with_override(room: Room, override: RoomDateOverride) -> Room:
    """
    Set one date's override, replacing any existing one for that date.

    Setting an empty override removes the date instead of storing a no-op row.
    """
    kept = [o for o in room.overrides if o.date_iso != override.date_iso]
    if not override.is_empty():
        kept.append(override)
    return Room.model_validate({**room.model_dump(), "overrides": kept})


def without_override(room: Room, day: date | datetime | str) -> Room:
    d = as_day(day)
    return Room.model_validate({**room.model_dump(), "overrides": [o for o in room.overrides if o.date_iso != d]})


def with_overrides(room: Room, overrides: Iterable[RoomDateOverride]) -> Room:
    # Bulk replace; duplicate dates are rejected by the model.
    return Room.model_validate({**room.model_dump(), "overrides": [o for o in overrides if not o.is_empty()]})
