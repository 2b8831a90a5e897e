from __future__ import annotations

from datetime import date

from tests.factories import override, stay


def test_package_restrictions_block_check_in_and_out(june_package) -> None:
    from services.booking.app.selection import can_check_in, can_check_out

    assert not can_check_in(date(2025, 6, 2), [june_package])
    assert can_check_in(date(2025, 6, 3), [june_package])
    assert not can_check_out(date(2025, 6, 3), [june_package])
    assert can_check_out(date(2025, 6, 2), [june_package])


def test_inactive_package_restrictions_are_ignored(june_package) -> None:
    from services.booking.app.selection import restricted_check_in_dates, restricted_check_out_dates

    inactive = june_package.model_copy(update={"active": False})
    assert restricted_check_in_dates([inactive]) == set()
    assert restricted_check_out_dates([june_package, inactive]) == {date(2025, 6, 3)}


def test_room_override_flags_apply_only_to_that_room(casal) -> None:
    from services.booking.app.overrides import with_override
    from services.booking.app.selection import can_check_in, can_check_out

    room = with_override(casal, override("2025-01-10", no_check_in=True, no_check_out=True))
    assert not can_check_in(date(2025, 1, 10), [], room)
    assert not can_check_out(date(2025, 1, 10), [], room)
    assert can_check_in(date(2025, 1, 10), [])


def test_validate_selection_collects_all_violations(casal, june_package) -> None:
    from services.booking.app.selection import SelectionViolation, validate_selection

    assert validate_selection(stay("2025-06-02", "2025-06-03"), [june_package], [casal], min_stay=2) == [
        SelectionViolation.NO_CHECK_IN,
        SelectionViolation.NO_CHECK_OUT,
        SelectionViolation.MIN_STAY,
    ]
    assert validate_selection(stay("2025-06-10", "2025-06-12"), [june_package], [casal], min_stay=2) == []
