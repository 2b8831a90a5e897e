from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import UUID

import pytest

from services.booking.app.models import Catalog, DiscountCode, ExtraService, Package, Room, RoomDateOverride
from services.booking.app.overrides import with_override, without_override
from services.booking.app.reservations import Reservation, ReservationStatus


class InMemoryRepository:
    """Stands in for BookingRepository so the HTTP contract runs without Postgres."""

    def __init__(self, catalog: Catalog) -> None:
        self.catalog = catalog
        self.reservations: dict[UUID, Reservation] = {}

    async def load_catalog(self) -> Catalog:
        return self.catalog

    async def save_reservation(self, reservation: Reservation) -> None:
        self.reservations[reservation.id] = reservation

    async def get_reservation(self, reservation_id: UUID) -> Reservation | None:
        return self.reservations.get(reservation_id)

    async def update_reservation_status(self, reservation_id: UUID, status: ReservationStatus) -> None:
        self.reservations[reservation_id] = self.reservations[reservation_id].model_copy(update={"status": status})

    async def list_reservations(self, status: ReservationStatus | None = None) -> list[Reservation]:
        rows = [r for r in self.reservations.values() if status is None or r.status == status]
        return sorted(rows, key=lambda r: r.created_at, reverse=True)

    async def upsert_room(self, room: Room) -> None:
        if self.catalog.room(room.id) is None:
            self.catalog = replace(self.catalog, rooms=self.catalog.rooms + (room,))
        else:
            self.catalog = self.catalog.replace_room(room)

    async def delete_room(self, room_id: str) -> None:
        self.catalog = replace(self.catalog, rooms=tuple(r for r in self.catalog.rooms if r.id != room_id))

    async def upsert_package(self, package: Package) -> None:
        others = tuple(p for p in self.catalog.packages if p.id != package.id)
        self.catalog = replace(self.catalog, packages=others + (package,))

    async def delete_package(self, package_id: str) -> None:
        self.catalog = replace(self.catalog, packages=tuple(p for p in self.catalog.packages if p.id != package_id))

    async def upsert_extra(self, extra: ExtraService) -> None:
        others = tuple(e for e in self.catalog.extras if e.id != extra.id)
        self.catalog = replace(self.catalog, extras=others + (extra,))

    async def delete_extra(self, extra_id: str) -> None:
        self.catalog = replace(self.catalog, extras=tuple(e for e in self.catalog.extras if e.id != extra_id))

    async def upsert_override(self, room_id: str, override: RoomDateOverride) -> None:
        self.catalog = self.catalog.replace_room(with_override(self.catalog.room(room_id), override))

    async def delete_override(self, room_id: str, day: date) -> None:
        self.catalog = self.catalog.replace_room(without_override(self.catalog.room(room_id), day))

    async def upsert_discount(self, discount: DiscountCode) -> None:
        others = tuple(d for d in self.catalog.discount_codes if d.code != discount.code)
        self.catalog = Catalog(self.catalog.rooms, self.catalog.packages, others + (discount,), self.catalog.extras)

    async def delete_discount(self, code: str) -> None:
        others = tuple(d for d in self.catalog.discount_codes if d.code != code)
        self.catalog = Catalog(self.catalog.rooms, self.catalog.packages, others, self.catalog.extras)

    async def replace_catalog(self, catalog: Catalog) -> None:
        self.catalog = catalog


def hotel_catalog() -> Catalog:
    casal = Room(id="casal", name="Suíte Casal", base_price=Decimal(1000), base_quantity=2)
    loft = Room(
        id="loft",
        name="LOFT Exclusivo",
        base_price=Decimal(2000),
        base_quantity=1,
        overrides=(RoomDateOverride(date_iso=date(2025, 1, 4), price=Decimal(500), is_closed=True),),
    )
    hidden = Room(id="antigo", name="Quarto Antigo", base_price=Decimal(500), base_quantity=1, active=False)
    package = Package(
        id="romantic",
        name="Lua de Mel Solar",
        start_iso_date=date(2025, 6, 1),
        end_iso_date=date(2025, 6, 5),
        room_prices={"casal": Decimal(3200)},
        no_check_in_dates=frozenset({date(2025, 6, 2)}),
    )
    return Catalog(
        rooms=(casal, loft, hidden),
        packages=(package,),
        discount_codes=(DiscountCode(code="SAVE10", percentage=Decimal(10)),),
        extras=(ExtraService(id="transfer", name="Transfer Aeroporto", price=Decimal(100)),),
    )


@pytest.fixture()
def repo() -> InMemoryRepository:
    return InMemoryRepository(hotel_catalog())


@pytest.fixture()
def booking_app(repo: InMemoryRepository):
    from services.booking.app.main import HISTORY, app
    from services.booking.app.repository import get_repository

    app.dependency_overrides[get_repository] = lambda: repo
    HISTORY.clear()
    yield app
    app.dependency_overrides.clear()
