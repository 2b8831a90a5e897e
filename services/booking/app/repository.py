from __future__ import annotations

import json
from collections import defaultdict
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID

import sqlalchemy as sa
from fastapi import Depends
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession

from services.booking.app.db import get_session
from services.booking.app.models import Catalog, DiscountCode, ExtraService, Package, Room, RoomDateOverride
from services.booking.app.reservations import Reservation, ReservationStatus


ROOMS = sa.table(
    "rooms",
    sa.column("room_id"),
    sa.column("name"),
    sa.column("description"),
    sa.column("base_price"),
    sa.column("base_quantity"),
    sa.column("capacity"),
    sa.column("active"),
)
OVERRIDES = sa.table(
    "room_date_overrides",
    sa.column("room_id"),
    sa.column("date_iso"),
    sa.column("price"),
    sa.column("available_quantity"),
    sa.column("is_closed"),
    sa.column("no_check_in"),
    sa.column("no_check_out"),
)
PACKAGES = sa.table(
    "packages",
    sa.column("package_id"),
    sa.column("name"),
    sa.column("description"),
    sa.column("start_date"),
    sa.column("end_date"),
    sa.column("room_prices", JSONB),
    sa.column("no_check_in_dates", JSONB),
    sa.column("no_check_out_dates", JSONB),
    sa.column("active"),
)
DISCOUNTS = sa.table(
    "discount_codes",
    sa.column("code"),
    sa.column("percentage"),
    sa.column("active"),
    sa.column("start_date"),
    sa.column("end_date"),
    sa.column("min_nights"),
    sa.column("full_period_required"),
)
EXTRAS = sa.table(
    "extra_services",
    sa.column("extra_id"),
    sa.column("name"),
    sa.column("description"),
    sa.column("price"),
    sa.column("active"),
)
RESERVATIONS = sa.table(
    "reservations",
    sa.column("reservation_id"),
    sa.column("created_at"),
    sa.column("check_in"),
    sa.column("check_out"),
    sa.column("nights"),
    sa.column("main_guest", JSONB),
    sa.column("additional_guests", JSONB),
    sa.column("observations"),
    sa.column("rooms", JSONB),
    sa.column("extras", JSONB),
    sa.column("accommodation_subtotal"),
    sa.column("discount_code"),
    sa.column("discount_amount"),
    sa.column("total_price"),
    sa.column("payment_method"),
    sa.column("status"),
)


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _dumps(v: Any) -> str:
    # Dates/decimals inside JSONB payloads are stored as strings.
    return json.dumps(v, default=str)


class BookingRepository:
    """Persistence collaborator: the engine only ever sees the Catalog this returns."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def load_catalog(self) -> Catalog:
        s = self.session
        override_rows = (await s.execute(sa.select(OVERRIDES).order_by(OVERRIDES.c.date_iso))).mappings().all()
        by_room: dict[str, list[dict]] = defaultdict(list)
        for r in override_rows:
            by_room[r["room_id"]].append(
                dict(
                    date_iso=r["date_iso"],
                    price=r["price"],
                    available_quantity=r["available_quantity"],
                    is_closed=r["is_closed"],
                    no_check_in=r["no_check_in"],
                    no_check_out=r["no_check_out"],
                )
            )

        rooms = [
            Room(
                id=r["room_id"],
                name=r["name"],
                description=r["description"] or "",
                base_price=r["base_price"],
                base_quantity=r["base_quantity"],
                capacity=r["capacity"],
                active=bool(r["active"]),
                overrides=by_room.get(r["room_id"], []),
            )
            for r in (await s.execute(sa.select(ROOMS).order_by(ROOMS.c.room_id))).mappings()
        ]
        packages = [
            Package(
                id=r["package_id"],
                name=r["name"],
                description=r["description"] or "",
                start_iso_date=r["start_date"],
                end_iso_date=r["end_date"],
                room_prices=r["room_prices"] or {},
                no_check_in_dates=r["no_check_in_dates"] or [],
                no_check_out_dates=r["no_check_out_dates"] or [],
                active=bool(r["active"]),
            )
            for r in (await s.execute(sa.select(PACKAGES).order_by(PACKAGES.c.start_date))).mappings()
        ]
        discounts = [
            DiscountCode(
                code=r["code"],
                percentage=r["percentage"],
                active=bool(r["active"]),
                start_date=r["start_date"],
                end_date=r["end_date"],
                min_nights=r["min_nights"],
                full_period_required=bool(r["full_period_required"]),
            )
            for r in (await s.execute(sa.select(DISCOUNTS).order_by(DISCOUNTS.c.code))).mappings()
        ]
        extras = [
            ExtraService(
                id=r["extra_id"],
                name=r["name"],
                description=r["description"] or "",
                price=r["price"],
                active=bool(r["active"]),
            )
            for r in (await s.execute(sa.select(EXTRAS).order_by(EXTRAS.c.extra_id))).mappings()
        ]
        return Catalog(rooms=tuple(rooms), packages=tuple(packages), discount_codes=tuple(discounts), extras=tuple(extras))

    # --- reservations ---

    async def save_reservation(self, reservation: Reservation) -> None:
        q = sa.text(
            "INSERT INTO reservations(reservation_id, created_at, updated_at, check_in, check_out, nights, "
            "main_guest, additional_guests, observations, rooms, extras, accommodation_subtotal, "
            "discount_code, discount_amount, total_price, payment_method, status) "
            "VALUES (:id, :created, :created, :ci, :co, :n, CAST(:mg AS jsonb), CAST(:ag AS jsonb), :obs, "
            "CAST(:rooms AS jsonb), CAST(:extras AS jsonb), :sub, :dc, :da, :total, :pm, :status)"
        )
        await self.session.execute(
            q,
            {
                "id": reservation.id,
                "created": reservation.created_at,
                "ci": reservation.check_in,
                "co": reservation.check_out,
                "n": reservation.nights,
                "mg": _dumps(reservation.main_guest.model_dump()),
                "ag": _dumps([g.model_dump() for g in reservation.additional_guests]),
                "obs": reservation.observations,
                "rooms": _dumps([r.model_dump() for r in reservation.rooms]),
                "extras": _dumps([e.model_dump() for e in reservation.extras]),
                "sub": reservation.accommodation_subtotal,
                "dc": reservation.discount.code if reservation.discount else None,
                "da": reservation.discount.amount if reservation.discount else None,
                "total": reservation.total_price,
                "pm": reservation.payment_method,
                "status": str(reservation.status),
            },
        )
        await self.session.commit()

    async def get_reservation(self, reservation_id: UUID) -> Reservation | None:
        q = sa.select(RESERVATIONS).where(RESERVATIONS.c.reservation_id == reservation_id)
        row = (await self.session.execute(q)).mappings().first()
        return _reservation_from_row(row) if row is not None else None

    async def list_reservations(self, status: ReservationStatus | None = None) -> list[Reservation]:
        q = sa.select(RESERVATIONS).order_by(RESERVATIONS.c.created_at.desc())
        if status is not None:
            q = q.where(RESERVATIONS.c.status == str(status))
        return [_reservation_from_row(r) for r in (await self.session.execute(q)).mappings()]

    async def update_reservation_status(self, reservation_id: UUID, status: ReservationStatus) -> None:
        q = sa.text("UPDATE reservations SET status=:s, updated_at=:ts WHERE reservation_id=:id")
        await self.session.execute(q, {"s": str(status), "ts": _now(), "id": reservation_id})
        await self.session.commit()

    # --- admin edits ---

    async def upsert_room(self, room: Room) -> None:
        # Overrides are edited through their own routes and survive a room edit.
        q = sa.text(
            "INSERT INTO rooms(room_id, name, description, base_price, base_quantity, capacity, active) "
            "VALUES (:id, :name, :desc, :price, :qty, :cap, :active) "
            "ON CONFLICT (room_id) DO UPDATE SET name=EXCLUDED.name, description=EXCLUDED.description, "
            "base_price=EXCLUDED.base_price, base_quantity=EXCLUDED.base_quantity, "
            "capacity=EXCLUDED.capacity, active=EXCLUDED.active"
        )
        await self.session.execute(q, self._room_params(room))
        await self.session.commit()

    async def delete_room(self, room_id: str) -> None:
        # room_date_overrides rows go with it (ON DELETE CASCADE).
        await self.session.execute(sa.text("DELETE FROM rooms WHERE room_id=:id"), {"id": room_id})
        await self.session.commit()

    async def upsert_override(self, room_id: str, override: RoomDateOverride) -> None:
        q = sa.text(
            "INSERT INTO room_date_overrides(room_id, date_iso, price, available_quantity, is_closed, no_check_in, no_check_out) "
            "VALUES (:r, :d, :p, :q, :c, :ni, :no) "
            "ON CONFLICT (room_id, date_iso) DO UPDATE SET price=EXCLUDED.price, "
            "available_quantity=EXCLUDED.available_quantity, is_closed=EXCLUDED.is_closed, "
            "no_check_in=EXCLUDED.no_check_in, no_check_out=EXCLUDED.no_check_out"
        )
        await self.session.execute(q, self._override_params(room_id, override))
        await self.session.commit()

    async def delete_override(self, room_id: str, day: date) -> None:
        q = sa.text("DELETE FROM room_date_overrides WHERE room_id=:r AND date_iso=:d")
        await self.session.execute(q, {"r": room_id, "d": day})
        await self.session.commit()

    async def upsert_package(self, package: Package) -> None:
        q = sa.text(
            "INSERT INTO packages(package_id, name, description, start_date, end_date, room_prices, "
            "no_check_in_dates, no_check_out_dates, active) VALUES (:id, :name, :desc, :sd, :ed, "
            "CAST(:rp AS jsonb), CAST(:nci AS jsonb), CAST(:nco AS jsonb), :active) "
            "ON CONFLICT (package_id) DO UPDATE SET name=EXCLUDED.name, description=EXCLUDED.description, "
            "start_date=EXCLUDED.start_date, end_date=EXCLUDED.end_date, room_prices=EXCLUDED.room_prices, "
            "no_check_in_dates=EXCLUDED.no_check_in_dates, no_check_out_dates=EXCLUDED.no_check_out_dates, "
            "active=EXCLUDED.active"
        )
        await self.session.execute(q, self._package_params(package))
        await self.session.commit()

    async def delete_package(self, package_id: str) -> None:
        await self.session.execute(sa.text("DELETE FROM packages WHERE package_id=:id"), {"id": package_id})
        await self.session.commit()

    async def upsert_discount(self, discount: DiscountCode) -> None:
        q = sa.text(
            "INSERT INTO discount_codes(code, percentage, active, start_date, end_date, min_nights, full_period_required) "
            "VALUES (:code, :pct, :active, :sd, :ed, :mn, :fp) "
            "ON CONFLICT (code) DO UPDATE SET percentage=EXCLUDED.percentage, active=EXCLUDED.active, "
            "start_date=EXCLUDED.start_date, end_date=EXCLUDED.end_date, min_nights=EXCLUDED.min_nights, "
            "full_period_required=EXCLUDED.full_period_required"
        )
        await self.session.execute(q, self._discount_params(discount))
        await self.session.commit()

    async def delete_discount(self, code: str) -> None:
        await self.session.execute(sa.text("DELETE FROM discount_codes WHERE code=:c"), {"c": code})
        await self.session.commit()

    async def upsert_extra(self, extra: ExtraService) -> None:
        q = sa.text(
            "INSERT INTO extra_services(extra_id, name, description, price, active) "
            "VALUES (:id, :name, :desc, :price, :active) "
            "ON CONFLICT (extra_id) DO UPDATE SET name=EXCLUDED.name, description=EXCLUDED.description, "
            "price=EXCLUDED.price, active=EXCLUDED.active"
        )
        await self.session.execute(q, self._extra_params(extra))
        await self.session.commit()

    async def delete_extra(self, extra_id: str) -> None:
        await self.session.execute(sa.text("DELETE FROM extra_services WHERE extra_id=:id"), {"id": extra_id})
        await self.session.commit()

    async def replace_catalog(self, catalog: Catalog) -> None:
        """Bulk replace of all reference data (used by undo/redo)."""
        s = self.session
        for table in ("room_date_overrides", "rooms", "packages", "discount_codes", "extra_services"):
            await s.execute(sa.text(f"DELETE FROM {table}"))

        for room in catalog.rooms:
            await s.execute(
                sa.text(
                    "INSERT INTO rooms(room_id, name, description, base_price, base_quantity, capacity, active) "
                    "VALUES (:id, :name, :desc, :price, :qty, :cap, :active)"
                ),
                self._room_params(room),
            )
            for o in room.overrides:
                await s.execute(
                    sa.text(
                        "INSERT INTO room_date_overrides(room_id, date_iso, price, available_quantity, is_closed, "
                        "no_check_in, no_check_out) VALUES (:r, :d, :p, :q, :c, :ni, :no)"
                    ),
                    self._override_params(room.id, o),
                )
        for p in catalog.packages:
            await s.execute(
                sa.text(
                    "INSERT INTO packages(package_id, name, description, start_date, end_date, room_prices, "
                    "no_check_in_dates, no_check_out_dates, active) VALUES (:id, :name, :desc, :sd, :ed, "
                    "CAST(:rp AS jsonb), CAST(:nci AS jsonb), CAST(:nco AS jsonb), :active)"
                ),
                self._package_params(p),
            )
        for d in catalog.discount_codes:
            await s.execute(
                sa.text(
                    "INSERT INTO discount_codes(code, percentage, active, start_date, end_date, min_nights, "
                    "full_period_required) VALUES (:code, :pct, :active, :sd, :ed, :mn, :fp)"
                ),
                self._discount_params(d),
            )
        for e in catalog.extras:
            await s.execute(
                sa.text(
                    "INSERT INTO extra_services(extra_id, name, description, price, active) "
                    "VALUES (:id, :name, :desc, :price, :active)"
                ),
                self._extra_params(e),
            )
        await self.session.commit()

    @staticmethod
    def _room_params(room: Room) -> dict[str, Any]:
        return {
            "id": room.id,
            "name": room.name,
            "desc": room.description,
            "price": room.base_price,
            "qty": room.base_quantity,
            "cap": room.capacity,
            "active": room.active,
        }

    @staticmethod
    def _override_params(room_id: str, o: RoomDateOverride) -> dict[str, Any]:
        return {
            "r": room_id,
            "d": o.date_iso,
            "p": o.price,
            "q": o.available_quantity,
            "c": o.is_closed,
            "ni": o.no_check_in,
            "no": o.no_check_out,
        }

    @staticmethod
    def _package_params(p: Package) -> dict[str, Any]:
        return {
            "id": p.id,
            "name": p.name,
            "desc": p.description,
            "sd": p.start_iso_date,
            "ed": p.end_iso_date,
            "rp": _dumps({k: str(v) for k, v in p.room_prices.items()}),
            "nci": _dumps(sorted(p.no_check_in_dates)),
            "nco": _dumps(sorted(p.no_check_out_dates)),
            "active": p.active,
        }

    @staticmethod
    def _discount_params(d: DiscountCode) -> dict[str, Any]:
        return {
            "code": d.code,
            "pct": d.percentage,
            "active": d.active,
            "sd": d.start_date,
            "ed": d.end_date,
            "mn": d.min_nights,
            "fp": d.full_period_required,
        }

    @staticmethod
    def _extra_params(e: ExtraService) -> dict[str, Any]:
        return {"id": e.id, "name": e.name, "desc": e.description, "price": e.price, "active": e.active}


def _reservation_from_row(row: Any) -> Reservation:
    discount = None
    if row["discount_code"]:
        discount = {"code": row["discount_code"], "amount": int(row["discount_amount"] or 0)}
    return Reservation(
        id=row["reservation_id"],
        created_at=row["created_at"],
        check_in=row["check_in"],
        check_out=row["check_out"],
        nights=row["nights"],
        main_guest=row["main_guest"],
        additional_guests=row["additional_guests"] or [],
        observations=row["observations"] or "",
        rooms=row["rooms"] or [],
        extras=row["extras"] or [],
        accommodation_subtotal=int(row["accommodation_subtotal"]),
        discount=discount,
        total_price=row["total_price"],
        payment_method=row["payment_method"],
        status=row["status"],
    )


async def get_repository(session: AsyncSession = Depends(get_session)) -> BookingRepository:
    return BookingRepository(session)
