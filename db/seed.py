from __future__ import annotations

import argparse
import json
import random
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

from db.settings import SETTINGS, sync_database_url


@dataclass(frozen=True)
class RoomSpec:
    room_id: str
    name: str
    base_price: int
    base_quantity: int
    capacity: int


ROOM_SPECS: list[RoomSpec] = [
    RoomSpec("casal", "Suíte Casal", 1000, 6, 2),
    RoomSpec("triplo", "Suíte Triplo", 1250, 4, 3),
    RoomSpec("quadruplo", "Suíte Quádruplo", 1450, 3, 4),
    RoomSpec("sacada-mar", "Sacada Vista Mar", 1600, 2, 2),
    RoomSpec("varanda-terreo", "Varanda Térreo", 1150, 3, 3),
    RoomSpec("loft", "LOFT Exclusivo", 2200, 1, 2),
]

EXTRAS: list[dict] = [
    {"extra_id": "lua-de-mel", "name": "Kit Lua de Mel", "price": Decimal("350"), "active": True},
    {"extra_id": "mesa-posta", "name": "Mesa Posta Tropical", "price": Decimal("180"), "active": True},
    {"extra_id": "transfer", "name": "Transfer Aeroporto", "price": Decimal("100"), "active": True},
]


def _d(s: str) -> date:
    return date.fromisoformat(s)


def _package_rows() -> list[dict]:
    return [
        {
            "package_id": "carnaval",
            "name": "Pacote Carnaval Solar",
            "start_date": _d("2026-02-13"),
            "end_date": _d("2026-02-18"),
            "room_prices": {"casal": "5500", "triplo": "7500", "sacada-mar": "9000"},
            "no_check_in_dates": ["2026-02-14", "2026-02-15", "2026-02-16"],
            "no_check_out_dates": ["2026-02-14", "2026-02-15", "2026-02-16"],
            "active": True,
        },
        {
            "package_id": "pascoa",
            "name": "Páscoa em Família",
            "start_date": _d("2026-04-02"),
            "end_date": _d("2026-04-05"),
            "room_prices": {"quadruplo": "2800", "varanda-terreo": "3100"},
            "no_check_in_dates": ["2026-04-03"],
            "no_check_out_dates": ["2026-04-04"],
            "active": True,
        },
        {
            "package_id": "romantic",
            "name": "Lua de Mel Solar",
            "start_date": _d("2026-06-01"),
            "end_date": _d("2026-06-05"),
            "room_prices": {"sacada-mar": "3200", "loft": "4500"},
            "no_check_in_dates": [],
            "no_check_out_dates": [],
            "active": True,
        },
    ]


def _discount_rows() -> list[dict]:
    return [
        {"code": "BEMVINDO10", "percentage": Decimal(10), "active": True, "start_date": None, "end_date": None,
         "min_nights": None, "full_period_required": False},
        {"code": "SAVE10", "percentage": Decimal(10), "active": True, "start_date": None, "end_date": None,
         "min_nights": None, "full_period_required": False},
        {"code": "INVERNO15", "percentage": Decimal(15), "active": True, "start_date": _d("2026-06-01"),
         "end_date": _d("2026-06-30"), "min_nights": 3, "full_period_required": True},
        {"code": "ANTIGO", "percentage": Decimal(20), "active": False, "start_date": None, "end_date": None,
         "min_nights": None, "full_period_required": False},
    ]


def _override_rows(rng: random.Random, start: date, days: int) -> list[dict]:
    """
    Sparse per-date exceptions: a few price bumps, some low-stock nights and the
    occasional closed night per room. At most one row per (room, date).
    """
    rows: list[dict] = []
    for spec in ROOM_SPECS:
        for i in range(days):
            d = start + timedelta(days=i)
            roll = rng.random()
            if roll < 0.05:
                rows.append({"room_id": spec.room_id, "date_iso": d, "price": None, "available_quantity": None,
                             "is_closed": True, "no_check_in": None, "no_check_out": None})
            elif roll < 0.15:
                bump = Decimal(rng.choice([110, 120, 135])) / Decimal(100)
                rows.append({"room_id": spec.room_id, "date_iso": d, "price": Decimal(spec.base_price) * bump,
                             "available_quantity": None, "is_closed": None, "no_check_in": None, "no_check_out": None})
            elif roll < 0.20:
                rows.append({"room_id": spec.room_id, "date_iso": d, "price": None,
                             "available_quantity": rng.randint(0, max(spec.base_quantity - 1, 0)),
                             "is_closed": None, "no_check_in": None, "no_check_out": None})
    return rows


def seed(
    database_url: str,
    seed_value: int,
    *,
    start: date = date(2026, 1, 1),
    days: int = 365,
    reset: bool = True,
) -> dict[str, int]:
    rng = random.Random(seed_value)
    engine = sa.create_engine(database_url, future=True)
    meta = sa.MetaData()

    rooms = sa.Table(
        "rooms",
        meta,
        sa.Column("room_id", sa.Text(), primary_key=True),
        sa.Column("name", sa.Text()),
        sa.Column("description", sa.Text()),
        sa.Column("base_price", sa.Numeric()),
        sa.Column("base_quantity", sa.Integer()),
        sa.Column("capacity", sa.Integer()),
        sa.Column("active", sa.Boolean()),
    )
    overrides = sa.Table(
        "room_date_overrides",
        meta,
        sa.Column("room_id", sa.Text(), primary_key=True),
        sa.Column("date_iso", sa.Date(), primary_key=True),
        sa.Column("price", sa.Numeric()),
        sa.Column("available_quantity", sa.Integer()),
        sa.Column("is_closed", sa.Boolean()),
        sa.Column("no_check_in", sa.Boolean()),
        sa.Column("no_check_out", sa.Boolean()),
    )
    packages = sa.Table(
        "packages",
        meta,
        sa.Column("package_id", sa.Text(), primary_key=True),
        sa.Column("name", sa.Text()),
        sa.Column("description", sa.Text()),
        sa.Column("start_date", sa.Date()),
        sa.Column("end_date", sa.Date()),
        sa.Column("room_prices", JSONB),
        sa.Column("no_check_in_dates", JSONB),
        sa.Column("no_check_out_dates", JSONB),
        sa.Column("active", sa.Boolean()),
    )
    discounts = sa.Table(
        "discount_codes",
        meta,
        sa.Column("code", sa.Text(), primary_key=True),
        sa.Column("percentage", sa.Numeric()),
        sa.Column("active", sa.Boolean()),
        sa.Column("start_date", sa.Date()),
        sa.Column("end_date", sa.Date()),
        sa.Column("min_nights", sa.Integer()),
        sa.Column("full_period_required", sa.Boolean()),
    )
    extras = sa.Table(
        "extra_services",
        meta,
        sa.Column("extra_id", sa.Text(), primary_key=True),
        sa.Column("name", sa.Text()),
        sa.Column("description", sa.Text()),
        sa.Column("price", sa.Numeric()),
        sa.Column("active", sa.Boolean()),
    )

    room_rows = [
        {
            "room_id": s.room_id,
            "name": s.name,
            "description": None,
            "base_price": Decimal(s.base_price),
            "base_quantity": s.base_quantity,
            "capacity": s.capacity,
            "active": True,
        }
        for s in ROOM_SPECS
    ]
    override_rows = _override_rows(rng, start, days)

    with engine.begin() as conn:
        if reset:
            conn.execute(sa.text(
                "TRUNCATE TABLE room_date_overrides, rooms, packages, discount_codes, extra_services"
            ))
        conn.execute(rooms.insert(), room_rows)
        if override_rows:
            conn.execute(overrides.insert(), override_rows)
        conn.execute(packages.insert(), [{**p, "description": None} for p in _package_rows()])
        conn.execute(discounts.insert(), _discount_rows())
        conn.execute(extras.insert(), [{**e, "description": None} for e in EXTRAS])

        counts = {}
        for table in ["rooms", "room_date_overrides", "packages", "discount_codes", "extra_services"]:
            counts[table] = conn.execute(sa.text(f"SELECT COUNT(1) FROM {table}")).scalar_one()

    print(json.dumps({"seed": seed_value, "counts": counts}, indent=2, default=str))
    return counts


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the hotel catalog (rooms, overrides, packages, discounts, extras).")
    parser.add_argument("--database-url", default=SETTINGS.database_url, type=sync_database_url)
    parser.add_argument("--seed", type=int, default=SETTINGS.seed_value)
    parser.add_argument("--start", type=date.fromisoformat, default=date(2026, 1, 1), help="First override date (YYYY-MM-DD).")
    parser.add_argument("--days", type=int, default=365, help="Number of days to generate overrides for.")
    parser.add_argument("--no-reset", action="store_true", help="Append instead of truncating catalog tables.")
    args = parser.parse_args()
    seed(args.database_url, args.seed, start=args.start, days=args.days, reset=not args.no_reset)


if __name__ == "__main__":
    main()
