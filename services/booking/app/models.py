from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator, model_validator

from services.booking.app.dates import iter_nights


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class FrozenModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


Money = Annotated[Decimal, Field(ge=0)]


class RoomDateOverride(FrozenModel):
    date_iso: date
    price: Money | None = None
    available_quantity: Annotated[int, Field(ge=0)] | None = None
    is_closed: bool | None = None
    # Calendar-selection flags; never consulted by pricing.
    no_check_in: bool | None = None
    no_check_out: bool | None = None

    def is_empty(self) -> bool:
        return (
            self.price is None
            and self.available_quantity is None
            and not self.is_closed
            and not self.no_check_in
            and not self.no_check_out
        )


class Room(FrozenModel):
    id: str
    name: str
    description: str = ""
    # 0 means "price on request".
    base_price: Money = Decimal(0)
    base_quantity: Annotated[int, Field(ge=0)] = 0
    capacity: int | None = None
    active: bool = True
    overrides: tuple[RoomDateOverride, ...] = ()

    _by_day: dict[date, RoomDateOverride] = PrivateAttr(default_factory=dict)

    @field_validator("overrides")
    @classmethod
    def _unique_dates(cls, v: tuple[RoomDateOverride, ...]) -> tuple[RoomDateOverride, ...]:
        seen: set[date] = set()
        for o in v:
            if o.date_iso in seen:
                raise ValueError(f"duplicate override for {o.date_iso.isoformat()}")
            seen.add(o.date_iso)
        return tuple(sorted(v, key=lambda o: o.date_iso))

    def model_post_init(self, __context) -> None:
        # Empty overrides are indexed as absent.
        self._by_day = {o.date_iso: o for o in self.overrides if not o.is_empty()}

    @property
    def override_index(self) -> dict[date, RoomDateOverride]:
        return self._by_day


class StayRange(FrozenModel):
    """Half-open interval [check_in, check_out); check_out is the departure day."""

    check_in: date
    check_out: date

    @model_validator(mode="after")
    def _dates(self):
        if self.check_out <= self.check_in:
            raise ValueError("check_out must be after check_in")
        return self

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    def days(self) -> list[date]:
        return list(iter_nights(self.check_in, self.check_out))


class Package(FrozenModel):
    id: str
    name: str = ""
    description: str = ""
    start_iso_date: date
    end_iso_date: date
    # room id -> fixed total stay price
    room_prices: dict[str, Money] = Field(default_factory=dict)
    no_check_in_dates: frozenset[date] = frozenset()
    no_check_out_dates: frozenset[date] = frozenset()
    active: bool = True

    @model_validator(mode="after")
    def _window(self):
        if self.end_iso_date < self.start_iso_date:
            raise ValueError("end_iso_date must not be before start_iso_date")
        return self


class DiscountCode(FrozenModel):
    code: str
    percentage: Annotated[Decimal, Field(ge=0, le=100)]
    active: bool = True
    start_date: date | None = None
    end_date: date | None = None
    min_nights: Annotated[int, Field(ge=0)] | None = None
    full_period_required: bool = False

    @field_validator("code")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.strip().upper()


class ExtraService(FrozenModel):
    id: str
    name: str
    description: str = ""
    price: Money
    active: bool = True


@dataclass(frozen=True)
class PricingRules:
    weekend_surcharge_pct: Decimal = Decimal(15)
    # date.weekday(): Friday=4, Saturday=5
    weekend_days: frozenset[int] = frozenset({4, 5})


DEFAULT_RULES = PricingRules()


@dataclass(frozen=True)
class Catalog:
    """Administrator-owned reference data loaded before a booking session."""

    rooms: tuple[Room, ...] = ()
    packages: tuple[Package, ...] = ()
    discount_codes: tuple[DiscountCode, ...] = ()
    extras: tuple[ExtraService, ...] = ()
    _rooms_by_id: dict[str, Room] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_rooms_by_id", {r.id: r for r in self.rooms})

    def room(self, room_id: str) -> Room | None:
        return self._rooms_by_id.get(room_id)

    def package(self, package_id: str) -> Package | None:
        return next((p for p in self.packages if p.id == package_id), None)

    def extra(self, extra_id: str) -> ExtraService | None:
        return next((e for e in self.extras if e.id == extra_id), None)

    def replace_room(self, room: Room) -> Catalog:
        rooms = tuple(room if r.id == room.id else r for r in self.rooms)
        return Catalog(rooms=rooms, packages=self.packages, discount_codes=self.discount_codes, extras=self.extras)
