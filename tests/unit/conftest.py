from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from services.booking.app.models import DiscountCode, ExtraService, Package, Room


@pytest.fixture()
def casal() -> Room:
    return Room(id="casal", name="Suíte Casal", base_price=Decimal(1000), base_quantity=3)


@pytest.fixture()
def save10() -> DiscountCode:
    return DiscountCode(code="SAVE10", percentage=Decimal(10))


@pytest.fixture()
def june_package() -> Package:
    return Package(
        id="romantic",
        name="Lua de Mel Solar",
        start_iso_date=date(2025, 6, 1),
        end_iso_date=date(2025, 6, 5),
        room_prices={"casal": Decimal(3200)},
        no_check_in_dates=frozenset({date(2025, 6, 2)}),
        no_check_out_dates=frozenset({date(2025, 6, 3)}),
    )


@pytest.fixture()
def transfer() -> ExtraService:
    return ExtraService(id="transfer", name="Transfer Aeroporto", price=Decimal(100))
