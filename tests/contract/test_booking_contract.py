from __future__ import annotations

from decimal import Decimal

import httpx
import pytest

ADMIN = {"X-Admin-Token": "dev-admin"}
WEEKEND = {"check_in": "2025-01-03", "check_out": "2025-01-05"}
WEEKDAY = {"check_in": "2025-01-06", "check_out": "2025-01-08"}


def _reservation_payload(**cart) -> dict:
    return {
        "cart": {"stay": WEEKDAY, "rooms": [{"room_id": "casal"}], **cart},
        "main_guest": {"name": "Maria Rita", "email": "maria@example.com"},
        "payment_method": "PIX",
    }


@pytest.mark.asyncio
async def test_quote_rejects_extra_fields(booking_app):
    transport = httpx.ASGITransport(app=booking_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.post("/quote", json={"stay": WEEKEND, "rooms": [{"room_id": "casal"}], "extra": "nope"})
        assert r.status_code == 422


@pytest.mark.asyncio
async def test_quote_rejects_inverted_dates(booking_app):
    transport = httpx.ASGITransport(app=booking_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        stay = {"check_in": "2025-01-05", "check_out": "2025-01-05"}
        r = await client.post("/quote", json={"stay": stay, "rooms": [{"room_id": "casal"}]})
        assert r.status_code == 422


@pytest.mark.asyncio
async def test_availability_lists_active_rooms(booking_app):
    transport = httpx.ASGITransport(app=booking_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.post("/availability", json={"stay": WEEKEND})
        assert r.status_code == 200
        data = r.json()
        assert data["currency"] == "BRL"
        rooms = {row["room_id"]: row for row in data["rooms"]}
        assert set(rooms) == {"casal", "loft"}
        assert rooms["casal"] == {"room_id": "casal", "name": "Suíte Casal", "available": True, "price": 2300}
        # 2025-01-04 is closed for the loft.
        assert rooms["loft"]["available"] is False

        r = await client.post("/availability", json={})
        assert r.status_code == 200
        prices = {row["room_id"]: row["price"] for row in r.json()["rooms"]}
        assert prices == {"casal": 1000, "loft": 2000}


@pytest.mark.asyncio
async def test_quote_applies_discount_before_extras(booking_app):
    transport = httpx.ASGITransport(app=booking_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.post(
            "/quote",
            json={
                "stay": WEEKEND,
                "rooms": [{"room_id": "casal"}],
                "extras": {"transfer": 1},
                "discount_code": "save10",
            },
        )
        assert r.status_code == 200
        q = r.json()
        assert q["nights"] == 2
        assert q["accommodation_subtotal"] == 2300
        assert q["discount"]["accepted"] is True
        assert q["discount"]["amount"] == 230
        assert q["accommodation_total"] == 2070
        assert q["extras_total"] == 100
        assert q["total"] == 2170


@pytest.mark.asyncio
async def test_quote_error_statuses(booking_app):
    transport = httpx.ASGITransport(app=booking_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.post("/quote", json={"stay": WEEKEND, "rooms": [{"room_id": "loft"}]})
        assert r.status_code == 409

        r = await client.post("/quote", json={"stay": WEEKEND, "rooms": [{"room_id": "presidencial"}]})
        assert r.status_code == 404

        r = await client.post(
            "/quote", json={"stay": WEEKDAY, "rooms": [{"room_id": "casal"}], "extras": {"spa": 1}}
        )
        assert r.status_code == 404


@pytest.mark.asyncio
async def test_discount_validate(booking_app):
    transport = httpx.ASGITransport(app=booking_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.post(
            "/discounts/validate", json={"code": "SAVE10", "accommodation_subtotal": 2300, "stay": WEEKEND}
        )
        assert r.status_code == 200
        assert r.json()["amount"] == 230
        assert r.json()["percentage"] == 10

        r = await client.post(
            "/discounts/validate", json={"code": "NOPE", "accommodation_subtotal": 2300, "stay": WEEKEND}
        )
        assert r.status_code == 200
        assert r.json()["accepted"] is False
        assert r.json()["amount"] == 0
        assert r.json()["reason"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_package_price(booking_app):
    transport = httpx.ASGITransport(app=booking_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.get("/packages/romantic/rooms/casal")
        assert r.status_code == 200
        assert r.json() == {
            "package_id": "romantic",
            "room_id": "casal",
            "price": 3200,
            "check_in": "2025-06-01",
            "check_out": "2025-06-05",
        }

        assert (await client.get("/packages/romantic/rooms/loft")).status_code == 404
        assert (await client.get("/packages/natal/rooms/casal")).status_code == 404


@pytest.mark.asyncio
async def test_calendar_validate_reports_restricted_days(booking_app):
    transport = httpx.ASGITransport(app=booking_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.post(
            "/calendar/validate",
            json={"stay": {"check_in": "2025-06-02", "check_out": "2025-06-04"}, "room_ids": ["casal"]},
        )
        assert r.status_code == 200
        assert r.json() == {"ok": False, "violations": ["NO_CHECK_IN"]}

        r = await client.post("/calendar/validate", json={"stay": WEEKDAY})
        assert r.json() == {"ok": True, "violations": []}


@pytest.mark.asyncio
async def test_reservation_lifecycle(booking_app, repo):
    transport = httpx.ASGITransport(app=booking_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.post("/reservations", json=_reservation_payload(extras={"transfer": 2}))
        assert r.status_code == 201
        created = r.json()
        assert created["status"] == "PENDING"
        assert created["nights"] == 2
        assert created["rooms"][0]["price_snapshot"] == 2000
        assert Decimal(created["total_price"]) == Decimal(2200)
        assert len(repo.reservations) == 1

        rid = created["id"]
        r = await client.get(f"/reservations/{rid}")
        assert r.status_code == 200
        assert r.json()["main_guest"]["name"] == "Maria Rita"

        r = await client.post(f"/reservations/{rid}/confirm")
        assert r.status_code == 200
        assert r.json()["status"] == "CONFIRMED"

        r = await client.post(f"/reservations/{rid}/cancel")
        assert r.json()["status"] == "CANCELED"

        r = await client.post(f"/reservations/{rid}/cancel")
        assert r.status_code == 409

        r = await client.get("/reservations/00000000-0000-0000-0000-000000000000")
        assert r.status_code == 404


@pytest.mark.asyncio
async def test_reservation_rejections(booking_app, repo):
    transport = httpx.ASGITransport(app=booking_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        restricted = _reservation_payload()
        restricted["cart"]["stay"] = {"check_in": "2025-06-02", "check_out": "2025-06-04"}
        r = await client.post("/reservations", json=restricted)
        assert r.status_code == 422
        assert r.json()["detail"] == {"violations": ["NO_CHECK_IN"]}

        r = await client.post("/reservations", json=_reservation_payload(discount_code="NOPE"))
        assert r.status_code == 400
        assert r.json()["detail"] == {"discount_rejected": "NOT_FOUND"}

        bad_guest = _reservation_payload()
        bad_guest["main_guest"] = {"name": ""}
        assert (await client.post("/reservations", json=bad_guest)).status_code == 422

        assert repo.reservations == {}


@pytest.mark.asyncio
async def test_admin_requires_token(booking_app):
    transport = httpx.ASGITransport(app=booking_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.put("/admin/rooms/casal/overrides/2025-01-06", json={"price": 800})
        assert r.status_code == 403
        r = await client.post("/admin/history/undo", headers={"X-Admin-Token": "wrong"})
        assert r.status_code == 403


@pytest.mark.asyncio
async def test_admin_override_undo_redo(booking_app):
    transport = httpx.ASGITransport(app=booking_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        monday = {"stay": {"check_in": "2025-01-06", "check_out": "2025-01-07"}, "rooms": [{"room_id": "casal"}]}

        r = await client.post("/admin/history/undo", headers=ADMIN)
        assert r.status_code == 409

        r = await client.put("/admin/rooms/casal/overrides/2025-01-06", json={"price": 800}, headers=ADMIN)
        assert r.status_code == 200
        assert r.json() == {"ok": True, "overrides": 1}
        assert (await client.post("/quote", json=monday)).json()["total"] == 800

        r = await client.post("/admin/history/undo", headers=ADMIN)
        assert r.json() == {"ok": True, "can_undo": False, "can_redo": True}
        assert (await client.post("/quote", json=monday)).json()["total"] == 1000

        r = await client.post("/admin/history/redo", headers=ADMIN)
        assert r.json() == {"ok": True, "can_undo": True, "can_redo": False}
        assert (await client.post("/quote", json=monday)).json()["total"] == 800

        r = await client.delete("/admin/rooms/casal/overrides/2025-01-06", headers=ADMIN)
        assert r.json() == {"ok": True, "overrides": 0}

        r = await client.put("/admin/rooms/presidencial/overrides/2025-01-06", json={"price": 800}, headers=ADMIN)
        assert r.status_code == 404


@pytest.mark.asyncio
async def test_admin_bulk_overrides_reject_duplicates(booking_app):
    transport = httpx.ASGITransport(app=booking_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        rows = [{"date_iso": "2025-01-06", "price": 700}, {"date_iso": "2025-01-07", "is_closed": True}]
        r = await client.put("/admin/rooms/casal/overrides", json=rows, headers=ADMIN)
        assert r.status_code == 200
        assert r.json()["overrides"] == 2

        r = await client.put("/admin/rooms/casal/overrides", json=rows + rows[:1], headers=ADMIN)
        assert r.status_code == 422


@pytest.mark.asyncio
async def test_admin_discount_crud(booking_app):
    transport = httpx.ASGITransport(app=booking_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.put(
            "/admin/discounts/inverno15",
            json={"percentage": 15, "start_date": "2025-06-01", "end_date": "2025-06-30", "full_period_required": True},
            headers=ADMIN,
        )
        assert r.json() == {"ok": True, "code": "INVERNO15"}

        june = {"check_in": "2025-06-10", "check_out": "2025-06-12"}
        r = await client.post("/discounts/validate", json={"code": "INVERNO15", "accommodation_subtotal": 2000, "stay": june})
        assert r.json()["amount"] == 300

        r = await client.put(
            "/admin/discounts/bad", json={"percentage": 10, "start_date": "2025-06-30", "end_date": "2025-06-01"}, headers=ADMIN
        )
        assert r.status_code == 422

        assert (await client.delete("/admin/discounts/inverno15", headers=ADMIN)).status_code == 200
        assert (await client.delete("/admin/discounts/inverno15", headers=ADMIN)).status_code == 404


@pytest.mark.asyncio
async def test_metrics_endpoint(booking_app):
    transport = httpx.ASGITransport(app=booking_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        await client.post("/quote", json={"stay": WEEKDAY, "rooms": [{"room_id": "casal"}]})
        r = await client.get("/metrics")
        assert r.status_code == 200
        assert "quotes_total" in r.text


@pytest.mark.asyncio
async def test_package_quote_requires_package_dates(booking_app):
    transport = httpx.ASGITransport(app=booking_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        rooms = [{"room_id": "casal", "package_id": "romantic"}]
        r = await client.post("/quote", json={"stay": {"check_in": "2025-12-01", "check_out": "2025-12-31"}, "rooms": rooms})
        assert r.status_code == 400
        assert "covers 2025-06-01 to 2025-06-05" in r.json()["detail"]

        r = await client.post("/quote", json={"stay": {"check_in": "2025-06-01", "check_out": "2025-06-05"}, "rooms": rooms})
        assert r.status_code == 200
        assert r.json()["total"] == 3200


@pytest.mark.asyncio
async def test_public_package_and_extra_listings(booking_app):
    transport = httpx.ASGITransport(app=booking_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.get("/packages")
        assert r.status_code == 200
        assert r.json() == [
            {
                "package_id": "romantic",
                "name": "Lua de Mel Solar",
                "description": "",
                "start_iso_date": "2025-06-01",
                "end_iso_date": "2025-06-05",
                "room_ids": ["casal"],
                "room_prices": {"casal": 3200},
                "no_check_in_dates": ["2025-06-02"],
                "no_check_out_dates": [],
            }
        ]

        assert [p["package_id"] for p in (await client.get("/packages?on=2025-06-05")).json()] == ["romantic"]
        assert (await client.get("/packages?on=2025-07-01")).json() == []

        r = await client.get("/extras")
        assert r.status_code == 200
        assert r.json() == [{"extra_id": "transfer", "name": "Transfer Aeroporto", "description": "", "price": 100}]


@pytest.mark.asyncio
async def test_admin_lists_reservations_by_status(booking_app):
    transport = httpx.ASGITransport(app=booking_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        first = (await client.post("/reservations", json=_reservation_payload())).json()["id"]
        second = (await client.post("/reservations", json=_reservation_payload(extras={"transfer": 1}))).json()["id"]
        await client.post(f"/reservations/{first}/confirm")

        assert (await client.get("/admin/reservations")).status_code == 403

        r = await client.get("/admin/reservations", headers=ADMIN)
        assert r.status_code == 200
        assert [row["id"] for row in r.json()] == [second, first]

        r = await client.get("/admin/reservations", params={"status": "CONFIRMED"}, headers=ADMIN)
        assert [row["id"] for row in r.json()] == [first]

        r = await client.get("/admin/reservations", params={"status": "ARCHIVED"}, headers=ADMIN)
        assert r.status_code == 422


@pytest.mark.asyncio
async def test_admin_room_crud_keeps_overrides(booking_app):
    transport = httpx.ASGITransport(app=booking_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.put(
            "/admin/rooms/triplo", json={"name": "Quarto Triplo", "base_price": 900, "base_quantity": 1}, headers=ADMIN
        )
        assert r.json() == {"ok": True, "room_id": "triplo"}
        prices = {row["room_id"]: row["price"] for row in (await client.post("/availability", json={"stay": WEEKDAY})).json()["rooms"]}
        assert prices["triplo"] == 1800

        r = await client.put(
            "/admin/rooms/loft", json={"name": "LOFT Exclusivo", "base_price": 2500, "base_quantity": 1}, headers=ADMIN
        )
        assert r.status_code == 200
        rooms = {row["room_id"]: row for row in (await client.post("/availability", json={"stay": WEEKEND})).json()["rooms"]}
        # The 2025-01-04 closure survives a room edit.
        assert rooms["loft"]["available"] is False
        assert (await client.post("/quote", json={"stay": WEEKDAY, "rooms": [{"room_id": "loft"}]})).json()["total"] == 5000

        bad = {"name": "Quarto Triplo", "base_price": -1, "base_quantity": 1}
        assert (await client.put("/admin/rooms/triplo", json=bad, headers=ADMIN)).status_code == 422

        assert (await client.delete("/admin/rooms/triplo", headers=ADMIN)).json() == {"ok": True}
        assert (await client.delete("/admin/rooms/triplo", headers=ADMIN)).status_code == 404
        r = await client.post("/quote", json={"stay": WEEKDAY, "rooms": [{"room_id": "triplo"}]})
        assert r.status_code == 404

        await client.post("/admin/history/undo", headers=ADMIN)
        r = await client.post("/quote", json={"stay": WEEKDAY, "rooms": [{"room_id": "triplo"}]})
        assert r.json()["total"] == 1800


@pytest.mark.asyncio
async def test_admin_package_crud(booking_app):
    transport = httpx.ASGITransport(app=booking_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        natal = {
            "name": "Natal",
            "start_iso_date": "2025-12-20",
            "end_iso_date": "2025-12-26",
            "room_prices": {"loft": 5000},
            "no_check_in_dates": ["2025-12-24"],
        }
        r = await client.put("/admin/packages/natal", json=natal, headers=ADMIN)
        assert r.json() == {"ok": True, "package_id": "natal"}

        r = await client.get("/packages/natal/rooms/loft")
        assert r.json()["price"] == 5000
        listed = {p["package_id"]: p for p in (await client.get("/packages")).json()}
        assert listed["natal"]["no_check_in_dates"] == ["2025-12-24"]

        stay = {"check_in": "2025-12-20", "check_out": "2025-12-26"}
        r = await client.post("/quote", json={"stay": stay, "rooms": [{"room_id": "loft", "package_id": "natal"}]})
        assert r.json()["total"] == 5000

        r = await client.put("/admin/packages/natal", json={**natal, "room_prices": {"presidencial": 1}}, headers=ADMIN)
        assert r.status_code == 422
        assert "presidencial" in r.json()["detail"]

        inverted = {**natal, "start_iso_date": "2025-12-26", "end_iso_date": "2025-12-20"}
        assert (await client.put("/admin/packages/natal", json=inverted, headers=ADMIN)).status_code == 422

        assert (await client.delete("/admin/packages/natal", headers=ADMIN)).status_code == 200
        assert (await client.delete("/admin/packages/natal", headers=ADMIN)).status_code == 404
        assert (await client.get("/packages/natal/rooms/loft")).status_code == 404


@pytest.mark.asyncio
async def test_admin_extra_crud(booking_app):
    transport = httpx.ASGITransport(app=booking_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.put("/admin/extras/spa", json={"name": "Day Spa", "price": 250}, headers=ADMIN)
        assert r.json() == {"ok": True, "extra_id": "spa"}
        assert {e["extra_id"] for e in (await client.get("/extras")).json()} == {"transfer", "spa"}

        r = await client.post("/quote", json={"stay": WEEKDAY, "rooms": [{"room_id": "casal"}], "extras": {"spa": 2}})
        assert r.json()["extras_total"] == 500

        r = await client.put("/admin/extras/spa", json={"name": "Day Spa", "price": 250, "active": False}, headers=ADMIN)
        assert r.status_code == 200
        assert [e["extra_id"] for e in (await client.get("/extras")).json()] == ["transfer"]

        assert (await client.delete("/admin/extras/spa", headers=ADMIN)).status_code == 200
        assert (await client.delete("/admin/extras/spa", headers=ADMIN)).status_code == 404


@pytest.mark.asyncio
async def test_failed_admin_write_is_not_undoable(booking_app, repo, monkeypatch):
    async def _unavailable(discount):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(repo, "upsert_discount", _unavailable)
    transport = httpx.ASGITransport(app=booking_app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.put("/admin/discounts/inverno15", json={"percentage": 15}, headers=ADMIN)
        assert r.status_code == 500

        r = await client.post("/admin/history/undo", headers=ADMIN)
        assert r.status_code == 409
