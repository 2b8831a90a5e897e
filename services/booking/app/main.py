from __future__ import annotations

from datetime import date
from uuid import UUID

import sqlalchemy as sa
from fastapi import Depends, FastAPI, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from services.booking.app import observability
from services.booking.app.availability import list_offers
from services.booking.app.checkout import (
    Cart,
    CartRoom,
    CheckoutError,
    ExtraNotFound,
    PackageNotFound,
    Quote,
    RoomNotFound,
    RoomUnavailable,
    build_quote,
)
from services.booking.app.db import ENGINE, get_session
from services.booking.app.discounts import (
    DiscountResult,
    apply_discount,
    live_packages,
    normalize_code,
    offered_rooms,
    package_stay,
    select_package,
)
from services.booking.app.history import CatalogHistory
from services.booking.app.logging import configure_logging, logger
from services.booking.app.models import Catalog, DiscountCode, ExtraService, Package, Room, RoomDateOverride
from services.booking.app.overrides import with_override, with_overrides, without_override
from services.booking.app.repository import BookingRepository, get_repository
from services.booking.app.reservations import (
    InvalidTransition,
    Reservation,
    ReservationStatus,
    new_reservation,
    transition,
)
from services.booking.app.schemas import (
    AvailabilityRequest,
    AvailabilityResponse,
    DiscountIn,
    DiscountOut,
    DiscountValidateRequest,
    ExtraIn,
    ExtraLineOut,
    ExtraOut,
    HistoryResponse,
    OverrideIn,
    PackageIn,
    PackageOut,
    PackagePriceResponse,
    QuoteRequest,
    QuoteResponse,
    ReservationRequest,
    RoomAvailability,
    RoomIn,
    RoomLineOut,
    SelectionRequest,
    SelectionResponse,
)
from services.booking.app.selection import validate_selection
from services.booking.app.settings import SETTINGS


app = FastAPI(title="Hotel Booking API", version="0.1.0")
configure_logging(SETTINGS.log_level)
observability.setup_tracing(app, service_name="booking", otlp_endpoint=SETTINGS.otlp_endpoint)
observability.add_metrics_middleware(app, service_name="booking")
observability.instrument_sqlalchemy(ENGINE)

RULES = SETTINGS.pricing_rules()
# Admin undo/redo lives with the process, never inside the engine.
HISTORY = CatalogHistory(depth=SETTINGS.history_depth)


async def get_catalog(repo: BookingRepository = Depends(get_repository)) -> Catalog:
    return await repo.load_catalog()


def _require_admin(x_admin_token: str | None) -> None:
    if not x_admin_token or x_admin_token != SETTINGS.admin_token:
        raise HTTPException(status_code=403, detail="forbidden")


def _checkpoint(catalog: Catalog, kind: str) -> None:
    HISTORY.checkpoint(catalog)
    observability.record_admin_edit(kind)


def _checkout_http_error(e: CheckoutError) -> HTTPException:
    if isinstance(e, (RoomNotFound, PackageNotFound, ExtraNotFound)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, RoomUnavailable):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def _cart(req: QuoteRequest) -> Cart:
    return Cart(
        stay=req.stay,
        rooms=[CartRoom(room_id=r.room_id, package_id=r.package_id) for r in req.rooms],
        extras=dict(req.extras),
        discount_code=req.discount_code,
    )


def _discount_out(d: DiscountResult) -> DiscountOut:
    return DiscountOut(
        accepted=d.accepted,
        amount=d.amount,
        code=d.code,
        percentage=float(d.percentage) if d.percentage is not None else None,
        reason=str(d.reason) if d.reason else None,
    )


def _quote_out(q: Quote) -> QuoteResponse:
    return QuoteResponse(
        check_in=q.stay.check_in,
        check_out=q.stay.check_out,
        nights=q.nights,
        rooms=[
            RoomLineOut(room_id=r.room_id, name=r.name, package_id=r.package_id, price=r.price_snapshot)
            for r in q.rooms
        ],
        extras=[
            ExtraLineOut(
                extra_id=e.extra_id,
                name=e.name,
                quantity=e.quantity,
                unit_price=float(e.unit_price),
                line_total=float(e.line_total),
            )
            for e in q.extras
        ],
        accommodation_subtotal=q.accommodation_subtotal,
        discount=_discount_out(q.discount) if q.discount else None,
        accommodation_total=q.accommodation_total,
        extras_total=float(q.extras_total),
        total=float(q.total),
        currency=SETTINGS.currency,
    )


def _quote(req: QuoteRequest, catalog: Catalog) -> Quote:
    try:
        quote = build_quote(_cart(req), catalog, RULES, max_rooms=SETTINGS.max_rooms_per_cart)
    except CheckoutError as e:
        observability.record_quote("rejected")
        logger.info("quote_rejected", error=type(e).__name__, detail=str(e))
        raise _checkout_http_error(e) from e
    rejected = quote.discount is not None and not quote.discount.accepted
    observability.record_quote("ok", str(quote.discount.reason) if rejected else None)
    logger.info(
        "quote_built",
        rooms=len(quote.rooms),
        nights=quote.nights,
        accommodation_subtotal=quote.accommodation_subtotal,
        total=str(quote.total),
    )
    return quote


@app.get("/healthz")
async def healthz(session: AsyncSession = Depends(get_session)) -> dict:
    await session.execute(sa.text("SELECT 1"))
    return {"ok": True}


@app.post("/availability", response_model=AvailabilityResponse)
async def availability(req: AvailabilityRequest, catalog: Catalog = Depends(get_catalog)) -> AvailabilityResponse:
    offers = list_offers(catalog.rooms, req.stay, RULES)
    return AvailabilityResponse(
        rooms=[RoomAvailability(room_id=o.room.id, name=o.room.name, available=o.available, price=o.price) for o in offers],
        currency=SETTINGS.currency,
    )


@app.post("/calendar/validate", response_model=SelectionResponse)
async def calendar_validate(req: SelectionRequest, catalog: Catalog = Depends(get_catalog)) -> SelectionResponse:
    rooms = [r for r in (catalog.room(rid) for rid in req.room_ids) if r is not None]
    violations = validate_selection(req.stay, catalog.packages, rooms, min_stay=SETTINGS.min_stay)
    return SelectionResponse(ok=not violations, violations=[str(v) for v in violations])


@app.post("/quote", response_model=QuoteResponse)
async def quote(req: QuoteRequest, catalog: Catalog = Depends(get_catalog)) -> QuoteResponse:
    return _quote_out(_quote(req, catalog))


@app.post("/discounts/validate", response_model=DiscountOut)
async def discounts_validate(req: DiscountValidateRequest, catalog: Catalog = Depends(get_catalog)) -> DiscountOut:
    result = apply_discount(req.code, req.accommodation_subtotal, req.stay, catalog.discount_codes)
    if not result.accepted:
        observability.record_discount_rejected(str(result.reason))
        logger.info("discount_rejected", code=result.code, reason=str(result.reason))
    return _discount_out(result)


@app.get("/packages", response_model=list[PackageOut])
async def list_packages(on: date | None = None, catalog: Catalog = Depends(get_catalog)) -> list[PackageOut]:
    """Active packages, or only those running on `on`; carries the calendar's blocked days."""
    packages = live_packages(catalog.packages, on) if on is not None else [p for p in catalog.packages if p.active]
    return [
        PackageOut(
            package_id=p.id,
            name=p.name,
            description=p.description,
            start_iso_date=p.start_iso_date,
            end_iso_date=p.end_iso_date,
            room_ids=offered_rooms(p),
            room_prices={rid: select_package(p, rid) for rid in offered_rooms(p)},
            no_check_in_dates=sorted(p.no_check_in_dates),
            no_check_out_dates=sorted(p.no_check_out_dates),
        )
        for p in packages
    ]


@app.get("/extras", response_model=list[ExtraOut])
async def list_extras(catalog: Catalog = Depends(get_catalog)) -> list[ExtraOut]:
    return [
        ExtraOut(extra_id=e.id, name=e.name, description=e.description, price=float(e.price))
        for e in catalog.extras
        if e.active
    ]


@app.get("/packages/{package_id}/rooms/{room_id}", response_model=PackagePriceResponse)
async def package_price(package_id: str, room_id: str, catalog: Catalog = Depends(get_catalog)) -> PackagePriceResponse:
    package = catalog.package(package_id)
    if package is None or not package.active:
        raise HTTPException(status_code=404, detail="package not found")
    price = select_package(package, room_id)
    if price is None:
        raise HTTPException(status_code=404, detail="room not offered in package")
    try:
        stay = package_stay(package)
    except ValueError as e:
        raise HTTPException(status_code=409, detail="package has no nights") from e
    return PackagePriceResponse(
        package_id=package.id, room_id=room_id, price=price, check_in=stay.check_in, check_out=stay.check_out
    )


@app.post("/reservations", response_model=Reservation, status_code=201)
async def create_reservation(
    req: ReservationRequest,
    repo: BookingRepository = Depends(get_repository),
) -> Reservation:
    catalog = await repo.load_catalog()
    rooms = [r for r in (catalog.room(sel.room_id) for sel in req.cart.rooms) if r is not None]
    violations = validate_selection(req.cart.stay, catalog.packages, rooms, min_stay=SETTINGS.min_stay)
    if violations:
        raise HTTPException(status_code=422, detail={"violations": [str(v) for v in violations]})

    q = _quote(req.cart, catalog)
    if q.discount is not None and not q.discount.accepted:
        raise HTTPException(status_code=400, detail={"discount_rejected": str(q.discount.reason)})

    reservation = new_reservation(
        q,
        req.main_guest,
        req.payment_method,
        additional_guests=req.additional_guests,
        observations=req.observations,
    )
    await repo.save_reservation(reservation)
    observability.record_reservation(str(reservation.status))
    logger.info(
        "reservation_created",
        reservation_id=str(reservation.id),
        nights=reservation.nights,
        total_price=str(reservation.total_price),
    )
    return reservation


@app.get("/reservations/{reservation_id}", response_model=Reservation)
async def get_reservation(reservation_id: UUID, repo: BookingRepository = Depends(get_repository)) -> Reservation:
    reservation = await repo.get_reservation(reservation_id)
    if reservation is None:
        raise HTTPException(status_code=404, detail="reservation not found")
    return reservation


async def _transition(repo: BookingRepository, reservation_id: UUID, action: str) -> Reservation:
    reservation = await repo.get_reservation(reservation_id)
    if reservation is None:
        raise HTTPException(status_code=404, detail="reservation not found")
    try:
        status = transition(reservation.status, action)  # type: ignore[arg-type]
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    await repo.update_reservation_status(reservation_id, status)
    observability.record_reservation(str(status))
    logger.info("reservation_transition", reservation_id=str(reservation_id), action=action, status=str(status))
    return reservation.model_copy(update={"status": status})


@app.post("/reservations/{reservation_id}/confirm", response_model=Reservation)
async def confirm_reservation(reservation_id: UUID, repo: BookingRepository = Depends(get_repository)) -> Reservation:
    return await _transition(repo, reservation_id, "confirm")


@app.post("/reservations/{reservation_id}/cancel", response_model=Reservation)
async def cancel_reservation(reservation_id: UUID, repo: BookingRepository = Depends(get_repository)) -> Reservation:
    return await _transition(repo, reservation_id, "cancel")


# --- admin back-office ---
# Every edit writes first and checkpoints the pre-edit catalog only once the write succeeded.


@app.get("/admin/reservations", response_model=list[Reservation])
async def admin_list_reservations(
    status: ReservationStatus | None = None,
    x_admin_token: str | None = Header(default=None),
    repo: BookingRepository = Depends(get_repository),
) -> list[Reservation]:
    _require_admin(x_admin_token)
    return await repo.list_reservations(status)


@app.put("/admin/rooms/{room_id}")
async def admin_put_room(
    room_id: str,
    req: RoomIn,
    x_admin_token: str | None = Header(default=None),
    repo: BookingRepository = Depends(get_repository),
) -> dict:
    _require_admin(x_admin_token)
    catalog = await repo.load_catalog()
    existing = catalog.room(room_id)
    room = Room(id=room_id, **req.model_dump(), overrides=existing.overrides if existing else ())
    await repo.upsert_room(room)
    _checkpoint(catalog, "room_put")
    logger.info("room_saved", room_id=room_id, created=existing is None)
    return {"ok": True, "room_id": room_id}


@app.delete("/admin/rooms/{room_id}")
async def admin_delete_room(
    room_id: str,
    x_admin_token: str | None = Header(default=None),
    repo: BookingRepository = Depends(get_repository),
) -> dict:
    _require_admin(x_admin_token)
    catalog = await repo.load_catalog()
    if catalog.room(room_id) is None:
        raise HTTPException(status_code=404, detail="room not found")
    await repo.delete_room(room_id)
    _checkpoint(catalog, "room_delete")
    logger.info("room_deleted", room_id=room_id)
    return {"ok": True}


@app.put("/admin/rooms/{room_id}/overrides/{day}")
async def admin_put_override(
    room_id: str,
    day: date,
    req: OverrideIn,
    x_admin_token: str | None = Header(default=None),
    repo: BookingRepository = Depends(get_repository),
) -> dict:
    _require_admin(x_admin_token)
    catalog = await repo.load_catalog()
    room = catalog.room(room_id)
    if room is None:
        raise HTTPException(status_code=404, detail="room not found")

    override = RoomDateOverride(date_iso=day, **req.model_dump())
    updated = with_override(room, override)
    if override.is_empty():
        await repo.delete_override(room_id, day)
    else:
        await repo.upsert_override(room_id, override)
    _checkpoint(catalog, "override_put")
    logger.info("override_saved", room_id=room_id, day=day.isoformat(), removed=override.is_empty())
    return {"ok": True, "overrides": len(updated.overrides)}


@app.delete("/admin/rooms/{room_id}/overrides/{day}")
async def admin_delete_override(
    room_id: str,
    day: date,
    x_admin_token: str | None = Header(default=None),
    repo: BookingRepository = Depends(get_repository),
) -> dict:
    _require_admin(x_admin_token)
    catalog = await repo.load_catalog()
    room = catalog.room(room_id)
    if room is None:
        raise HTTPException(status_code=404, detail="room not found")

    updated = without_override(room, day)
    await repo.delete_override(room_id, day)
    _checkpoint(catalog, "override_delete")
    logger.info("override_deleted", room_id=room_id, day=day.isoformat())
    return {"ok": True, "overrides": len(updated.overrides)}


@app.put("/admin/rooms/{room_id}/overrides")
async def admin_replace_overrides(
    room_id: str,
    req: list[RoomDateOverride],
    x_admin_token: str | None = Header(default=None),
    repo: BookingRepository = Depends(get_repository),
) -> dict:
    _require_admin(x_admin_token)
    catalog = await repo.load_catalog()
    room = catalog.room(room_id)
    if room is None:
        raise HTTPException(status_code=404, detail="room not found")
    try:
        updated = with_overrides(room, req)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    await repo.replace_catalog(catalog.replace_room(updated))
    _checkpoint(catalog, "overrides_replace")
    logger.info("overrides_replaced", room_id=room_id, overrides=len(updated.overrides))
    return {"ok": True, "overrides": len(updated.overrides)}


@app.put("/admin/packages/{package_id}")
async def admin_put_package(
    package_id: str,
    req: PackageIn,
    x_admin_token: str | None = Header(default=None),
    repo: BookingRepository = Depends(get_repository),
) -> dict:
    _require_admin(x_admin_token)
    catalog = await repo.load_catalog()
    unknown = sorted(rid for rid in req.room_prices if catalog.room(rid) is None)
    if unknown:
        raise HTTPException(status_code=422, detail=f"unknown rooms: {', '.join(unknown)}")
    package = Package(id=package_id, **req.model_dump())
    await repo.upsert_package(package)
    _checkpoint(catalog, "package_put")
    logger.info("package_saved", package_id=package_id, rooms=len(package.room_prices))
    return {"ok": True, "package_id": package_id}


@app.delete("/admin/packages/{package_id}")
async def admin_delete_package(
    package_id: str,
    x_admin_token: str | None = Header(default=None),
    repo: BookingRepository = Depends(get_repository),
) -> dict:
    _require_admin(x_admin_token)
    catalog = await repo.load_catalog()
    if catalog.package(package_id) is None:
        raise HTTPException(status_code=404, detail="package not found")
    await repo.delete_package(package_id)
    _checkpoint(catalog, "package_delete")
    logger.info("package_deleted", package_id=package_id)
    return {"ok": True}


@app.put("/admin/extras/{extra_id}")
async def admin_put_extra(
    extra_id: str,
    req: ExtraIn,
    x_admin_token: str | None = Header(default=None),
    repo: BookingRepository = Depends(get_repository),
) -> dict:
    _require_admin(x_admin_token)
    catalog = await repo.load_catalog()
    extra = ExtraService(id=extra_id, **req.model_dump())
    await repo.upsert_extra(extra)
    _checkpoint(catalog, "extra_put")
    logger.info("extra_saved", extra_id=extra_id)
    return {"ok": True, "extra_id": extra_id}


@app.delete("/admin/extras/{extra_id}")
async def admin_delete_extra(
    extra_id: str,
    x_admin_token: str | None = Header(default=None),
    repo: BookingRepository = Depends(get_repository),
) -> dict:
    _require_admin(x_admin_token)
    catalog = await repo.load_catalog()
    if catalog.extra(extra_id) is None:
        raise HTTPException(status_code=404, detail="extra not found")
    await repo.delete_extra(extra_id)
    _checkpoint(catalog, "extra_delete")
    logger.info("extra_deleted", extra_id=extra_id)
    return {"ok": True}


@app.put("/admin/discounts/{code}")
async def admin_put_discount(
    code: str,
    req: DiscountIn,
    x_admin_token: str | None = Header(default=None),
    repo: BookingRepository = Depends(get_repository),
) -> dict:
    _require_admin(x_admin_token)
    catalog = await repo.load_catalog()
    discount = DiscountCode(code=code, **req.model_dump())
    await repo.upsert_discount(discount)
    _checkpoint(catalog, "discount_put")
    logger.info("discount_saved", code=discount.code)
    return {"ok": True, "code": discount.code}


@app.delete("/admin/discounts/{code}")
async def admin_delete_discount(
    code: str,
    x_admin_token: str | None = Header(default=None),
    repo: BookingRepository = Depends(get_repository),
) -> dict:
    _require_admin(x_admin_token)
    catalog = await repo.load_catalog()
    normalized = normalize_code(code)
    if not any(d.code == normalized for d in catalog.discount_codes):
        raise HTTPException(status_code=404, detail="discount not found")
    await repo.delete_discount(normalized)
    _checkpoint(catalog, "discount_delete")
    logger.info("discount_deleted", code=normalized)
    return {"ok": True}


@app.post("/admin/history/undo", response_model=HistoryResponse)
async def admin_undo(
    x_admin_token: str | None = Header(default=None),
    repo: BookingRepository = Depends(get_repository),
) -> HistoryResponse:
    _require_admin(x_admin_token)
    previous = HISTORY.undo(await repo.load_catalog())
    if previous is None:
        raise HTTPException(status_code=409, detail="nothing to undo")
    await repo.replace_catalog(previous)
    observability.record_admin_edit("undo")
    logger.info("catalog_undo")
    return HistoryResponse(ok=True, can_undo=HISTORY.can_undo, can_redo=HISTORY.can_redo)


@app.post("/admin/history/redo", response_model=HistoryResponse)
async def admin_redo(
    x_admin_token: str | None = Header(default=None),
    repo: BookingRepository = Depends(get_repository),
) -> HistoryResponse:
    _require_admin(x_admin_token)
    nxt = HISTORY.redo(await repo.load_catalog())
    if nxt is None:
        raise HTTPException(status_code=409, detail="nothing to redo")
    await repo.replace_catalog(nxt)
    observability.record_admin_edit("redo")
    logger.info("catalog_redo")
    return HistoryResponse(ok=True, can_undo=HISTORY.can_undo, can_redo=HISTORY.can_redo)
