from __future__ import annotations

import time
from collections.abc import Callable

import structlog
from fastapi import FastAPI, Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    GCCollector,
    Histogram,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor


REGISTRY = CollectorRegistry()
ProcessCollector(registry=REGISTRY)
PlatformCollector(registry=REGISTRY)
GCCollector(registry=REGISTRY)

REQUEST_SUCCESS_TOTAL = Counter(
    "request_success_total",
    "Count of non-5xx responses",
    ["service", "route", "method"],
    registry=REGISTRY,
)
REQUEST_LATENCY = Histogram(
    "request_latency_ms",
    "Request latency in milliseconds",
    ["service", "route", "method"],
    # Pricing is in-process; most of the tail is the catalog load.
    buckets=(1, 2.5, 5, 10, 25, 50, 100, 250, 500, 1000, 2500),
    registry=REGISTRY,
)

QUOTES_TOTAL = Counter("quotes_total", "Cart quotes by outcome", ["outcome"], registry=REGISTRY)
DISCOUNT_REJECTED_TOTAL = Counter(
    "discount_rejected_total", "Discount codes rejected", ["reason"], registry=REGISTRY
)
RESERVATIONS_TOTAL = Counter(
    "reservations_total", "Reservations entering a status", ["status"], registry=REGISTRY
)
ADMIN_EDITS_TOTAL = Counter("admin_edits_total", "Back-office catalog edits", ["kind"], registry=REGISTRY)


def record_quote(outcome: str, discount_reason: str | None = None) -> None:
    QUOTES_TOTAL.labels(outcome).inc()
    if discount_reason:
        DISCOUNT_REJECTED_TOTAL.labels(discount_reason).inc()


def record_discount_rejected(reason: str) -> None:
    DISCOUNT_REJECTED_TOTAL.labels(reason).inc()


def record_reservation(status: str) -> None:
    RESERVATIONS_TOTAL.labels(status).inc()


def record_admin_edit(kind: str) -> None:
    ADMIN_EDITS_TOTAL.labels(kind).inc()


def setup_tracing(app: FastAPI, service_name: str, otlp_endpoint: str | None = None) -> None:
    """
    Install a tracer provider and instrument the app.

    Spans are exported only when an OTLP endpoint is configured; otherwise they are
    created (so trace ids still reach the logs) and dropped.
    """
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    if otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint)))
    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(app, excluded_urls="metrics,healthz")


def instrument_sqlalchemy(engine) -> None:
    # Async engines are instrumented through their sync core.
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


def add_metrics_middleware(app: FastAPI, service_name: str) -> None:
    @app.middleware("http")
    async def _metrics(request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        with structlog.contextvars.bound_contextvars(method=request.method, path=request.url.path):
            resp = await call_next(request)
        # Route template, not raw path: reservation ids would explode cardinality.
        route = getattr(request.scope.get("route"), "path", None) or "unmatched"
        REQUEST_LATENCY.labels(service_name, route, request.method).observe((time.perf_counter() - start) * 1000)
        if resp.status_code < 500:
            REQUEST_SUCCESS_TOTAL.labels(service_name, route, request.method).inc()
        return resp

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        return Response(generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
