from __future__ import annotations

import logging
import sys

import structlog


def configure_logging(log_level: str, *, service: str = "booking") -> None:
    """JSON lines on stdout; money (Decimal) and dates render via str()."""
    level = log_level.upper()
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    structlog.contextvars.clear_contextvars()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.CallsiteParameterAdder([structlog.processors.CallsiteParameter.FUNC_NAME]),
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(default=str, sort_keys=True),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=service)


logger = structlog.get_logger()
