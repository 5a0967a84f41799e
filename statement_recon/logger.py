"""Structured logging for the reconciliation service.

structlog renders JSON outside debug mode and a console view in debug.
Every event carries the service name and environment; UUID and Decimal
values (tenant, statement, payment ids, amounts) are rendered as strings so
callers can log domain objects directly.
"""

import logging
import sys
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any
from uuid import UUID

import structlog
from structlog.stdlib import BoundLogger
from structlog.types import EventDict, Processor, WrappedLogger

from statement_recon.config import settings

SERVICE_NAME = "statement-recon"

# Chatty third-party loggers kept at WARNING unless debugging
_QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncio")


def _add_service_context(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("environment", settings.environment)
    return event_dict


def _stringify_domain_values(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    for key, value in event_dict.items():
        if isinstance(value, (UUID, Decimal)):
            event_dict[key] = str(value)
    return event_dict


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        _add_service_context,
        _stringify_domain_values,
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def configure_logging() -> None:
    """Route structlog and stdlib logging through one stdout handler."""
    processors = _shared_processors()
    renderer: Processor = (
        structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=processors))
    logging.basicConfig(handlers=[handler], level=logging.DEBUG if settings.debug else logging.INFO)

    if not settings.debug:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> BoundLogger:
    return structlog.get_logger(name)


@asynccontextmanager
async def async_log_timing(
    operation: str,
    logger: BoundLogger | None = None,
    level: str = "info",
    **context: Any,
) -> AsyncIterator[dict[str, Any]]:
    """Log how long an async block took.

    The yielded dict collects extra fields for the final event:

        async with async_log_timing("suggest_for_statement", logger=logger, statement_id=sid) as timing:
            ...
            timing["transactions"] = len(rows)
    """
    log = logger or get_logger(__name__)
    fields: dict[str, Any] = {}
    start = time.perf_counter()
    try:
        yield fields
    finally:
        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        getattr(log, level, log.info)(
            f"{operation} completed",
            operation=operation,
            duration_ms=duration_ms,
            **context,
            **fields,
        )


def log_exception(
    logger: BoundLogger,
    exc: BaseException,
    context: str,
    *,
    level: str = "error",
    include_traceback: bool = True,
    **extra: Any,
) -> None:
    """Log ``exc`` under ``context`` with its type and, optionally, traceback.

    Expected domain failures (a batch item rejected by the state machine)
    are logged at warning level without a traceback.
    """
    log_method = getattr(logger, level, logger.error)
    fields: dict[str, Any] = {
        "error": str(exc),
        "error_type": type(exc).__name__,
        **extra,
    }
    if include_traceback:
        log_method(context, exc_info=exc, **fields)
    else:
        log_method(context, **fields)
