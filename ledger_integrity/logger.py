"""structlog setup and the small helpers services use around it.

Every module logs through ``get_logger(__name__)``. Request middleware binds
``request_id``, ``method`` and ``path`` with ``bind_request_context`` so that
ledger, approval and reconciliation events can be traced back to the call
that caused them.
"""

import logging
import sys
import time
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from typing import Any

import structlog
from structlog.stdlib import BoundLogger
from structlog.types import Processor

from ledger_integrity.config import settings

# Libraries whose INFO output drowns ledger events
_QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncio", "httpx")


def _build_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def _select_renderer() -> Processor:
    if settings.debug:
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def configure_logging() -> None:
    """Route structlog and stdlib records through one formatter on stdout."""
    shared = _build_processors()
    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_select_renderer(),
            foreign_pre_chain=shared,
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(logging.DEBUG if settings.debug else logging.INFO)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> BoundLogger:
    return structlog.get_logger(name)


def bind_request_context(**values: Any) -> None:
    """Replace the per-request log context."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**values)


def current_request_id() -> str | None:
    return structlog.contextvars.get_contextvars().get("request_id")


# =============================================================================
# Timing
# =============================================================================


class _Timer:
    """Collects extra fields while a block runs and logs them with its duration."""

    def __init__(self, operation: str, log: BoundLogger, level: str, context: dict[str, Any]):
        self.operation = operation
        self.log = log
        self.level = level
        self.context = context
        self.fields: dict[str, Any] = {}
        self.started = time.perf_counter()

    def finish(self) -> None:
        duration_ms = round((time.perf_counter() - self.started) * 1000, 2)
        extra = dict(self.fields)
        self.fields["duration_ms"] = duration_ms
        emit = getattr(self.log, self.level, self.log.info)
        emit(
            f"{self.operation} completed",
            operation=self.operation,
            duration_ms=duration_ms,
            **self.context,
            **extra,
        )


@contextmanager
def log_timing(
    operation: str,
    logger: BoundLogger | None = None,
    level: str = "info",
    **context: Any,
) -> Iterator[dict[str, Any]]:
    """Log how long a block took, even when it raises.

    The yielded dict takes extra fields for the completion event and receives
    ``duration_ms`` afterwards::

        with log_timing("batch_auto_match", logger=logger, bank_count=3) as timing:
            result = ...
            timing["auto_matched"] = result.statistics.auto_matched
    """
    timer = _Timer(operation, logger or get_logger(__name__), level, context)
    try:
        yield timer.fields
    finally:
        timer.finish()


@asynccontextmanager
async def async_log_timing(
    operation: str,
    logger: BoundLogger | None = None,
    level: str = "info",
    **context: Any,
) -> AsyncIterator[dict[str, Any]]:
    """``log_timing`` for blocks that await, such as year-end closing."""
    timer = _Timer(operation, logger or get_logger(__name__), level, context)
    try:
        yield timer.fields
    finally:
        timer.finish()


# =============================================================================
# Exceptions
# =============================================================================


def log_exception(
    logger: BoundLogger,
    exc: BaseException,
    context: str,
    *,
    level: str = "error",
    include_traceback: bool = True,
    **extra: Any,
) -> None:
    """Log ``exc`` under the message ``context`` with its type and module.

    Pass ``include_traceback=False`` for expected failures, such as a database
    that is down during a health check.
    """
    emit = getattr(logger, level, logger.error)
    fields: dict[str, Any] = {
        "error": str(exc),
        "error_type": type(exc).__name__,
        "error_module": type(exc).__module__,
        **extra,
    }
    if include_traceback:
        fields["exc_info"] = exc
    emit(context, **fields)
