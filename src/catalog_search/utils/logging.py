"""Structured logging configuration using structlog."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.contextvars import bound_contextvars, merge_contextvars

# Client libraries that log every request at INFO.
QUIET_LOGGERS = ("aiokafka", "elastic_transport", "httpx")


def configure_logging(level: str = "INFO", json_format: bool = True) -> None:
    """Configure structured logging for the application.

    structlog loggers and plain ``logging`` loggers share one root handler,
    so both render the same way and both carry the bound context
    (``tenant_id`` among others).

    Args:
        level: Log level name, case-insensitive. Unknown names fall back to INFO.
        json_format: Render JSON lines (True) or console output (False).
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    renderer: Any = (
        structlog.processors.JSONRenderer(sort_keys=True)
        if json_format
        else structlog.dev.ConsoleRenderer()
    )
    shared_processors: list[Any] = [
        merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
    ]

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                renderer,
            ],
        )
    )
    logging.basicConfig(handlers=[handler], level=log_level, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)


@contextmanager
def tenant_log_context(tenant_id: str, **kwargs: Any) -> Iterator[None]:
    """Bind ``tenant_id`` and any extra keys to every log line inside the block.

    The binding lives in a context variable, so concurrent tasks for different
    tenants never see each other's values.
    """
    with bound_contextvars(tenant_id=tenant_id, **kwargs):
        yield
