"""Logging and metrics helpers."""

from catalog_search.utils.logging import configure_logging, get_logger, tenant_log_context

__all__ = [
    "configure_logging",
    "get_logger",
    "tenant_log_context",
]
