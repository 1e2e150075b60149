"""HTTP API for index administration."""

from catalog_search.api.errors import register_exception_handlers
from catalog_search.api.router import router

__all__ = ["register_exception_handlers", "router"]
