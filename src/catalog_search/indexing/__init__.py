"""Event consolidation, document conversion and index lifecycle."""

from catalog_search.indexing.consolidator import EventConsolidator, EventFailure
from catalog_search.indexing.converter import SearchDocumentConverter, contribution_document_id
from catalog_search.indexing.index_manager import IndexLifecycleManager, normalize_refresh_interval
from catalog_search.indexing.repositories import (
    ChunkedResourceRepository,
    PrimaryResourceRepository,
    ResourceRepository,
    build_repository_registry,
)
from catalog_search.indexing.writer import DocumentWriter

__all__ = [
    "ChunkedResourceRepository",
    "DocumentWriter",
    "EventConsolidator",
    "EventFailure",
    "IndexLifecycleManager",
    "PrimaryResourceRepository",
    "ResourceRepository",
    "SearchDocumentConverter",
    "build_repository_registry",
    "contribution_document_id",
    "normalize_refresh_interval",
]
