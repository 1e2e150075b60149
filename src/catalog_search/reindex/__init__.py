"""Reindex orchestration."""

from catalog_search.reindex.locations import TreeReindexer
from catalog_search.reindex.orchestrator import ReindexOrchestrator

__all__ = ["ReindexOrchestrator", "TreeReindexer"]
