"""Routing of converted document batches to their write strategies."""

import logging

from catalog_search.exceptions import SearchEngineError
from catalog_search.indexing.index_manager import IndexLifecycleManager
from catalog_search.indexing.repositories import ResourceRepository
from catalog_search.models import OperationResult, SearchDocumentWrite

logger = logging.getLogger(__name__)


class DocumentWriter:
    """Writes per-resource document batches.

    Writes aimed at an index that does not exist are skipped. Writes aimed at
    an index being recreated raise ``IndexRecreationInProgressError`` before
    anything is sent, and so does a write that a recreation overlapped, once
    it is done. Either way the caller retries the whole batch.
    """

    def __init__(
        self,
        index_manager: IndexLifecycleManager,
        repositories: dict[str, ResourceRepository],
    ) -> None:
        self.index_manager = index_manager
        self.repositories = repositories

    async def write(self, batches: dict[str, list[SearchDocumentWrite]]) -> OperationResult:
        grouped: list[tuple[str, str, list[SearchDocumentWrite]]] = []
        for resource, writes in batches.items():
            by_index: dict[str, list[SearchDocumentWrite]] = {}
            for write in writes:
                by_index.setdefault(write.index, []).append(write)
            grouped.extend((resource, index, w) for index, w in by_index.items())

        for _, index, _ in grouped:
            self.index_manager.ensure_writable(index)

        results = []
        for resource, index, writes in grouped:
            repository = self.repositories.get(resource)
            if repository is None:
                results.append(OperationResult.error(f"No repository for resource '{resource}'"))
                continue
            async with self.index_manager.writing(index):
                results.append(await self._write_index(repository, index, writes))
        return OperationResult.merge(results)

    async def _write_index(
        self, repository: ResourceRepository, index: str, writes: list[SearchDocumentWrite]
    ) -> OperationResult:
        try:
            if not await self.index_manager.exists(index):
                logger.warning(f"Index '{index}' does not exist, skipping {len(writes)} writes")
                return OperationResult.success()
        except SearchEngineError as e:
            return OperationResult.error(str(e))
        return await repository.index_resources(writes)
