"""Write strategies used to send document batches to the search engine."""

import logging
from abc import ABC, abstractmethod

from catalog_search.clients.search_engine import SearchEngineClient
from catalog_search.metadata import ResourceDescriptionCatalog
from catalog_search.models import IndexAction, OperationResult, SearchDocumentWrite
from catalog_search.utils.metrics import (
    BULK_WRITE_LATENCY,
    record_bulk_write_failure,
    record_indexed_documents,
)

logger = logging.getLogger(__name__)

PRIMARY_REPOSITORY = "primary"
CHUNKED_REPOSITORY = "chunked"


class ResourceRepository(ABC):
    """Writes a batch of documents belonging to one resource."""

    def __init__(self, engine: SearchEngineClient) -> None:
        self.engine = engine

    @abstractmethod
    async def index_resources(self, writes: list[SearchDocumentWrite]) -> OperationResult: ...

    async def _bulk(self, writes: list[SearchDocumentWrite]) -> OperationResult:
        resource = writes[0].resource_type
        with BULK_WRITE_LATENCY.labels(resource=resource).time():
            result = await self.engine.bulk_write(writes)

        if result.is_success:
            deletes = sum(1 for w in writes if w.action is IndexAction.DELETE)
            record_indexed_documents(resource, IndexAction.INDEX.value, len(writes) - deletes)
            record_indexed_documents(resource, IndexAction.DELETE.value, deletes)
        else:
            record_bulk_write_failure(resource)
            logger.error(f"Bulk write to '{writes[0].index}' failed: {result.error_message}")
        return result


class PrimaryResourceRepository(ResourceRepository):
    """Sends the whole batch in a single bulk request."""

    async def index_resources(self, writes: list[SearchDocumentWrite]) -> OperationResult:
        if not writes:
            return OperationResult.success()
        return await self._bulk(writes)


class ChunkedResourceRepository(ResourceRepository):
    """Sends the batch in bulk requests of at most ``chunk_size`` writes.

    Used for resources whose batches fan out into many small documents.
    """

    def __init__(self, engine: SearchEngineClient, chunk_size: int) -> None:
        super().__init__(engine)
        self.chunk_size = chunk_size

    async def index_resources(self, writes: list[SearchDocumentWrite]) -> OperationResult:
        if not writes:
            return OperationResult.success()
        results = [
            await self._bulk(writes[start : start + self.chunk_size])
            for start in range(0, len(writes), self.chunk_size)
        ]
        return OperationResult.merge(results)


def build_repository_registry(
    catalog: ResourceDescriptionCatalog,
    engine: SearchEngineClient,
    chunk_size: int,
) -> dict[str, ResourceRepository]:
    """Resolve the write strategy of every catalog resource.

    Raises:
        ValueError: If a resource names an unknown write strategy.
    """
    strategies: dict[str, ResourceRepository] = {
        PRIMARY_REPOSITORY: PrimaryResourceRepository(engine),
        CHUNKED_REPOSITORY: ChunkedResourceRepository(engine, chunk_size),
    }

    registry: dict[str, ResourceRepository] = {}
    for name in catalog.names():
        strategy = catalog.get(name).repository_name
        if strategy not in strategies:
            raise ValueError(f"Unknown repository '{strategy}' configured for resource '{name}'")
        registry[name] = strategies[strategy]
    return registry
