"""Synchronous reindex of the location hierarchy."""

import logging

import httpx

from catalog_search.clients.sources import LocationSource
from catalog_search.consortium.tenants import index_name
from catalog_search.indexing.index_manager import IndexLifecycleManager
from catalog_search.indexing.repositories import ResourceRepository
from catalog_search.models import IndexAction, OperationResult, SearchDocumentWrite, serialize_body

logger = logging.getLogger(__name__)


class TreeReindexer:
    """Re-derives every document of a tree resource from its source of truth."""

    def __init__(
        self,
        source: LocationSource,
        index_manager: IndexLifecycleManager,
        repositories: dict[str, ResourceRepository],
    ) -> None:
        self.source = source
        self.index_manager = index_manager
        self.repositories = repositories

    async def reindex(self, tenant: str, resource: str) -> OperationResult:
        """Write every current record of ``resource`` into the tenant's index.

        Fetch failures are reported in the result, the index is left as far
        as it got and a later reindex repairs it.
        """
        index = index_name(resource, tenant)
        try:
            records = await self.source.fetch_all(resource, tenant)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to fetch {resource} records for tenant {tenant}: {e}")
            return OperationResult.error(f"Failed to fetch {resource} records: {e}")

        writes = [
            SearchDocumentWrite(
                index=index,
                resource_type=resource,
                tenant=tenant,
                document_id=str(record["id"]),
                action=IndexAction.INDEX,
                body=serialize_body({**record, "tenantId": tenant}),
            )
            for record in records
            if record.get("id") is not None
        ]
        if not writes:
            return OperationResult.success()

        async with self.index_manager.writing(index):
            result = await self.repositories[resource].index_resources(writes)
        logger.info(f"Reindexed {len(writes)} {resource} records for tenant {tenant}")
        return result
