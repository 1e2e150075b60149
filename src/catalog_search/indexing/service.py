"""Entry points of the indexing pipeline."""

import logging
from typing import Protocol

import httpx

from catalog_search.clients.sources import ResourceFetcher
from catalog_search.consortium.aggregator import ConsortiumAggregator
from catalog_search.consortium.tenants import TenantProvider, TenantRole
from catalog_search.indexing.consolidator import EventConsolidator
from catalog_search.indexing.converter import SearchDocumentConverter
from catalog_search.indexing.writer import DocumentWriter
from catalog_search.metadata import INSTANCE_RESOURCE, ResourceDescriptionCatalog
from catalog_search.models import OperationResult, ResourceEvent

logger = logging.getLogger(__name__)


class EventProducer(Protocol):
    async def send(self, events: list[ResourceEvent]) -> None: ...


class ResourceService:
    """Indexes batches of resource change events.

    The pipeline is consolidate, convert, then write. Events of
    consortium-shared resources raised by a consortium tenant are merged into
    the central tenant's documents instead of being written locally.
    """

    def __init__(
        self,
        catalog: ResourceDescriptionCatalog,
        tenants: TenantProvider,
        writer: DocumentWriter,
        aggregator: ConsortiumAggregator,
        fetcher: ResourceFetcher | None = None,
        producer: EventProducer | None = None,
    ) -> None:
        self.catalog = catalog
        self.tenants = tenants
        self.writer = writer
        self.aggregator = aggregator
        self.fetcher = fetcher
        self.producer = producer
        self.consolidator = EventConsolidator(catalog)
        self.converter = SearchDocumentConverter(catalog)

    async def index_resources(self, events: list[ResourceEvent] | None) -> OperationResult:
        """Index events whose data is the full document.

        Raises:
            IndexRecreationInProgressError: If a target index is being recreated.
        """
        if not events:
            return OperationResult.success()

        consolidated = self.consolidator.consolidate(events)
        return await self._index(consolidated)

    async def index_instances_by_id(self, events: list[ResourceEvent] | None) -> OperationResult:
        """Index instance-related events, re-reading every record from storage.

        Events of records folded into an instance (holdings, items) rebuild
        the owning instance document. Raw events of resources that contribute
        to other indexes are also published for downstream consumers.

        Raises:
            IndexRecreationInProgressError: If a target index is being recreated.
        """
        if not events:
            return OperationResult.success()

        consolidated = self.consolidator.consolidate(events)
        if self.fetcher is not None:
            try:
                consolidated = await self.fetcher.fetch_by_ids(consolidated)
            except httpx.HTTPError as e:
                logger.error(f"Failed to fetch {len(consolidated)} records: {e}")
                return OperationResult.error(f"Failed to fetch records: {e}")

        if self.producer is not None:
            contributing = [
                event
                for event in events
                if (description := self.catalog.find(event.resource_type)) is not None
                and description.contributions
            ]
            if contributing:
                await self.producer.send(contributing)

        return await self._index(consolidated)

    def is_instance_event(self, event: ResourceEvent) -> bool:
        if event.resource_type not in self.catalog:
            return False
        return self.catalog.primary_of(event.resource_type) == INSTANCE_RESOURCE

    async def index_events(self, events: list[ResourceEvent] | None) -> OperationResult:
        """Route a mixed batch to ``index_instances_by_id`` or ``index_resources``."""
        if not events:
            return OperationResult.success()

        instance_events = [e for e in events if self.is_instance_event(e)]
        other_events = [e for e in events if not self.is_instance_event(e)]
        results = []
        if instance_events:
            results.append(await self.index_instances_by_id(instance_events))
        if other_events:
            results.append(await self.index_resources(other_events))
        return OperationResult.merge(results)

    async def _index(self, events: list[ResourceEvent]) -> OperationResult:
        local: list[ResourceEvent] = []
        shared: dict[str, list[ResourceEvent]] = {}
        for event in events:
            description = self.catalog.get(event.resource_type or "")
            if (
                description.consortium_shared
                and self.tenants.role(event.tenant) is not TenantRole.STANDALONE
            ):
                shared.setdefault(event.tenant, []).append(event)
            else:
                local.append(event)

        results = []
        if local:
            results.append(await self.writer.write(self.converter.convert(local)))
        for tenant, tenant_events in shared.items():
            results.append(await self.aggregator.merge_and_write(tenant_events, tenant))
        return OperationResult.merge(results)
