"""Tests for the indexing pipeline entry points."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from conftest import CENTRAL_TENANT, FakeSearchEngine, make_event

from catalog_search.clients.sources import ResourceFetcher
from catalog_search.consortium import StaticTenantProvider
from catalog_search.consortium.aggregator import ConsortiumAggregator
from catalog_search.exceptions import IndexRecreationInProgressError
from catalog_search.indexing import DocumentWriter, IndexLifecycleManager, SearchDocumentConverter
from catalog_search.indexing.service import ResourceService
from catalog_search.metadata import ResourceDescriptionCatalog
from catalog_search.models import ResourceEventType


@pytest.fixture
def fetcher() -> MagicMock:
    """Fetcher returning the stored record for every event."""
    mock = MagicMock(spec=ResourceFetcher)

    async def fetch_by_ids(events):
        return [
            e if e.is_delete else e.model_copy(update={"new_data": {"id": e.id, "title": "stored"}})
            for e in events
        ]

    mock.fetch_by_ids = AsyncMock(side_effect=fetch_by_ids)
    return mock


class StorageFetcher(ResourceFetcher):
    """Fetcher backed by a dict of stored records, deleting events of missing ones."""

    def __init__(self, records: dict[str, dict]) -> None:
        self.records = records

    async def fetch_by_ids(self, events):
        result = []
        for event in events:
            if event.is_delete:
                result.append(event)
            elif event.id in self.records:
                result.append(event.model_copy(update={"new_data": self.records[event.id]}))
            else:
                result.append(
                    event.model_copy(update={"type": ResourceEventType.DELETE, "new_data": None})
                )
        return result


@pytest.fixture
def producer() -> MagicMock:
    mock = MagicMock()
    mock.send = AsyncMock()
    return mock


@pytest.fixture
def service(
    catalog: ResourceDescriptionCatalog,
    tenants: StaticTenantProvider,
    writer: DocumentWriter,
    aggregator: ConsortiumAggregator,
    fetcher: MagicMock,
    producer: MagicMock,
) -> ResourceService:
    return ResourceService(catalog, tenants, writer, aggregator, fetcher=fetcher, producer=producer)


class TestIndexResources:
    """Tests for ResourceService.index_resources."""

    async def test_empty(self, service: ResourceService, engine: FakeSearchEngine) -> None:
        assert (await service.index_resources([])).is_success
        assert (await service.index_resources(None)).is_success
        assert engine.calls == []

    async def test_writes_documents(
        self,
        service: ResourceService,
        index_manager: IndexLifecycleManager,
        engine: FakeSearchEngine,
    ) -> None:
        await index_manager.create_index("authority", "diku")

        result = await service.index_resources(
            [
                make_event("authority", "a1", new={"heading": "one"}),
                make_event("authority", "a2", new={"heading": "two"}),
                make_event("authority", "a1", new={"heading": "one, revised"}),
            ]
        )

        assert result.is_success
        docs = engine.docs("authority_diku")
        assert set(docs) == {"a1", "a2"}
        assert json.loads(docs["a1"])["heading"] == "one, revised"

    async def test_delete(
        self,
        service: ResourceService,
        index_manager: IndexLifecycleManager,
        engine: FakeSearchEngine,
    ) -> None:
        await index_manager.create_index("authority", "diku")
        await service.index_resources([make_event("authority", "a1", new={})])

        await service.index_resources(
            [make_event("authority", "a1", type=ResourceEventType.DELETE)]
        )

        assert engine.docs("authority_diku") == {}

    async def test_recreation_in_progress_propagates(
        self, service: ResourceService, index_manager: IndexLifecycleManager
    ) -> None:
        """Test writes during recreation raise so the caller can retry."""
        await index_manager.create_index("authority", "diku")
        index_manager._recreating.add("authority_diku")

        with pytest.raises(IndexRecreationInProgressError):
            await service.index_resources([make_event("authority", "a1", new={})])

    async def test_member_shared_resource_aggregated(
        self,
        service: ResourceService,
        index_manager: IndexLifecycleManager,
        engine: FakeSearchEngine,
    ) -> None:
        """Test a member's shared record lands in the central index only."""
        await index_manager.create_index("linked_data_work", CENTRAL_TENANT)
        await index_manager.create_index("linked_data_work", "college")

        result = await service.index_resources(
            [make_event("linked_data_work", "w1", tenant="college", new={"label": "w"})]
        )

        assert result.is_success
        assert json.loads(engine.docs(f"linked_data_work_{CENTRAL_TENANT}")["w1"])["tenantId"] == (
            "college"
        )
        assert engine.docs("linked_data_work_college") == {}

    async def test_member_local_resource_written_locally(
        self,
        service: ResourceService,
        index_manager: IndexLifecycleManager,
        engine: FakeSearchEngine,
    ) -> None:
        await index_manager.create_index("authority", "college")
        await service.index_resources([make_event("authority", "a1", tenant="college", new={})])
        assert set(engine.docs("authority_college")) == {"a1"}

    async def test_delete_removes_contributed_documents(
        self,
        service: ResourceService,
        index_manager: IndexLifecycleManager,
        engine: FakeSearchEngine,
    ) -> None:
        """Test deleting an instance also deletes the documents it contributed."""
        await index_manager.create_index("instance", "diku")
        await index_manager.create_index("instance_contributor", "diku")
        data = {"title": "t", "contributors": [{"name": "Twain, Mark"}]}
        await service.index_resources(
            [make_event("instance", "i1", type=ResourceEventType.CREATE, new=data)]
        )
        assert len(engine.docs("instance_contributor_diku")) == 1

        result = await service.index_resources(
            [make_event("instance", "i1", type=ResourceEventType.DELETE, old=data)]
        )

        assert result.is_success
        assert engine.docs("instance_diku") == {}
        assert engine.docs("instance_contributor_diku") == {}


class TestIndexInstancesById:
    """Tests for ResourceService.index_instances_by_id."""

    async def test_refetches_records(
        self,
        service: ResourceService,
        fetcher: MagicMock,
        index_manager: IndexLifecycleManager,
        engine: FakeSearchEngine,
    ) -> None:
        """Test an item change rebuilds the instance from its stored record."""
        await index_manager.create_index("instance", "diku")

        result = await service.index_instances_by_id(
            [make_event("item", "it1", new={"instanceId": "i1"})]
        )

        assert result.is_success
        [consolidated] = fetcher.fetch_by_ids.await_args.args[0]
        assert (consolidated.resource_type, consolidated.id) == ("instance", "i1")
        assert json.loads(engine.docs("instance_diku")["i1"])["title"] == "stored"

    async def test_publishes_contributing_events(
        self,
        service: ResourceService,
        producer: MagicMock,
        index_manager: IndexLifecycleManager,
    ) -> None:
        await index_manager.create_index("instance", "diku")
        instance_event = make_event("instance", "i1", new={"contributors": [{"name": "A"}]})
        item_event = make_event("item", "it1", new={"instanceId": "i1"})

        await service.index_instances_by_id([instance_event, item_event])

        producer.send.assert_awaited_once_with([instance_event])

    async def test_no_producer_or_fetcher(
        self,
        catalog: ResourceDescriptionCatalog,
        tenants: StaticTenantProvider,
        writer: DocumentWriter,
        aggregator: ConsortiumAggregator,
        index_manager: IndexLifecycleManager,
        engine: FakeSearchEngine,
    ) -> None:
        await index_manager.create_index("instance", "diku")
        service = ResourceService(catalog, tenants, writer, aggregator)

        result = await service.index_instances_by_id(
            [make_event("instance", "i1", new={"title": "raw"})]
        )

        assert result.is_success
        assert json.loads(engine.docs("instance_diku")["i1"])["title"] == "raw"

    @pytest.mark.parametrize("delete_first", [True, False])
    async def test_instance_delete_with_child_delete(
        self,
        catalog: ResourceDescriptionCatalog,
        tenants: StaticTenantProvider,
        writer: DocumentWriter,
        aggregator: ConsortiumAggregator,
        index_manager: IndexLifecycleManager,
        engine: FakeSearchEngine,
        delete_first: bool,
    ) -> None:
        """Test deleting an instance together with its holdings removes the document."""
        await index_manager.create_index("instance", "diku")
        await writer.write(
            SearchDocumentConverter(catalog).convert([make_event("instance", "i1", new={})])
        )
        service = ResourceService(catalog, tenants, writer, aggregator, fetcher=StorageFetcher({}))
        events = [
            make_event("instance", "i1", type=ResourceEventType.DELETE),
            make_event("holdings", "h1", type=ResourceEventType.DELETE, old={"instanceId": "i1"}),
        ]
        if not delete_first:
            events.reverse()

        result = await service.index_events(events)

        assert result.is_success
        assert engine.docs("instance_diku") == {}

    async def test_missing_record_deletes_document(
        self,
        catalog: ResourceDescriptionCatalog,
        tenants: StaticTenantProvider,
        writer: DocumentWriter,
        aggregator: ConsortiumAggregator,
        index_manager: IndexLifecycleManager,
        engine: FakeSearchEngine,
    ) -> None:
        """Test an item change whose instance is gone from storage removes the document."""
        await index_manager.create_index("instance", "diku")
        fetcher = StorageFetcher({"i1": {"title": "stored"}})
        service = ResourceService(catalog, tenants, writer, aggregator, fetcher=fetcher)
        await service.index_instances_by_id([make_event("instance", "i1", new={})])
        assert set(engine.docs("instance_diku")) == {"i1"}

        del fetcher.records["i1"]
        result = await service.index_instances_by_id(
            [make_event("item", "it1", new={"instanceId": "i1"})]
        )

        assert result.is_success
        assert engine.docs("instance_diku") == {}

    async def test_fetch_failure_is_error_result(
        self,
        service: ResourceService,
        fetcher: MagicMock,
        producer: MagicMock,
        index_manager: IndexLifecycleManager,
        engine: FakeSearchEngine,
    ) -> None:
        await index_manager.create_index("instance", "diku")
        fetcher.fetch_by_ids = AsyncMock(side_effect=httpx.ConnectError("okapi down"))

        result = await service.index_instances_by_id([make_event("instance", "i1", new={})])

        assert not result.is_success
        assert "okapi down" in (result.error_message or "")
        assert engine.docs("instance_diku") == {}
        producer.send.assert_not_awaited()


class TestIndexEvents:
    """Tests for ResourceService.index_events routing."""

    def test_is_instance_event(self, service: ResourceService) -> None:
        assert service.is_instance_event(make_event("holdings", "h1"))
        assert service.is_instance_event(make_event("instance", "i1"))
        assert not service.is_instance_event(make_event("authority", "a1"))
        assert not service.is_instance_event(make_event("unknown", "x"))

    async def test_routes_mixed_batch(
        self,
        service: ResourceService,
        fetcher: MagicMock,
        index_manager: IndexLifecycleManager,
        engine: FakeSearchEngine,
    ) -> None:
        await index_manager.create_index("instance", "diku")
        await index_manager.create_index("location", "diku")

        result = await service.index_events(
            [
                make_event("instance", "i1", new={}),
                make_event("location", "l1", new={"code": "MAIN"}),
            ]
        )

        assert result.is_success
        fetcher.fetch_by_ids.assert_awaited_once()
        assert set(engine.docs("instance_diku")) == {"i1"}
        assert json.loads(engine.docs("location_diku")["l1"])["code"] == "MAIN"

    async def test_empty(self, service: ResourceService) -> None:
        assert (await service.index_events([])).is_success
