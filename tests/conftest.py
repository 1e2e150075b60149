"""Pytest configuration and shared fixtures."""

import itertools
import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from catalog_search.clients.search_engine import SearchEngineClient
from catalog_search.clients.sources import LocationSource, ReindexTrigger
from catalog_search.config import Settings
from catalog_search.exceptions import SearchEngineError
from catalog_search.consortium import StaticTenantProvider
from catalog_search.consortium.aggregator import ConsortiumAggregator
from catalog_search.indexing import (
    DocumentWriter,
    IndexLifecycleManager,
    SearchDocumentConverter,
    build_repository_registry,
)
from catalog_search.metadata import ResourceDescriptionCatalog
from catalog_search.models import (
    IndexAction,
    OperationResult,
    ReindexJob,
    ResourceEvent,
    ResourceEventType,
    SearchDocumentWrite,
)
from catalog_search.reindex import ReindexOrchestrator, TreeReindexer

CENTRAL_TENANT = "consortium"
MEMBER_TENANTS = ["college", "university"]
STANDALONE_TENANT = "diku"

MUTATIONS = {"create_index", "drop_index", "update_mappings", "update_index_settings", "bulk_write"}

LOCATION_RECORDS: dict[str, list[dict[str, Any]]] = {
    "location": [
        {"id": "loc-1", "code": "MAIN", "name": "Main stacks"},
        {"id": "loc-2", "code": "REF", "name": "Reference"},
        {"id": "loc-3", "code": "SPC", "name": "Special collections"},
    ],
    "campus": [
        {"id": "camp-1", "code": "N", "name": "North"},
        {"id": "camp-2", "code": "S", "name": "South"},
    ],
    "library": [
        {"id": "lib-1", "code": "SCI", "name": "Science"},
        {"id": "lib-2", "code": "LAW", "name": "Law"},
    ],
    "institution": [
        {"id": "inst-1", "code": "KU", "name": "Known University"},
        {"id": "inst-2", "code": "KC", "name": "Known College"},
    ],
}


class FakeSearchEngine(SearchEngineClient):
    """In-memory search engine recording every call it receives."""

    def __init__(self) -> None:
        self.indices: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str]] = []
        self.create_error: str | None = None
        self.bulk_error: str | None = None
        self.read_error: str | None = None
        self._generation = itertools.count(1)

    def _new_index(self, index: str, settings: dict[str, Any], mappings: dict[str, Any]) -> None:
        self.indices[index] = {
            "uuid": f"{index}-gen-{next(self._generation)}",
            "settings": settings,
            "mappings": mappings,
            "docs": {},
        }

    @property
    def mutations(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[0] in MUTATIONS]

    def docs(self, index: str) -> dict[str, Any]:
        return self.indices[index]["docs"]

    async def index_exists(self, index: str) -> bool:
        self.calls.append(("index_exists", index))
        if self.read_error:
            raise SearchEngineError(self.read_error)
        return index in self.indices

    async def get_documents(self, index: str, ids: list[str]) -> dict[str, dict[str, Any]]:
        self.calls.append(("get_documents", index))
        if self.read_error:
            raise SearchEngineError(self.read_error)
        docs = self.indices.get(index, {}).get("docs", {})
        return {doc_id: json.loads(docs[doc_id]) for doc_id in ids if doc_id in docs}

    async def create_index(
        self, index: str, settings: dict[str, Any], mappings: dict[str, Any]
    ) -> OperationResult:
        self.calls.append(("create_index", index))
        if self.create_error:
            return OperationResult.error(self.create_error)
        self._new_index(index, settings, mappings)
        return OperationResult.success([index])

    async def drop_index(self, index: str) -> OperationResult:
        self.calls.append(("drop_index", index))
        self.indices.pop(index, None)
        return OperationResult.success()

    async def update_mappings(self, index: str, mappings: dict[str, Any]) -> OperationResult:
        self.calls.append(("update_mappings", index))
        if index not in self.indices:
            return OperationResult.error(f"no such index [{index}]")
        self.indices[index]["mappings"] = mappings
        return OperationResult.success()

    async def update_index_settings(
        self, index: str, settings: dict[str, Any]
    ) -> OperationResult:
        self.calls.append(("update_index_settings", index))
        if index not in self.indices:
            return OperationResult.error(f"no such index [{index}]")
        self.indices[index]["settings"] = settings
        return OperationResult.success()

    async def bulk_write(self, writes: list[SearchDocumentWrite]) -> OperationResult:
        for write in writes:
            self.calls.append(("bulk_write", write.index))
        if self.bulk_error:
            return OperationResult.error(self.bulk_error)
        for write in writes:
            if write.index not in self.indices:
                self._new_index(write.index, {}, {})
            docs = self.indices[write.index]["docs"]
            if write.action is IndexAction.DELETE:
                docs.pop(write.document_id, None)
            else:
                docs[write.document_id] = write.body
        return OperationResult.success()

    async def count(self, index: str) -> int:
        if index not in self.indices:
            return 0
        return len(self.indices[index]["docs"])

    async def index_uuid(self, index: str) -> str | None:
        if index not in self.indices:
            return None
        return self.indices[index]["uuid"]


class FakeLocationSource(LocationSource):
    def __init__(self, records: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self.records = records if records is not None else LOCATION_RECORDS
        self.requests: list[tuple[str, str]] = []

    async def fetch_all(self, resource: str, tenant: str) -> list[dict[str, Any]]:
        self.requests.append((resource, tenant))
        if resource not in self.records:
            raise ValueError(f"No location endpoint for resource '{resource}'")
        return list(self.records[resource])


def make_event(
    resource_type: str | None,
    id: str | None,
    tenant: str = STANDALONE_TENANT,
    type: ResourceEventType = ResourceEventType.UPDATE,
    new: dict[str, Any] | None = None,
    old: dict[str, Any] | None = None,
    ts: int | None = None,
) -> ResourceEvent:
    """Build a resource event with sensible defaults."""
    return ResourceEvent(
        id=id,
        resource_type=resource_type,
        tenant=tenant,
        type=type,
        new_data=new,
        old_data=old,
        ts=ts,
    )


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment's .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def catalog() -> ResourceDescriptionCatalog:
    return ResourceDescriptionCatalog.default()


@pytest.fixture
def engine() -> FakeSearchEngine:
    return FakeSearchEngine()


@pytest.fixture
def tenants() -> StaticTenantProvider:
    return StaticTenantProvider(CENTRAL_TENANT, MEMBER_TENANTS)


@pytest.fixture
def index_manager(
    engine: FakeSearchEngine, catalog: ResourceDescriptionCatalog, settings: Settings
) -> IndexLifecycleManager:
    return IndexLifecycleManager(engine, catalog, settings)


@pytest.fixture
def repositories(
    engine: FakeSearchEngine, catalog: ResourceDescriptionCatalog, settings: Settings
) -> dict:
    return build_repository_registry(catalog, engine, settings.bulk_chunk_size)


@pytest.fixture
def writer(index_manager: IndexLifecycleManager, repositories: dict) -> DocumentWriter:
    return DocumentWriter(index_manager, repositories)


@pytest.fixture
def converter(catalog: ResourceDescriptionCatalog) -> SearchDocumentConverter:
    return SearchDocumentConverter(catalog)


@pytest.fixture
def aggregator(
    tenants: StaticTenantProvider,
    converter: SearchDocumentConverter,
    writer: DocumentWriter,
) -> ConsortiumAggregator:
    return ConsortiumAggregator(tenants, converter, writer)


@pytest.fixture
def location_source() -> FakeLocationSource:
    return FakeLocationSource()


@pytest.fixture
def trigger() -> MagicMock:
    """External reindex trigger accepting every submission."""
    mock = MagicMock(spec=ReindexTrigger)
    mock.submit_reindex = AsyncMock(side_effect=lambda uri, tenant: ReindexJob())
    return mock


@pytest.fixture
def orchestrator(
    catalog: ResourceDescriptionCatalog,
    index_manager: IndexLifecycleManager,
    tenants: StaticTenantProvider,
    aggregator: ConsortiumAggregator,
    trigger: MagicMock,
    location_source: FakeLocationSource,
    repositories: dict,
    settings: Settings,
) -> ReindexOrchestrator:
    return ReindexOrchestrator(
        catalog=catalog,
        index_manager=index_manager,
        tenants=tenants,
        aggregator=aggregator,
        trigger=trigger,
        tree_reindexer=TreeReindexer(location_source, index_manager, repositories),
        settings=settings,
    )
