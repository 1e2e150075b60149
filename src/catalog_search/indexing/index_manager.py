"""Search index lifecycle management."""

import asyncio
import copy
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from catalog_search.clients.search_engine import SearchEngineClient
from catalog_search.config import Settings
from catalog_search.consortium.tenants import index_name
from catalog_search.exceptions import (
    IndexRecreationInProgressError,
    RequestValidationError,
    SearchEngineError,
)
from catalog_search.metadata import ResourceDescription, ResourceDescriptionCatalog
from catalog_search.models import IndexDynamicSettings, IndexSettings, OperationResult
from catalog_search.utils.metrics import record_index_operation

logger = logging.getLogger(__name__)

CREATE_INDEX_ERROR = (
    "Index cannot be created for the resource because resource description is not found."
)
UPDATE_MAPPINGS_ERROR = "Mappings cannot be updated, resource name is invalid."
UPDATE_SETTINGS_ERROR = "Index Settings cannot be updated, resource name is invalid."


def normalize_refresh_interval(value: int | None, default: str = "1s") -> str:
    """Render a refresh interval in seconds as an engine setting.

    Unset or 0 selects the default, a negative value is passed through as-is
    (the engine's "disabled" sentinel) and a positive value N becomes "Ns".

    Example:
            >>> normalize_refresh_interval(-1)
            '-1'
            >>> normalize_refresh_interval(5)
            '5s'
    """
    if not value:
        return default
    if value < 0:
        return str(value)
    return f"{value}s"


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class IndexLifecycleManager:
    """Creates, drops, recreates and updates per-tenant resource indexes.

    Every mutation of the index registry goes through this class. Requests
    for unknown resources are rejected with ``RequestValidationError`` before
    the engine is called. While an index is being recreated it is reported as
    not writable and writers must retry.

    Example:
            >>> manager = IndexLifecycleManager(engine, catalog, settings)
            >>> await manager.create_index("instance", "diku")
    """

    def __init__(
        self,
        engine: SearchEngineClient,
        catalog: ResourceDescriptionCatalog,
        settings: Settings,
    ) -> None:
        self.engine = engine
        self.catalog = catalog
        self.settings = settings
        self._locks: dict[str, asyncio.Lock] = {}
        self._recreating: set[str] = set()
        self._generations: dict[str, int] = {}
        self._writers: dict[str, int] = {}
        self._drained: dict[str, asyncio.Event] = {}

    def _indexed_description(self, resource: str, message: str) -> ResourceDescription:
        description = self.catalog.find(resource)
        if description is None or not description.own_index:
            raise RequestValidationError(message, "resourceName", resource)
        return description

    def _lock(self, index: str) -> asyncio.Lock:
        if index not in self._locks:
            self._locks[index] = asyncio.Lock()
        return self._locks[index]

    def build_settings(
        self, description: ResourceDescription, overrides: IndexSettings | None = None
    ) -> dict[str, Any]:
        """Settings document used when creating an index.

        Shard count only applies here, replicas and refresh interval can also
        be changed later through ``update_settings``.
        """
        overrides = overrides or IndexSettings()
        index_settings = {
            "number_of_shards": overrides.number_of_shards or self.settings.index_number_of_shards,
            "number_of_replicas": (
                overrides.number_of_replicas
                if overrides.number_of_replicas is not None
                else self.settings.index_number_of_replicas
            ),
            "refresh_interval": normalize_refresh_interval(
                overrides.refresh_interval, self.settings.index_refresh_interval
            ),
        }
        return _deep_merge(description.settings, {"index": index_settings})

    def build_dynamic_settings(self, overrides: IndexDynamicSettings) -> dict[str, Any]:
        return {
            "index": {
                "number_of_replicas": (
                    overrides.number_of_replicas
                    if overrides.number_of_replicas is not None
                    else self.settings.index_number_of_replicas
                ),
                "refresh_interval": normalize_refresh_interval(
                    overrides.refresh_interval, self.settings.index_refresh_interval
                ),
            }
        }

    async def exists(self, index: str) -> bool:
        """Whether ``index`` exists.

        Raises:
            SearchEngineError: If the engine cannot answer.
        """
        return await self.engine.index_exists(index)

    async def index_exists(self, resource: str, tenant: str) -> bool:
        return await self.exists(index_name(resource, tenant))

    def is_recreating(self, index: str) -> bool:
        return index in self._recreating

    def ensure_writable(self, index: str) -> None:
        """Raise if ``index`` is in the middle of a drop and recreate.

        Raises:
            IndexRecreationInProgressError: If the index is being recreated.
        """
        if index in self._recreating:
            raise IndexRecreationInProgressError(index)

    @asynccontextmanager
    async def writing(self, index: str) -> AsyncIterator[None]:
        """Register a write to ``index`` for the duration of the block.

        A recreation of the index waits for registered writes to finish
        before dropping it. A write that overlapped the start of a
        recreation raises once it is done, its documents went to the
        dropped generation and the caller must retry.

        Raises:
            IndexRecreationInProgressError: If the index is being recreated
                when the block starts, or a recreation started during it.
        """
        self.ensure_writable(index)
        generation = self._generations.get(index, 0)
        self._writers[index] = self._writers.get(index, 0) + 1
        try:
            yield
        finally:
            self._writers[index] -= 1
            if not self._writers[index]:
                del self._writers[index]
                drained = self._drained.pop(index, None)
                if drained is not None:
                    drained.set()
        if self._generations.get(index, 0) != generation:
            raise IndexRecreationInProgressError(index)

    async def _wait_for_writers(self, index: str) -> None:
        if not self._writers.get(index):
            return
        logger.info(f"Waiting for {self._writers[index]} writes to '{index}' to finish")
        drained = self._drained.setdefault(index, asyncio.Event())
        await drained.wait()

    async def create_index(
        self, resource: str, tenant: str, settings: IndexSettings | None = None
    ) -> OperationResult:
        """Create the index of ``resource`` for ``tenant`` unless it exists.

        Raises:
            RequestValidationError: If the resource has no indexed description.
        """
        description = self._indexed_description(resource, CREATE_INDEX_ERROR)
        index = index_name(resource, tenant)
        try:
            if await self.engine.index_exists(index):
                logger.info(f"Index '{index}' already exists")
                return OperationResult.success()
        except SearchEngineError as e:
            return OperationResult.error(str(e))
        return await self._create(description, index, settings)

    async def create_index_if_not_exist(self, resource: str, tenant: str) -> OperationResult:
        return await self.create_index(resource, tenant)

    async def _create(
        self, description: ResourceDescription, index: str, settings: IndexSettings | None
    ) -> OperationResult:
        result = await self.engine.create_index(
            index, self.build_settings(description, settings), description.mappings
        )
        record_index_operation("create", result.is_success)
        return result

    async def drop_index(self, resource: str, tenant: str) -> OperationResult:
        """Drop the index of ``resource`` for ``tenant`` if it exists."""
        index = index_name(resource, tenant)
        try:
            if not await self.engine.index_exists(index):
                logger.debug(f"Index '{index}' does not exist, nothing to drop")
                return OperationResult.success()
        except SearchEngineError as e:
            return OperationResult.error(str(e))
        result = await self.engine.drop_index(index)
        record_index_operation("drop", result.is_success)
        return result

    async def recreate_index(
        self, resource: str, tenant: str, settings: IndexSettings | None = None
    ) -> OperationResult:
        """Drop and create the index, blocking writes until both are acknowledged.

        Writes already in flight finish first and are told to retry.
        Concurrent recreations of the same index run one after the other.

        Raises:
            RequestValidationError: If the resource has no indexed description.
        """
        description = self._indexed_description(resource, CREATE_INDEX_ERROR)
        index = index_name(resource, tenant)
        async with self._lock(index):
            self._recreating.add(index)
            self._generations[index] = self._generations.get(index, 0) + 1
            try:
                await self._wait_for_writers(index)
                logger.info(f"Recreating index '{index}'")
                dropped = await self.drop_index(resource, tenant)
                if not dropped.is_success:
                    return dropped
                return await self._create(description, index, settings)
            finally:
                self._recreating.discard(index)

    async def update_mappings(self, resource: str, tenant: str) -> OperationResult:
        """Apply the resource's current mappings to its existing index.

        Raises:
            RequestValidationError: If the resource has no indexed description.
        """
        description = self._indexed_description(resource, UPDATE_MAPPINGS_ERROR)
        result = await self.engine.update_mappings(
            index_name(resource, tenant), description.mappings
        )
        record_index_operation("update_mappings", result.is_success)
        return result

    async def update_settings(
        self, resource: str, tenant: str, settings: IndexDynamicSettings
    ) -> OperationResult:
        """Change replica count and refresh interval of an existing index.

        Raises:
            RequestValidationError: If the resource has no indexed description.
        """
        self._indexed_description(resource, UPDATE_SETTINGS_ERROR)
        result = await self.engine.update_index_settings(
            index_name(resource, tenant), self.build_dynamic_settings(settings)
        )
        record_index_operation("update_settings", result.is_success)
        return result
