"""Async Elasticsearch client wrapper with connection management."""

import json
import logging
from typing import Any

from elasticsearch import ApiError, AsyncElasticsearch, NotFoundError, TransportError
from elasticsearch.helpers import async_bulk

from catalog_search.clients.search_engine import SearchEngineClient
from catalog_search.config import Settings
from catalog_search.exceptions import SearchEngineError
from catalog_search.models import IndexAction, OperationResult, SearchDocumentWrite

logger = logging.getLogger(__name__)

ENGINE_ERRORS = (ApiError, TransportError)


def _to_bulk_action(write: SearchDocumentWrite) -> dict[str, Any]:
    if write.action is IndexAction.DELETE:
        return {"_op_type": "delete", "_index": write.index, "_id": write.document_id}
    return {
        "_op_type": "index",
        "_index": write.index,
        "_id": write.document_id,
        "_source": json.loads(write.body or "{}"),
    }


class ElasticsearchClientWrapper(SearchEngineClient):
    """Wrapper around AsyncElasticsearch with lifecycle management.

    Provides async context manager interface for proper resource cleanup.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize the Elasticsearch client wrapper.

        Args:
            settings: Application settings containing Elasticsearch configuration.
        """
        self.settings = settings
        self._client: AsyncElasticsearch | None = None

    async def connect(self) -> None:
        """Create the AsyncElasticsearch instance and verify the cluster responds."""
        logger.info(f"Connecting to Elasticsearch at {self.settings.elasticsearch_url}")

        client_kwargs: dict[str, Any] = {
            "hosts": [self.settings.elasticsearch_url],
            "request_timeout": self.settings.elasticsearch_timeout,
            "verify_certs": self.settings.elasticsearch_verify_certs,
        }
        if self.settings.elasticsearch_username and self.settings.elasticsearch_password:
            client_kwargs["basic_auth"] = (
                self.settings.elasticsearch_username,
                self.settings.elasticsearch_password,
            )

        self._client = AsyncElasticsearch(**client_kwargs)

        try:
            info = await self._client.info()
            logger.info(f"Connected to Elasticsearch {info['version']['number']}")
        except ENGINE_ERRORS as e:
            logger.warning(f"Could not verify Elasticsearch cluster: {e}")

    async def close(self) -> None:
        """Close the underlying transport."""
        if self._client is not None:
            logger.info("Closing Elasticsearch client connection")
            await self._client.close()
            self._client = None

    @property
    def client(self) -> AsyncElasticsearch:
        """Get the underlying AsyncElasticsearch instance.

        Raises:
            RuntimeError: If client is not connected.
        """
        if self._client is None:
            raise RuntimeError("Elasticsearch client not connected. Call connect() first.")
        return self._client

    async def health_check(self) -> bool:
        if self._client is None:
            return False
        try:
            return bool(await self._client.ping())
        except ENGINE_ERRORS as e:
            logger.error(f"Elasticsearch health check failed: {e}")
            return False

    async def index_exists(self, index: str) -> bool:
        try:
            return bool(await self.client.indices.exists(index=index))
        except ENGINE_ERRORS as e:
            logger.error(f"Failed to check index '{index}': {e}")
            raise SearchEngineError(f"Failed to check index '{index}': {e}") from e

    async def create_index(
        self, index: str, settings: dict[str, Any], mappings: dict[str, Any]
    ) -> OperationResult:
        try:
            await self.client.indices.create(index=index, settings=settings, mappings=mappings)
        except ENGINE_ERRORS as e:
            logger.error(f"Failed to create index '{index}': {e}")
            return OperationResult.error(str(e))
        logger.info(f"Created index '{index}'")
        return OperationResult.success([index])

    async def drop_index(self, index: str) -> OperationResult:
        try:
            await self.client.indices.delete(index=index)
        except ENGINE_ERRORS as e:
            logger.error(f"Failed to drop index '{index}': {e}")
            return OperationResult.error(str(e))
        logger.info(f"Dropped index '{index}'")
        return OperationResult.success()

    async def update_mappings(self, index: str, mappings: dict[str, Any]) -> OperationResult:
        try:
            await self.client.indices.put_mapping(index=index, body=mappings)
        except ENGINE_ERRORS as e:
            logger.error(f"Failed to update mappings of '{index}': {e}")
            return OperationResult.error(str(e))
        return OperationResult.success()

    async def update_index_settings(
        self, index: str, settings: dict[str, Any]
    ) -> OperationResult:
        try:
            await self.client.indices.put_settings(index=index, settings=settings)
        except ENGINE_ERRORS as e:
            logger.error(f"Failed to update settings of '{index}': {e}")
            return OperationResult.error(str(e))
        return OperationResult.success()

    async def bulk_write(self, writes: list[SearchDocumentWrite]) -> OperationResult:
        if not writes:
            return OperationResult.success()

        try:
            _, errors = await async_bulk(
                self.client,
                [_to_bulk_action(write) for write in writes],
                raise_on_error=False,
                raise_on_exception=False,
            )
        except ENGINE_ERRORS as e:
            logger.error(f"Bulk write of {len(writes)} documents failed: {e}")
            return OperationResult.error(str(e))

        # Deleting a document that is already gone is not a failure
        failures = [
            item
            for item in errors
            if not ("delete" in item and item["delete"].get("status") == 404)
        ]
        if failures:
            logger.warning(f"Bulk write had {len(failures)} failed items out of {len(writes)}")
            return OperationResult.error(json.dumps(failures[:5], default=str))
        return OperationResult.success()

    async def get_documents(self, index: str, ids: list[str]) -> dict[str, dict[str, Any]]:
        if not ids:
            return {}
        try:
            response = await self.client.mget(index=index, ids=ids)
        except NotFoundError:
            return {}
        except ENGINE_ERRORS as e:
            logger.error(f"Failed to read {len(ids)} documents of '{index}': {e}")
            raise SearchEngineError(f"Failed to read documents of '{index}': {e}") from e
        return {doc["_id"]: doc["_source"] for doc in response["docs"] if doc.get("found")}

    async def count(self, index: str) -> int:
        if not await self.index_exists(index):
            return 0
        try:
            response = await self.client.count(index=index)
        except ENGINE_ERRORS as e:
            raise SearchEngineError(f"Failed to count documents of '{index}': {e}") from e
        return int(response["count"])

    async def index_uuid(self, index: str) -> str | None:
        if not await self.index_exists(index):
            return None
        try:
            response = await self.client.indices.get_settings(index=index)
        except ENGINE_ERRORS as e:
            raise SearchEngineError(f"Failed to read settings of '{index}': {e}") from e
        return response[index]["settings"]["index"]["uuid"]

    async def __aenter__(self) -> "ElasticsearchClientWrapper":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
