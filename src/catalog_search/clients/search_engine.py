"""Search engine boundary used by the indexing core."""

from abc import ABC, abstractmethod
from typing import Any

from catalog_search.models import OperationResult, SearchDocumentWrite


class SearchEngineClient(ABC):
    """Index storage operations.

    Mutating operations report engine failures through ``OperationResult``.
    Reads that have no result to carry a failure raise ``SearchEngineError``,
    which the indexing core turns into an error result.
    """

    @abstractmethod
    async def index_exists(self, index: str) -> bool: ...

    @abstractmethod
    async def create_index(
        self, index: str, settings: dict[str, Any], mappings: dict[str, Any]
    ) -> OperationResult: ...

    @abstractmethod
    async def drop_index(self, index: str) -> OperationResult: ...

    @abstractmethod
    async def update_mappings(self, index: str, mappings: dict[str, Any]) -> OperationResult: ...

    @abstractmethod
    async def update_index_settings(
        self, index: str, settings: dict[str, Any]
    ) -> OperationResult: ...

    @abstractmethod
    async def bulk_write(self, writes: list[SearchDocumentWrite]) -> OperationResult: ...

    @abstractmethod
    async def get_documents(self, index: str, ids: list[str]) -> dict[str, dict[str, Any]]:
        """Stored bodies of the given documents keyed by id; missing ids and indexes are absent."""

    @abstractmethod
    async def count(self, index: str) -> int:
        """Number of documents in an index (0 if it does not exist)."""

    @abstractmethod
    async def index_uuid(self, index: str) -> str | None:
        """Engine-assigned identity of the current index generation."""

    async def health_check(self) -> bool:
        return True
