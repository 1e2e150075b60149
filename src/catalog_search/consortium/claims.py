"""Storage of member claims on central shared records."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, Field

from catalog_search.clients.search_engine import SearchEngineClient
from catalog_search.consortium.tenants import index_name
from catalog_search.exceptions import SearchEngineError
from catalog_search.metadata import ResourceDescriptionCatalog
from catalog_search.models import (
    IndexAction,
    OperationResult,
    SearchDocumentWrite,
    serialize_body,
)

logger = logging.getLogger(__name__)

CLAIMS_INDEX_SETTINGS: dict[str, Any] = {"index": {"number_of_shards": 1}}
CLAIMS_INDEX_MAPPINGS: dict[str, Any] = {
    "dynamic": False,
    "properties": {"claims": {"type": "object", "enabled": False}},
}


class Claim(BaseModel):
    """One member's version of a shared record."""

    tenant: str
    ts: int = Field(description="Event timestamp in epoch milliseconds")
    seq: int = Field(description="Arrival order, breaks ties between equal timestamps")
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def recency(self) -> tuple[int, int]:
        return (self.ts, self.seq)


# Claims of one record, keyed by member tenant.
Claims = dict[str, Claim]


def claims_index(resource_type: str, central: str) -> str:
    return index_name(f"{resource_type}_claims", central)


class ClaimStore(ABC):
    """Claims of member tenants, grouped per central tenant and resource type.

    Reads raise ``SearchEngineError`` when the backing store cannot answer,
    writes report failures in the returned ``OperationResult``.
    """

    @abstractmethod
    async def load(
        self, central: str, resource_type: str, ids: list[str]
    ) -> dict[str, Claims]:
        """Claims of the given records; records without claims are absent."""

    @abstractmethod
    async def save(
        self, central: str, resource_type: str, claims: dict[str, Claims]
    ) -> OperationResult:
        """Replace the claims of the given records, an empty mapping forgets a record."""

    @abstractmethod
    async def clear(
        self, central: str, resource_types: Iterable[str] | None = None
    ) -> OperationResult:
        """Forget the claims of a central tenant, optionally limited to some resource types."""


class InMemoryClaimStore(ClaimStore):
    """Process-local claims, lost on restart."""

    def __init__(self) -> None:
        self._claims: dict[tuple[str, str], dict[str, Claims]] = {}

    async def load(
        self, central: str, resource_type: str, ids: list[str]
    ) -> dict[str, Claims]:
        stored = self._claims.get((central, resource_type), {})
        return {i: dict(stored[i]) for i in ids if i in stored}

    async def save(
        self, central: str, resource_type: str, claims: dict[str, Claims]
    ) -> OperationResult:
        stored = self._claims.setdefault((central, resource_type), {})
        for record_id, record_claims in claims.items():
            if record_claims:
                stored[record_id] = dict(record_claims)
            else:
                stored.pop(record_id, None)
        return OperationResult.success()

    async def clear(
        self, central: str, resource_types: Iterable[str] | None = None
    ) -> OperationResult:
        types = set(resource_types) if resource_types is not None else None
        for key in list(self._claims):
            if key[0] == central and (types is None or key[1] in types):
                del self._claims[key]
        return OperationResult.success()


class SearchEngineClaimStore(ClaimStore):
    """Claims kept in one search engine index per resource type of the central tenant.

    Each document holds every claim on one record. Claims indexes are
    created on first save and dropped by ``clear``.
    """

    def __init__(self, engine: SearchEngineClient, catalog: ResourceDescriptionCatalog) -> None:
        self.engine = engine
        self.catalog = catalog

    def shared_resource_types(self) -> list[str]:
        return [name for name in self.catalog.names() if self.catalog.get(name).consortium_shared]

    async def load(
        self, central: str, resource_type: str, ids: list[str]
    ) -> dict[str, Claims]:
        documents = await self.engine.get_documents(claims_index(resource_type, central), ids)
        result: dict[str, Claims] = {}
        for record_id, source in documents.items():
            claims = [Claim.model_validate(item) for item in source.get("claims", [])]
            result[record_id] = {claim.tenant: claim for claim in claims}
        return result

    async def save(
        self, central: str, resource_type: str, claims: dict[str, Claims]
    ) -> OperationResult:
        if not claims:
            return OperationResult.success()

        index = claims_index(resource_type, central)
        try:
            if not await self.engine.index_exists(index):
                created = await self.engine.create_index(
                    index, CLAIMS_INDEX_SETTINGS, CLAIMS_INDEX_MAPPINGS
                )
                if not created.is_success:
                    return created
        except SearchEngineError as e:
            return OperationResult.error(str(e))

        writes = []
        for record_id, record_claims in claims.items():
            if not record_claims:
                writes.append(
                    SearchDocumentWrite(
                        index=index,
                        resource_type=resource_type,
                        tenant=central,
                        document_id=record_id,
                        action=IndexAction.DELETE,
                    )
                )
                continue
            body = {"claims": [claim.model_dump() for claim in record_claims.values()]}
            writes.append(
                SearchDocumentWrite(
                    index=index,
                    resource_type=resource_type,
                    tenant=central,
                    document_id=record_id,
                    action=IndexAction.INDEX,
                    body=serialize_body(body),
                )
            )
        return await self.engine.bulk_write(writes)

    async def clear(
        self, central: str, resource_types: Iterable[str] | None = None
    ) -> OperationResult:
        types = (
            list(resource_types) if resource_types is not None else self.shared_resource_types()
        )
        results = []
        for resource_type in types:
            index = claims_index(resource_type, central)
            try:
                if not await self.engine.index_exists(index):
                    continue
            except SearchEngineError as e:
                results.append(OperationResult.error(str(e)))
                continue
            logger.info(f"Dropping claims index '{index}'")
            results.append(await self.engine.drop_index(index))
        return OperationResult.merge(results)
