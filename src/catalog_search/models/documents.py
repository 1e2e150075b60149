"""Search document writes and search engine operation results."""

import json
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class IndexAction(str, Enum):
    """Bulk action applied to a single search document."""

    INDEX = "INDEX"
    DELETE = "DELETE"


def serialize_body(data: dict[str, Any]) -> str:
    """Serialize a document body to canonical JSON.

    Keys are sorted and separators compact so the same input always yields
    byte-identical output.
    """
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class SearchDocumentWrite(BaseModel):
    """A single document write targeted at a tenant index."""

    model_config = ConfigDict(frozen=True)

    index: str = Field(min_length=1, description="Physical index name")
    resource_type: str = Field(description="Resource type owning the index")
    tenant: str = Field(description="Tenant the index belongs to")
    document_id: str = Field(description="Search document id")
    action: IndexAction = Field(description="INDEX or DELETE")
    body: str | None = Field(default=None, description="Canonical JSON body for INDEX writes")


class OperationResult(BaseModel):
    """Outcome of a search engine operation.

    Failures carry the engine's message; they are returned, never raised.
    """

    model_config = ConfigDict(populate_by_name=True)

    status: Literal["success", "error"] = Field(default="success")
    indices: list[str] = Field(default_factory=list, description="Indices created")
    error_message: str | None = Field(default=None, alias="errorMessage")

    @property
    def is_success(self) -> bool:
        return self.status == "success"

    @classmethod
    def success(cls, indices: list[str] | None = None) -> "OperationResult":
        return cls(status="success", indices=indices or [])

    @classmethod
    def error(cls, message: str) -> "OperationResult":
        return cls(status="error", error_message=message)

    @classmethod
    def merge(cls, results: list["OperationResult"]) -> "OperationResult":
        """Fold several results into one (error if any failed)."""
        indices = [index for result in results for index in result.indices]
        errors = [r.error_message or "unknown error" for r in results if not r.is_success]
        if errors:
            return cls(status="error", indices=indices, error_message="; ".join(errors))
        return cls(status="success", indices=indices)
