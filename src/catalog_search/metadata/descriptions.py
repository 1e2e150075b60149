"""Resource description models."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ReindexPolicy(str, Enum):
    """How a primary resource is reindexed.

    EXTERNAL: an external storage module re-publishes every record.
    TREE: records are re-derived synchronously from the source of truth.
    STRUCTURAL: the index is rebuilt empty and repopulated by later writes.
    """

    EXTERNAL = "external"
    TREE = "tree"
    STRUCTURAL = "structural"


class Contribution(BaseModel):
    """A resource field whose items are denormalized into another resource's index."""

    model_config = ConfigDict(frozen=True)

    target: str = Field(description="Resource receiving the contributed documents")
    field: str = Field(description="Source data field holding the contributed items")
    key: str | None = Field(default=None, description="Item sub-field required to contribute")


class IndexingConfig(BaseModel):
    """Indexing options of a resource."""

    model_config = ConfigDict(frozen=True)

    repository: str | None = Field(
        default=None, description="Write strategy name, defaults to 'primary'"
    )


class ResourceDescription(BaseModel):
    """Indexing configuration of a single resource type."""

    model_config = ConfigDict(frozen=True)

    name: str
    parent_resource_name: str | None = None
    indexing_config: IndexingConfig = Field(default_factory=IndexingConfig)
    reindex_policy: ReindexPolicy = ReindexPolicy.EXTERNAL
    reindex_endpoint: str | None = None
    consortium_shared: bool = False
    own_index: bool = True
    parent_id_field: str | None = None
    contributions: tuple[Contribution, ...] = ()
    mappings: dict[str, Any] = Field(default_factory=dict)
    settings: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_shape(self) -> "ResourceDescription":
        if self.parent_resource_name is None and not self.own_index:
            raise ValueError(f"Primary resource '{self.name}' must own an index")
        if (
            self.parent_resource_name is None
            and self.reindex_policy is ReindexPolicy.EXTERNAL
            and not self.reindex_endpoint
        ):
            raise ValueError(f"Resource '{self.name}' needs a reindex_endpoint")
        return self

    @property
    def is_primary(self) -> bool:
        return self.parent_resource_name is None

    @property
    def repository_name(self) -> str:
        return self.indexing_config.repository or "primary"
