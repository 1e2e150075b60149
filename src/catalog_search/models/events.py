"""Resource change events received from the inventory change feed."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ResourceEventType(str, Enum):
    """Kind of change carried by a resource event."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ResourceEvent(BaseModel):
    """A single change notification for a catalog resource.

    Field names follow the change feed's wire format through aliases
    (``resourceName``, ``new``, ``old``). ``id`` and ``resource_type`` are
    optional at the model level so malformed events can still be received
    and reported by the consolidator instead of failing the whole batch.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str | None = Field(default=None, description="Resource id")
    resource_type: str | None = Field(
        default=None, alias="resourceName", description="Resource type name"
    )
    tenant: str = Field(default="", description="Tenant that produced the event")
    type: ResourceEventType = Field(default=ResourceEventType.UPDATE, description="Event type")
    new_data: dict[str, Any] | None = Field(default=None, alias="new", description="New state")
    old_data: dict[str, Any] | None = Field(default=None, alias="old", description="Old state")
    ts: int | None = Field(default=None, description="Event time in epoch milliseconds")

    @property
    def is_delete(self) -> bool:
        return self.type is ResourceEventType.DELETE

    def to_message(self) -> dict[str, Any]:
        """Serialize to the change feed's wire format."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)
