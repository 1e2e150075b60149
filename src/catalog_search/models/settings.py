"""Index settings overrides accepted by the index lifecycle operations."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class IndexDynamicSettings(BaseModel):
    """Settings that may change after the index is created."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    number_of_replicas: int | None = Field(default=None, ge=0)
    refresh_interval: int | None = Field(
        default=None,
        description="Seconds; unset or 0 means the default, negative disables refresh",
    )


class IndexSettings(IndexDynamicSettings):
    """Settings applied when an index is created."""

    number_of_shards: int | None = Field(default=None, ge=1)
