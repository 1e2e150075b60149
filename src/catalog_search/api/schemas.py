"""Pydantic schemas for API request and response models."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from catalog_search.models import IndexDynamicSettings, IndexSettings


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service status: 'healthy' or 'degraded'")
    version: str = Field(description="Service version")
    search_engine_connected: bool = Field(description="Whether the search engine responds")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateIndexRequest(_CamelModel):
    resource_name: str
    index_settings: IndexSettings | None = None


class UpdateMappingsRequest(_CamelModel):
    resource_name: str


class UpdateIndexSettingsRequest(_CamelModel):
    resource_name: str
    index_settings: IndexDynamicSettings = Field(default_factory=IndexDynamicSettings)


class CreateResourceIdsJobRequest(_CamelModel):
    query: str
    entity_type: str


class ErrorParameter(BaseModel):
    key: str
    value: Any


class ErrorDetail(BaseModel):
    message: str
    type: str
    code: str
    parameters: list[ErrorParameter] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Error payload returned for rejected requests."""

    errors: list[ErrorDetail]
    total_records: int
