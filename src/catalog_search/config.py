"""Configuration management using Pydantic Settings."""

import json
from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_list(v: str | list[str] | None) -> list[str]:
    """Parse a list setting from a comma-separated string or a JSON array."""
    if v is None:
        return []
    if isinstance(v, str):
        if v.startswith("["):
            parsed = json.loads(v)
            if not isinstance(parsed, list):
                raise ValueError("Value must be a list")
            return [str(item) for item in parsed]
        return [item.strip() for item in v.split(",") if item.strip()]
    return v


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server
    search_host: str = Field(default="0.0.0.0", description="Server host")
    search_port: int = Field(default=8081, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")
    cors_origins: Annotated[list[str], NoDecode] = Field(
        default=["http://localhost:3000"], description="Allowed CORS origins"
    )

    # Elasticsearch
    elasticsearch_url: str = Field(
        default="http://localhost:9200", description="Search engine URL"
    )
    elasticsearch_username: str | None = Field(default=None, description="Basic auth user")
    elasticsearch_password: str | None = Field(default=None, description="Basic auth password")
    elasticsearch_timeout: int = Field(default=30, description="Request timeout in seconds")
    elasticsearch_verify_certs: bool = Field(default=True, description="Verify TLS certificates")

    # Index defaults
    index_number_of_shards: int = Field(default=4, ge=1, description="Default shard count")
    index_number_of_replicas: int = Field(default=2, ge=0, description="Default replica count")
    index_refresh_interval: str = Field(default="1s", description="Default refresh interval")
    bulk_chunk_size: int = Field(default=500, ge=1, description="Writes per chunked bulk call")

    # Resource catalog
    resource_descriptions_path: str | None = Field(
        default=None, description="JSON file replacing the built-in resource catalog"
    )

    # Okapi gateway (storage modules, external reindex endpoints)
    okapi_url: str = Field(default="http://localhost:9130", description="Okapi gateway URL")
    okapi_timeout: int = Field(default=30, description="Okapi request timeout in seconds")
    reindex_uri_template: str = Field(
        default="http://{endpoint}/reindex",
        description="External bulk-reindex URI, {endpoint} is the storage module name",
    )
    location_page_size: int = Field(default=1000, ge=1, description="Location fetch page size")

    # Kafka
    kafka_bootstrap_servers: str = Field(
        default="localhost:9092", description="Kafka bootstrap servers (comma-separated)"
    )
    kafka_consumer_enabled: bool = Field(
        default=False, description="Enable Kafka consumer for resource events"
    )
    kafka_consumer_group: str = Field(
        default="search-indexer", description="Kafka consumer group ID"
    )
    kafka_event_topics: Annotated[list[str], NoDecode] = Field(
        default=["inventory.instance", "inventory.authority", "inventory.location"],
        description="Topics carrying resource change events",
    )
    kafka_contribution_topic: str = Field(
        default="search.{tenant}.contribution",
        description="Topic for derived contribution events, {tenant} is substituted",
    )
    kafka_batch_max_records: int = Field(default=200, ge=1, description="Max events per batch")
    kafka_poll_timeout_ms: int = Field(default=1000, ge=1, description="Batch poll timeout")

    # Consortium
    consortium_central_tenant: str | None = Field(
        default=None, description="Central tenant of the consortium (if any)"
    )
    consortium_member_tenants: Annotated[list[str], NoDecode] = Field(
        default_factory=list, description="Member tenants of the consortium"
    )

    # Streaming jobs
    stream_job_table_name_length: int = Field(
        default=32, ge=8, description="Length of temporary staging table names"
    )
    stream_job_table_name_attempts: int = Field(
        default=5, ge=1, description="Attempts to find an unused staging table name"
    )

    @field_validator(
        "cors_origins", "kafka_event_topics", "consortium_member_tenants", mode="before"
    )
    @classmethod
    def parse_list_values(cls, v: str | list[str] | None) -> list[str]:
        """Parse list settings from environment variables.

        Supports comma-separated strings or JSON arrays.
        """
        return _parse_list(v)

    @field_validator("reindex_uri_template")
    @classmethod
    def validate_reindex_uri_template(cls, v: str) -> str:
        """Ensure the reindex URI template can address a storage module."""
        if "{endpoint}" not in v:
            raise ValueError("reindex_uri_template must contain the '{endpoint}' placeholder")
        return v

    @model_validator(mode="after")
    def validate_consortium(self) -> "Settings":
        """Validate consortium membership configuration."""
        if self.consortium_member_tenants and not self.consortium_central_tenant:
            raise ValueError("consortium_member_tenants requires consortium_central_tenant")
        if self.consortium_central_tenant in self.consortium_member_tenants:
            raise ValueError("The central tenant cannot be listed as a consortium member")
        return self

    @property
    def kafka_servers(self) -> list[str]:
        """Bootstrap servers as a list."""
        return _parse_list(self.kafka_bootstrap_servers)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    """
    return Settings()
