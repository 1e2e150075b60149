"""Client wrappers for the search engine, message bus and storage modules."""

from catalog_search.clients.elasticsearch import ElasticsearchClientWrapper
from catalog_search.clients.kafka import (
    KafkaClient,
    KafkaClientConfig,
    KafkaMessageProducer,
)
from catalog_search.clients.okapi import InventoryClient, OkapiClient, ResourceReindexClient
from catalog_search.clients.search_engine import SearchEngineClient
from catalog_search.clients.sources import LocationSource, ReindexTrigger, ResourceFetcher

__all__ = [
    "ElasticsearchClientWrapper",
    "InventoryClient",
    "KafkaClient",
    "KafkaClientConfig",
    "KafkaMessageProducer",
    "LocationSource",
    "OkapiClient",
    "ReindexTrigger",
    "ResourceFetcher",
    "ResourceReindexClient",
    "SearchEngineClient",
]
