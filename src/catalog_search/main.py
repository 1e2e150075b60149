"""Catalog Search Indexer - FastAPI application entry point."""

import asyncio
import contextlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from catalog_search.api import register_exception_handlers, router
from catalog_search.clients import (
    ElasticsearchClientWrapper,
    InventoryClient,
    KafkaClient,
    KafkaMessageProducer,
    OkapiClient,
    ResourceReindexClient,
    SearchEngineClient,
)
from catalog_search.config import Settings, get_settings
from catalog_search.consortium import StaticTenantProvider
from catalog_search.consortium.aggregator import ConsortiumAggregator
from catalog_search.consortium.claims import SearchEngineClaimStore
from catalog_search.indexing import (
    DocumentWriter,
    IndexLifecycleManager,
    SearchDocumentConverter,
    build_repository_registry,
)
from catalog_search.indexing.consumer import ResourceEventConsumer, ResourceEventConsumerConfig
from catalog_search.indexing.service import ResourceService
from catalog_search.jobs import (
    InMemoryResourceIdsJobRepository,
    ResourceIdsJobService,
    TenantJobRunner,
)
from catalog_search.metadata import ResourceDescriptionCatalog
from catalog_search.reindex import ReindexOrchestrator, TreeReindexer
from catalog_search.utils.logging import configure_logging, get_logger
from catalog_search.utils.metrics import SERVICE_INFO

settings = get_settings()
configure_logging(
    level="DEBUG" if settings.debug else "INFO",
    json_format=not settings.debug,
)
logger = get_logger(__name__)

SERVICE_INFO.info({"version": "0.1.0", "service": "catalog-search-indexer"})


def load_catalog(settings: Settings) -> ResourceDescriptionCatalog:
    if settings.resource_descriptions_path:
        return ResourceDescriptionCatalog.from_file(settings.resource_descriptions_path)
    return ResourceDescriptionCatalog.default()


def init_components(
    app: FastAPI,
    settings: Settings,
    engine: SearchEngineClient,
    okapi: OkapiClient,
    kafka: KafkaClient,
) -> None:
    """Build the indexing components and attach them to ``app.state``."""
    catalog = load_catalog(settings)
    tenants = StaticTenantProvider.from_settings(settings)

    index_manager = IndexLifecycleManager(engine, catalog, settings)
    repositories = build_repository_registry(catalog, engine, settings.bulk_chunk_size)
    writer = DocumentWriter(index_manager, repositories)
    aggregator = ConsortiumAggregator(
        tenants,
        SearchDocumentConverter(catalog),
        writer,
        store=SearchEngineClaimStore(engine, catalog),
    )

    inventory = InventoryClient(okapi)
    producer = KafkaMessageProducer(kafka, settings.kafka_contribution_topic)
    resource_service = ResourceService(
        catalog, tenants, writer, aggregator, fetcher=inventory, producer=producer
    )

    orchestrator = ReindexOrchestrator(
        catalog=catalog,
        index_manager=index_manager,
        tenants=tenants,
        aggregator=aggregator,
        trigger=ResourceReindexClient(okapi),
        tree_reindexer=TreeReindexer(inventory, index_manager, repositories),
        settings=settings,
    )

    runner = TenantJobRunner()
    job_service = ResourceIdsJobService(
        InMemoryResourceIdsJobRepository(), runner, streamer=None, settings=settings
    )

    app.state.engine = engine
    app.state.okapi = okapi
    app.state.kafka = kafka
    app.state.catalog = catalog
    app.state.tenants = tenants
    app.state.index_manager = index_manager
    app.state.aggregator = aggregator
    app.state.resource_service = resource_service
    app.state.orchestrator = orchestrator
    app.state.job_runner = runner
    app.state.job_service = job_service
    logger.info(f"Initialized indexing components for {len(catalog)} resources")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Connects the search engine, wires the indexing components and starts the
    resource event consumer when enabled; stops everything on shutdown.
    """
    settings = get_settings()

    logger.info("Starting Catalog Search Indexer...")
    logger.info(f"Elasticsearch URL: {settings.elasticsearch_url}")
    logger.info(f"Okapi URL: {settings.okapi_url}")

    engine = ElasticsearchClientWrapper(settings)
    await engine.connect()

    okapi = OkapiClient(settings)
    kafka = KafkaClient(bootstrap_servers=settings.kafka_servers)
    init_components(app, settings, engine, okapi, kafka)

    app.state.consumer = None
    app.state.consumer_task = None
    if settings.kafka_consumer_enabled:
        consumer = ResourceEventConsumer(
            kafka_client=kafka,
            service=app.state.resource_service,
            config=ResourceEventConsumerConfig(
                topics=settings.kafka_event_topics,
                group_id=settings.kafka_consumer_group,
                max_records=settings.kafka_batch_max_records,
                poll_timeout_ms=settings.kafka_poll_timeout_ms,
            ),
        )
        app.state.consumer = consumer
        app.state.consumer_task = asyncio.create_task(consumer.start())
        logger.info(f"Resource event consumer started (group: {settings.kafka_consumer_group})")
    else:
        logger.info("Resource event consumer disabled")

    logger.info("Catalog Search Indexer startup complete")

    yield

    logger.info("Shutting down Catalog Search Indexer...")

    if app.state.consumer is not None:
        await app.state.consumer.stop()
    if app.state.consumer_task is not None:
        app.state.consumer_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await app.state.consumer_task

    await app.state.job_runner.shutdown()
    await kafka.close()
    await okapi.close()
    await engine.close()

    logger.info("Catalog Search Indexer shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app_settings = get_settings()

    app = FastAPI(
        title="Catalog Search Indexer",
        description="Multi-tenant indexing and reindex administration for library catalog search",
        version="0.1.0",
        lifespan=lifespan,
        debug=app_settings.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(router)

    return app


app = create_app()


def run() -> None:
    """Run the application with uvicorn.

    This is the entry point for the 'catalog-search' command defined in pyproject.toml.
    """
    settings = get_settings()

    logger.info(f"Starting server on {settings.search_host}:{settings.search_port}")

    uvicorn.run(
        "catalog_search.main:app",
        host=settings.search_host,
        port=settings.search_port,
        reload=settings.debug,
        log_level="info",
    )


if __name__ == "__main__":
    run()
