"""Kafka consumer for resource change events."""

import asyncio
import json
import logging
from typing import Any

from aiokafka import AIOKafkaConsumer, ConsumerRecord
from pydantic import BaseModel, Field, ValidationError

from catalog_search.clients.kafka import KafkaClient
from catalog_search.exceptions import IndexRecreationInProgressError
from catalog_search.indexing.service import ResourceService
from catalog_search.models import ResourceEvent
from catalog_search.utils.logging import tenant_log_context

logger = logging.getLogger(__name__)


class ResourceEventConsumerConfig(BaseModel):
    """Configuration for the resource event consumer."""

    topics: list[str] = Field(description="Topics carrying resource change events")
    group_id: str = Field(default="search-indexer", description="Consumer group ID")
    max_records: int = Field(default=200, description="Max events per batch")
    poll_timeout_ms: int = Field(default=1000, description="Batch poll timeout")
    retry_delay_s: float = Field(default=1.0, description="Wait before retrying a batch")


class ResourceEventConsumer:
    """Consumes resource events in batches and indexes them.

    Offsets are committed after a batch is indexed. A batch that hits an
    index under recreation is retried after a short delay. Any other failure
    is logged and the consumer moves on to the next batch.
    """

    def __init__(
        self,
        kafka_client: KafkaClient,
        service: ResourceService,
        config: ResourceEventConsumerConfig,
    ) -> None:
        self.kafka = kafka_client
        self.service = service
        self.config = config
        self._consumer: AIOKafkaConsumer | None = None
        self._running = False

    async def start(self) -> None:
        """Subscribe and process batches until stopped."""
        if self._running:
            logger.warning("Consumer already running")
            return

        logger.info(
            f"Starting resource event consumer for topics {self.config.topics} "
            f"(group: {self.config.group_id})"
        )
        self._consumer = await self.kafka.create_consumer(self.config.topics, self.config.group_id)
        self._running = True

        try:
            while self._running:
                batch = await self._consumer.getmany(
                    timeout_ms=self.config.poll_timeout_ms,
                    max_records=self.config.max_records,
                )
                records = [record for partition in batch.values() for record in partition]
                if not records:
                    continue
                try:
                    await self.handle_records(records)
                    await self._consumer.commit()
                except Exception as e:
                    logger.error(f"Failed to process {len(records)} records: {e}", exc_info=True)
        except asyncio.CancelledError:
            logger.info("Consumer task cancelled")
        finally:
            self._running = False

    async def stop(self) -> None:
        if not self._running:
            return
        logger.info("Stopping resource event consumer...")
        self._running = False

    async def handle_records(self, records: list[ConsumerRecord]) -> None:
        """Parse a batch of records and index it, grouped by tenant."""
        by_tenant: dict[str, list[ResourceEvent]] = {}
        for record in records:
            event = self.parse_event(record.value)
            if event is not None:
                by_tenant.setdefault(event.tenant, []).append(event)

        for tenant, events in by_tenant.items():
            with tenant_log_context(tenant):
                await self._index_with_retry(events)

    async def _index_with_retry(self, events: list[ResourceEvent]) -> None:
        while True:
            try:
                result = await self.service.index_events(events)
            except IndexRecreationInProgressError as e:
                logger.info(f"{e}; retrying in {self.config.retry_delay_s}s")
                await asyncio.sleep(self.config.retry_delay_s)
                continue
            except Exception as e:
                logger.error(f"Failed to index {len(events)} events: {e}", exc_info=True)
                return
            if not result.is_success:
                logger.error(f"Failed to index {len(events)} events: {result.error_message}")
            return

    @staticmethod
    def parse_event(value: bytes | None) -> ResourceEvent | None:
        """Parse a record value, returning None for malformed payloads."""
        if value is None:
            return None
        try:
            data: Any = json.loads(value)
            return ResourceEvent.model_validate(data)
        except (ValueError, ValidationError) as e:
            logger.warning(f"Skipping malformed resource event: {e}")
            return None
