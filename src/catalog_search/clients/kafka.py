"""Kafka transport for resource events, built on aiokafka."""

import json
import logging
from typing import Any

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer
from aiokafka.errors import KafkaError
from pydantic import BaseModel, Field

from catalog_search.models import ResourceEvent

logger = logging.getLogger(__name__)


class KafkaClientConfig(BaseModel):
    """Connection and delivery options shared by the producer and consumers."""

    bootstrap_servers: list[str] = Field(default=["localhost:9092"])
    client_id: str = Field(default="catalog-search")
    compression_type: str = Field(default="gzip")
    request_timeout_ms: int = Field(default=30000)
    default_group_id: str = Field(default="search-indexer")
    auto_offset_reset: str = Field(default="earliest")
    # Offsets are committed by the consumer loop once a batch is indexed.
    enable_auto_commit: bool = Field(default=False)
    session_timeout_ms: int = Field(default=120000)
    max_poll_interval_ms: int = Field(default=300000)


class KafkaClient:
    """Owns one lazily started producer and one consumer per group/topic set."""

    def __init__(
        self,
        bootstrap_servers: list[str] | None = None,
        config: KafkaClientConfig | None = None,
    ) -> None:
        self.config = config or KafkaClientConfig()
        if bootstrap_servers:
            self.config = self.config.model_copy(update={"bootstrap_servers": bootstrap_servers})

        self._producer: AIOKafkaProducer | None = None
        self._consumers: dict[tuple[str, tuple[str, ...]], AIOKafkaConsumer] = {}

    async def get_producer(self) -> AIOKafkaProducer:
        if self._producer is None:
            producer = AIOKafkaProducer(
                bootstrap_servers=self.config.bootstrap_servers,
                client_id=self.config.client_id,
                compression_type=self.config.compression_type,
                request_timeout_ms=self.config.request_timeout_ms,
            )
            await producer.start()
            self._producer = producer
            logger.info(f"Kafka producer connected to {self.config.bootstrap_servers}")
        return self._producer

    async def create_consumer(
        self, topics: list[str], group_id: str | None = None
    ) -> AIOKafkaConsumer:
        """Start a consumer for ``topics``, reusing one already started for the same group.

        Args:
            topics: Topics to subscribe to. Order does not matter.
            group_id: Consumer group, the configured default when omitted.

        Returns:
            A started AIOKafkaConsumer.
        """
        group = group_id or self.config.default_group_id
        key = (group, tuple(sorted(topics)))
        existing = self._consumers.get(key)
        if existing is not None:
            return existing

        consumer = AIOKafkaConsumer(
            *topics,
            bootstrap_servers=self.config.bootstrap_servers,
            group_id=group,
            auto_offset_reset=self.config.auto_offset_reset,
            enable_auto_commit=self.config.enable_auto_commit,
            session_timeout_ms=self.config.session_timeout_ms,
            max_poll_interval_ms=self.config.max_poll_interval_ms,
        )
        await consumer.start()
        self._consumers[key] = consumer
        logger.info(f"Kafka consumer in group {group} subscribed to {sorted(topics)}")
        return consumer

    async def send_event(self, topic: str, key: str, message: dict[str, Any]) -> None:
        """Publish ``message`` as UTF-8 JSON, partitioned by ``key``."""
        producer = await self.get_producer()
        await producer.send_and_wait(
            topic, value=json.dumps(message).encode("utf-8"), key=key.encode("utf-8")
        )

    async def close(self) -> None:
        if self._producer is not None:
            await self._producer.stop()
            self._producer = None

        for (group, topics), consumer in self._consumers.items():
            await consumer.stop()
            logger.info(f"Kafka consumer in group {group} for {list(topics)} stopped")
        self._consumers.clear()

    async def __aenter__(self) -> "KafkaClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


class KafkaMessageProducer:
    """Fire-and-forget publisher of derived resource events.

    Each event is sent to the contribution topic of its tenant, keyed by the
    event id. Delivery failures are logged and never reach the caller.
    """

    def __init__(self, kafka: KafkaClient, topic_template: str) -> None:
        self.kafka = kafka
        self.topic_template = topic_template

    def topic_for(self, tenant: str) -> str:
        return self.topic_template.format(tenant=tenant)

    async def send(self, events: list[ResourceEvent]) -> None:
        for event in events:
            topic = self.topic_for(event.tenant)
            try:
                await self.kafka.send_event(topic, event.id or "", event.to_message())
            except KafkaError as e:
                logger.error(f"Failed to publish event {event.id} to {topic}: {e}")
