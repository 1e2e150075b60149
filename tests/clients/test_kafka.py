"""Tests for the Kafka client wrapper and the contribution event producer."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

from aiokafka.errors import KafkaError

from catalog_search.clients.kafka import KafkaClient, KafkaClientConfig, KafkaMessageProducer
from catalog_search.models import ResourceEvent


class TestKafkaClient:
    """Tests for KafkaClient."""

    def test_bootstrap_servers_override(self) -> None:
        client = KafkaClient(bootstrap_servers=["kafka:29092"])
        assert client.config.bootstrap_servers == ["kafka:29092"]

    def test_default_config(self) -> None:
        config = KafkaClientConfig()
        assert config.compression_type == "gzip"
        assert config.enable_auto_commit is False
        assert config.default_group_id == "search-indexer"

    async def test_send_event(self) -> None:
        """Test messages are JSON encoded and keyed."""
        with patch("catalog_search.clients.kafka.AIOKafkaProducer") as mock_cls:
            producer = AsyncMock()
            mock_cls.return_value = producer
            client = KafkaClient()

            await client.send_event("topic", "key-1", {"a": 1})

            producer.start.assert_awaited_once()
            producer.send_and_wait.assert_awaited_once_with(
                "topic", value=b'{"a": 1}', key=b"key-1"
            )

    async def test_create_consumer_reused(self) -> None:
        with patch("catalog_search.clients.kafka.AIOKafkaConsumer") as mock_cls:
            mock_cls.return_value = AsyncMock()
            client = KafkaClient()

            first = await client.create_consumer(["b", "a"], "group")
            second = await client.create_consumer(["a", "b"], "group")

            assert first is second
            mock_cls.assert_called_once()
            assert mock_cls.call_args.kwargs["enable_auto_commit"] is False

    async def test_close(self) -> None:
        with (
            patch("catalog_search.clients.kafka.AIOKafkaProducer") as producer_cls,
            patch("catalog_search.clients.kafka.AIOKafkaConsumer") as consumer_cls,
        ):
            producer_cls.return_value = AsyncMock()
            consumer_cls.return_value = AsyncMock()
            client = KafkaClient()
            await client.get_producer()
            consumer = await client.create_consumer(["a"])

            await client.close()

            producer_cls.return_value.stop.assert_awaited_once()
            consumer.stop.assert_awaited_once()
            assert client._producer is None
            assert client._consumers == {}


class TestKafkaMessageProducer:
    """Tests for KafkaMessageProducer."""

    def test_topic_for(self) -> None:
        producer = KafkaMessageProducer(MagicMock(), "search.{tenant}.contribution")
        assert producer.topic_for("diku") == "search.diku.contribution"

    async def test_send(self) -> None:
        kafka = MagicMock()
        kafka.send_event = AsyncMock()
        producer = KafkaMessageProducer(kafka, "search.{tenant}.contribution")
        event = ResourceEvent(
            id="i1", resource_type="instance", tenant="diku", new_data={"title": "t"}
        )

        await producer.send([event])

        kafka.send_event.assert_awaited_once_with(
            "search.diku.contribution", "i1", event.to_message()
        )
        message = json.loads(json.dumps(kafka.send_event.await_args.args[2]))
        assert message["resourceName"] == "instance"
        assert message["new"] == {"title": "t"}

    async def test_send_failure_not_raised(self) -> None:
        """Test delivery failures are logged and never reach the caller."""
        kafka = MagicMock()
        kafka.send_event = AsyncMock(side_effect=[KafkaError(), None])
        producer = KafkaMessageProducer(kafka, "search.{tenant}.contribution")
        events = [
            ResourceEvent(id="i1", resource_type="instance", tenant="diku"),
            ResourceEvent(id="i2", resource_type="instance", tenant="diku"),
        ]

        await producer.send(events)

        assert kafka.send_event.await_count == 2
