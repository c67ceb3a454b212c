from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiokafka import TopicPartition
from redis.exceptions import ConnectionError as RedisConnectionError

from delivery.shared.clients import KafkaClient, RedisClient
from delivery.shared.errors import CacheInfrastructureError, PublishError
from delivery.shared.messaging.base import ConsumedRecord, PublishedRecord
from delivery.shared.messaging.transports.kafka_bus import KafkaEventPublisher
from delivery.shared.retry import FixedDelayRetry


@pytest.fixture
def no_retry(logger):
    return FixedDelayRetry(max_retries=1, delay=0, logger=logger)


# ----------------------------
# RedisClient
# ----------------------------
@pytest.mark.asyncio
async def test_redis_client_set_get(logger, no_retry):
    client = RedisClient(redis_url="redis://localhost:6379/0", logger=logger, retry_policy=no_retry)
    mock_redis = AsyncMock()
    mock_redis.set.return_value = True
    mock_redis.get.return_value = '{"restaurant_id": "r1"}'
    client.redis = mock_redis

    assert await client.set("r1", '{"restaurant_id": "r1"}', ttl=3600) is True
    mock_redis.set.assert_awaited_once_with("r1", '{"restaurant_id": "r1"}', ex=3600)

    assert await client.get("r1") == '{"restaurant_id": "r1"}'


@pytest.mark.asyncio
async def test_redis_client_miss_is_none(logger, no_retry):
    client = RedisClient(redis_url="redis://localhost:6379/0", logger=logger, retry_policy=no_retry)
    client.redis = AsyncMock()
    client.redis.get.return_value = None

    assert await client.get("absent") is None


@pytest.mark.asyncio
async def test_redis_client_errors_raise_infrastructure_error(logger, no_retry):
    client = RedisClient(redis_url="redis://localhost:6379/0", logger=logger, retry_policy=no_retry)
    client.redis = AsyncMock()
    client.redis.get.side_effect = RedisConnectionError("connection refused")
    client.redis.set.side_effect = RedisConnectionError("connection refused")

    with pytest.raises(CacheInfrastructureError):
        await client.get("r1")
    with pytest.raises(CacheInfrastructureError):
        await client.set("r1", "{}")


@pytest.mark.asyncio
async def test_redis_client_retries_transient_errors(logger):
    client = RedisClient(
        redis_url="redis://localhost:6379/0",
        logger=logger,
        retry_policy=FixedDelayRetry(max_retries=3, delay=0, retry_on=(RedisConnectionError,), logger=logger),
    )
    client.redis = AsyncMock()
    client.redis.get.side_effect = [RedisConnectionError("blip"), "cached"]

    assert await client.get("r1") == "cached"
    assert client.redis.get.await_count == 2


@pytest.mark.asyncio
async def test_redis_client_ping_failure_returns_false(logger, no_retry):
    client = RedisClient(redis_url="redis://localhost:6379/0", logger=logger, retry_policy=no_retry)
    client.redis = AsyncMock()
    client.redis.ping.side_effect = RedisConnectionError("down")

    assert await client.ping() is False


# ----------------------------
# KafkaClient
# ----------------------------
@pytest.mark.asyncio
async def test_kafka_produce(logger, no_retry):
    mock_producer = AsyncMock()
    mock_producer.send_and_wait.return_value = SimpleNamespace(topic="orders", partition=1, offset=42)

    client = KafkaClient(bootstrap_servers="localhost:9092", logger=logger, retry_policy=no_retry)
    client._producer = mock_producer
    client._running = True

    record = await client.produce("orders", b'{"order_id": "o1"}', key="o1")

    assert record == PublishedRecord(topic="orders", partition=1, offset=42)
    mock_producer.send_and_wait.assert_awaited_once_with("orders", b'{"order_id": "o1"}', key=b"o1")


@pytest.mark.asyncio
async def test_kafka_read_and_commit(logger, no_retry):
    mock_consumer = AsyncMock()
    mock_consumer.getone.return_value = SimpleNamespace(
        topic="orders", partition=0, offset=5, key=b"o1", value=b"payload"
    )

    client = KafkaClient(
        bootstrap_servers="localhost:9092",
        group_id="notification-service-group",
        topics=["orders"],
        enable_producer=False,
        logger=logger,
        retry_policy=no_retry,
    )
    client._consumer = mock_consumer
    client._running = True

    record = await client.read()
    assert record == ConsumedRecord(topic="orders", partition=0, offset=5, key="o1", value=b"payload")

    await client.commit(record)
    mock_consumer.commit.assert_awaited_once_with({TopicPartition("orders", 0): 6})


@pytest.mark.asyncio
async def test_kafka_stop_closes_both_sides(logger, no_retry):
    client = KafkaClient(bootstrap_servers="localhost:9092", logger=logger, retry_policy=no_retry)
    producer, consumer = AsyncMock(), AsyncMock()
    client._producer, client._consumer, client._running = producer, consumer, True

    await client.stop()

    producer.stop.assert_awaited_once()
    consumer.stop.assert_awaited_once()
    assert client._producer is None and client._consumer is None


@pytest.mark.asyncio
async def test_kafka_publisher_wraps_failures(logger):
    kafka_client = MagicMock()
    kafka_client.produce = AsyncMock(side_effect=TimeoutError("no ack"))
    publisher = KafkaEventPublisher(kafka_client, logger=logger)

    with pytest.raises(PublishError):
        await publisher.publish("orders", b"{}", key="o1")
