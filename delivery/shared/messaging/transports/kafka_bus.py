import asyncio
from typing import Optional

from delivery.shared.clients import KafkaClient
from delivery.shared.errors import PublishError
from delivery.shared.logger import JohnWickLogger
from delivery.shared.messaging.base import ConsumedRecord, EventPublisher, EventSource, PublishedRecord


class KafkaEventPublisher(EventPublisher):
    """EventPublisher over KafkaClient. Broker failures surface as PublishError."""

    def __init__(self, kafka_client: KafkaClient, logger: Optional[JohnWickLogger] = None):
        self.kafka_client = kafka_client
        self.logger = logger or JohnWickLogger("KafkaEventPublisher")

    async def start(self):
        await self.kafka_client.start()

    async def stop(self):
        await self.kafka_client.stop()

    async def publish(self, topic: str, value: bytes, key: Optional[str] = None) -> PublishedRecord:
        try:
            return await self.kafka_client.produce(topic=topic, value=value, key=key)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.logger.error("Failed to publish", extra={"topic": topic, "key": key, "error": str(exc)})
            raise PublishError(f"Failed to publish to {topic}: {exc}") from exc


class KafkaEventSource(EventSource):
    """
    EventSource over a consumer-only KafkaClient.

    A fresh source is built for every relay session so a restarted session
    rejoins the group and resumes from the last committed offset.
    """

    def __init__(self, kafka_client: KafkaClient):
        self.kafka_client = kafka_client

    async def start(self):
        await self.kafka_client.start()

    async def stop(self):
        await self.kafka_client.stop()

    async def read(self) -> ConsumedRecord:
        return await self.kafka_client.read()

    async def commit(self, record: ConsumedRecord):
        await self.kafka_client.commit(record)
