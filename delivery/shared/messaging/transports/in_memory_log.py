import asyncio
from typing import Dict, List, Optional, Tuple

from delivery.shared.logger import JohnWickLogger
from delivery.shared.messaging.base import ConsumedRecord, EventPublisher, EventSource, PublishedRecord
from delivery.shared.metrics.metrics_collector import MetricsCollector
from delivery.shared.metrics.metrics_schema import KafkaMetrics


class InMemoryEventLog(EventPublisher):
    """
    Append-only in-process log with Kafka-like semantics.

    One partition per topic, offsets start at 0, and every consumer group
    keeps its own committed offset. Suitable for development and tests;
    nothing survives the process.
    """

    PARTITION = 0

    def __init__(self, logger: Optional[JohnWickLogger] = None, metrics: Optional[MetricsCollector] = None):
        self.logger = logger or JohnWickLogger("InMemoryEventLog")
        self.metrics = metrics or MetricsCollector(self.logger, namespace="event_log")
        self._topics: Dict[str, List[ConsumedRecord]] = {}
        self._committed: Dict[Tuple[str, str], int] = {}
        self._appended = asyncio.Condition()

    async def start(self):
        pass

    async def stop(self):
        pass

    async def publish(self, topic: str, value: bytes, key: Optional[str] = None) -> PublishedRecord:
        async with self._appended:
            records = self._topics.setdefault(topic, [])
            record = ConsumedRecord(
                topic=topic, partition=self.PARTITION, offset=len(records), key=key, value=value
            )
            records.append(record)
            self._appended.notify_all()

        self.metrics.increment(KafkaMetrics.PRODUCED)
        self.logger.debug("Message appended", extra={"topic": topic, "key": key, "offset": record.offset})
        return PublishedRecord(topic=topic, partition=record.partition, offset=record.offset)

    def records(self, topic: str) -> List[ConsumedRecord]:
        return list(self._topics.get(topic, []))

    def committed(self, topic: str, group_id: str) -> int:
        """Next offset the group will read from ``topic``."""
        return self._committed.get((topic, group_id), 0)

    def source(self, topic: str, group_id: str) -> "InMemoryEventSource":
        return InMemoryEventSource(self, topic, group_id)

    async def _wait_for(self, topic: str, offset: int) -> ConsumedRecord:
        async with self._appended:
            await self._appended.wait_for(lambda: len(self._topics.get(topic, [])) > offset)
            return self._topics[topic][offset]

    def _commit(self, topic: str, group_id: str, next_offset: int):
        key = (topic, group_id)
        self._committed[key] = max(self._committed.get(key, 0), next_offset)
        self.metrics.increment(KafkaMetrics.COMMITTED)


class InMemoryEventSource(EventSource):
    """Consumer-group reader over an InMemoryEventLog topic."""

    def __init__(self, log: InMemoryEventLog, topic: str, group_id: str):
        self.log = log
        self.topic = topic
        self.group_id = group_id
        self._position = 0

    async def start(self):
        # A new session resumes from the group's committed offset
        self._position = self.log.committed(self.topic, self.group_id)

    async def stop(self):
        pass

    async def read(self) -> ConsumedRecord:
        record = await self.log._wait_for(self.topic, self._position)
        self._position = record.offset + 1
        self.log.metrics.increment(KafkaMetrics.CONSUMED)
        return record

    async def commit(self, record: ConsumedRecord):
        self.log._commit(self.topic, self.group_id, record.offset + 1)
