import asyncio
from typing import List, Optional

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer, TopicPartition
from aiokafka.admin import AIOKafkaAdminClient, NewTopic
from aiokafka.errors import KafkaError

from delivery.shared.logger import JohnWickLogger
from delivery.shared.messaging.base import ConsumedRecord, PublishedRecord
from delivery.shared.metrics.metrics_collector import MetricsCollector
from delivery.shared.metrics.metrics_schema import KafkaMetrics
from delivery.shared.retry.base import RetryPolicy
from delivery.shared.retry.fixed_delay_retry import FixedDelayRetry


class KafkaClient:
    """
    Async Kafka client with retries and metrics.

    The producer waits for acknowledgement from all in-sync replicas. The
    consumer never auto-commits: callers commit each record explicitly once
    they are done with it.
    """

    def __init__(
        self,
        bootstrap_servers: str,
        group_id: Optional[str] = None,
        topics: Optional[List[str]] = None,
        enable_producer: bool = True,
        request_timeout: float = 10.0,
        logger: Optional[JohnWickLogger] = None,
        metrics: Optional[MetricsCollector] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.bootstrap_servers = bootstrap_servers
        self.group_id = group_id
        self.topics = topics or []
        self.enable_producer = enable_producer
        self.request_timeout = request_timeout
        self.logger = logger or JohnWickLogger("KafkaClient")
        self.metrics = metrics or MetricsCollector(self.logger, namespace="kafka")
        self.retry_policy: RetryPolicy = retry_policy or FixedDelayRetry(
            max_retries=3, delay=0.5, retry_on=(KafkaError, OSError, asyncio.TimeoutError)
        )

        self._producer: Optional[AIOKafkaProducer] = None
        self._consumer: Optional[AIOKafkaConsumer] = None
        self._running = False
        self._start_lock = asyncio.Lock()

    # --- Lifecycle ---
    async def start(self):
        """Start producer and consumer."""
        # Prevents trying to start the connection more than once at the same time.
        async with self._start_lock:
            if self._running:
                return

            timeout_ms = int(self.request_timeout * 1000)

            async def _start_producer():
                if not self.enable_producer:
                    return
                self._producer = AIOKafkaProducer(
                    bootstrap_servers=self.bootstrap_servers,
                    acks="all",
                    enable_idempotence=True,
                    request_timeout_ms=timeout_ms,
                )
                await self._producer.start()
                self.logger.info("Kafka Producer started", extra={"bootstrap_servers": self.bootstrap_servers})

            async def _start_consumer():
                # Start consuming only if there are any topics present
                if self.topics:
                    self._consumer = AIOKafkaConsumer(
                        *self.topics,
                        bootstrap_servers=self.bootstrap_servers,
                        group_id=self.group_id,
                        enable_auto_commit=False,
                        auto_offset_reset="earliest",
                        request_timeout_ms=timeout_ms,
                    )
                    await self._consumer.start()
                    self.logger.info(
                        "Kafka Consumer started", extra={"group_id": self.group_id, "topics": self.topics}
                    )

            try:
                await self.retry_policy.execute(_start_producer)
                await self.retry_policy.execute(_start_consumer)
                self._running = True
            except Exception as e:
                self.logger.error("Failed to start KafkaClient", extra={"error": str(e)})
                await self._close()
                raise

    async def stop(self):
        """Stop producer and consumer."""
        if not self._running:
            return
        await self._close()
        self._running = False

    async def _close(self):
        if self._consumer:
            await self._consumer.stop()
            self._consumer = None
            self.logger.info("Kafka Consumer stopped")
        if self._producer:
            await self._producer.stop()
            self._producer = None
            self.logger.info("Kafka Producer stopped")

    # --- Produce ---
    async def produce(self, topic: str, value: bytes, key: Optional[str] = None) -> PublishedRecord:
        """Publish raw bytes and wait for the broker acknowledgement."""
        if not self._running:
            await self.start()
        if self._producer is None:
            raise RuntimeError("Kafka producer not enabled on this client")

        async def _produce():
            metadata = await asyncio.wait_for(
                self._producer.send_and_wait(topic, value, key=key.encode("utf-8") if key else None),
                timeout=self.request_timeout,
            )
            self.metrics.increment(KafkaMetrics.PRODUCED)
            self.logger.info(
                "Message produced",
                extra={"topic": topic, "key": key, "partition": metadata.partition, "offset": metadata.offset},
            )
            return PublishedRecord(topic=metadata.topic, partition=metadata.partition, offset=metadata.offset)

        try:
            return await self.retry_policy.execute(_produce)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.error("Failed to produce message", extra={"topic": topic, "key": key, "error": str(e)})
            self.metrics.increment(KafkaMetrics.FAILED_PRODUCE)
            raise

    # --- Consume ---
    async def read(self) -> ConsumedRecord:
        """Block until the next message is available on the subscribed topics."""
        if not self._running:
            await self.start()
        if self._consumer is None:
            raise RuntimeError("Kafka consumer not initialized")

        try:
            msg = await self._consumer.getone()
        except asyncio.CancelledError:
            self.logger.info("Kafka read cancelled")
            raise
        except Exception as e:
            self.logger.error("Kafka read error", extra={"error": str(e)})
            self.metrics.increment(KafkaMetrics.FAILED_CONSUME)
            raise

        self.metrics.increment(KafkaMetrics.CONSUMED)
        self.logger.debug(
            "Consumed message from kafka",
            extra={"topic": msg.topic, "partition": msg.partition, "offset": msg.offset},
        )
        return ConsumedRecord(
            topic=msg.topic,
            partition=msg.partition,
            offset=msg.offset,
            key=msg.key.decode("utf-8") if msg.key else None,
            value=msg.value,
        )

    async def commit(self, record: ConsumedRecord):
        """Commit the position just past ``record`` for this consumer group."""
        if self._consumer is None:
            raise RuntimeError("Kafka consumer not initialized")
        tp = TopicPartition(record.topic, record.partition)
        await self._consumer.commit({tp: record.offset + 1})
        self.metrics.increment(KafkaMetrics.COMMITTED)

    # Create topics if they don't exist, this is purely for dev and experimentation, in prod, create this on the broker
    # And set the optimal replication level
    async def create_topics(self, topics: List[str], num_partitions: int = 3, replication_factor: int = 1):
        """Create Kafka topics that don't already exist."""
        admin = AIOKafkaAdminClient(bootstrap_servers=self.bootstrap_servers)
        await admin.start()
        try:
            existing = await admin.list_topics()
            new_topics = [
                NewTopic(name=t, num_partitions=num_partitions, replication_factor=replication_factor)
                for t in topics if t not in existing
            ]

            if not new_topics:
                self.logger.info("All topics already exist", extra={"topics": topics})
                return

            await admin.create_topics(new_topics)
            self.logger.info("Topics created successfully", extra={"topics": [t.name for t in new_topics]})
        except Exception as e:
            self.logger.error("Failed to create topics", extra={"error": str(e), "topics": topics})
            raise
        finally:
            await admin.close()
