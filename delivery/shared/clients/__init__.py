from delivery.shared.clients.kafka_client import KafkaClient
from delivery.shared.clients.redis_client import RedisClient

__all__ = ["KafkaClient", "RedisClient"]
