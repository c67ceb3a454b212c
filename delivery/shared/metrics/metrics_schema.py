class CacheMetrics:
    """Metric keys for CatalogCache"""
    HIT = "cache_hit"
    MISS = "cache_miss"
    COALESCED = "cache_coalesced"
    POPULATED = "cache_populated"
    FAILED_POPULATE = "cache_failed_populate"
    FAILED_WRITE = "cache_failed_write"


class RedisMetrics:
    """Metric keys for RedisClient"""
    SET = "redis_set"
    GET = "redis_get"
    PING = "redis_ping"
    FAILED_SET = "redis_failed_set"
    FAILED_GET = "redis_failed_get"
    FAILED_PING = "redis_failed_ping"


class KafkaMetrics:
    """Metric keys for KafkaClient and the in-memory event log"""
    PRODUCED = "produced"
    FAILED_PRODUCE = "failed_produce"
    CONSUMED = "consumed"
    FAILED_CONSUME = "failed_consume"
    COMMITTED = "committed"


class OrderMetrics:
    """Metric keys for the order lifecycle"""
    CREATED = "orders_created"
    ACCEPTED = "orders_accepted"
    PICKED_UP = "orders_picked_up"
    DELIVERED = "orders_delivered"
    REJECTED = "orders_rejected"
    FAILED_PUBLISH = "orders_failed_publish"


class RelayMetrics:
    """Metric keys for NotificationRelay"""
    RELAYED = "relay_relayed"
    DUPLICATE = "relay_duplicate"
    SKIPPED = "relay_skipped"
    FAILED = "relay_failed"
    RESTARTS = "relay_restarts"
