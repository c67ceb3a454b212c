from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# ----------------------------
# General / App settings
# ----------------------------
class AppSettings(BaseSettings):
    app_name: str = "delivery"
    debug: bool = False
    env_mode: str = "local"  # "local" or "docker"

    host: str = "0.0.0.0"
    port: int = 8080

    # Logger; an empty log_file disables the JSON file sink
    log_file: str = "delivery.log"
    log_level: str = "INFO"


# ----------------------------
# Redis settings (catalog cache + relay dedup markers)
# ----------------------------
class RedisSettings(BaseSettings):
    host_local: str = "127.0.0.1"
    host_docker: str = "delivery_redis"
    port: int = 6379
    db: int = 0

    cache_ttl_seconds: int = 3600
    relay_marker_ttl_seconds: int = 86400
    timeout_seconds: float = 2.0

    max_retries: int = 3
    retry_backoff: float = 0.2

    def get_host(self, env_mode: str) -> str:
        return self.host_docker if env_mode == "docker" else self.host_local

    def get_url(self, env_mode: str) -> str:
        return f"redis://{self.get_host(env_mode)}:{self.port}/{self.db}"


# ----------------------------
# Kafka settings
# ----------------------------
class KafkaSettings(BaseSettings):
    host_local: str = "127.0.0.1"
    host_docker: str = "delivery_kafka"
    port: int = 9092

    orders_topic: str = "orders"
    notification_topic: str = "order-notifications"
    group_id: str = "notification-service-group"

    # Dev convenience; in prod topics are provisioned on the broker
    auto_create_topics: bool = False
    num_partitions: int = 3

    timeout_seconds: float = 10.0
    max_retries: int = 3
    retry_backoff: float = 0.5

    def get_host(self, env_mode: str) -> str:
        return self.host_docker if env_mode == "docker" else self.host_local

    def get_bootstrap_servers(self, env_mode: str) -> str:
        return f"{self.get_host(env_mode)}:{self.port}"


# ----------------------------
# Messaging transport
# ----------------------------
class MessagingSettings(BaseSettings):
    transport: str = "kafka"  # "kafka" or "memory"

    # Relay supervisor restart backoff
    relay_restart_base_delay: float = 1.0
    relay_restart_max_delay: float = 30.0


# ----------------------------
# Catalog seed files
# ----------------------------
class CatalogSettings(BaseSettings):
    seed_dir: Path = Path("data")
    menu_file: str = "menu.json"
    restaurants_file: str = "restaurants.json"
    riders_file: str = "rider.json"


# ----------------------------
# Order lifecycle behavior
# ----------------------------
class OrderSettings(BaseSettings):
    enforce_transitions: bool = True
    reject_unknown_items: bool = False
    # Delivered orders remembered to reject repeat deliveries
    retired_order_capacity: int = 10_000


# ----------------------------
# Top-level settings
# ----------------------------
class Settings(BaseSettings):
    app: AppSettings = Field(default_factory=AppSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    kafka: KafkaSettings = Field(default_factory=KafkaSettings)
    messaging: MessagingSettings = Field(default_factory=MessagingSettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    orders: OrderSettings = Field(default_factory=OrderSettings)

    model_config = SettingsConfigDict(
        env_prefix="DELIVERY_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
