import asyncio
import copy
import os
from collections import Counter
from unittest.mock import MagicMock

import pytest
from redis.exceptions import RedisError

# Keep test runs from writing the JSON log file
os.environ.setdefault("DELIVERY_APP__LOG_FILE", "")

from delivery.config.settings import AppSettings, MessagingSettings, Settings  # noqa: E402
from delivery.shared.clients import RedisClient  # noqa: E402
from delivery.shared.errors import SourceFetchError  # noqa: E402
from delivery.shared.messaging.transports.in_memory_log import InMemoryEventLog  # noqa: E402
from delivery.shared.retry import FixedDelayRetry  # noqa: E402

MENU_R1 = {
    "restaurant_id": "r1",
    "menu": [
        {"id": "m1", "name": "Pad Thai", "price": 10.0},
        {"id": "m2", "name": "Spring Rolls", "price": 5.0},
    ],
}

CATALOG = {
    "r1": MENU_R1,
    "restaurant-list": [{"id": "r1", "name": "Bangkok Street Kitchen"}],
    "rider-list": [{"id": "rd1", "name": "Somchai"}],
}


class FakeRedis:
    """Dict-backed stand-in for redis.asyncio.Redis."""

    def __init__(self):
        self.data = {}
        self.ttls = {}
        self.fail_get = None
        self.fail_set = None

    async def ping(self):
        return True

    async def get(self, key):
        if self.fail_get is not None:
            raise self.fail_get
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        if self.fail_set is not None:
            raise self.fail_set
        self.data[key] = value
        self.ttls[key] = ex
        return True

    async def aclose(self):
        pass


class FakeCatalogStore:
    """CatalogStore counting loads per key, with an optional artificial delay."""

    def __init__(self, records=None, delay: float = 0.0):
        self.records = copy.deepcopy(CATALOG if records is None else records)
        self.delay = delay
        self.loads = Counter()

    async def load(self, key):
        self.loads[key] += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if key not in self.records:
            raise SourceFetchError(f"menu for restaurant {key} not found")
        return copy.deepcopy(self.records[key])


@pytest.fixture
def logger():
    return MagicMock()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def redis_client(fake_redis, logger):
    client = RedisClient(
        redis_url="redis://localhost:6379/0",
        logger=logger,
        retry_policy=FixedDelayRetry(max_retries=1, delay=0, retry_on=(RedisError, OSError), logger=logger),
    )
    client.redis = fake_redis
    return client


@pytest.fixture
def catalog_store():
    return FakeCatalogStore()


@pytest.fixture
def event_log(logger):
    return InMemoryEventLog(logger=logger)


@pytest.fixture
def settings():
    return Settings(
        app=AppSettings(log_file=""),
        messaging=MessagingSettings(transport="memory"),
    )
