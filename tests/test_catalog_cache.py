import asyncio
import json

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from delivery.catalog.cache import CatalogCache
from delivery.catalog.models import RESTAURANT_LIST_KEY, RIDER_LIST_KEY, RestaurantMenu
from delivery.shared.errors import CacheInfrastructureError, SourceFetchError, ValidationError
from delivery.shared.metrics.metrics_schema import CacheMetrics
from tests.conftest import FakeCatalogStore, MENU_R1


@pytest.fixture
def cache(redis_client, catalog_store, logger):
    return CatalogCache(redis_client=redis_client, store=catalog_store, ttl=3600, logger=logger)


@pytest.mark.asyncio
async def test_miss_populates_then_hit_serves_from_redis(cache, catalog_store, fake_redis):
    first = await cache.get_menu("r1")
    second = await cache.get_menu("r1")

    assert first == second == RestaurantMenu.model_validate(MENU_R1)
    assert catalog_store.loads["r1"] == 1
    assert json.loads(fake_redis.data["r1"]) == MENU_R1
    assert fake_redis.ttls["r1"] == 3600
    assert cache.metrics.get(CacheMetrics.MISS) == 1
    assert cache.metrics.get(CacheMetrics.HIT) == 1


@pytest.mark.asyncio
async def test_raw_get_returns_the_json_record(cache):
    record = await cache.get("r1")
    assert record == MENU_R1


@pytest.mark.asyncio
async def test_expired_key_is_loaded_again(cache, catalog_store, fake_redis):
    await cache.get_menu("r1")
    del fake_redis.data["r1"]

    await cache.get_menu("r1")
    assert catalog_store.loads["r1"] == 2


@pytest.mark.asyncio
async def test_redis_failure_is_not_a_miss(cache, catalog_store, fake_redis):
    fake_redis.fail_get = RedisConnectionError("connection refused")

    with pytest.raises(CacheInfrastructureError):
        await cache.get_menu("r1")
    assert catalog_store.loads["r1"] == 0


@pytest.mark.asyncio
async def test_unknown_key_is_not_cached(cache, catalog_store, fake_redis):
    for _ in range(2):
        with pytest.raises(SourceFetchError):
            await cache.get_menu("r404")

    assert "r404" not in fake_redis.data
    assert catalog_store.loads["r404"] == 2


@pytest.mark.asyncio
async def test_concurrent_misses_load_once(redis_client, logger):
    store = FakeCatalogStore(delay=0.05)
    cache = CatalogCache(redis_client=redis_client, store=store, logger=logger)

    menus = await asyncio.gather(*(cache.get_menu("r1") for _ in range(10)))

    assert store.loads["r1"] == 1
    assert all(menu == menus[0] for menu in menus)
    assert cache.metrics.get(CacheMetrics.COALESCED) == 9
    assert cache._inflight == {}


@pytest.mark.asyncio
async def test_concurrent_misses_share_the_failure(redis_client, logger):
    store = FakeCatalogStore(delay=0.05)
    cache = CatalogCache(redis_client=redis_client, store=store, logger=logger)

    results = await asyncio.gather(*(cache.get_menu("r404") for _ in range(5)), return_exceptions=True)

    assert store.loads["r404"] == 1
    assert all(isinstance(r, SourceFetchError) for r in results)
    assert cache._inflight == {}


@pytest.mark.asyncio
async def test_write_failure_still_returns_the_record(cache, catalog_store, fake_redis):
    fake_redis.fail_set = RedisConnectionError("read-only replica")

    menu = await cache.get_menu("r1")

    assert menu.restaurant_id == "r1"
    assert "r1" not in fake_redis.data
    assert cache.metrics.get(CacheMetrics.FAILED_WRITE) == 1


@pytest.mark.asyncio
async def test_malformed_seed_record_is_rejected_before_caching(redis_client, fake_redis, logger):
    store = FakeCatalogStore(records={"r1": {"restaurant_id": "r1", "menu": [{"id": "m1", "price": -1}]}})
    cache = CatalogCache(redis_client=redis_client, store=store, logger=logger)

    with pytest.raises(SourceFetchError):
        await cache.get_menu("r1")
    assert "r1" not in fake_redis.data


@pytest.mark.asyncio
async def test_corrupted_cached_value_raises(cache, fake_redis):
    fake_redis.data["r1"] = "{not json"

    with pytest.raises(CacheInfrastructureError):
        await cache.get_menu("r1")


@pytest.mark.asyncio
async def test_restaurant_and_rider_lists(cache):
    restaurants = await cache.get_restaurants()
    riders = await cache.get_riders()

    assert [r.id for r in restaurants] == ["r1"]
    assert [r.id for r in riders] == ["rd1"]
    assert RESTAURANT_LIST_KEY != RIDER_LIST_KEY


@pytest.mark.asyncio
async def test_cancelled_first_caller_does_not_cancel_waiters(redis_client, fake_redis, logger):
    store = FakeCatalogStore(delay=0.2)
    cache = CatalogCache(redis_client=redis_client, store=store, logger=logger)

    first = asyncio.create_task(cache.get_menu("r1"))
    await asyncio.sleep(0.01)
    second = asyncio.create_task(cache.get_menu("r1"))
    await asyncio.sleep(0.01)
    first.cancel()

    menu = await second
    assert menu.restaurant_id == "r1"
    with pytest.raises(asyncio.CancelledError):
        await first

    assert store.loads["r1"] == 1
    assert "r1" in fake_redis.data
    assert cache._inflight == {}


@pytest.mark.asyncio
async def test_load_finishes_when_its_only_caller_is_cancelled(redis_client, fake_redis, logger):
    store = FakeCatalogStore(delay=0.05)
    cache = CatalogCache(redis_client=redis_client, store=store, logger=logger)

    caller = asyncio.create_task(cache.get_menu("r1"))
    await asyncio.sleep(0.01)
    caller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await caller

    await asyncio.sleep(0.1)
    assert "r1" in fake_redis.data
    assert await cache.get_menu("r1") == RestaurantMenu.model_validate(MENU_R1)
    assert store.loads["r1"] == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("key", [RESTAURANT_LIST_KEY, RIDER_LIST_KEY])
async def test_list_keys_are_not_restaurant_ids(cache, catalog_store, key):
    await cache.get_restaurants()
    await cache.get_riders()

    with pytest.raises(ValidationError):
        await cache.get_menu(key)
    assert catalog_store.loads[key] == 1
