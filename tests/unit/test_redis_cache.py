"""
Unit tests for the Redis cache client (fake redis.asyncio client)
"""

import asyncio

import numpy as np
from redis.exceptions import ConnectionError as RedisConnectionError

from giftsearch.ml.caching import RedisCache


class FakeRedis:
    def __init__(self, fail: bool = False):
        self.data = {}
        self.ttls = {}
        self.fail = fail
        self.closed = False

    def _check(self):
        if self.fail:
            raise RedisConnectionError("connection refused")

    async def get(self, key):
        self._check()
        return self.data.get(key)

    async def set(self, key, value):
        self._check()
        self.data[key] = value
        self.ttls[key] = -1

    async def setex(self, key, ttl, value):
        self._check()
        self.data[key] = value
        self.ttls[key] = ttl

    async def delete(self, key):
        self._check()
        return 1 if self.data.pop(key, None) is not None else 0

    async def ping(self):
        self._check()
        return True

    async def aclose(self):
        self.closed = True


class TestRedisCache:
    def test_roundtrip_with_ttl(self, ml_config):
        client = FakeRedis()
        cache = RedisCache(ml_config, client=client)
        vector = np.array([0.1, 0.2, 0.3, 0.4], dtype=np.float32)

        assert asyncio.run(cache.set("embedding:query:abc", vector, ttl=3600)) is True
        cached = asyncio.run(cache.get("embedding:query:abc"))

        np.testing.assert_array_equal(cached, vector)
        assert client.ttls["embedding:query:abc"] == 3600

    def test_set_without_ttl(self, ml_config):
        client = FakeRedis()
        cache = RedisCache(ml_config, client=client)

        asyncio.run(cache.set("k", {"a": 1}))

        assert client.ttls["k"] == -1
        assert asyncio.run(cache.get("k")) == {"a": 1}

    def test_miss_returns_none(self, ml_config):
        cache = RedisCache(ml_config, client=FakeRedis())

        assert asyncio.run(cache.get("missing")) is None

    def test_errors_are_misses(self, ml_config):
        cache = RedisCache(ml_config, client=FakeRedis(fail=True))

        assert asyncio.run(cache.get("k")) is None
        assert asyncio.run(cache.set("k", 1, ttl=10)) is False
        assert asyncio.run(cache.delete("k")) is False
        assert asyncio.run(cache.ping()) is False

    def test_corrupt_value_is_miss(self, ml_config):
        client = FakeRedis()
        client.data["k"] = b"not a pickle"
        cache = RedisCache(ml_config, client=client)

        assert asyncio.run(cache.get("k")) is None

    def test_delete(self, ml_config):
        cache = RedisCache(ml_config, client=FakeRedis())
        asyncio.run(cache.set("a", 1))
        asyncio.run(cache.set("b", 2))

        assert asyncio.run(cache.get("b")) == 2
        assert asyncio.run(cache.delete("a")) is True
        assert asyncio.run(cache.delete("a")) is False

    def test_close(self, ml_config):
        client = FakeRedis()
        cache = RedisCache(ml_config, client=client)

        asyncio.run(cache.close())

        assert client.closed is True
