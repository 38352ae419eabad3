"""Tests for the Redis key-value store adapter."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import WatchError

from prize_wheel.adapters.redis_store import RedisKeyValueStore
from prize_wheel.domain.errors import StoreError


class _FakePipeline:
    def __init__(self, redis: _FakeRedis) -> None:
        self.redis = redis
        self.watched: dict[str, int] = {}
        self.queued: list[tuple[str, str, int | None, bool]] = []
        self.buffering = False

    async def __aenter__(self) -> _FakePipeline:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.watched.clear()
        self.queued.clear()

    async def watch(self, *keys: str) -> None:
        for key in keys:
            self.watched[key] = self.redis.versions.get(key, 0)

    async def unwatch(self) -> None:
        self.watched.clear()

    async def get(self, key: str) -> str | None:
        return await self.redis.get(key)

    def multi(self) -> None:
        self.buffering = True

    def set(
        self, key: str, value: str, ex: int | None = None, keepttl: bool = False
    ) -> _FakePipeline:
        assert self.buffering
        self.queued.append((key, value, ex, keepttl))
        return self

    async def execute(self) -> list[bool]:
        if self.redis.before_execute is not None:
            self.redis.before_execute()
        for key, version in self.watched.items():
            if self.redis.versions.get(key, 0) != version:
                raise WatchError("Watched variable changed.")
        results = []
        for key, value, ex, keepttl in self.queued:
            results.append(await self.redis.set(key, value, ex=ex, keepttl=keepttl))
        return results


class _FakeRedis:
    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.sets: dict[str, set[str]] = {}
        self.versions: dict[str, int] = {}
        self.before_execute: Callable[[], None] | None = None
        self.closed = False

    def _touch(self, key: str) -> None:
        self.versions[key] = self.versions.get(key, 0) + 1

    async def get(self, key: str) -> str | None:
        return self.values.get(key)

    async def set(
        self, key: str, value: str, ex: int | None = None, keepttl: bool = False
    ) -> bool:
        self.values[key] = value
        if ex is not None:
            self.ttls[key] = ex
        elif not keepttl:
            self.ttls.pop(key, None)
        self._touch(key)
        return True

    async def ttl(self, key: str) -> int:
        if key not in self.values:
            return -2
        return self.ttls.get(key, -1)

    async def sadd(self, key: str, *members: str) -> int:
        self.sets.setdefault(key, set()).update(members)
        return len(members)

    async def srem(self, key: str, *members: str) -> int:
        self.sets.get(key, set()).difference_update(members)
        return len(members)

    async def smembers(self, key: str) -> set[str]:
        return set(self.sets.get(key, set()))

    def pipeline(self, transaction: bool = True) -> _FakePipeline:
        return _FakePipeline(self)

    async def aclose(self) -> None:
        self.closed = True


class _BrokenRedis(_FakeRedis):
    async def get(self, key: str) -> str | None:
        raise RedisConnectionError("connection refused")


def test_set_get_and_ttl() -> None:
    client = _FakeRedis()
    store = RedisKeyValueStore(client=client)

    async def scenario() -> tuple[str | None, int | None, int | None, int | None]:
        await store.set("a", "1", ttl_seconds=300)
        await store.set("b", "2")
        return (
            await store.get("a"),
            await store.ttl("a"),
            await store.ttl("b"),
            await store.ttl("missing"),
        )

    assert asyncio.run(scenario()) == ("1", 300, None, None)


def test_replace_if_unchanged_keeps_ttl() -> None:
    client = _FakeRedis()
    store = RedisKeyValueStore(client=client)

    async def scenario() -> bool:
        await store.set("k", "old", ttl_seconds=120)
        return await store.replace_if_unchanged("k", "old", "new")

    assert asyncio.run(scenario()) is True
    assert client.values["k"] == "new"
    assert client.ttls["k"] == 120


def test_replace_if_unchanged_can_reset_ttl() -> None:
    client = _FakeRedis()
    store = RedisKeyValueStore(client=client)

    async def scenario() -> bool:
        await store.set("k", "old", ttl_seconds=120)
        return await store.replace_if_unchanged("k", "old", "new", ttl_seconds=60)

    assert asyncio.run(scenario()) is True
    assert client.ttls["k"] == 60


def test_replace_if_unchanged_rejects_stale_value() -> None:
    client = _FakeRedis()
    store = RedisKeyValueStore(client=client)

    async def scenario() -> bool:
        await store.set("k", "current")
        return await store.replace_if_unchanged("k", "stale", "new")

    assert asyncio.run(scenario()) is False
    assert client.values["k"] == "current"


def test_replace_if_unchanged_loses_race() -> None:
    client = _FakeRedis()
    store = RedisKeyValueStore(client=client)

    def concurrent_write() -> None:
        client.values["k"] = "theirs"
        client._touch("k")

    async def scenario() -> bool:
        await store.set("k", "old")
        client.before_execute = concurrent_write
        return await store.replace_if_unchanged("k", "old", "mine")

    assert asyncio.run(scenario()) is False
    assert client.values["k"] == "theirs"


def test_set_membership() -> None:
    store = RedisKeyValueStore(client=_FakeRedis())

    async def scenario() -> set[str]:
        await store.add_member("subs", "1")
        await store.add_member("subs", "2")
        await store.remove_member("subs", "1")
        return await store.members("subs")

    assert asyncio.run(scenario()) == {"2"}


def test_redis_errors_become_store_errors() -> None:
    store = RedisKeyValueStore(client=_BrokenRedis())

    with pytest.raises(StoreError):
        asyncio.run(store.get("k"))


def test_close_releases_client() -> None:
    client = _FakeRedis()
    store = RedisKeyValueStore(client=client)

    asyncio.run(store.close())

    assert client.closed


def test_create_builds_client_from_url() -> None:
    store = RedisKeyValueStore.create("redis://localhost:6379/15")

    assert store.client.connection_pool.connection_kwargs["db"] == 15
    asyncio.run(store.close())
