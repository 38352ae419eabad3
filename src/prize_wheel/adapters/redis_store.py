"""Redis-backed key-value store."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from prize_wheel.domain.errors import StoreError
from prize_wheel.services.store import KeyValueStore


@contextmanager
def _store_errors() -> Iterator[None]:
    try:
        yield
    except RedisError as exc:
        raise StoreError(f"Redis request failed: {exc}") from exc


@dataclass
class RedisKeyValueStore(KeyValueStore):
    """Key-value store implemented with redis-py's asyncio client."""

    client: redis.Redis

    @classmethod
    def create(cls, redis_url: str) -> "RedisKeyValueStore":
        """Create a store with a managed connection pool."""
        return cls(client=redis.from_url(redis_url, decode_responses=True))

    async def get(self, key: str) -> str | None:
        """Return the stored string value."""
        with _store_errors():
            return await self.client.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Store a value with an optional expiry."""
        with _store_errors():
            await self.client.set(key, value, ex=ttl_seconds)

    async def ttl(self, key: str) -> int | None:
        """Return the remaining TTL, or None for persistent or missing keys."""
        with _store_errors():
            remaining = await self.client.ttl(key)
        if remaining is None or remaining < 0:
            return None
        return remaining

    async def replace_if_unchanged(
        self, key: str, expected: str, value: str, ttl_seconds: int | None = None
    ) -> bool:
        """Compare-and-swap using WATCH/MULTI/EXEC."""
        with _store_errors():
            async with self.client.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(key)
                    current = await pipe.get(key)
                    if current != expected:
                        await pipe.unwatch()
                        return False
                    pipe.multi()
                    if ttl_seconds is None:
                        pipe.set(key, value, keepttl=True)
                    else:
                        pipe.set(key, value, ex=ttl_seconds)
                    await pipe.execute()
                except WatchError:
                    return False
        return True

    async def add_member(self, key: str, member: str) -> None:
        """Add a member to a Redis set."""
        with _store_errors():
            await self.client.sadd(key, member)

    async def remove_member(self, key: str, member: str) -> None:
        """Remove a member from a Redis set."""
        with _store_errors():
            await self.client.srem(key, member)

    async def members(self, key: str) -> set[str]:
        """Return all members of a Redis set."""
        with _store_errors():
            return set(await self.client.smembers(key))

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self.client.aclose()
