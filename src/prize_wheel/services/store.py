"""Key-value storage port shared by the session and subscriber services."""

from __future__ import annotations

from typing import Protocol


class KeyValueStore(Protocol):
    """Interface for a TTL-aware key-value store with set values."""

    async def get(self, key: str) -> str | None:
        """Return the stored value, or None when absent or expired."""

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Store a value, optionally expiring after ttl_seconds."""

    async def ttl(self, key: str) -> int | None:
        """Return the remaining TTL in seconds, or None if the key never expires."""

    async def replace_if_unchanged(
        self, key: str, expected: str, value: str, ttl_seconds: int | None = None
    ) -> bool:
        """Atomically swap the value when it still equals expected.

        Without ttl_seconds the key keeps its remaining TTL (or stays
        persistent). Returns False when the key changed or disappeared since
        it was read.
        """

    async def add_member(self, key: str, member: str) -> None:
        """Add a member to a set value."""

    async def remove_member(self, key: str, member: str) -> None:
        """Remove a member from a set value."""

    async def members(self, key: str) -> set[str]:
        """Return all members of a set value."""
