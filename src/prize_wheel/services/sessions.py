"""Spin session lifecycle and state machine."""

import logging
import secrets
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace

from prize_wheel.domain.errors import (
    InvalidInputError,
    SessionAlreadyResolvedError,
    SessionNotFoundError,
)
from prize_wheel.domain.sessions import MIN_ITEMS, SessionStatus, SpinSession
from prize_wheel.services.store import KeyValueStore

SESSION_PREFIX = "spin:session:"
SESSION_TTL_SECONDS = 300
EXPIRED_GRACE_SECONDS = 60
_SESSION_ID_BYTES = 8

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def generate_session_id() -> str:
    """Return a hex id built from cryptographically random bytes."""
    return secrets.token_hex(_SESSION_ID_BYTES)


def session_key(session_id: str) -> str:
    """Return the store key for a session id."""
    return f"{SESSION_PREFIX}{session_id}"


@dataclass
class SessionManager:
    """Owns spin session records and their transitions.

    Resolution is guarded by a compare-and-swap on the serialized record, so
    at most one decision can move a session out of ``waiting``.
    """

    store: KeyValueStore
    ttl_seconds: int = SESSION_TTL_SECONDS
    expired_grace_seconds: int = EXPIRED_GRACE_SECONDS
    clock_ms: Callable[[], int] = field(default=_now_ms)

    async def create_session(self, items: Sequence[str]) -> SpinSession:
        """Persist a new waiting session for the given options."""
        if isinstance(items, str | bytes) or not isinstance(items, Sequence):
            raise InvalidInputError("Items must be a list of strings")
        if not all(isinstance(item, str) for item in items):
            raise InvalidInputError("Items must be a list of strings")
        if len(items) < MIN_ITEMS:
            raise InvalidInputError("At least 2 items required")

        session = SpinSession(
            id=generate_session_id(),
            items=tuple(items),
            status=SessionStatus.WAITING,
            created_at=self.clock_ms(),
        )
        await self.store.set(
            session_key(session.id), session.to_json(), ttl_seconds=self.ttl_seconds
        )
        logger.info(
            "Created spin session",
            extra={"session_id": session.id, "item_count": len(session.items)},
        )
        return session

    async def get_session(self, session_id: str) -> SpinSession | None:
        """Return a session by id, or None when unknown or expired."""
        raw = await self.store.get(session_key(session_id))
        if raw is None:
            return None
        return SpinSession.from_json(raw)

    async def update_session_choice(
        self, session_id: str, chosen_index: int, chosen_by: str | None
    ) -> SpinSession:
        """Record a remote decision on a waiting session."""
        key = session_key(session_id)
        raw = await self.store.get(key)
        if raw is None:
            raise SessionNotFoundError(session_id)
        session = SpinSession.from_json(raw)
        if session.status is not SessionStatus.WAITING:
            raise SessionAlreadyResolvedError(session_id)
        if (
            not isinstance(chosen_index, int)
            or isinstance(chosen_index, bool)
            or not 0 <= chosen_index < len(session.items)
        ):
            raise InvalidInputError(f"Item index out of range: {chosen_index!r}")

        updated = replace(
            session,
            status=SessionStatus.CHOSEN,
            chosen_index=chosen_index,
            chosen_by=chosen_by,
        )
        if not await self.store.replace_if_unchanged(key, raw, updated.to_json()):
            raise SessionAlreadyResolvedError(session_id)
        logger.info(
            "Spin session chosen",
            extra={"session_id": session_id, "chosen_index": chosen_index},
        )
        return updated

    async def mark_session_expired(self, session_id: str) -> None:
        """Expire a waiting session, keeping it visible for a short grace window."""
        key = session_key(session_id)
        raw = await self.store.get(key)
        if raw is None:
            return
        session = SpinSession.from_json(raw)
        if session.is_resolved:
            return
        expired = replace(session, status=SessionStatus.EXPIRED)
        swapped = await self.store.replace_if_unchanged(
            key, raw, expired.to_json(), ttl_seconds=self.expired_grace_seconds
        )
        if not swapped:
            logger.info(
                "Spin session resolved before expiry", extra={"session_id": session_id}
            )
            return
        logger.info("Spin session expired", extra={"session_id": session_id})

    async def remaining_ttl(self, session_id: str) -> int | None:
        """Return seconds until the record leaves the store, if it expires."""
        return await self.store.ttl(session_key(session_id))
