"""Client-side spin coordination: remote decision with local fallback."""

import asyncio
import logging
import random
import secrets
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol

from prize_wheel.client.wheel import WheelAnimation, WheelPhase, random_offset
from prize_wheel.domain.errors import InvalidInputError, SpinInProgressError
from prize_wheel.domain.sessions import MIN_ITEMS
from prize_wheel.services.live_status import StatusEvent, StatusEventName

logger = logging.getLogger(__name__)


class SpinApi(Protocol):
    """Server operations the orchestrator relies on."""

    async def count_subscribers(self) -> int:
        """Return how many chats would receive a vote."""

    async def create_session(self, items: Sequence[str]) -> tuple[str, int]:
        """Create a spin session and return its id and delivery count."""

    def stream_status(self, session_id: str) -> AsyncIterator[StatusEvent]:
        """Yield live status events for a session."""


class WinnerSource(StrEnum):
    """Where the winning index came from."""

    REMOTE = "remote"
    LOCAL = "local"


@dataclass(frozen=True)
class SpinTiming:
    """Client-side timing knobs, independent of the server stream ceiling."""

    remote_wait_seconds: float = 5.0
    landing_seconds: float = 4.0
    min_full_turns: int = 3
    spin_speed_degrees: float = 720.0
    jitter_fraction: float = 0.35


@dataclass(frozen=True)
class SpinResult:
    """Outcome of a completed spin."""

    index: int
    label: str
    source: WinnerSource
    session_id: str | None = None


@dataclass(frozen=True)
class _Resolution:
    index: int
    source: WinnerSource
    session_id: str | None


@dataclass
class SpinOrchestrator:
    """Runs one spin at a time and always ends on a winner.

    ``items`` is the live option list; each spin works on a snapshot taken when
    it starts.
    """

    api: SpinApi
    items: list[str] = field(default_factory=list)
    timing: SpinTiming = field(default_factory=SpinTiming)
    clock: Callable[[], float] = field(default=time.monotonic)
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)
    rng: random.Random = field(default_factory=random.Random)
    wheel: WheelAnimation = field(init=False)
    winner: str | None = field(default=None, init=False)
    last_result: SpinResult | None = field(default=None, init=False)
    _busy: bool = field(default=False, init=False)
    _wait_task: asyncio.Task | None = field(default=None, init=False)
    _cancel_requested: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        self.wheel = WheelAnimation(spin_speed=self.timing.spin_speed_degrees)

    @property
    def spinning(self) -> bool:
        """Return true while a spin is in flight."""
        return self._busy

    def angle(self) -> float:
        """Return the wheel angle for the current frame."""
        return self.wheel.angle_at(self.clock())

    async def spin(self) -> SpinResult | None:
        """Spin the wheel; returns None only when cancelled while waiting."""
        if len(self.items) < MIN_ITEMS:
            raise InvalidInputError("At least 2 items required")
        if self._busy:
            raise SpinInProgressError("A spin is already running")

        snapshot = tuple(self.items)
        self._busy = True
        self._cancel_requested = False
        self.winner = None
        self.wheel.start_spin(self.clock())
        try:
            self._wait_task = asyncio.create_task(self._resolve(snapshot))
            try:
                resolution = await self._wait_task
            except asyncio.CancelledError:
                if not self._cancel_requested:
                    raise
                logger.info("Spin cancelled while waiting for a decision")
                return None
            finally:
                self._wait_task = None

            self.wheel.land_on(
                resolution.index,
                len(snapshot),
                self.clock(),
                self.timing.landing_seconds,
                min_turns=self.timing.min_full_turns,
                offset=random_offset(
                    len(snapshot), self.timing.jitter_fraction, self.rng
                ),
            )
            await self.sleep(self.timing.landing_seconds)
            index = self.wheel.finish()
            result = SpinResult(
                index=index,
                label=snapshot[index],
                source=resolution.source,
                session_id=resolution.session_id,
            )
            self.last_result = result
            self.winner = result.label
            return result
        finally:
            if self.wheel.phase is WheelPhase.LANDING:
                self.wheel.finish()
            elif self.wheel.phase is WheelPhase.SPINNING:
                self.wheel.halt(self.clock())
            self._busy = False

    def cancel(self) -> None:
        """Abandon the pending remote wait; session state is left to expire."""
        if self._wait_task is None or self._wait_task.done():
            return
        self._cancel_requested = True
        self._wait_task.cancel()

    async def _resolve(self, snapshot: tuple[str, ...]) -> _Resolution:
        try:
            subscribers = await self.api.count_subscribers()
        except Exception:
            logger.warning("Could not count subscribers", exc_info=True)
            subscribers = 0
        if subscribers <= 0:
            return self._local(snapshot, session_id=None)

        try:
            session_id, sent_to = await self.api.create_session(snapshot)
        except Exception:
            logger.warning("Could not create spin session", exc_info=True)
            return self._local(snapshot, session_id=None)
        logger.info(
            "Waiting for a remote decision",
            extra={"session_id": session_id, "sent_to": sent_to},
        )

        try:
            index = await asyncio.wait_for(
                self._remote_choice(session_id, len(snapshot)),
                timeout=self.timing.remote_wait_seconds,
            )
        except TimeoutError:
            logger.info("No remote decision in time", extra={"session_id": session_id})
            index = None
        except Exception:
            logger.warning(
                "Live status stream failed",
                extra={"session_id": session_id},
                exc_info=True,
            )
            index = None
        if index is None:
            return self._local(snapshot, session_id=session_id)
        return _Resolution(index, WinnerSource.REMOTE, session_id)

    async def _remote_choice(self, session_id: str, item_count: int) -> int | None:
        async with aclosing(self.api.stream_status(session_id)) as events:
            async for event in events:
                if event.name is StatusEventName.CHOSEN:
                    index = event.data.get("chosenIndex")
                    if _is_index(index, item_count):
                        return index
                    logger.warning(
                        "Ignoring out of range remote choice",
                        extra={"session_id": session_id, "index": index},
                    )
                    return None
                if event.is_terminal:
                    logger.info(
                        "Remote decision unavailable",
                        extra={"session_id": session_id, "event": event.name.value},
                    )
                    return None
        return None

    @staticmethod
    def _local(snapshot: tuple[str, ...], session_id: str | None) -> _Resolution:
        return _Resolution(
            secrets.randbelow(len(snapshot)), WinnerSource.LOCAL, session_id
        )


def _is_index(value: object, item_count: int) -> bool:
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 0 <= value < item_count
    )
