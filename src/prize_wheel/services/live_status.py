"""Live status of a spin session as a stream of named events.

The stream looks like server push to the browser but is a bounded poll of the
session store: serverless hosts cap connection length, so the loop gives up
after a fixed ceiling. A pub/sub backed implementation can replace the loop
without changing the events clients see.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum

from prize_wheel.domain.sessions import SessionStatus, SpinSession
from prize_wheel.services.sessions import SessionManager

POLL_INTERVAL_SECONDS = 0.5
MAX_WAIT_SECONDS = 60.0

logger = logging.getLogger(__name__)


class StatusEventName(StrEnum):
    """Event names emitted on the live-status stream."""

    HEARTBEAT = "heartbeat"
    CHOSEN = "chosen"
    EXPIRED = "expired"
    TIMEOUT = "timeout"
    ERROR = "error"


_EVENT_NAMES = frozenset(name.value for name in StatusEventName)
TERMINAL_EVENTS = frozenset(
    {
        StatusEventName.CHOSEN,
        StatusEventName.EXPIRED,
        StatusEventName.TIMEOUT,
        StatusEventName.ERROR,
    }
)


@dataclass(frozen=True)
class StatusEvent:
    """A single event on the live-status stream."""

    name: StatusEventName
    data: dict[str, object]

    @property
    def is_terminal(self) -> bool:
        """Return true when the stream closes after this event."""
        return self.name in TERMINAL_EVENTS


def format_sse(event: StatusEvent) -> str:
    """Render an event in text/event-stream framing."""
    payload = json.dumps(event.data, ensure_ascii=False, separators=(",", ":"))
    return f"event: {event.name.value}\ndata: {payload}\n\n"


async def parse_sse(lines: AsyncIterator[str]) -> AsyncIterator[StatusEvent]:
    """Decode text/event-stream lines into status events, skipping unknown names."""
    name: str | None = None
    data_lines: list[str] = []
    async for raw_line in lines:
        line = raw_line.rstrip("\r")
        if line:
            field_name, _, value = line.partition(":")
            value = value.removeprefix(" ")
            if field_name == "event":
                name = value
            elif field_name == "data":
                data_lines.append(value)
            continue
        event = _decode_event(name, data_lines)
        name, data_lines = None, []
        if event is not None:
            yield event
    event = _decode_event(name, data_lines)
    if event is not None:
        yield event


def _decode_event(name: str | None, data_lines: list[str]) -> StatusEvent | None:
    if name is None or name not in _EVENT_NAMES:
        return None
    try:
        data = json.loads("\n".join(data_lines)) if data_lines else {}
    except ValueError:
        logger.warning("Dropping malformed status event", extra={"event": name})
        return None
    if not isinstance(data, dict):
        data = {}
    return StatusEvent(StatusEventName(name), data)


@dataclass
class LiveStatusChannel:
    """Polls one session until it resolves or the ceiling is reached."""

    session_manager: SessionManager
    poll_interval_seconds: float = POLL_INTERVAL_SECONDS
    max_wait_seconds: float = MAX_WAIT_SECONDS
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)

    async def stream(self, session_id: str) -> AsyncIterator[StatusEvent]:
        """Yield status events for a session; the last one is always terminal."""
        try:
            session = await self.session_manager.get_session(session_id)
        except Exception:
            logger.exception(
                "Live status read failed", extra={"session_id": session_id}
            )
            yield _server_error()
            return
        resolved = _resolution_event(session)
        if resolved is not None:
            yield resolved
            return

        interval_ms = round(self.poll_interval_seconds * 1000)
        max_wait_ms = round(self.max_wait_seconds * 1000)
        elapsed_ms = 0
        while True:
            if elapsed_ms >= max_wait_ms:
                chosen = await self._expire(session_id)
                yield chosen or StatusEvent(
                    StatusEventName.TIMEOUT, {"message": "No choice made in time"}
                )
                return
            try:
                session = await self.session_manager.get_session(session_id)
            except Exception:
                logger.exception(
                    "Live status poll failed", extra={"session_id": session_id}
                )
                yield _server_error()
                return
            resolved = _resolution_event(session)
            if resolved is not None:
                yield resolved
                return
            yield StatusEvent(StatusEventName.HEARTBEAT, {"elapsed": elapsed_ms})
            elapsed_ms += interval_ms
            await self.sleep(self.poll_interval_seconds)

    async def _expire(self, session_id: str) -> StatusEvent | None:
        """Expire the session; returns a chosen event if a choice won the race."""
        try:
            await self.session_manager.mark_session_expired(session_id)
            session = await self.session_manager.get_session(session_id)
        except Exception:
            logger.exception(
                "Failed to expire timed out session", extra={"session_id": session_id}
            )
            return None
        if session is not None and session.status is SessionStatus.CHOSEN:
            return _resolution_event(session)
        return None


def _resolution_event(session: SpinSession | None) -> StatusEvent | None:
    if session is None:
        return StatusEvent(StatusEventName.ERROR, {"message": "Session not found"})
    if session.status is SessionStatus.CHOSEN:
        return StatusEvent(
            StatusEventName.CHOSEN,
            {"chosenIndex": session.chosen_index, "chosenItem": session.chosen_item},
        )
    if session.status is SessionStatus.EXPIRED:
        return StatusEvent(StatusEventName.EXPIRED, {"message": "Session expired"})
    return None


def _server_error() -> StatusEvent:
    return StatusEvent(StatusEventName.ERROR, {"message": "Server error"})
