"""HTTP client for the spin coordination API."""

from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass

import httpx

from prize_wheel.services.live_status import StatusEvent, parse_sse

# The status stream idles between heartbeats, so only connecting is bounded.
_STREAM_TIMEOUT = httpx.Timeout(10, read=None)


@dataclass
class HttpxSpinApiClient:
    """Talks to the prize wheel API the way the browser does."""

    base_url: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, base_url: str) -> "HttpxSpinApiClient":
        """Create a client with a managed httpx session."""
        return cls(base_url=base_url.rstrip("/"), http_client=httpx.AsyncClient())

    async def count_subscribers(self) -> int:
        """Return how many chats would receive a vote."""
        response = await self.http_client.get(
            f"{self.base_url}/api/telegram/subscribe", timeout=10
        )
        response.raise_for_status()
        return int(response.json()["count"])

    async def create_session(self, items: Sequence[str]) -> tuple[str, int]:
        """Create a spin session and return its id and delivery count."""
        response = await self.http_client.post(
            f"{self.base_url}/api/spin", json={"items": list(items)}, timeout=10
        )
        response.raise_for_status()
        payload = response.json()
        return str(payload["sessionId"]), int(payload["sentTo"])

    async def stream_status(self, session_id: str) -> AsyncIterator[StatusEvent]:
        """Yield live status events until the server closes the stream."""
        url = f"{self.base_url}/api/spin/{session_id}/stream"
        async with self.http_client.stream(
            "GET",
            url,
            headers={"Accept": "text/event-stream"},
            timeout=_STREAM_TIMEOUT,
        ) as response:
            response.raise_for_status()
            async for event in parse_sse(response.aiter_lines()):
                yield event

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
