"""Tests for container wiring."""

import asyncio

from prize_wheel.adapters.redis_store import RedisKeyValueStore
from prize_wheel.config import Settings, webhook_url
from prize_wheel.containers import build_container


def test_build_container_creates_services(settings: Settings) -> None:
    container = build_container(settings)

    assert container.session_manager.ttl_seconds == settings.session_ttl_seconds
    assert isinstance(container.session_manager.store, RedisKeyValueStore)
    assert container.dispatcher.store is container.session_manager.store
    assert container.live_status.max_wait_seconds == 1.0
    asyncio.run(container.close_resources())


def test_webhook_url_strips_trailing_slash() -> None:
    assert (
        webhook_url("https://wheel.example.com/")
        == "https://wheel.example.com/api/telegram/webhook"
    )
