"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from prize_wheel.adapters.redis_store import RedisKeyValueStore
from prize_wheel.adapters.telegram_client import HttpxTelegramClient, TelegramClient
from prize_wheel.config import Settings
from prize_wheel.services.decisions import DecisionHandler
from prize_wheel.services.live_status import LiveStatusChannel
from prize_wheel.services.notifications import NotificationDispatcher
from prize_wheel.services.sessions import SessionManager


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    telegram_client: TelegramClient
    session_manager: SessionManager
    dispatcher: NotificationDispatcher
    decision_handler: DecisionHandler
    live_status: LiveStatusChannel
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    store = RedisKeyValueStore.create(resolved_settings.redis_url)
    telegram_client = HttpxTelegramClient.create(resolved_settings.telegram_bot_token)
    session_manager = SessionManager(
        store=store,
        ttl_seconds=resolved_settings.session_ttl_seconds,
        expired_grace_seconds=resolved_settings.expired_grace_seconds,
    )
    dispatcher = NotificationDispatcher(store=store, telegram_client=telegram_client)
    decision_handler = DecisionHandler(
        session_manager=session_manager,
        dispatcher=dispatcher,
        telegram_client=telegram_client,
    )
    live_status = LiveStatusChannel(
        session_manager=session_manager,
        poll_interval_seconds=resolved_settings.stream_poll_interval_seconds,
        max_wait_seconds=resolved_settings.stream_max_wait_seconds,
    )

    async def close_resources() -> None:
        await telegram_client.close()
        await store.close()

    return AppContainer(
        settings=resolved_settings,
        telegram_client=telegram_client,
        session_manager=session_manager,
        dispatcher=dispatcher,
        decision_handler=decision_handler,
        live_status=live_status,
        close_resources=close_resources,
    )
