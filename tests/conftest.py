"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field

import pytest

from prize_wheel.adapters.telegram_client import TelegramClient
from prize_wheel.config import Settings
from prize_wheel.containers import AppContainer
from prize_wheel.domain.errors import StoreError, TransportError
from prize_wheel.services.decisions import DecisionHandler
from prize_wheel.services.live_status import LiveStatusChannel
from prize_wheel.services.notifications import NotificationDispatcher
from prize_wheel.services.sessions import SessionManager
from prize_wheel.services.store import KeyValueStore


@dataclass
class FakeClock:
    """Manually advanced wall clock in seconds."""

    now: float = 1_700_000_000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class InMemoryKeyValueStore(KeyValueStore):
    """In-memory key-value store with TTLs driven by a fake clock."""

    clock: FakeClock = field(default_factory=FakeClock)
    values: dict[str, str] = field(default_factory=dict)
    expires_at: dict[str, float] = field(default_factory=dict)
    sets: dict[str, set[str]] = field(default_factory=dict)
    yield_on_read: bool = False
    reads: int = 0

    def _purge(self, key: str) -> None:
        deadline = self.expires_at.get(key)
        if deadline is not None and self.clock() >= deadline:
            self.values.pop(key, None)
            self.expires_at.pop(key, None)

    async def get(self, key: str) -> str | None:
        self.reads += 1
        self._purge(key)
        value = self.values.get(key)
        if self.yield_on_read:
            await asyncio.sleep(0)
        return value

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        self.values[key] = value
        if ttl_seconds is None:
            self.expires_at.pop(key, None)
        else:
            self.expires_at[key] = self.clock() + ttl_seconds

    async def ttl(self, key: str) -> int | None:
        self._purge(key)
        if key not in self.values or key not in self.expires_at:
            return None
        return math.ceil(self.expires_at[key] - self.clock())

    async def replace_if_unchanged(
        self, key: str, expected: str, value: str, ttl_seconds: int | None = None
    ) -> bool:
        self._purge(key)
        if self.values.get(key) != expected:
            return False
        self.values[key] = value
        if ttl_seconds is not None:
            self.expires_at[key] = self.clock() + ttl_seconds
        return True

    async def add_member(self, key: str, member: str) -> None:
        self.sets.setdefault(key, set()).add(member)

    async def remove_member(self, key: str, member: str) -> None:
        self.sets.get(key, set()).discard(member)

    async def members(self, key: str) -> set[str]:
        return set(self.sets.get(key, set()))


class FailingKeyValueStore(KeyValueStore):
    """Store whose every call fails like an unreachable backend."""

    async def get(self, key: str) -> str | None:
        raise StoreError("store unreachable")

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        raise StoreError("store unreachable")

    async def ttl(self, key: str) -> int | None:
        raise StoreError("store unreachable")

    async def replace_if_unchanged(
        self, key: str, expected: str, value: str, ttl_seconds: int | None = None
    ) -> bool:
        raise StoreError("store unreachable")

    async def add_member(self, key: str, member: str) -> None:
        raise StoreError("store unreachable")

    async def remove_member(self, key: str, member: str) -> None:
        raise StoreError("store unreachable")

    async def members(self, key: str) -> set[str]:
        raise StoreError("store unreachable")


@dataclass
class FakeTelegramClient(TelegramClient):
    """Fake Telegram client that records outgoing calls."""

    messages: list[tuple[str, str]] = field(default_factory=list)
    keyboards: list[dict | None] = field(default_factory=list)
    callbacks: list[tuple[str, str | None]] = field(default_factory=list)
    edits: list[tuple[str, int, str]] = field(default_factory=list)
    failing_chats: set[str] = field(default_factory=set)
    commands: list[dict[str, str]] | None = None
    menu_button: dict[str, object] | None = None
    webhook: tuple[str, list[str]] | None = None

    async def send_message(
        self, chat_id: int | str, text: str, reply_markup: dict | None = None
    ) -> None:
        if str(chat_id) in self.failing_chats:
            raise TransportError(f"chat {chat_id} blocked the bot")
        self.messages.append((str(chat_id), text))
        self.keyboards.append(reply_markup)

    async def answer_callback_query(
        self, callback_query_id: str, text: str | None = None
    ) -> None:
        self.callbacks.append((callback_query_id, text))

    async def edit_message_text(
        self, chat_id: int | str, message_id: int, text: str
    ) -> None:
        self.edits.append((str(chat_id), message_id, text))

    async def set_my_commands(self, commands: list[dict[str, str]]) -> None:
        self.commands = commands

    async def set_chat_menu_button(
        self, menu_button: dict[str, object] | None = None
    ) -> None:
        self.menu_button = menu_button

    async def set_webhook(self, url: str, allowed_updates: list[str]) -> None:
        self.webhook = (url, allowed_updates)


async def no_sleep(_seconds: float) -> None:
    """Stand-in for asyncio.sleep that returns immediately."""
    return None


@pytest.fixture
def settings() -> Settings:
    return Settings(
        telegram_bot_token="test-token",
        admin_token="admin-token",
        redis_url="redis://localhost:6379/15",
        app_url="https://wheel.example.com/",
        stream_max_wait_seconds=1.0,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(clock=clock)


@pytest.fixture
def telegram_client() -> FakeTelegramClient:
    return FakeTelegramClient()


@pytest.fixture
def session_manager(store: InMemoryKeyValueStore, clock: FakeClock) -> SessionManager:
    return SessionManager(store=store, clock_ms=lambda: int(clock() * 1000))


@pytest.fixture
def dispatcher(
    store: InMemoryKeyValueStore, telegram_client: FakeTelegramClient
) -> NotificationDispatcher:
    return NotificationDispatcher(store=store, telegram_client=telegram_client)


@pytest.fixture
def decision_handler(
    session_manager: SessionManager,
    dispatcher: NotificationDispatcher,
    telegram_client: FakeTelegramClient,
) -> DecisionHandler:
    return DecisionHandler(
        session_manager=session_manager,
        dispatcher=dispatcher,
        telegram_client=telegram_client,
    )


@pytest.fixture
def container(
    settings: Settings,
    telegram_client: FakeTelegramClient,
    session_manager: SessionManager,
    dispatcher: NotificationDispatcher,
    decision_handler: DecisionHandler,
) -> AppContainer:
    live_status = LiveStatusChannel(
        session_manager=session_manager,
        poll_interval_seconds=settings.stream_poll_interval_seconds,
        max_wait_seconds=settings.stream_max_wait_seconds,
        sleep=no_sleep,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        telegram_client=telegram_client,
        session_manager=session_manager,
        dispatcher=dispatcher,
        decision_handler=decision_handler,
        live_status=live_status,
        close_resources=close_resources,
    )
