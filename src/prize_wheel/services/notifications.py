"""Subscriber registry and broadcast of spin decision prompts."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from prize_wheel.adapters.telegram_client import TelegramClient
from prize_wheel.services.store import KeyValueStore

SUBSCRIBERS_KEY = "telegram:subscribers"
CALLBACK_PREFIX = "spin"
BUTTONS_PER_ROW = 2
SPIN_PROMPT_TEXT = "🎰 <b>Pick the wheel's result!</b>\n\nTap one of the options:"

logger = logging.getLogger(__name__)


@dataclass
class NotificationDispatcher:
    """Pushes decision options to every registered chat."""

    store: KeyValueStore
    telegram_client: TelegramClient

    async def add_subscriber(self, chat_id: int | str) -> None:
        """Register a chat for spin prompts."""
        await self.store.add_member(SUBSCRIBERS_KEY, str(chat_id))

    async def remove_subscriber(self, chat_id: int | str) -> None:
        """Unregister a chat from spin prompts."""
        await self.store.remove_member(SUBSCRIBERS_KEY, str(chat_id))

    async def get_subscribers(self) -> set[str]:
        """Return the registered chat ids."""
        return await self.store.members(SUBSCRIBERS_KEY)

    async def count_subscribers(self) -> int:
        """Return how many chats are registered."""
        return len(await self.get_subscribers())

    async def broadcast_spin_options(
        self, session_id: str, items: Sequence[str]
    ) -> int:
        """Send the spin prompt to all subscribers and return how many got it."""
        subscribers = await self.get_subscribers()
        keyboard = build_spin_keyboard(session_id, items)
        sent = 0
        for chat_id in subscribers:
            try:
                await self.telegram_client.send_message(
                    chat_id=chat_id, text=SPIN_PROMPT_TEXT, reply_markup=keyboard
                )
            except Exception:
                logger.exception(
                    "Failed to deliver spin prompt",
                    extra={"chat_id": chat_id, "session_id": session_id},
                )
                continue
            sent += 1
        logger.info(
            "Broadcast spin prompt",
            extra={
                "session_id": session_id,
                "sent": sent,
                "subscribers": len(subscribers),
            },
        )
        return sent


def callback_data(session_id: str, index: int) -> str:
    """Build callback_data within Telegram's 64-byte limit."""
    return f"{CALLBACK_PREFIX}:{session_id}:{index}"


def build_spin_keyboard(session_id: str, items: Sequence[str]) -> dict:
    """Build an inline keyboard with at most two options per row."""
    buttons = [
        {"text": label, "callback_data": callback_data(session_id, index)}
        for index, label in enumerate(items)
    ]
    return {
        "inline_keyboard": [
            buttons[start : start + BUTTONS_PER_ROW]
            for start in range(0, len(buttons), BUTTONS_PER_ROW)
        ]
    }
