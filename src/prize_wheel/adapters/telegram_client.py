"""Telegram Bot API client adapter."""

from dataclasses import dataclass
from typing import Protocol

import httpx

from prize_wheel.domain.errors import TransportError

TELEGRAM_API_URL = "https://api.telegram.org"


class TelegramClient(Protocol):
    """Interface for Telegram API interactions."""

    async def send_message(
        self, chat_id: int | str, text: str, reply_markup: dict | None = None
    ) -> None:
        """Send an HTML text message to a Telegram chat."""

    async def answer_callback_query(
        self, callback_query_id: str, text: str | None = None
    ) -> None:
        """Answer a callback query, showing text as an alert when given."""

    async def edit_message_text(
        self, chat_id: int | str, message_id: int, text: str
    ) -> None:
        """Replace the text of a previously sent message."""

    async def set_my_commands(self, commands: list[dict[str, str]]) -> None:
        """Set the bot command list."""

    async def set_chat_menu_button(
        self, menu_button: dict[str, object] | None = None
    ) -> None:
        """Set the chat menu button."""

    async def set_webhook(self, url: str, allowed_updates: list[str]) -> None:
        """Register the webhook URL for updates."""


@dataclass
class HttpxTelegramClient:
    """Telegram client implemented with httpx."""

    bot_token: str
    http_client: httpx.AsyncClient
    base_url: str = TELEGRAM_API_URL

    @classmethod
    def create(cls, bot_token: str) -> "HttpxTelegramClient":
        """Create a Telegram client with a managed httpx session."""
        return cls(bot_token=bot_token, http_client=httpx.AsyncClient())

    async def send_message(
        self, chat_id: int | str, text: str, reply_markup: dict | None = None
    ) -> None:
        """Send a message using Telegram's sendMessage API."""
        payload: dict[str, object] = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": "HTML",
        }
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        await self._call("sendMessage", payload)

    async def answer_callback_query(
        self, callback_query_id: str, text: str | None = None
    ) -> None:
        """Answer a callback query using Telegram's API."""
        payload: dict[str, object] = {"callback_query_id": callback_query_id}
        if text is not None:
            payload["text"] = text
            payload["show_alert"] = True
        await self._call("answerCallbackQuery", payload)

    async def edit_message_text(
        self, chat_id: int | str, message_id: int, text: str
    ) -> None:
        """Edit a message using Telegram's editMessageText API."""
        await self._call(
            "editMessageText",
            {
                "chat_id": chat_id,
                "message_id": message_id,
                "text": text,
                "parse_mode": "HTML",
            },
        )

    async def set_my_commands(self, commands: list[dict[str, str]]) -> None:
        """Set the bot command list."""
        await self._call("setMyCommands", {"commands": commands})

    async def set_chat_menu_button(
        self, menu_button: dict[str, object] | None = None
    ) -> None:
        """Set the chat menu button."""
        await self._call(
            "setChatMenuButton", {"menu_button": menu_button or {"type": "commands"}}
        )

    async def set_webhook(self, url: str, allowed_updates: list[str]) -> None:
        """Register the webhook URL with Telegram."""
        await self._call("setWebhook", {"url": url, "allowed_updates": allowed_updates})

    async def close(self) -> None:
        """Close the underlying HTTP client session."""
        await self.http_client.aclose()

    async def _call(self, method: str, payload: dict[str, object]) -> None:
        url = f"{self.base_url}/bot{self.bot_token}/{method}"
        response = await self.http_client.post(url, json=payload, timeout=10)
        response.raise_for_status()
        result = response.json()
        if not result.get("ok"):
            description = result.get("description", "unknown error")
            raise TransportError(f"Telegram {method} failed: {description}")
