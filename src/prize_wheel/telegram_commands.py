"""Telegram bot command configuration."""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class TelegramCommand:
    """Declarative bot command definition."""

    command: str
    description: str

    @property
    def text(self) -> str:
        """Return the slash form users type in chat."""
        return f"/{self.command}"


class BotCommand(Enum):
    """Enum of bot commands (single source of truth)."""

    START = TelegramCommand("start", "Get a vote every time the wheel spins")
    STOP = TelegramCommand("stop", "Stop receiving wheel votes")


def telegram_commands() -> list[dict[str, str]]:
    """Return commands formatted for Telegram API."""
    return [
        {"command": entry.value.command, "description": entry.value.description}
        for entry in BotCommand
    ]


def match_command(text: str | None) -> BotCommand | None:
    """Return the command a message invokes, ignoring arguments and bot mentions."""
    if not text or not text.startswith("/"):
        return None
    head = text.split(maxsplit=1)[0].split("@", maxsplit=1)[0]
    for entry in BotCommand:
        if head == entry.value.text:
            return entry
    return None


CHAT_MENU_BUTTON: dict[str, object] = {"type": "commands"}
