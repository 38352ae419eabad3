"""Handling of subscriber commands and remote spin decisions."""

import html
import logging
from dataclasses import dataclass

from prize_wheel.adapters.telegram_client import TelegramClient
from prize_wheel.domain.errors import SessionAlreadyResolvedError, SessionNotFoundError
from prize_wheel.domain.sessions import SessionStatus
from prize_wheel.services.notifications import CALLBACK_PREFIX, NotificationDispatcher
from prize_wheel.services.sessions import SessionManager

SUBSCRIBED_TEXT = (
    "✅ <b>Subscribed!</b>\n\nYou'll get a vote every time the wheel spins."
)
UNSUBSCRIBED_TEXT = "You won't get wheel votes anymore. Send /start to come back."
INVALID_CHOICE_TEXT = "Invalid choice."
EXPIRED_TEXT = "This spin has expired!"
TOO_LATE_TEXT = "Someone was faster!"
FAILURE_TEXT = "Couldn't save your choice, please try again."
SUBSCRIPTION_FAILURE_TEXT = "Something went wrong, please try again later."

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpinChoice:
    """A parsed choice button press."""

    session_id: str
    index: int


def is_spin_callback(data: str | None) -> bool:
    """Return true when callback data belongs to a spin prompt."""
    return bool(data) and data.startswith(f"{CALLBACK_PREFIX}:")


def parse_choice_callback(data: str) -> SpinChoice | None:
    """Parse callback data in the format spin:<session_id>:<index>."""
    parts = data.split(":")
    if len(parts) != 3 or parts[0] != CALLBACK_PREFIX:  # noqa: PLR2004
        return None
    _, session_id, raw_index = parts
    if not session_id or not (raw_index.isascii() and raw_index.isdigit()):
        return None
    return SpinChoice(session_id=session_id, index=int(raw_index))


@dataclass
class DecisionHandler:
    """Applies Telegram commands and button presses to spin sessions."""

    session_manager: SessionManager
    dispatcher: NotificationDispatcher
    telegram_client: TelegramClient

    async def handle_start(self, chat_id: int) -> None:
        """Subscribe the chat and confirm."""
        try:
            await self.dispatcher.add_subscriber(chat_id)
        except Exception:
            logger.exception("Failed to subscribe chat", extra={"chat_id": chat_id})
            await self.telegram_client.send_message(
                chat_id=chat_id, text=SUBSCRIPTION_FAILURE_TEXT
            )
            return
        await self.telegram_client.send_message(chat_id=chat_id, text=SUBSCRIBED_TEXT)

    async def handle_stop(self, chat_id: int) -> None:
        """Unsubscribe the chat and confirm."""
        try:
            await self.dispatcher.remove_subscriber(chat_id)
        except Exception:
            logger.exception("Failed to unsubscribe chat", extra={"chat_id": chat_id})
            await self.telegram_client.send_message(
                chat_id=chat_id, text=SUBSCRIPTION_FAILURE_TEXT
            )
            return
        await self.telegram_client.send_message(
            chat_id=chat_id, text=UNSUBSCRIBED_TEXT
        )

    async def handle_callback(  # noqa: PLR0913
        self,
        callback_query_id: str,
        data: str | None,
        chooser_name: str,
        chat_id: int | None = None,
        message_id: int | None = None,
    ) -> None:
        """Handle a button press; failures are reported to the chooser only."""
        if not is_spin_callback(data):
            await self.telegram_client.answer_callback_query(callback_query_id)
            return
        try:
            await self._handle_choice(
                callback_query_id, data, chooser_name, chat_id, message_id
            )
        except Exception:
            logger.exception(
                "Failed to apply spin choice",
                extra={"callback_query_id": callback_query_id, "data": data},
            )
            try:
                await self._alert(callback_query_id, FAILURE_TEXT)
            except Exception:
                logger.exception(
                    "Failed to report spin choice failure",
                    extra={"callback_query_id": callback_query_id},
                )

    async def _handle_choice(  # noqa: PLR0911
        self,
        callback_query_id: str,
        data: str,
        chooser_name: str,
        chat_id: int | None,
        message_id: int | None,
    ) -> None:
        choice = parse_choice_callback(data)
        if choice is None:
            await self._alert(callback_query_id, INVALID_CHOICE_TEXT)
            return

        session = await self.session_manager.get_session(choice.session_id)
        if session is None or session.status is SessionStatus.EXPIRED:
            await self._alert(callback_query_id, EXPIRED_TEXT)
            return
        if session.status is SessionStatus.CHOSEN:
            await self._alert(
                callback_query_id, f"Already chosen: {session.chosen_item}"
            )
            return
        if choice.index >= len(session.items):
            await self._alert(callback_query_id, INVALID_CHOICE_TEXT)
            return

        try:
            updated = await self.session_manager.update_session_choice(
                choice.session_id, choice.index, chooser_name
            )
        except SessionAlreadyResolvedError:
            await self._alert(callback_query_id, TOO_LATE_TEXT)
            return
        except SessionNotFoundError:
            await self._alert(callback_query_id, EXPIRED_TEXT)
            return

        label = updated.chosen_item or ""
        await self._alert(callback_query_id, f"You picked: {label}!")
        if chat_id is not None and message_id is not None:
            await self.telegram_client.edit_message_text(
                chat_id=chat_id,
                message_id=message_id,
                text=(
                    f"🎯 <b>Chosen!</b>\n\n{_escape(chooser_name)} picked: "
                    f"<b>{_escape(label)}</b>"
                ),
            )

    async def _alert(self, callback_query_id: str, text: str) -> None:
        await self.telegram_client.answer_callback_query(callback_query_id, text=text)


def _escape(value: str) -> str:
    return html.escape(value, quote=False)
