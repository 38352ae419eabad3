"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from typing import TypeVar

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ValidationError

from prize_wheel.api.admin import router as admin_router
from prize_wheel.api.schemas import SpinCreateRequest, SubscriptionRequest
from prize_wheel.api.telegram_models import TelegramUpdate
from prize_wheel.app_logging import configure_logging
from prize_wheel.config import webhook_url
from prize_wheel.containers import AppContainer
from prize_wheel.domain.errors import InvalidInputError, PrizeWheelError
from prize_wheel.services.live_status import format_sse
from prize_wheel.telegram_commands import (
    CHAT_MENU_BUTTON,
    BotCommand,
    match_command,
    telegram_commands,
)

_ModelT = TypeVar("_ModelT", bound=BaseModel)
_T = TypeVar("_T")

ALLOWED_UPDATES = ["message", "callback_query"]
STREAM_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            await app.state.container.telegram_client.set_my_commands(
                telegram_commands()
            )
            await app.state.container.telegram_client.set_chat_menu_button(
                CHAT_MENU_BUTTON
            )
        except Exception:
            logger.exception("Failed to sync Telegram bot commands")
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.exception_handler(PrizeWheelError)
    async def prize_wheel_error_handler(
        request: Request, exc: PrizeWheelError
    ) -> JSONResponse:
        if isinstance(exc, InvalidInputError):
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"error": exc.code, "message": str(exc)},
            )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "internal_error", "message": "Internal server error"},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/api/spin", status_code=status.HTTP_201_CREATED)
    async def create_spin(request: Request) -> dict[str, object]:
        """Create a spin session and ask subscribers to pick the result."""
        state_container: AppContainer = request.app.state.container
        body = await _read_body(request, SpinCreateRequest)
        try:
            session = await state_container.session_manager.create_session(
                body.items
            )
            sent_to = await state_container.dispatcher.broadcast_spin_options(
                session.id, session.items
            )
        except InvalidInputError:
            raise
        except Exception as exc:
            logger.exception("Failed to create spin session")
            raise PrizeWheelError("Internal server error") from exc
        return {"sessionId": session.id, "sentTo": sent_to}

    @app.get("/api/spin/{session_id}/stream")
    async def spin_stream(session_id: str, request: Request) -> StreamingResponse:
        """Stream live status events for a spin session."""
        state_container: AppContainer = request.app.state.container

        async def events() -> AsyncIterator[str]:
            async for event in state_container.live_status.stream(session_id):
                yield format_sse(event)

        return StreamingResponse(
            events(), media_type="text/event-stream", headers=STREAM_HEADERS
        )

    @app.post("/api/telegram/subscribe")
    async def subscribe(request: Request) -> dict[str, bool]:
        """Register a chat for spin votes."""
        state_container: AppContainer = request.app.state.container
        chat_id = await _read_chat_id(request)
        await _guard(logger, state_container.dispatcher.add_subscriber(chat_id))
        return {"ok": True}

    @app.delete("/api/telegram/subscribe")
    async def unsubscribe(request: Request) -> dict[str, bool]:
        """Unregister a chat from spin votes."""
        state_container: AppContainer = request.app.state.container
        chat_id = await _read_chat_id(request)
        await _guard(logger, state_container.dispatcher.remove_subscriber(chat_id))
        return {"ok": True}

    @app.get("/api/telegram/subscribe")
    async def subscriber_count(request: Request) -> dict[str, int]:
        """Return the number of subscribed chats."""
        state_container: AppContainer = request.app.state.container
        count = await _guard(logger, state_container.dispatcher.count_subscribers())
        return {"count": count}

    @app.post("/api/telegram/webhook")
    async def telegram_webhook(request: Request) -> dict[str, bool]:
        """Handle Telegram webhook updates; always acknowledges."""
        state_container: AppContainer = request.app.state.container
        try:
            update = TelegramUpdate.model_validate(await request.json())
            await _dispatch_update(state_container, update)
        except Exception:
            logger.exception("Telegram webhook error")
        return {"ok": True}

    @app.get("/api/telegram/webhook")
    async def telegram_webhook_probe() -> dict[str, str]:
        """Liveness probe used when Telegram verifies the webhook."""
        return {"status": "Webhook endpoint active"}

    @app.get("/api/telegram/setup-webhook")
    async def setup_webhook(request: Request) -> dict[str, object]:
        """Register this deployment's webhook URL with Telegram."""
        state_container: AppContainer = request.app.state.container
        app_url = state_container.settings.app_url
        if not app_url:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="APP_URL not configured",
            )
        url = webhook_url(app_url)
        try:
            await state_container.telegram_client.set_webhook(url, ALLOWED_UPDATES)
        except Exception as exc:
            logger.exception("Failed to set Telegram webhook", extra={"url": url})
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to set webhook",
            ) from exc
        return {"success": True, "webhookUrl": url}

    return app


async def _dispatch_update(container: AppContainer, update: TelegramUpdate) -> None:
    """Route a Telegram update to the decision handler."""
    if update.callback_query:
        callback = update.callback_query
        message = callback.message
        await container.decision_handler.handle_callback(
            callback.id,
            callback.data,
            callback.from_user.display_name,
            chat_id=message.chat.id if message else None,
            message_id=message.message_id if message else None,
        )
        return

    message = update.message
    if message is None:
        return
    command = match_command(message.text)
    if command is BotCommand.START:
        await container.decision_handler.handle_start(message.chat.id)
    elif command is BotCommand.STOP:
        await container.decision_handler.handle_stop(message.chat.id)


async def _read_body(request: Request, model: type[_ModelT]) -> _ModelT:
    """Parse a JSON body, reporting any problem as invalid input."""
    try:
        payload = await request.json()
    except ValueError as exc:
        raise InvalidInputError("Request body must be JSON") from exc
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise InvalidInputError(_describe_validation_error(exc)) from exc


async def _read_chat_id(request: Request) -> int | str:
    body = await _read_body(request, SubscriptionRequest)
    if body.chat_id is None or body.chat_id in {"", 0}:
        raise InvalidInputError("chatId required")
    return body.chat_id


async def _guard(logger: logging.Logger, operation: Awaitable[_T]) -> _T:
    """Await a store operation, converting unexpected failures to a 500."""
    try:
        return await operation
    except PrizeWheelError:
        raise
    except Exception as exc:
        logger.exception("Subscriber store operation failed")
        raise PrizeWheelError("Internal server error") from exc


def _describe_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first["loc"]) or "body"
    return f"{location}: {first['msg']}"
