"""
Chat Coordinator - Handles realtime chat events for authenticated connections.

Flow of a ``message`` event:
    1. Validate the text and append it to the chat (ownership scoped)
    2. Broadcast it to the chat room
    3. Record user facts in the background
    4. Tell the sender the AI is thinking, then generate a reply with context
    5. Append and broadcast the reply, or send ``AI_ERROR`` to the sender only

Persist-then-broadcast runs under a per-room lock so every member sees
messages in the order they were stored. AI generation runs outside the lock.
"""

import asyncio
import logging
import weakref
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Tuple

from pydantic import ValidationError

from .connection_manager import Connection, ConnectionRegistry
from ..agents.model_router import ModelRouter
from ..core.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    ChatServiceError,
    InvalidMessageError,
    MessageTooLongError,
    ValidationFailure,
)
from ..core.logging_config import preview
from ..core.session_memory import SessionMemory
from ..models.chat import MAX_MESSAGE_LENGTH, ChatMessage, ChatSession, MessageDraft, MessageSender
from ..models.events import (
    AuthenticatePayload,
    ChatRefPayload,
    ClientEvent,
    HistoryRequestPayload,
    SendMessagePayload,
    ServerEvent,
    TypingPayload,
)
from ..models.user import AuthenticatedUser
from ..storage.chat_storage import ChatSessionStore
from ..utils.auth import verify_access_token

logger = logging.getLogger(__name__)

AI_THINKING_MESSAGE = "AI is generating response..."

# Error code sent when a handler fails with an unexpected exception
EVENT_ERROR_CODES = {
    ClientEvent.JOIN_CHAT: "JOIN_CHAT_ERROR",
    ClientEvent.MESSAGE: "MESSAGE_ERROR",
    ClientEvent.HISTORY: "HISTORY_ERROR",
}

Handler = Callable[[Connection, Dict[str, Any]], Awaitable[None]]


class ChatCoordinator:
    """
    Routes client events to their handlers and owns the room ordering locks.
    """

    def __init__(
        self,
        store: ChatSessionStore,
        memory: SessionMemory,
        router: ModelRouter,
        registry: Optional[ConnectionRegistry] = None,
        max_message_length: int = MAX_MESSAGE_LENGTH,
    ):
        self.store = store
        self.memory = memory
        self.router = router
        self.registry = registry or ConnectionRegistry()
        self.max_message_length = max_message_length
        self._room_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self._background_tasks: Set[asyncio.Task] = set()

        # Map client events to their handler functions
        self.handlers: Dict[ClientEvent, Handler] = {
            ClientEvent.JOIN_CHAT: self.handle_join_chat,
            ClientEvent.LEAVE_CHAT: self.handle_leave_chat,
            ClientEvent.MESSAGE: self.handle_message,
            ClientEvent.HISTORY: self.handle_history,
            ClientEvent.TYPING: self.handle_typing,
        }

    def _room_lock(self, chat_id: str) -> asyncio.Lock:
        lock = self._room_locks.get(chat_id)
        if lock is None:
            lock = asyncio.Lock()
            self._room_locks[chat_id] = lock
        return lock

    def _spawn(self, coro: Awaitable[None]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    def dispatch(self, connection: Connection, frame: Dict[str, Any]) -> asyncio.Task:
        """Handle a frame as a background task so slow AI replies never block the receive loop."""
        return self._spawn(self.handle_event(connection, frame))

    async def wait_for_background_tasks(self) -> None:
        """Wait for pending fire-and-forget work (memory updates)."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    async def _send(self, connection: Connection, event: ServerEvent, data: Dict[str, Any]) -> None:
        """Send to one connection. A closed connection only loses the event."""
        try:
            await connection.send(event, data)
        except Exception as e:
            logger.warning(f"Send of {event.value} to connection {connection.connection_id} failed: {e}")

    async def _send_error(self, connection: Connection, error: ChatServiceError, chat_id: Optional[str] = None) -> None:
        payload = error.to_payload()
        if chat_id:
            payload["chatId"] = chat_id
        await self._send(connection, ServerEvent.ERROR, payload)

    # Connection lifecycle

    async def authenticate(self, connection: Connection, token: Optional[str]) -> AuthenticatedUser:
        """
        Verify the token and register the connection.

        Raises:
            AuthenticationError: Missing, invalid or expired token
        """
        user = verify_access_token(token)
        connection.user = user
        self.registry.register(connection)
        await self._send(connection, ServerEvent.AUTHENTICATED, {"userId": user.user_id})
        return user

    def disconnect(self, connection: Connection) -> None:
        """
        Forget the connection. Handlers already running for it keep going and
        still persist their results.
        """
        rooms = self.registry.unregister(connection)
        logger.info(
            f"User {connection.user_id} disconnected",
            extra={"extra_fields": {"connection_id": connection.connection_id, "rooms": rooms}}
        )

    async def handle_event(self, connection: Connection, frame: Dict[str, Any]) -> None:
        """
        Route one incoming frame to its handler.

        Authentication failures propagate so the transport can close the
        connection; every other failure becomes an ``error`` event.
        """
        event_name = frame.get("event") if isinstance(frame, dict) else None
        data = frame.get("data") if isinstance(frame, dict) else None
        if not isinstance(data, dict):
            data = {}

        try:
            event = ClientEvent(event_name)
        except ValueError:
            logger.warning(f"Unsupported event type: {event_name}")
            await self._send_error(connection, ValidationFailure(f"Unsupported event: {event_name}"))
            return

        if event == ClientEvent.AUTHENTICATE:
            if connection.authenticated:
                await self._send_error(connection, ValidationFailure("Connection is already authenticated"))
                return
            try:
                payload = AuthenticatePayload(**data)
            except ValidationError:
                raise AuthenticationError("Authentication token required")
            await self.authenticate(connection, payload.token)
            return

        if not connection.authenticated:
            await self._send_error(connection, AuthenticationError())
            return

        chat_id = data.get("chatId") if isinstance(data.get("chatId"), str) else None
        try:
            await self.handlers[event](connection, data)
        except ChatServiceError as e:
            logger.info(
                f"{event.value} rejected for user {connection.user_id}: {e.code}",
                extra={"extra_fields": {"chat_id": chat_id, "code": e.code}}
            )
            await self._send_error(connection, e, chat_id)
        except ValidationError as e:
            await self._send_error(connection, ValidationFailure(f"Invalid {event.value} payload"), chat_id)
            logger.debug(f"Invalid {event.value} payload: {e}")
        except Exception as e:
            logger.error(f"Error handling {event.value} for user {connection.user_id}: {e}", exc_info=True)
            error = ChatServiceError(f"Failed to handle {event.value}")
            error.code = EVENT_ERROR_CODES.get(event, error.code)
            await self._send_error(connection, error, chat_id)

    # Event handlers

    async def handle_join_chat(self, connection: Connection, data: Dict[str, Any]) -> None:
        payload = ChatRefPayload(**data)
        await self.store.get(payload.chat_id, connection.user_id)
        self.registry.join_room(connection, payload.chat_id)
        logger.info(f"User {connection.user_id} joined chat: {payload.chat_id}")
        await self._send(connection, ServerEvent.JOINED_CHAT, {
            "chatId": payload.chat_id,
            "message": "Successfully joined chat",
        })

    async def handle_leave_chat(self, connection: Connection, data: Dict[str, Any]) -> None:
        payload = ChatRefPayload(**data)
        self.registry.leave_room(connection, payload.chat_id)
        logger.info(f"User {connection.user_id} left chat: {payload.chat_id}")
        await self._send(connection, ServerEvent.LEFT_CHAT, {
            "chatId": payload.chat_id,
            "message": "Successfully left chat",
        })

    async def handle_history(self, connection: Connection, data: Dict[str, Any]) -> None:
        payload = HistoryRequestPayload(**data)
        messages = await self.store.get_history(payload.chat_id, connection.user_id, payload.limit)
        await self._send(connection, ServerEvent.HISTORY, {
            "chatId": payload.chat_id,
            "messages": messages,
            "total": len(messages),
        })

    async def handle_typing(self, connection: Connection, data: Dict[str, Any]) -> None:
        payload = TypingPayload(**data)
        # Membership is only granted by join_chat after its ownership check
        if not self.registry.is_member(connection, payload.chat_id):
            raise AccessDeniedError("Join the chat before sending typing events")
        await self.registry.broadcast(
            payload.chat_id,
            ServerEvent.USER_TYPING,
            {"userId": connection.user_id, "isTyping": payload.is_typing, "chatId": payload.chat_id},
            exclude=connection,
        )

    async def handle_message(self, connection: Connection, data: Dict[str, Any]) -> None:
        payload = SendMessagePayload(**data)
        text = payload.text or ""
        if not text.strip():
            raise InvalidMessageError()
        if len(text) > self.max_message_length:
            raise MessageTooLongError(f"Message too long (max {self.max_message_length} characters)")

        chat_id = payload.chat_id
        owner_id = connection.user_id
        text = text.strip()

        chat, _ = await self.persist_and_broadcast(
            chat_id, owner_id, MessageDraft(text=text, sender=MessageSender.USER)
        )
        logger.info(f"Message sent in chat {chat_id}: {preview(text)}")

        self._spawn(self.memory.record_user_utterance(chat_id, text))
        await self._send(connection, ServerEvent.AI_THINKING, {
            "chatId": chat_id,
            "message": AI_THINKING_MESSAGE,
        })

        context = await self.memory.assemble_context(chat_id)
        result = await self.router.generate(text, chat.topics, context=context or None)

        if not result.success:
            logger.warning(
                f"AI generation failed for chat {chat_id}: {result.error}",
                extra={"extra_fields": {"chat_id": chat_id, "backend": result.backend.value}}
            )
            await self._send(connection, ServerEvent.ERROR, {
                "message": result.text,
                "code": "AI_ERROR",
                "chatId": chat_id,
            })
            return

        reply = result.text
        if len(reply) > MAX_MESSAGE_LENGTH:
            logger.warning(f"AI reply from {result.backend.value} truncated to {MAX_MESSAGE_LENGTH} characters")
            reply = reply[:MAX_MESSAGE_LENGTH]

        await self.persist_and_broadcast(
            chat_id, owner_id, MessageDraft(text=reply, sender=MessageSender.AI, ai_model=result.backend)
        )
        logger.info(f"AI response sent in chat {chat_id} using {result.backend.value}")

    async def persist_and_broadcast(
        self, chat_id: str, owner_id: str, draft: MessageDraft
    ) -> Tuple[ChatSession, ChatMessage]:
        """Append a message and broadcast it to the room, in stored order."""
        async with self._room_lock(chat_id):
            chat = await self.store.append_message(chat_id, owner_id, draft)
            message = chat.messages[-1]
            await self.registry.broadcast(chat_id, ServerEvent.MESSAGE, {"message": message, "chatId": chat_id})
        return chat, message


# Global coordinator instance
_coordinator: Optional[ChatCoordinator] = None


def init_coordinator(
    store: ChatSessionStore,
    memory: SessionMemory,
    router: ModelRouter,
    registry: Optional[ConnectionRegistry] = None,
    max_message_length: int = MAX_MESSAGE_LENGTH,
) -> ChatCoordinator:
    global _coordinator
    _coordinator = ChatCoordinator(store, memory, router, registry, max_message_length)
    return _coordinator


def get_coordinator() -> ChatCoordinator:
    """
    Raises:
        RuntimeError: If the coordinator has not been initialized
    """
    if _coordinator is None:
        raise RuntimeError("Chat coordinator not initialized. Call init_coordinator() first.")
    return _coordinator
