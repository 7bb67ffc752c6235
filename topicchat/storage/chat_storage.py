"""
Chat Storage - Authoritative persistence for chat sessions.

Each chat is one JSON document (``chats/<chat_id>.json``) holding its ordered
message log, topics, title, memory and activity timestamps. A per-owner index
(``owners/<owner_id>.json``) lists the chats a user created.

Every read-modify-write of a chat document runs under a per-chat
``asyncio.Lock``, so appends from several realtime connections on the same chat
are applied one at a time and never lose or reorder messages.
"""

import asyncio
import json
import logging
import re
import uuid
import weakref
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from pydantic import ValidationError

from .interface import StorageInterface
from .local_storage import LocalStorage
from ..core.exceptions import (
    AccessDeniedError,
    ChatNotFoundError,
    InvalidTopicsError,
    MessageLimitExceededError,
    PersistenceError,
    ValidationFailure,
)
from ..models.chat import (
    ChatMessage,
    ChatSession,
    ChatStats,
    ChatTopic,
    MessageDraft,
    utc_now,
)

logger = logging.getLogger(__name__)

MAX_TOPICS = 2
DEFAULT_MAX_MESSAGES = 1000

# Chat ids are issued by create() as uuid4().hex
CHAT_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")


def is_valid_chat_id(chat_id: str) -> bool:
    return isinstance(chat_id, str) and CHAT_ID_PATTERN.match(chat_id) is not None


def default_title(topics: Sequence[ChatTopic]) -> str:
    """Title used when a chat is started without one, e.g. "health & education Chat"."""
    return f"{' & '.join(t.value for t in topics)} Chat"


def validate_topics(topics: Sequence[str]) -> List[ChatTopic]:
    """
    Validate a requested topic list.

    Raises:
        InvalidTopicsError: empty, more than two, duplicated or unknown topics
    """
    if not topics:
        raise InvalidTopicsError("At least one topic is required")
    if len(topics) > MAX_TOPICS:
        raise InvalidTopicsError(f"Maximum {MAX_TOPICS} topics allowed per chat")

    parsed: List[ChatTopic] = []
    for topic in topics:
        try:
            value = ChatTopic(topic)
        except ValueError:
            raise InvalidTopicsError(f"Invalid topic: {topic}")
        if value in parsed:
            raise InvalidTopicsError(f"Duplicate topic: {value.value}")
        parsed.append(value)
    return parsed


class ChatSessionStore:
    """
    Manages persistent storage of chat sessions.
    All public operations are scoped by (chat_id, owner_id).
    """

    def __init__(self, storage: StorageInterface, max_messages: int = DEFAULT_MAX_MESSAGES):
        """
        Args:
            storage: StorageInterface implementation (typically LocalStorage)
            max_messages: Hard cap on messages per chat
        """
        self.storage = storage
        self.max_messages = max_messages
        self.chats_dir = "chats"
        self.owners_dir = "owners"
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    # Internals

    def _lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def _chat_path(self, chat_id: str) -> str:
        return f"{self.chats_dir}/{chat_id}.json"

    def _owner_index_path(self, owner_id: str) -> str:
        return f"{self.owners_dir}/{owner_id}.json"

    async def _read(self, chat_id: str) -> Optional[ChatSession]:
        # Ids never issued by create() cannot name a chat document
        if not is_valid_chat_id(chat_id):
            logger.debug(f"Malformed chat id rejected: {chat_id!r}")
            return None
        content = await self.storage.load(self._chat_path(chat_id))
        if content is None:
            return None
        try:
            return ChatSession.model_validate_json(content)
        except ValidationError as e:
            logger.error(f"Corrupt chat document {chat_id}: {e}")
            raise PersistenceError(f"Chat document {chat_id} is unreadable") from e

    async def _write(self, chat: ChatSession) -> None:
        await self.storage.save(self._chat_path(chat.id), chat.model_dump_json(indent=2))

    async def _get_scoped(self, chat_id: str, owner_id: str) -> ChatSession:
        chat = await self._read(chat_id)
        if chat is None or not chat.is_active:
            raise ChatNotFoundError()
        if chat.owner_id != owner_id:
            logger.warning(
                f"Chat access denied: chat={chat_id}, user={owner_id}",
                extra={"extra_fields": {"chat_id": chat_id, "user_id": owner_id}}
            )
            raise AccessDeniedError()
        return chat

    async def _load_owner_index(self, owner_id: str) -> List[str]:
        content = await self.storage.load(self._owner_index_path(owner_id))
        if content is None:
            return []
        try:
            return json.loads(content.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Chat index for {owner_id} is unreadable") from e

    async def _load_owner_chats(self, owner_id: str) -> List[ChatSession]:
        chats = []
        for chat_id in await self._load_owner_index(owner_id):
            chat = await self._read(chat_id)
            if chat is not None and chat.owner_id == owner_id:
                chats.append(chat)
        return chats

    # Operations

    async def create(
        self,
        owner_id: str,
        topics: Sequence[str],
        title: Optional[str] = None
    ) -> ChatSession:
        """
        Start a new chat.

        Args:
            owner_id: Verified user id of the creator
            topics: One or two topic values
            title: Optional title, defaults to one derived from the topics

        Returns:
            ChatSession: The persisted chat
        """
        parsed_topics = validate_topics(topics)
        now = utc_now()
        chat = ChatSession(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            title=(title or "").strip() or default_title(parsed_topics),
            topics=parsed_topics,
            created_at=now,
            updated_at=now,
            last_message_at=now,
        )
        await self._write(chat)

        try:
            async with self._lock(f"owner:{owner_id}"):
                index = await self._load_owner_index(owner_id)
                index.append(chat.id)
                await self.storage.save(self._owner_index_path(owner_id), json.dumps(index))
        except PersistenceError:
            # Every persisted chat appears in its owner's index
            logger.error(f"Chat index update failed for user: {owner_id}, removing chat {chat.id}")
            await self.storage.delete(self._chat_path(chat.id))
            raise

        logger.info(
            f"New chat created for user: {owner_id}, topics: {', '.join(t.value for t in parsed_topics)}",
            extra={"extra_fields": {"chat_id": chat.id, "user_id": owner_id}}
        )
        return chat

    async def get(self, chat_id: str, owner_id: str) -> ChatSession:
        """Get an active chat owned by owner_id."""
        return await self._get_scoped(chat_id, owner_id)

    async def append_message(self, chat_id: str, owner_id: str, draft: MessageDraft) -> ChatSession:
        """
        Append a message to the chat log.

        The store assigns the message id and a timestamp that is never earlier
        than the previous message's, then updates ``last_message_at``.

        Raises:
            ChatNotFoundError: no active chat in scope
            MessageLimitExceededError: the chat already holds max_messages
        """
        async with self._lock(chat_id):
            chat = await self._get_scoped(chat_id, owner_id)

            if len(chat.messages) >= self.max_messages:
                raise MessageLimitExceededError(
                    f"Chat cannot have more than {self.max_messages} messages"
                )

            timestamp = utc_now()
            if chat.messages and chat.messages[-1].timestamp > timestamp:
                timestamp = chat.messages[-1].timestamp

            message = ChatMessage(
                **draft.model_dump(),
                message_id=uuid.uuid4().hex,
                timestamp=timestamp,
            )
            chat.messages.append(message)
            chat.last_message_at = timestamp
            chat.updated_at = timestamp
            await self._write(chat)

        logger.debug(
            f"Message appended to chat {chat_id} ({message.sender.value}), count={len(chat.messages)}",
            extra={"extra_fields": {"chat_id": chat_id, "message_id": message.message_id}}
        )
        return chat

    async def get_history(self, chat_id: str, owner_id: str, limit: int = 50) -> List[ChatMessage]:
        """Most recent ``limit`` messages in chronological order."""
        if limit < 1:
            raise ValidationFailure("History limit must be at least 1")
        chat = await self._get_scoped(chat_id, owner_id)
        recent = chat.messages[-limit:]
        return sorted(recent, key=lambda m: m.timestamp)

    async def deactivate(self, chat_id: str, owner_id: str) -> None:
        """
        Soft delete. The document stays on disk but disappears from lookups.
        Deactivating an already inactive chat raises ChatNotFoundError.
        """
        async with self._lock(chat_id):
            chat = await self._get_scoped(chat_id, owner_id)
            chat.is_active = False
            chat.updated_at = utc_now()
            await self._write(chat)
        logger.info(f"Chat deleted: {chat_id} for user: {owner_id}")

    async def update_title(self, chat_id: str, owner_id: str, new_title: str) -> ChatSession:
        async with self._lock(chat_id):
            chat = await self._get_scoped(chat_id, owner_id)
            chat.title = new_title.strip()
            chat.updated_at = utc_now()
            await self._write(chat)
        logger.info(f"Chat title updated: {chat_id} for user: {owner_id}")
        return chat

    async def list_chats(
        self,
        owner_id: str,
        limit: int = 20,
        search: Optional[str] = None
    ) -> List[ChatSession]:
        """
        List active chats, most recently active first.

        Args:
            owner_id: Chat owner
            limit: Maximum number of chats
            search: Optional case-insensitive text matched against the title
                and message text
        """
        chats = [c for c in await self._load_owner_chats(owner_id) if c.is_active]

        if search:
            needle = search.lower()
            chats = [
                c for c in chats
                if needle in c.title.lower() or any(needle in m.text.lower() for m in c.messages)
            ]

        chats.sort(key=lambda c: c.last_message_at, reverse=True)
        return chats[:limit]

    async def get_stats(self, owner_id: str) -> ChatStats:
        chats = await self._load_owner_chats(owner_id)
        active = [c for c in chats if c.is_active]

        breakdown: Dict[ChatTopic, int] = {}
        recent_activity: Optional[datetime] = None
        for chat in active:
            for topic in chat.topics:
                breakdown[topic] = breakdown.get(topic, 0) + 1
            if recent_activity is None or chat.last_message_at > recent_activity:
                recent_activity = chat.last_message_at

        return ChatStats(
            total_chats=len(chats),
            active_chats=len(active),
            total_messages=sum(c.message_count for c in active),
            topic_breakdown=breakdown,
            recent_activity=recent_activity,
        )

    # Unscoped access for the session memory, which is keyed by chat id only.
    # Callers must have checked ownership already.

    async def load(self, chat_id: str) -> Optional[ChatSession]:
        return await self._read(chat_id)

    async def mutate(self, chat_id: str, change: Callable[[ChatSession], None]) -> ChatSession:
        """Apply ``change`` to the chat document under its lock and persist it."""
        async with self._lock(chat_id):
            chat = await self._read(chat_id)
            if chat is None:
                raise ChatNotFoundError()
            change(chat)
            chat.updated_at = utc_now()
            await self._write(chat)
        return chat


# Global chat store instance
_chat_store: Optional[ChatSessionStore] = None


def init_chat_store(storage: StorageInterface = None, max_messages: int = DEFAULT_MAX_MESSAGES) -> ChatSessionStore:
    """
    Initialize the global chat store instance.

    Args:
        storage: Optional StorageInterface implementation. If None, creates LocalStorage.
        max_messages: Hard cap on messages per chat
    """
    global _chat_store
    if storage is None:
        storage = LocalStorage()
    _chat_store = ChatSessionStore(storage, max_messages=max_messages)
    return _chat_store


def get_chat_store() -> ChatSessionStore:
    """
    Get the global chat store instance.

    Raises:
        RuntimeError: If the chat store has not been initialized
    """
    if _chat_store is None:
        raise RuntimeError("Chat store not initialized. Call init_chat_store() first.")
    return _chat_store
