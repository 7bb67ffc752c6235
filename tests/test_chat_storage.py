"""
Unit tests for the chat session store.
Tests topic validation, atomic appends, ownership scoping and listings.
"""

import asyncio
import pytest
from datetime import timedelta
from unittest.mock import patch

from pydantic import ValidationError

from topicchat.core.exceptions import (
    AccessDeniedError,
    ChatNotFoundError,
    InvalidTopicsError,
    MessageLimitExceededError,
    PersistenceError,
    ValidationFailure,
)
from topicchat.models import BackendId, ChatTopic, MessageDraft, MessageSender
from topicchat.models.chat import utc_now
from topicchat.storage import ChatSessionStore
from topicchat.storage.chat_storage import default_title, validate_topics


def user_draft(text):
    return MessageDraft(text=text, sender=MessageSender.USER)


def ai_draft(text, backend=BackendId.GPT4):
    return MessageDraft(text=text, sender=MessageSender.AI, ai_model=backend)


class TestTopicValidation:
    """Tests for topic list validation and default titles."""

    def test_valid_topics(self):
        assert validate_topics(["health"]) == [ChatTopic.HEALTH]
        assert validate_topics(["education", "health"]) == [ChatTopic.EDUCATION, ChatTopic.HEALTH]

    @pytest.mark.parametrize("topics", [
        [],
        ["health", "education", "health"],
        ["health", "health"],
        ["cooking"],
    ])
    def test_invalid_topics(self, topics):
        with pytest.raises(InvalidTopicsError):
            validate_topics(topics)

    def test_default_title(self):
        assert default_title([ChatTopic.HEALTH, ChatTopic.EDUCATION]) == "health & education Chat"
        assert default_title([ChatTopic.EDUCATION]) == "education Chat"


class TestMessageDraft:
    """Tests for the ai_model rule on message drafts."""

    def test_ai_message_requires_model(self):
        with pytest.raises(ValidationError):
            MessageDraft(text="hi", sender=MessageSender.AI)

    def test_user_message_rejects_model(self):
        with pytest.raises(ValidationError):
            MessageDraft(text="hi", sender=MessageSender.USER, ai_model=BackendId.GPT4)

    def test_text_length_bounds(self):
        with pytest.raises(ValidationError):
            user_draft("")
        with pytest.raises(ValidationError):
            user_draft("x" * 5001)
        assert user_draft("x" * 5000).text == "x" * 5000


class TestChatSessionStore:
    """Tests for ChatSessionStore operations."""

    @pytest.mark.asyncio
    async def test_create_chat(self, store):
        chat = await store.create("user-1", ["health", "education"])
        assert chat.title == "health & education Chat"
        assert chat.topics == [ChatTopic.HEALTH, ChatTopic.EDUCATION]
        assert chat.messages == []
        assert chat.is_active
        assert chat.last_message_at == chat.created_at

    @pytest.mark.asyncio
    async def test_create_chat_custom_and_blank_title(self, store):
        chat = await store.create("user-1", ["health"], title="  My plan  ")
        assert chat.title == "My plan"
        blank = await store.create("user-1", ["health"], title="   ")
        assert blank.title == "health Chat"

    @pytest.mark.asyncio
    async def test_create_chat_invalid_topics(self, store):
        with pytest.raises(InvalidTopicsError):
            await store.create("user-1", [])

    @pytest.mark.asyncio
    async def test_append_assigns_id_and_timestamp(self, store):
        chat = await store.create("user-1", ["health"])
        updated = await store.append_message(chat.id, "user-1", user_draft("Hello"))
        message = updated.messages[-1]
        assert message.message_id
        assert message.text == "Hello"
        assert updated.last_message_at == message.timestamp

        updated = await store.append_message(chat.id, "user-1", ai_draft("Hi there"))
        assert updated.messages[-1].ai_model == BackendId.GPT4
        assert updated.messages[0].message_id != updated.messages[1].message_id

    @pytest.mark.asyncio
    async def test_append_timestamp_never_goes_backwards(self, store):
        chat = await store.create("user-1", ["health"])
        now = utc_now()
        with patch("topicchat.storage.chat_storage.utc_now", side_effect=[now, now - timedelta(seconds=5)]):
            await store.append_message(chat.id, "user-1", user_draft("first"))
            updated = await store.append_message(chat.id, "user-1", user_draft("second"))
        first, second = updated.messages
        assert second.timestamp == first.timestamp
        assert updated.last_message_at == second.timestamp

    @pytest.mark.asyncio
    async def test_concurrent_appends_are_not_lost(self, store):
        chat = await store.create("user-1", ["education"])
        texts = [f"message {i}" for i in range(40)]

        await asyncio.gather(*(
            store.append_message(chat.id, "user-1", user_draft(text)) for text in texts
        ))

        stored = await store.get(chat.id, "user-1")
        assert len(stored.messages) == 40
        assert sorted(m.text for m in stored.messages) == sorted(texts)
        timestamps = [m.timestamp for m in stored.messages]
        assert timestamps == sorted(timestamps)
        assert stored.last_message_at == stored.messages[-1].timestamp

    @pytest.mark.asyncio
    async def test_message_limit(self, storage):
        store = ChatSessionStore(storage, max_messages=3)
        chat = await store.create("user-1", ["health"])
        for i in range(3):
            await store.append_message(chat.id, "user-1", user_draft(f"m{i}"))

        with pytest.raises(MessageLimitExceededError):
            await store.append_message(chat.id, "user-1", user_draft("one too many"))

        stored = await store.get(chat.id, "user-1")
        assert [m.text for m in stored.messages] == ["m0", "m1", "m2"]

    def test_default_message_limit(self, storage):
        assert ChatSessionStore(storage).max_messages == 1000

    @pytest.mark.asyncio
    async def test_owner_scoping(self, store):
        chat = await store.create("user-1", ["health"])

        with pytest.raises(AccessDeniedError):
            await store.get(chat.id, "user-2")
        with pytest.raises(ChatNotFoundError):
            await store.append_message(chat.id, "user-2", user_draft("intruder"))
        with pytest.raises(ChatNotFoundError):
            await store.get("missing-chat", "user-1")

        stored = await store.get(chat.id, "user-1")
        assert stored.messages == []

    @pytest.mark.asyncio
    async def test_get_history(self, store):
        chat = await store.create("user-1", ["health"])
        for i in range(5):
            await store.append_message(chat.id, "user-1", user_draft(f"m{i}"))

        history = await store.get_history(chat.id, "user-1", limit=3)
        assert [m.text for m in history] == ["m2", "m3", "m4"]

        full = await store.get_history(chat.id, "user-1")
        assert len(full) == 5

        with pytest.raises(ValidationFailure):
            await store.get_history(chat.id, "user-1", limit=0)

    @pytest.mark.asyncio
    async def test_deactivate(self, store):
        chat = await store.create("user-1", ["health"])
        await store.deactivate(chat.id, "user-1")

        with pytest.raises(ChatNotFoundError):
            await store.get(chat.id, "user-1")
        with pytest.raises(ChatNotFoundError):
            await store.deactivate(chat.id, "user-1")
        assert await store.list_chats("user-1") == []

        # The document is kept on disk
        assert (await store.load(chat.id)).is_active is False

    @pytest.mark.asyncio
    async def test_update_title(self, store):
        chat = await store.create("user-1", ["education"])
        updated = await store.update_title(chat.id, "user-1", "  Study plan ")
        assert updated.title == "Study plan"
        with pytest.raises(AccessDeniedError):
            await store.update_title(chat.id, "user-2", "Mine now")

    @pytest.mark.asyncio
    async def test_list_chats_order_and_search(self, store):
        older = await store.create("user-1", ["health"], title="Sleep")
        newer = await store.create("user-1", ["education"], title="Algebra")
        await store.create("user-2", ["health"], title="Not yours")

        await store.append_message(older.id, "user-1", user_draft("Tips for better sleep hygiene"))

        chats = await store.list_chats("user-1")
        assert [c.id for c in chats] == [older.id, newer.id]

        assert [c.id for c in await store.list_chats("user-1", search="ALGEBRA")] == [newer.id]
        assert [c.id for c in await store.list_chats("user-1", search="hygiene")] == [older.id]
        assert len(await store.list_chats("user-1", limit=1)) == 1

    @pytest.mark.asyncio
    async def test_stats(self, store):
        first = await store.create("user-1", ["health", "education"])
        second = await store.create("user-1", ["health"])
        await store.append_message(first.id, "user-1", user_draft("hello"))
        await store.append_message(first.id, "user-1", ai_draft("hi"))
        await store.deactivate(second.id, "user-1")

        stats = await store.get_stats("user-1")
        assert stats.total_chats == 2
        assert stats.active_chats == 1
        assert stats.total_messages == 2
        assert stats.topic_breakdown == {ChatTopic.HEALTH: 1, ChatTopic.EDUCATION: 1}
        assert stats.recent_activity is not None

    @pytest.mark.asyncio
    async def test_chat_survives_new_store_instance(self, storage):
        chat = await ChatSessionStore(storage).create("user-1", ["health"])
        await ChatSessionStore(storage).append_message(chat.id, "user-1", user_draft("persisted"))

        reloaded = await ChatSessionStore(storage).get(chat.id, "user-1")
        assert [m.text for m in reloaded.messages] == ["persisted"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("chat_id", [
        "../../../etc/passwd",
        "../owners/user-1",
        "not-a-chat-id",
        "",
    ])
    async def test_malformed_chat_id_is_not_found(self, store, chat_id):
        await store.create("user-1", ["health"])

        with pytest.raises(ChatNotFoundError) as exc_info:
            await store.get(chat_id, "user-1")
        assert exc_info.value.code == "CHAT_NOT_FOUND"
        with pytest.raises(ChatNotFoundError):
            await store.append_message(chat_id, "user-1", user_draft("hello"))
        assert await store.load(chat_id) is None

    @pytest.mark.asyncio
    async def test_create_rolls_back_when_index_write_fails(self, storage):
        store = ChatSessionStore(storage)
        original_save = storage.save

        async def failing_index_save(path, content):
            if path.startswith("owners/"):
                raise PersistenceError("disk full")
            await original_save(path, content)

        with patch.object(storage, "save", side_effect=failing_index_save):
            with pytest.raises(PersistenceError):
                await store.create("user-1", ["health"])

        assert await storage.list("chats") == []
        assert await store.list_chats("user-1") == []
