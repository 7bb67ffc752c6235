"""
Session Memory - Per-chat conversational memory.

Holds facts extracted from user messages (name, interests, goals,
preferences) and free-form session context entries, both stored on the chat
document, and renders them into the context block prefixed to AI prompts.
"""

import logging
from typing import Any, Optional

from .fact_extraction import extract_user_facts
from .logging_config import preview
from ..models.chat import ChatSession, UserInfo
from ..storage.chat_storage import ChatSessionStore

logger = logging.getLogger(__name__)

RECENT_MESSAGE_COUNT = 5


def render_context(chat: ChatSession, recent_count: int = RECENT_MESSAGE_COUNT) -> str:
    """
    Render the prompt context for a chat.

    Sections, in order and each omitted when empty: known user facts, session
    context entries, the last ``recent_count`` messages.
    """
    sections = []

    info = chat.user_info
    facts = []
    if info.name:
        facts.append(f"User's name: {info.name}")
    if info.interests:
        facts.append(f"User's interests: {', '.join(info.interests)}")
    if info.goals:
        facts.append(f"User's goals: {', '.join(info.goals)}")
    if info.preferences:
        prefs = ", ".join(f"{key}: {value}" for key, value in info.preferences.items())
        facts.append(f"User's preferences: {prefs}")
    if facts:
        sections.append("\n".join(facts))

    if chat.session_context:
        lines = [f"- {key}: {value}" for key, value in chat.session_context.items()]
        sections.append("Session context:\n" + "\n".join(lines))

    if chat.messages:
        lines = [f"{m.sender.value}: {m.text}" for m in chat.messages[-recent_count:]]
        sections.append("Recent conversation:\n" + "\n".join(lines))

    return "\n\n".join(sections).strip()


class SessionMemory:
    """
    Manages the memory of each chat session.
    Operations are keyed by chat id; ownership is checked by the caller.
    """

    def __init__(self, store: ChatSessionStore):
        self.store = store

    async def record_user_utterance(self, chat_id: str, text: str) -> None:
        """
        Extract facts from a user message and merge them into the chat's user info.
        Best effort: failures are logged, never raised.
        """
        try:
            facts = extract_user_facts(text)
            if facts.is_empty():
                return

            def merge(chat: ChatSession) -> None:
                chat.user_info = chat.user_info.merge(facts)

            await self.store.mutate(chat_id, merge)
            logger.info(
                f"Updated user info for chat {chat_id}",
                extra={"extra_fields": {
                    "chat_id": chat_id,
                    "name": facts.name,
                    "interests": facts.interests,
                    "goals": facts.goals,
                }}
            )
        except Exception as e:
            logger.warning(
                f"User info extraction failed for chat {chat_id} ({preview(text)}): {e}",
                exc_info=True
            )

    async def assemble_context(self, chat_id: str) -> str:
        """Context block for the next AI prompt, empty when nothing is known."""
        chat = await self.store.load(chat_id)
        if chat is None:
            return ""
        return render_context(chat)

    async def set_context(self, chat_id: str, key: str, value: Any) -> None:
        def store_value(chat: ChatSession) -> None:
            chat.session_context[key] = value

        await self.store.mutate(chat_id, store_value)
        logger.debug(f"Stored context for chat {chat_id}: {key}")

    async def get_context(self, chat_id: str, key: str) -> Optional[Any]:
        chat = await self.store.load(chat_id)
        if chat is None:
            return None
        return chat.session_context.get(key)

    async def clear_context(self, chat_id: str) -> None:
        """Wipe session context entries and extracted user facts."""
        def clear(chat: ChatSession) -> None:
            chat.session_context = {}
            chat.user_info = UserInfo()

        await self.store.mutate(chat_id, clear)
        logger.info(f"Cleared session context for chat {chat_id}")

    async def get_user_info(self, chat_id: str) -> Optional[UserInfo]:
        chat = await self.store.load(chat_id)
        return chat.user_info if chat else None

    async def conversation_summary(self, chat_id: str, message_limit: int = 10) -> str:
        """Timestamped transcript of the most recent messages."""
        chat = await self.store.load(chat_id)
        if chat is None or not chat.messages:
            return "No previous conversation."

        lines = ["Recent conversation:"]
        for msg in chat.messages[-message_limit:]:
            lines.append(f"[{msg.timestamp.strftime('%H:%M:%S')}] {msg.sender.value}: {msg.text}")
        return "\n".join(lines)


# Global session memory instance
_session_memory: Optional[SessionMemory] = None


def init_session_memory(store: ChatSessionStore) -> SessionMemory:
    global _session_memory
    _session_memory = SessionMemory(store)
    return _session_memory


def get_session_memory() -> SessionMemory:
    """
    Raises:
        RuntimeError: If session memory has not been initialized
    """
    if _session_memory is None:
        raise RuntimeError("Session memory not initialized. Call init_session_memory() first.")
    return _session_memory
