"""
Chat Models - Chat sessions, embedded messages and extracted user facts.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, model_validator


MAX_MESSAGE_LENGTH = 5000


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ChatTopic(str, Enum):
    HEALTH = "health"
    EDUCATION = "education"


class BackendId(str, Enum):
    """AI backends, in declared fallback order."""
    GPT4 = "gpt-4"
    CLAUDE3 = "claude-3"
    MISTRAL = "mistral"
    COMPOSIO = "composio"


class MessageSender(str, Enum):
    USER = "user"
    AI = "ai"


class MessageDraft(BaseModel):
    """A message before the store assigns its id and timestamp."""
    text: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)
    sender: MessageSender
    ai_model: Optional[BackendId] = None

    @model_validator(mode="after")
    def _check_ai_model(self):
        if self.sender == MessageSender.AI and self.ai_model is None:
            raise ValueError("ai_model is required for AI messages")
        if self.sender == MessageSender.USER and self.ai_model is not None:
            raise ValueError("ai_model is not allowed on user messages")
        return self


class ChatMessage(MessageDraft):
    """A stored message. Immutable once appended."""
    message_id: str
    timestamp: datetime

    class Config:
        frozen = True


class UserInfo(BaseModel):
    """Facts extracted from user messages within one chat."""
    name: Optional[str] = None
    interests: List[str] = Field(default_factory=list)
    goals: List[str] = Field(default_factory=list)
    preferences: Dict[str, str] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (self.name or self.interests or self.goals or self.preferences)

    def merge(self, other: "UserInfo") -> "UserInfo":
        """
        Merge newly extracted facts into this record.

        Name overwrites, interests and goals are appended when not already
        present (case-insensitive), preferences overwrite per key.
        """
        return UserInfo(
            name=other.name or self.name,
            interests=_append_novel(self.interests, other.interests),
            goals=_append_novel(self.goals, other.goals),
            preferences={**self.preferences, **other.preferences},
        )


def _append_novel(existing: List[str], new: List[str]) -> List[str]:
    merged = list(existing)
    seen = {item.lower() for item in existing}
    for item in new:
        if item.lower() not in seen:
            merged.append(item)
            seen.add(item.lower())
    return merged


class ChatSession(BaseModel):
    """Persisted chat document."""
    id: str
    owner_id: str
    title: str
    topics: List[ChatTopic]
    messages: List[ChatMessage] = Field(default_factory=list)
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    last_message_at: datetime = Field(default_factory=utc_now)
    session_context: Dict[str, Any] = Field(default_factory=dict)
    user_info: UserInfo = Field(default_factory=UserInfo)

    @property
    def message_count(self) -> int:
        return len(self.messages)

    @property
    def last_message(self) -> Optional[ChatMessage]:
        return self.messages[-1] if self.messages else None

    def summary(self) -> "ChatSummary":
        return ChatSummary(
            id=self.id,
            title=self.title,
            topics=self.topics,
            message_count=self.message_count,
            last_message_at=self.last_message_at,
            created_at=self.created_at,
            last_message=self.last_message,
        )


class ChatSummary(BaseModel):
    """Chat listing entry (no full message log)."""
    id: str
    title: str
    topics: List[ChatTopic]
    message_count: int
    last_message_at: datetime
    created_at: datetime
    last_message: Optional[ChatMessage] = None


class ChatDetail(BaseModel):
    """Full chat returned by the REST surface."""
    id: str
    title: str
    topics: List[ChatTopic]
    messages: List[ChatMessage]
    message_count: int
    created_at: datetime
    updated_at: datetime
    last_message_at: datetime

    @classmethod
    def from_session(cls, chat: ChatSession) -> "ChatDetail":
        return cls(
            id=chat.id,
            title=chat.title,
            topics=chat.topics,
            messages=chat.messages,
            message_count=chat.message_count,
            created_at=chat.created_at,
            updated_at=chat.updated_at,
            last_message_at=chat.last_message_at,
        )


class ChatStats(BaseModel):
    total_chats: int = 0
    active_chats: int = 0
    total_messages: int = 0
    topic_breakdown: Dict[ChatTopic, int] = Field(default_factory=dict)
    recent_activity: Optional[datetime] = None


class StartChatRequest(BaseModel):
    """Topics are validated by the chat store so bad values map to INVALID_TOPICS."""
    topics: List[str]
    title: Optional[str] = Field(None, max_length=100)


class UpdateTitleRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)


class HistoryResponse(BaseModel):
    chat_id: str
    messages: List[ChatMessage]
    total: int
