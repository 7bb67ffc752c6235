"""
Realtime event names and payload schemas.

Frames on the wire are ``{"event": <name>, "data": {...}}``. Event names and
camelCase payload keys are the client compatibility surface.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class ClientEvent(str, Enum):
    AUTHENTICATE = "authenticate"
    JOIN_CHAT = "join_chat"
    LEAVE_CHAT = "leave_chat"
    MESSAGE = "message"
    HISTORY = "history"
    TYPING = "typing"


class ServerEvent(str, Enum):
    AUTHENTICATED = "authenticated"
    JOINED_CHAT = "joined_chat"
    LEFT_CHAT = "left_chat"
    MESSAGE = "message"
    HISTORY = "history"
    USER_TYPING = "user_typing"
    AI_THINKING = "ai_thinking"
    ERROR = "error"


class EventPayload(BaseModel):
    class Config:
        populate_by_name = True


class AuthenticatePayload(EventPayload):
    token: str


class ChatRefPayload(EventPayload):
    chat_id: str = Field(..., alias="chatId", min_length=1)


class SendMessagePayload(ChatRefPayload):
    # Length and blankness are checked by the coordinator to emit specific error codes
    text: Optional[str] = None


class HistoryRequestPayload(ChatRefPayload):
    limit: int = Field(50, ge=1, le=1000)


class TypingPayload(ChatRefPayload):
    is_typing: bool = Field(False, alias="isTyping")
