"""Models module."""

from .user import AuthenticatedUser, TokenData
from .chat import (
    BackendId, ChatTopic, MessageSender, MessageDraft, ChatMessage, UserInfo,
    ChatSession, ChatSummary, ChatDetail, ChatStats,
    StartChatRequest, UpdateTitleRequest, HistoryResponse,
)
from .events import ClientEvent, ServerEvent
from .profile import Profile, CreateProfileRequest, UpdateProfileRequest, ProfileStats

__all__ = [
    'AuthenticatedUser', 'TokenData',
    'BackendId', 'ChatTopic', 'MessageSender', 'MessageDraft', 'ChatMessage', 'UserInfo',
    'ChatSession', 'ChatSummary', 'ChatDetail', 'ChatStats',
    'StartChatRequest', 'UpdateTitleRequest', 'HistoryResponse',
    'ClientEvent', 'ServerEvent',
    'Profile', 'CreateProfileRequest', 'UpdateProfileRequest', 'ProfileStats',
]
