"""
Domain exceptions shared by the chat store, memory, realtime and REST layers.

Every exception carries a stable ``code`` that is sent to clients verbatim
(realtime ``error`` events and REST error bodies).
"""

from typing import Optional


class ChatServiceError(Exception):
    """Base exception for the chat service."""

    code = "INTERNAL_ERROR"
    default_message = "Internal error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_payload(self) -> dict:
        return {"message": self.message, "code": self.code}


# Identity

class AuthenticationError(ChatServiceError):
    """Missing, malformed or unverifiable credential."""
    code = "NOT_AUTHENTICATED"
    default_message = "User not authenticated"


class TokenExpiredError(AuthenticationError):
    """Credential was valid but has expired."""
    code = "TOKEN_EXPIRED"
    default_message = "Token has expired"


# Ownership-scoped lookups

class ChatNotFoundError(ChatServiceError):
    """No active chat matches (chat_id, owner_id)."""
    code = "CHAT_NOT_FOUND"
    default_message = "Chat not found or access denied"


class AccessDeniedError(ChatNotFoundError):
    """The chat exists but belongs to another user."""
    code = "ACCESS_DENIED"
    default_message = "Access denied"


# Input validation

class ValidationFailure(ChatServiceError):
    code = "VALIDATION_ERROR"
    default_message = "Validation failed"


class InvalidTopicsError(ValidationFailure):
    code = "INVALID_TOPICS"
    default_message = "Chat must have at least 1 and at most 2 valid topics"


class InvalidMessageError(ValidationFailure):
    code = "INVALID_MESSAGE"
    default_message = "Message text is required"


class MessageTooLongError(ValidationFailure):
    code = "MESSAGE_TOO_LONG"
    default_message = "Message too long"


class MessageLimitExceededError(ValidationFailure):
    code = "MESSAGE_LIMIT_EXCEEDED"
    default_message = "Chat cannot have more than 1000 messages"


# Storage

class PersistenceError(ChatServiceError):
    """Storage substrate unavailable or write failed."""
    code = "PERSISTENCE_ERROR"
    default_message = "Storage is unavailable"


# Profiles

class ProfileNotFoundError(ChatServiceError):
    code = "PROFILE_NOT_FOUND"
    default_message = "Profile not found"


class ProfileExistsError(ChatServiceError):
    code = "PROFILE_EXISTS"
    default_message = "Profile already exists for this user"
