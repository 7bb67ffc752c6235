"""Storage module - document persistence, the chat session store and user profiles."""

from .interface import StorageInterface
from .local_storage import LocalStorage
from .chat_storage import ChatSessionStore, init_chat_store, get_chat_store
from .profile_storage import ProfileStore, init_profile_store, get_profile_store

__all__ = [
    'StorageInterface', 'LocalStorage',
    'ChatSessionStore', 'init_chat_store', 'get_chat_store',
    'ProfileStore', 'init_profile_store', 'get_profile_store',
]
