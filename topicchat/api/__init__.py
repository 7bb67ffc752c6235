"""API module."""

from .chats import router as chats_router
from .health import router as health_router
from .memory import router as memory_router
from .profile import router as profile_router
from .realtime import router as realtime_router

__all__ = ['chats_router', 'health_router', 'memory_router', 'profile_router', 'realtime_router']
