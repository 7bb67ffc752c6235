"""Realtime module - WebSocket connection registry and chat event coordination."""

from .connection_manager import Connection, ConnectionRegistry, WebSocketConnection
from .coordinator import ChatCoordinator, get_coordinator, init_coordinator

__all__ = [
    'Connection',
    'ConnectionRegistry',
    'WebSocketConnection',
    'ChatCoordinator',
    'get_coordinator',
    'init_coordinator',
]
