"""
Connection registry - Tracks authenticated connections and chat rooms.

All registry mutations are synchronous, so they are atomic with respect to
the event loop.
"""

import logging
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Union

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder
from starlette.websockets import WebSocketState

from ..models import AuthenticatedUser

logger = logging.getLogger(__name__)


class Connection:
    """One client connection. Subclasses implement the transport."""

    def __init__(self, connection_id: Optional[str] = None):
        self.connection_id = connection_id or uuid.uuid4().hex
        self.user: Optional[AuthenticatedUser] = None

    @property
    def authenticated(self) -> bool:
        return self.user is not None

    @property
    def user_id(self) -> Optional[str]:
        return self.user.user_id if self.user else None

    async def send(self, event: Union[str, Enum], data: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        pass


class WebSocketConnection(Connection):
    """Connection backed by a FastAPI WebSocket."""

    def __init__(self, websocket: WebSocket):
        super().__init__()
        self.websocket = websocket

    async def send(self, event: Union[str, Enum], data: Dict[str, Any]) -> None:
        name = event.value if isinstance(event, Enum) else event
        await self.websocket.send_json({"event": name, "data": jsonable_encoder(data)})

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        try:
            if self.websocket.client_state == WebSocketState.CONNECTED:
                await self.websocket.close(code=code, reason=reason)
        except Exception as e:
            logger.warning(f"Failed to close WebSocket {self.connection_id}: {e}")


class ConnectionRegistry:
    """Explicit session registry: connections by id and room membership by chat id."""

    def __init__(self):
        self.connections: Dict[str, Connection] = {}
        self.rooms: Dict[str, Set[str]] = {}
        self._memberships: Dict[str, Set[str]] = {}

    def register(self, connection: Connection) -> None:
        self.connections[connection.connection_id] = connection
        self._memberships.setdefault(connection.connection_id, set())
        logger.info(
            f"Connection registered for user {connection.user_id}",
            extra={"extra_fields": {"connection_id": connection.connection_id, "active": self.active_count()}}
        )

    def unregister(self, connection: Connection) -> List[str]:
        """Remove a connection and its memberships. Returns the rooms it left."""
        rooms = self._memberships.pop(connection.connection_id, set())
        for chat_id in rooms:
            members = self.rooms.get(chat_id)
            if members is not None:
                members.discard(connection.connection_id)
                if not members:
                    del self.rooms[chat_id]
        if self.connections.pop(connection.connection_id, None) is not None:
            logger.info(
                f"Connection unregistered for user {connection.user_id}",
                extra={"extra_fields": {"connection_id": connection.connection_id, "rooms_left": len(rooms)}}
            )
        return sorted(rooms)

    def join_room(self, connection: Connection, chat_id: str) -> None:
        if connection.connection_id not in self.connections:
            self.register(connection)
        self.rooms.setdefault(chat_id, set()).add(connection.connection_id)
        self._memberships[connection.connection_id].add(chat_id)

    def leave_room(self, connection: Connection, chat_id: str) -> None:
        members = self.rooms.get(chat_id)
        if members is not None:
            members.discard(connection.connection_id)
            if not members:
                del self.rooms[chat_id]
        self._memberships.get(connection.connection_id, set()).discard(chat_id)

    def is_member(self, connection: Connection, chat_id: str) -> bool:
        return chat_id in self._memberships.get(connection.connection_id, ())

    def room_members(self, chat_id: str) -> List[Connection]:
        return [
            self.connections[cid]
            for cid in self.rooms.get(chat_id, ())
            if cid in self.connections
        ]

    def connections_for_user(self, user_id: str) -> List[Connection]:
        return [c for c in self.connections.values() if c.user_id == user_id]

    def active_count(self) -> int:
        return len(self.connections)

    async def _deliver(self, targets: List[Connection], event: Union[str, Enum], data: Dict[str, Any]) -> int:
        delivered = 0
        for connection in targets:
            try:
                await connection.send(event, data)
                delivered += 1
            except Exception as e:
                logger.warning(f"Send failed for connection {connection.connection_id}, dropping it: {e}")
                self.unregister(connection)
        return delivered

    async def broadcast(
        self,
        chat_id: str,
        event: Union[str, Enum],
        data: Dict[str, Any],
        exclude: Optional[Connection] = None,
    ) -> int:
        """Send to every room member except ``exclude``. Returns the delivery count."""
        targets = [c for c in self.room_members(chat_id) if c is not exclude]
        return await self._deliver(targets, event, data)

    async def send_to_user(self, user_id: str, event: Union[str, Enum], data: Dict[str, Any]) -> int:
        """Send to every connection of one user."""
        return await self._deliver(self.connections_for_user(user_id), event, data)
