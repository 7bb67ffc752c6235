"""
Realtime endpoint - WebSocket transport for chat events.

Frames are JSON objects ``{"event": <name>, "data": {...}}``. The token comes
from the ``token`` query parameter, the Authorization header, or a first
``authenticate`` frame. A failed verification closes the socket with 4401.
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from ..core.exceptions import AuthenticationError, ValidationFailure
from ..core.logging_config import ChatLoggerAdapter
from ..models.events import ClientEvent, ServerEvent
from ..realtime.connection_manager import WebSocketConnection
from ..realtime.coordinator import get_coordinator
from ..utils.auth import extract_bearer_token

logger = logging.getLogger(__name__)

AUTH_FAILED_CLOSE_CODE = 4401

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: Optional[str] = Query(None)
):
    """
    Main WebSocket endpoint for chat connections.

    Flow:
        1. Accept, then authenticate from the query/header token if present
        2. Process incoming frames until disconnection; handshake frames run
           inline, chat events run as tasks so a slow AI reply never blocks
           typing or history events
        3. On disconnect, drop the connection from the registry; running
           handlers finish and persist their results
    """
    coordinator = get_coordinator()
    await websocket.accept()
    connection = WebSocketConnection(websocket)
    log = ChatLoggerAdapter(logger, {"connection_id": connection.connection_id})
    log.info("WebSocket connection opened")

    try:
        token = token or extract_bearer_token(websocket.headers.get("authorization"))
        if token:
            await coordinator.authenticate(connection, token)

        # Main message processing loop
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except ValueError:
                frame = None
            if not isinstance(frame, dict):
                await connection.send(
                    ServerEvent.ERROR, ValidationFailure("Frames must be JSON objects").to_payload()
                )
                continue

            if not connection.authenticated or frame.get("event") == ClientEvent.AUTHENTICATE.value:
                await coordinator.handle_event(connection, frame)
            else:
                coordinator.dispatch(connection, frame)

    except AuthenticationError as e:
        log.warning(f"WebSocket authentication failed: {e.code}")
        try:
            await connection.send(ServerEvent.ERROR, e.to_payload())
        except Exception as send_error:
            log.debug(f"Could not report authentication failure: {send_error}")
        await connection.close(code=AUTH_FAILED_CLOSE_CODE, reason=e.code)

    except WebSocketDisconnect:
        log.info(f"WebSocket disconnected for user {connection.user_id}")

    except Exception as e:
        log.error(f"Error during WebSocket connection: {e}", exc_info=True)
        await connection.close(code=1011)

    finally:
        coordinator.disconnect(connection)
