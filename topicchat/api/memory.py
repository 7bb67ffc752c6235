"""
Memory API endpoints - Inspect and manage the session memory of a chat.
"""

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from typing import Any

from ..core.session_memory import SessionMemory, get_session_memory
from ..models import UserInfo
from ..utils.auth import get_current_user_id
from ..storage import ChatSessionStore, get_chat_store

router = APIRouter(prefix="/api/chats/{chat_id}/memory", tags=["memory"])


class ContextEntry(BaseModel):
    key: str = Field(..., min_length=1, max_length=100)
    value: Any


async def _check_owner(chat_id: str, user_id: str, store: ChatSessionStore) -> None:
    # Memory is keyed by chat only; ownership is checked here
    await store.get(chat_id, user_id)


@router.get("")
async def get_memory(
    chat_id: str,
    user_id: str = Depends(get_current_user_id),
    store: ChatSessionStore = Depends(get_chat_store),
    memory: SessionMemory = Depends(get_session_memory)
):
    """
    Get what the assistant remembers about this chat.

    Returns:
        Extracted user info, session context entries and the assembled context block
    """
    chat = await store.get(chat_id, user_id)
    return {
        "chat_id": chat_id,
        "user_info": chat.user_info,
        "session_context": chat.session_context,
        "context": await memory.assemble_context(chat_id),
    }


@router.get("/user-info", response_model=UserInfo)
async def get_user_info(
    chat_id: str,
    user_id: str = Depends(get_current_user_id),
    store: ChatSessionStore = Depends(get_chat_store),
    memory: SessionMemory = Depends(get_session_memory)
):
    await _check_owner(chat_id, user_id, store)
    return await memory.get_user_info(chat_id) or UserInfo()


@router.get("/summary")
async def get_conversation_summary(
    chat_id: str,
    message_limit: int = 10,
    user_id: str = Depends(get_current_user_id),
    store: ChatSessionStore = Depends(get_chat_store),
    memory: SessionMemory = Depends(get_session_memory)
):
    """Timestamped transcript of the latest messages."""
    await _check_owner(chat_id, user_id, store)
    summary = await memory.conversation_summary(chat_id, message_limit=max(1, message_limit))
    return {"chat_id": chat_id, "summary": summary}


@router.get("/context/{key}")
async def get_context_entry(
    chat_id: str,
    key: str,
    user_id: str = Depends(get_current_user_id),
    store: ChatSessionStore = Depends(get_chat_store),
    memory: SessionMemory = Depends(get_session_memory)
):
    await _check_owner(chat_id, user_id, store)
    return {"key": key, "value": await memory.get_context(chat_id, key)}


@router.put("/context", status_code=status.HTTP_201_CREATED)
async def set_context_entry(
    chat_id: str,
    entry: ContextEntry,
    user_id: str = Depends(get_current_user_id),
    store: ChatSessionStore = Depends(get_chat_store),
    memory: SessionMemory = Depends(get_session_memory)
):
    """
    Store a session context entry used in the AI prompt context.

    Args:
        chat_id: Chat ID
        entry: Key and JSON value
    """
    await _check_owner(chat_id, user_id, store)
    await memory.set_context(chat_id, entry.key, entry.value)
    return {"status": "success", "key": entry.key}


@router.delete("")
async def clear_memory(
    chat_id: str,
    user_id: str = Depends(get_current_user_id),
    store: ChatSessionStore = Depends(get_chat_store),
    memory: SessionMemory = Depends(get_session_memory)
):
    """Forget session context and extracted user info. Messages are kept."""
    await _check_owner(chat_id, user_id, store)
    await memory.clear_context(chat_id)
    return {"status": "success", "message": "Session memory cleared"}
