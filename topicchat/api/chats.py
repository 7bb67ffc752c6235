"""
Chat API endpoints - Start, list, inspect, rename and delete chats.
Messages are exchanged over the realtime connection, not here.
"""

from fastapi import APIRouter, HTTPException, Depends, status, Query
from typing import Optional

from ..models import (
    ChatDetail,
    ChatStats,
    HistoryResponse,
    StartChatRequest,
    UpdateTitleRequest,
)
from ..utils.auth import get_current_user_id
from ..storage import ChatSessionStore, get_chat_store
from ..config import settings

router = APIRouter(prefix="/api/chats", tags=["chats"])


@router.post("/start", response_model=ChatDetail, status_code=status.HTTP_201_CREATED)
async def start_chat(
    request: StartChatRequest,
    user_id: str = Depends(get_current_user_id),
    store: ChatSessionStore = Depends(get_chat_store)
):
    """
    Start a new chat on one or two topics.

    Args:
        request: Topics and optional title
        user_id: Current user ID from token

    Returns:
        ChatDetail: The created chat
    """
    chat = await store.create(user_id, request.topics, request.title)
    return ChatDetail.from_session(chat)


@router.get("")
async def list_chats(
    limit: int = Query(settings.default_chat_list_limit, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=100, description="Match title or message text"),
    user_id: str = Depends(get_current_user_id),
    store: ChatSessionStore = Depends(get_chat_store)
):
    """
    List the user's chats, most recently active first.

    Returns:
        Chat summaries and their count
    """
    chats = await store.list_chats(user_id, limit=limit, search=search)
    summaries = [chat.summary() for chat in chats]
    return {"chats": summaries, "total": len(summaries)}


@router.get("/stats", response_model=ChatStats)
async def get_chat_stats(
    user_id: str = Depends(get_current_user_id),
    store: ChatSessionStore = Depends(get_chat_store)
):
    """Aggregate counts over the user's chats."""
    return await store.get_stats(user_id)


@router.get("/{chat_id}", response_model=ChatDetail)
async def get_chat(
    chat_id: str,
    user_id: str = Depends(get_current_user_id),
    store: ChatSessionStore = Depends(get_chat_store)
):
    chat = await store.get(chat_id, user_id)
    return ChatDetail.from_session(chat)


@router.get("/{chat_id}/history", response_model=HistoryResponse)
async def get_chat_history(
    chat_id: str,
    limit: int = Query(settings.default_history_limit, ge=1, le=1000),
    user_id: str = Depends(get_current_user_id),
    store: ChatSessionStore = Depends(get_chat_store)
):
    """
    Get the most recent messages of a chat in chronological order.

    Args:
        chat_id: Chat ID
        limit: Maximum number of messages

    Returns:
        HistoryResponse: Messages and their count
    """
    messages = await store.get_history(chat_id, user_id, limit)
    return HistoryResponse(chat_id=chat_id, messages=messages, total=len(messages))


@router.put("/{chat_id}/title", response_model=ChatDetail)
async def update_chat_title(
    chat_id: str,
    request: UpdateTitleRequest,
    user_id: str = Depends(get_current_user_id),
    store: ChatSessionStore = Depends(get_chat_store)
):
    """Rename a chat. Titles are trimmed and must not be blank."""
    if not request.title.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Title is required"
        )
    chat = await store.update_title(chat_id, user_id, request.title)
    return ChatDetail.from_session(chat)


@router.delete("/{chat_id}")
async def delete_chat(
    chat_id: str,
    user_id: str = Depends(get_current_user_id),
    store: ChatSessionStore = Depends(get_chat_store)
):
    """
    Soft delete a chat.

    Returns:
        Success message
    """
    await store.deactivate(chat_id, user_id)
    return {"status": "success", "message": "Chat deleted successfully"}
