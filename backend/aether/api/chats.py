"""Router for chat management."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from aether.api.dependencies import get_chat_service
from aether.core.auth import CurrentUser, get_current_user
from aether.core.errors import ChatNotFoundError
from aether.core.logging import get_logger
from aether.db.base import get_db
from aether.models.schemas import (
    ChatResponse,
    ChatWithMessagesResponse,
    MessageResponse,
    UpdateChatRequest,
    UpdateChatResponse,
)
from aether.repository import chat_repository
from aether.services.chat_service import ChatService

logger = get_logger(__name__)

router = APIRouter(prefix="/chats")


@router.get("/", response_model=list[ChatResponse])
async def list_chats(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """List the current user's chats, most recently updated first."""
    try:
        chats = await chat_repository.list_for_user(db, current_user.id)
        return [ChatResponse(**chat.to_dict()) for chat in chats]
    except Exception as e:
        logger.error("list_chats_error", error=str(e), user_id=current_user.id)
        raise HTTPException(status_code=500, detail="Failed to list chats")


@router.get("/{chat_id}", response_model=ChatWithMessagesResponse)
async def get_chat(
    chat_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    chat_service: ChatService = Depends(get_chat_service),
):
    """Get a chat with all messages; attachment URLs are re-signed."""
    try:
        chat, messages = await chat_service.get_chat(db, current_user, chat_id)
    except ChatNotFoundError:
        raise HTTPException(status_code=404, detail="Chat not found")
    except Exception as e:
        logger.error("get_chat_error", error=str(e), chat_id=chat_id, user_id=current_user.id)
        raise HTTPException(status_code=500, detail="Failed to get chat")

    return ChatWithMessagesResponse(
        chat=ChatResponse(**chat.to_dict()),
        messages=[MessageResponse(**message) for message in messages],
    )


@router.patch("/{chat_id}", response_model=UpdateChatResponse)
async def update_chat(
    chat_id: str,
    request: UpdateChatRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Rename a chat."""
    title = request.title.strip()
    if not title:
        raise HTTPException(status_code=400, detail="Title cannot be empty")

    try:
        updated = await chat_repository.update_title(db, chat_id, current_user.id, title)
    except Exception as e:
        await db.rollback()
        logger.error("update_chat_error", error=str(e), chat_id=chat_id, user_id=current_user.id)
        raise HTTPException(status_code=500, detail="Failed to update chat")

    if not updated:
        raise HTTPException(status_code=404, detail="Chat not found")
    return UpdateChatResponse(title=updated.title)


@router.delete("/{chat_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_chat(
    chat_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Delete a chat with its messages and attachment texts."""
    try:
        deleted = await chat_repository.delete(db, chat_id, current_user.id)
    except Exception as e:
        await db.rollback()
        logger.error("delete_chat_error", error=str(e), chat_id=chat_id, user_id=current_user.id)
        raise HTTPException(status_code=500, detail="Failed to delete chat")

    if not deleted:
        raise HTTPException(status_code=404, detail="Chat not found")
    logger.info("chat_deleted", chat_id=chat_id, user_id=current_user.id)
