"""Router for sending chat messages with attachments."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from aether.api.dependencies import get_chat_service
from aether.core.auth import CurrentUser, get_current_user
from aether.core.errors import ChatNotFoundError, StorageError
from aether.core.logging import get_logger
from aether.db.base import get_db
from aether.models.schemas import MessageResponse, SendMessageResponse
from aether.services.attachment_pipeline import IncomingFile
from aether.services.chat_service import ChatService

logger = get_logger(__name__)

router = APIRouter(prefix="/messages")


@router.post("/send", response_model=SendMessageResponse)
async def send_message(
    message: str = Form(""),
    chat_id: Optional[str] = Form(None),
    web_search: bool = Form(False),
    files: Optional[list[UploadFile]] = File(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    chat_service: ChatService = Depends(get_chat_service),
):
    """Send a message, optionally with files, and receive the advisor's reply."""
    uploads = [f for f in (files or []) if f.filename]
    if not message.strip() and not uploads:
        raise HTTPException(status_code=400, detail="Message or attachment required")

    incoming = [
        IncomingFile(filename=f.filename, content_type=f.content_type, data=await f.read())
        for f in uploads
    ]

    try:
        result = await chat_service.send_message(
            db,
            current_user,
            message=message,
            chat_id=chat_id or None,
            files=incoming,
            web_search_enabled=web_search,
        )
    except ChatNotFoundError:
        raise HTTPException(status_code=404, detail="Chat not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (StorageError, SQLAlchemyError) as e:
        await db.rollback()
        logger.error("send_message_failed", error=str(e), user_id=current_user.id)
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        await db.rollback()
        logger.error("send_message_error", error=str(e), user_id=current_user.id)
        raise HTTPException(status_code=500, detail="Internal server error")

    warnings = []
    if not result.attachment_texts.ok:
        warnings.append("Attachment text could not be saved")

    return SendMessageResponse(
        chat_id=result.chat.id,
        user_message=MessageResponse(**result.user_message.to_dict()),
        ai_message=MessageResponse(**result.ai_message.to_dict()),
        warnings=warnings,
    )
