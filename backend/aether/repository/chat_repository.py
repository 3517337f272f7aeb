"""Chat repository for chat, message and attachment-text persistence."""

import uuid
from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from aether.core.logging import get_logger
from aether.db.models import AttachmentText, Chat, Message

logger = get_logger(__name__)


class ChatRepository:
    """Repository for persisting chats and their messages."""

    async def list_for_user(self, db: AsyncSession, user_id: str) -> Sequence[Chat]:
        """List all chats for a user, most recently updated first."""
        result = await db.execute(
            select(Chat).where(Chat.user_id == user_id).order_by(Chat.updated_at.desc())
        )
        return result.scalars().all()

    async def create(self, db: AsyncSession, user_id: str, title: str) -> Chat:
        """Create a new chat."""
        chat = Chat(id=str(uuid.uuid4()), user_id=user_id, title=title)
        db.add(chat)
        await db.commit()
        await db.refresh(chat)
        return chat

    async def get_for_user(self, db: AsyncSession, chat_id: str, user_id: str) -> Chat | None:
        """Get a chat (without messages) verifying ownership."""
        result = await db.execute(
            select(Chat).where(Chat.id == chat_id, Chat.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_with_messages(
        self, db: AsyncSession, chat_id: str, user_id: str
    ) -> Chat | None:
        """Get a chat with its messages, oldest first."""
        result = await db.execute(
            select(Chat)
            .options(selectinload(Chat.messages))
            .where(Chat.id == chat_id, Chat.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def update_title(
        self, db: AsyncSession, chat_id: str, user_id: str, title: str
    ) -> Chat | None:
        """Rename a chat. Returns the updated chat or None if not found."""
        chat = await self.get_for_user(db, chat_id, user_id)
        if not chat:
            return None
        chat.title = title
        chat.updated_at = datetime.now(timezone.utc)
        await db.commit()
        await db.refresh(chat)
        return chat

    async def touch(self, db: AsyncSession, chat: Chat) -> None:
        """Advance the chat's last-updated timestamp."""
        now = datetime.now(timezone.utc)
        if chat.updated_at is None or _aware(chat.updated_at) < now:
            chat.updated_at = now
        await db.commit()

    async def delete(self, db: AsyncSession, chat_id: str, user_id: str) -> bool:
        """Delete a chat and everything under it. Returns False if not found."""
        chat = await self.get_with_messages(db, chat_id, user_id)
        if not chat:
            return False
        await db.delete(chat)
        await db.commit()
        return True

    async def list_messages(self, db: AsyncSession, chat_id: str) -> list[Message]:
        """All messages of a chat in chronological order."""
        result = await db.execute(
            select(Message).where(Message.chat_id == chat_id).order_by(Message.created_at.asc())
        )
        return list(result.scalars().all())

    async def create_message(
        self,
        db: AsyncSession,
        chat_id: str,
        role: str,
        content: str,
        attachments: list[dict] | None = None,
    ) -> Message:
        """Insert one message and commit it."""
        message = Message(
            id=str(uuid.uuid4()),
            chat_id=chat_id,
            role=role,
            content=content,
            attachments=attachments or [],
        )
        db.add(message)
        await db.commit()
        await db.refresh(message)
        return message

    async def add_attachment_texts(self, db: AsyncSession, records: list[dict]) -> None:
        """Insert full-text records for a message's attachments.

        Raises on failure after rolling back only this insert.
        """
        if not records:
            return
        try:
            db.add_all([AttachmentText(**record) for record in records])
            await db.commit()
        except Exception:
            await db.rollback()
            raise


def _aware(value: datetime) -> datetime:
    # SQLite returns naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


chat_repository = ChatRepository()
