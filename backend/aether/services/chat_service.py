"""Send-message orchestration and chat reads with fresh attachment URLs."""

import asyncio
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from aether.ai.llm import DEFAULT_TITLE, ResponseGenerator, clean_title
from aether.ai.vision import VisionSummarizer
from aether.config import settings
from aether.core.auth import CurrentUser
from aether.core.errors import ChatNotFoundError
from aether.core.logging import get_logger, log_timing
from aether.db.models import Chat, Message
from aether.repository.chat_repository import ChatRepository
from aether.services.attachment_pipeline import (
    AttachmentResult,
    IncomingFile,
    process_attachments,
)
from aether.services.context_assembler import assemble_context
from aether.services.file_storage import FileStorageService

logger = get_logger(__name__)

ATTACHMENT_PLACEHOLDER = "[Attachment]"


@dataclass
class SecondaryWriteResult:
    """Outcome of the best-effort attachment-text insert.

    A failure here never undoes the user message that preceded it.
    """

    attempted: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SendMessageResult:
    chat: Chat
    user_message: Message
    ai_message: Message
    attachment_texts: SecondaryWriteResult = field(default_factory=SecondaryWriteResult)


class ChatService:
    """Runs one conversational turn end to end."""

    def __init__(
        self,
        repository: ChatRepository,
        storage: FileStorageService,
        summarizer: VisionSummarizer,
        generator: ResponseGenerator,
    ):
        self.repository = repository
        self.storage = storage
        self.summarizer = summarizer
        self.generator = generator

    async def choose_title(self, message: str) -> str:
        """Generated title for typed text, otherwise the default."""
        if not message.strip():
            return DEFAULT_TITLE
        title = await self.generator.generate_title(message)
        return title or clean_title(message) or DEFAULT_TITLE

    async def _resolve_chat(
        self, db: AsyncSession, user: CurrentUser, chat_id: str | None, message: str
    ) -> Chat:
        if chat_id:
            chat = await self.repository.get_for_user(db, chat_id, user.id)
            if not chat:
                raise ChatNotFoundError(f"Chat {chat_id} not found")
            return chat

        title = await self.choose_title(message)
        chat = await self.repository.create(db, user.id, title)
        logger.info("chat_created", chat_id=chat.id, user_id=user.id)
        return chat

    async def _save_attachment_texts(
        self,
        db: AsyncSession,
        user: CurrentUser,
        chat: Chat,
        message: Message,
        results: list[AttachmentResult],
    ) -> SecondaryWriteResult:
        chat_id = chat.id
        message_id = message.id
        records = [
            {
                "attachment_id": result.attachment.id,
                "chat_id": chat_id,
                "message_id": message_id,
                "user_id": user.id,
                "storage_path": result.attachment.storage_path,
                "extracted_text": result.full_text,
            }
            for result in results
            if result.full_text
        ]
        outcome = SecondaryWriteResult(attempted=len(records))
        if not records:
            return outcome

        try:
            await self.repository.add_attachment_texts(db, records)
        except Exception as e:
            # Rollback expired the committed rows; reload before any attribute access
            await db.refresh(chat)
            await db.refresh(message)
            logger.warning(
                "attachment_text_save_failed",
                chat_id=chat_id,
                message_id=message_id,
                records=len(records),
                error=str(e),
            )
            outcome.error = str(e)
        return outcome

    async def send_message(
        self,
        db: AsyncSession,
        user: CurrentUser,
        message: str,
        chat_id: str | None = None,
        files: list[IncomingFile] | None = None,
        web_search_enabled: bool = False,
    ) -> SendMessageResult:
        """Persist the user turn, generate a reply and persist it.

        Raises:
            ValueError: If neither text nor files were supplied
            ChatNotFoundError: If chat_id is not one of the user's chats
            StorageError: If an attachment cannot be uploaded
        """
        files = files or []
        if not message.strip() and not files:
            raise ValueError("Message or attachment required")

        chat = await self._resolve_chat(db, user, chat_id, message)

        with log_timing(logger, "attachment_processing", chat_id=chat.id, files=len(files)):
            results = await process_attachments(
                files, user.id, chat.id, self.storage, self.summarizer
            )

        prior = await self.repository.list_messages(db, chat.id)
        prior_turns = [{"role": m.role, "content": m.content} for m in prior]

        user_message = await self.repository.create_message(
            db,
            chat_id=chat.id,
            role="user",
            content=message if message.strip() else ATTACHMENT_PLACEHOLDER,
            attachments=[result.attachment.model_dump() for result in results],
        )
        attachment_texts = await self._save_attachment_texts(
            db, user, chat, user_message, results
        )
        await self.repository.touch(db, chat)

        assembled = assemble_context(prior_turns, message, results)
        reply = await self.generator.generate_reply(
            assembled.messages,
            instructions=user.instructions,
            temperature=settings.chat_temperature,
            web_search_enabled=web_search_enabled,
        )

        ai_message = await self.repository.create_message(
            db, chat_id=chat.id, role="assistant", content=reply, attachments=[]
        )
        logger.info(
            "message_sent",
            chat_id=chat.id,
            attachments=len(results),
            context_chars=len(assembled.context),
        )
        return SendMessageResult(
            chat=chat,
            user_message=user_message,
            ai_message=ai_message,
            attachment_texts=attachment_texts,
        )

    async def _resign(self, attachment: dict) -> dict:
        storage_path = attachment.get("storage_path")
        if not storage_path:
            return attachment
        try:
            url = await self.storage.create_signed_url(storage_path, settings.signed_url_ttl_seconds)
        except Exception as e:
            logger.warning("signed_url_failed", storage_path=storage_path, error=str(e))
            return attachment
        return {**attachment, "url": url}

    async def get_chat(
        self, db: AsyncSession, user: CurrentUser, chat_id: str
    ) -> tuple[Chat, list[dict]]:
        """Load a chat with its messages, re-signing every attachment URL.

        Raises:
            ChatNotFoundError: If the chat is missing or owned by someone else
        """
        chat = await self.repository.get_with_messages(db, chat_id, user.id)
        if not chat:
            raise ChatNotFoundError(f"Chat {chat_id} not found")

        async def hydrate(message: Message) -> dict:
            data = message.to_dict()
            data["attachments"] = list(
                await asyncio.gather(*(self._resign(a) for a in data["attachments"]))
            )
            return data

        messages = await asyncio.gather(*(hydrate(m) for m in chat.messages))
        return chat, list(messages)
