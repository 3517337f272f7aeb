from enum import Enum

from pydantic import BaseModel, Field


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Attachment(BaseModel):
    """One uploaded file as stored on its message."""

    id: str
    name: str
    mime_type: str
    size: int
    storage_path: str
    url: str
    summary: str | None = None


class MessageResponse(BaseModel):
    """A persisted chat message."""

    id: str
    chat_id: str
    role: MessageRole
    content: str
    created_at: str | None = None
    attachments: list[Attachment] = Field(default_factory=list)


class ChatResponse(BaseModel):
    """Chat metadata without messages."""

    id: str
    user_id: str
    title: str
    created_at: str | None = None
    updated_at: str | None = None


class ChatWithMessagesResponse(BaseModel):
    """A chat with its messages, oldest first, attachment URLs freshly signed."""

    chat: ChatResponse
    messages: list[MessageResponse] = Field(default_factory=list)


class UpdateChatRequest(BaseModel):
    """Request to rename a chat."""

    title: str


class UpdateChatResponse(BaseModel):
    title: str


class SendMessageResponse(BaseModel):
    """Result of one send: the chat plus both persisted turns."""

    chat_id: str
    user_message: MessageResponse
    ai_message: MessageResponse
    warnings: list[str] = Field(default_factory=list)
