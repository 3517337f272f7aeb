"""Shared FastAPI dependencies for the chat routers."""

from fastapi import Depends

from aether.ai.llm import response_generator
from aether.ai.vision import VisionSummarizer, get_vision_summarizer
from aether.repository import chat_repository
from aether.services.chat_service import ChatService
from aether.services.file_storage import FileStorageService, get_file_storage


def get_chat_service(
    storage: FileStorageService = Depends(get_file_storage),
    summarizer: VisionSummarizer = Depends(get_vision_summarizer),
) -> ChatService:
    return ChatService(
        repository=chat_repository,
        storage=storage,
        summarizer=summarizer,
        generator=response_generator,
    )
