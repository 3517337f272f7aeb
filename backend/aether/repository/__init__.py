"""Repository package for data persistence."""

from aether.repository.chat_repository import ChatRepository, chat_repository

__all__ = [
    "ChatRepository",
    "chat_repository",
]
