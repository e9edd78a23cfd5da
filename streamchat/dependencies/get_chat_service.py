"""Dependency injection functions for chat service."""

from streamchat.services.chat import ChatService, chat_service


def get_chat_service() -> ChatService:
    """Get the chat service instance."""
    return chat_service
