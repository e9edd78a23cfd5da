"""Request and response models."""

from .chat import ChatMessage, ChatRequest, ChatResponse, ErrorResponse

__all__ = ["ChatMessage", "ChatRequest", "ChatResponse", "ErrorResponse"]
