"""Client side of the chat API: request lifecycle and stream consumption."""

from .consumer import AssistantSlot, StreamConsumer
from .session import ChatOptions, ChatSession, PendingRequest

__all__ = [
    "AssistantSlot",
    "StreamConsumer",
    "ChatOptions",
    "ChatSession",
    "PendingRequest",
]
