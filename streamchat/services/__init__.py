"""Business logic services."""

from .backend import completion_backend
from .chat import chat_service
