"""Prompts for chat conversations."""

# System message prepended to every conversation sent to the completion backend
CHAT_SYSTEM_PROMPT = "You are a helpful assistant."
