"""Helpers for building fake backend and chat API responses."""
import json
from typing import AsyncIterator, Iterable

BACKEND_URL = "https://backend.test/v1"
CHAT_API_URL = "http://streamchat.test/api/chat"

SSE_HEADERS = {"content-type": "text/event-stream"}


def sse(*payloads: str) -> bytes:
    """Encode payloads as canonical frames."""
    return "".join(f"data: {payload}\n\n" for payload in payloads).encode("utf-8")


def content_frame(text: str) -> str:
    return json.dumps({"content": text})


async def chunked(parts: Iterable[bytes]) -> AsyncIterator[bytes]:
    """Async body that hands out one part per read, like a network stream."""
    for part in parts:
        yield part


def completion_body(answer: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": answer}}]}
