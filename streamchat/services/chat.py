"""Chat service re-framing completion backend output as Server-Sent Events."""

import codecs
import json
from enum import Enum
from typing import AsyncGenerator, Callable, Dict, List, Optional

import httpx

from streamchat.core.config import Settings, settings
from streamchat.core.frames import DONE_FRAME, KEEP_ALIVE_FRAME, extract_answer, format_frame
from streamchat.core.logging import setup_logger
from streamchat.models.chat import ChatMessage, ChatRequest
from streamchat.services.backend import CompletionBackend, completion_backend

logger = setup_logger(__name__)


class ResponseShape(str, Enum):
    """Shape of a streaming backend response, decided from its content type."""

    EVENT_STREAM = "event_stream"
    JSON_DOCUMENT = "json_document"
    RAW_TEXT = "raw_text"

    @classmethod
    def from_content_type(cls, content_type: Optional[str]) -> "ResponseShape":
        media_type = (content_type or "").split(";", 1)[0].strip().lower()
        if media_type == "text/event-stream":
            return cls.EVENT_STREAM
        if media_type == "application/json" or media_type.endswith("+json"):
            return cls.JSON_DOCUMENT
        return cls.RAW_TEXT


class FrameStream:
    """
    Outgoing frames for one chat request, bound to the backend response.

    Iterating yields the frames. ``aclose`` releases the backend response even
    when iteration never started.
    """

    def __init__(
        self, frames: AsyncGenerator[bytes, None], upstream: httpx.Response
    ) -> None:
        self._frames = frames
        self.upstream = upstream

    def __aiter__(self) -> AsyncGenerator[bytes, None]:
        return self._frames

    async def aclose(self) -> None:
        await self._frames.aclose()
        await self.upstream.aclose()


class ChatService:
    """Service to relay chat completions as a canonical event stream."""

    def __init__(
        self,
        backend: Optional[CompletionBackend] = None,
        config: Optional[Settings] = None,
    ) -> None:
        self.config = config or settings
        self.backend = backend or completion_backend
        self._shape_handlers: Dict[
            ResponseShape, Callable[[httpx.Response], AsyncGenerator[bytes, None]]
        ] = {
            ResponseShape.EVENT_STREAM: self._relay_event_stream,
            ResponseShape.JSON_DOCUMENT: self._reframe_document,
            ResponseShape.RAW_TEXT: self._reframe_text,
        }

    def build_messages(self, request: ChatRequest) -> List[ChatMessage]:
        """System prompt, then history, then the current prompt."""
        history = [message for message in request.history if message.role != "system"]
        return [
            ChatMessage(role="system", content=self.config.SYSTEM_PROMPT),
            *history,
            ChatMessage(role="user", content=request.prompt),
        ]

    def _build_payload(self, request: ChatRequest, stream: bool) -> dict:
        messages = self.build_messages(request)
        logger.info(
            f"Sending {len(messages)} messages to backend "
            f"(1 system + {len(messages) - 2} history, stream={stream})"
        )
        return self.backend.build_payload(
            messages,
            model=request.model,
            temperature=request.temperature,
            max_tokens=request.max_tokens,
            stream=stream,
        )

    async def answer(self, request: ChatRequest) -> str:
        """
        Get a complete answer for a chat request.

        Raises:
            ConfigError: If the backend credential is missing
            TransportError: If the backend cannot be reached
            UpstreamError: If the backend answers with a non-success status
        """
        self.backend.ensure_configured()
        answer = await self.backend.complete(self._build_payload(request, stream=False))
        logger.info(f"Backend answer received: {len(answer)} characters")
        return answer

    async def open_stream(self, request: ChatRequest) -> FrameStream:
        """
        Open the backend stream and return its outgoing frames.

        All backend failures that happen before the first byte is produced are
        raised here, so the caller can still answer with a structured error.

        Raises:
            ConfigError: If the backend credential is missing
            TransportError: If the backend cannot be reached
            UpstreamError: If the backend answers with a non-success status
        """
        self.backend.ensure_configured()
        upstream = await self.backend.open_stream(self._build_payload(request, stream=True))
        shape = ResponseShape.from_content_type(upstream.headers.get("content-type"))
        logger.info(f"Backend stream opened with shape={shape.value}")
        return FrameStream(self._stream_frames(upstream, shape), upstream)

    async def _stream_frames(
        self, upstream: httpx.Response, shape: ResponseShape
    ) -> AsyncGenerator[bytes, None]:
        try:
            yield KEEP_ALIVE_FRAME.encode("utf-8")
            async for frame in self._shape_handlers[shape](upstream):
                yield frame
        except httpx.HTTPError as e:
            # Headers are already sent: close without a sentinel
            logger.error(f"Backend stream failed mid-stream: {e}")
        finally:
            await upstream.aclose()

    async def _relay_event_stream(
        self, upstream: httpx.Response
    ) -> AsyncGenerator[bytes, None]:
        async for chunk in upstream.aiter_bytes():
            yield chunk

    async def _reframe_document(
        self, upstream: httpx.Response
    ) -> AsyncGenerator[bytes, None]:
        body = await upstream.aread()
        try:
            answer = extract_answer(json.loads(body))
        except ValueError:
            logger.warning("Backend declared JSON but sent an unparsable body, relaying it as text")
            answer = body.decode("utf-8", errors="replace")
        yield format_frame(answer).encode("utf-8")
        yield DONE_FRAME.encode("utf-8")

    async def _reframe_text(
        self, upstream: httpx.Response
    ) -> AsyncGenerator[bytes, None]:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        async for chunk in upstream.aiter_bytes():
            for frame in self._text_frames(decoder.decode(chunk)):
                yield frame
        for frame in self._text_frames(decoder.decode(b"", final=True)):
            yield frame
        yield DONE_FRAME.encode("utf-8")

    @staticmethod
    def _text_frames(text: str) -> List[bytes]:
        # Line endings stay inside the payload so the client can rebuild the text
        return [
            format_frame(line).encode("utf-8") for line in text.splitlines(keepends=True)
        ]


# Singleton instance
chat_service = ChatService()
