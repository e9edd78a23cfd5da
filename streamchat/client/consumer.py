"""Client-side consumer turning a chat API response into a growing message."""

import codecs
from typing import Any, Callable, Dict, List, Optional

import httpx

from streamchat.core.config import settings
from streamchat.core.exceptions import AbortError, TransportError, UpstreamError, truncate_body
from streamchat.core.frames import extract_frame_text, is_terminal, split_frames
from streamchat.core.logging import setup_logger
from streamchat.core.markdown import finalize_markdown
from streamchat.models.chat import ChatMessage

logger = setup_logger(__name__)

DeltaListener = Callable[[int, str], None]


def new_decoder() -> codecs.IncrementalDecoder:
    """UTF-8 decoder carrying partial characters across chunks."""
    return codecs.getincrementaldecoder("utf-8")(errors="replace")


def is_event_stream(response: httpx.Response) -> bool:
    content_type = response.headers.get("content-type", "")
    return content_type.split(";", 1)[0].strip().lower() == "text/event-stream"


class AssistantSlot:
    """The in-progress assistant message, addressed by its index in the message list."""

    def __init__(
        self,
        messages: List[ChatMessage],
        index: int,
        is_alive: Callable[[], bool],
        on_delta: Optional[DeltaListener] = None,
    ) -> None:
        self.messages = messages
        self.index = index
        self._is_alive = is_alive
        self._on_delta = on_delta

    @classmethod
    def reserve(
        cls,
        messages: List[ChatMessage],
        is_alive: Callable[[], bool],
        on_delta: Optional[DeltaListener] = None,
    ) -> "AssistantSlot":
        """Append an empty assistant message and return its slot."""
        if not is_alive():
            raise AbortError()
        messages.append(ChatMessage(role="assistant", content=""))
        return cls(messages, len(messages) - 1, is_alive, on_delta)

    @property
    def content(self) -> str:
        return self.messages[self.index].content

    def append(self, text: str) -> None:
        """
        Append text to the slot.

        Raises:
            AbortError: If the owning request was cancelled
        """
        if not text:
            return
        if not self._is_alive():
            raise AbortError()
        self.messages[self.index].content += text
        if self._on_delta is not None:
            self._on_delta(self.index, text)

    def finalize(self) -> None:
        """Apply the markdown correction to the complete content, in place."""
        if not self._is_alive():
            raise AbortError()
        self.messages[self.index].content = finalize_markdown(self.content)


class StreamConsumer:
    """Drive one chat API request and grow the assistant message it produces."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: Optional[str] = None,
        on_delta: Optional[DeltaListener] = None,
        error_body_limit: Optional[int] = None,
    ) -> None:
        """
        Initialize the consumer.

        Args:
            client: HTTP client used for every request
            url: Chat API endpoint (defaults to the configured CHAT_API_URL)
            on_delta: Called with (message index, text) after each append
            error_body_limit: Maximum characters kept from an error body
        """
        self.client = client
        self.url = url or settings.CHAT_API_URL
        self.on_delta = on_delta
        self.error_body_limit = error_body_limit or settings.ERROR_BODY_LIMIT

    async def run(
        self,
        payload: Dict[str, Any],
        messages: List[ChatMessage],
        is_alive: Callable[[], bool],
    ) -> None:
        """
        Send a chat request and write the answer into ``messages``.

        Args:
            payload: ChatRequest body; its ``stream`` flag selects the mode
            messages: Message list receiving the assistant message
            is_alive: Liveness check consulted before every mutation

        Raises:
            TransportError: If the chat API cannot be reached or drops the stream
            UpstreamError: If the chat API answers with an error
            AbortError: If the request was cancelled while consuming
        """
        try:
            if payload.get("stream"):
                await self._run_stream(payload, messages, is_alive)
            else:
                await self._run_once(payload, messages, is_alive)
        except httpx.HTTPError as e:
            logger.error(f"Chat request failed: {e}")
            raise TransportError(f"Chat request failed: {e}")

    async def _run_once(
        self,
        payload: Dict[str, Any],
        messages: List[ChatMessage],
        is_alive: Callable[[], bool],
    ) -> None:
        response = await self.client.post(self.url, json=payload)
        data = self._json_body(response)
        if not response.is_success or (isinstance(data, dict) and data.get("error")):
            raise self._error_from(response, data)

        answer = data.get("answer") if isinstance(data, dict) else None
        if not isinstance(answer, str):
            answer = response.text if data is None else ""

        if not is_alive():
            raise AbortError()
        # Pushed once, complete, so nothing half-written is ever visible
        messages.append(ChatMessage(role="assistant", content=finalize_markdown(answer)))

    async def _run_stream(
        self,
        payload: Dict[str, Any],
        messages: List[ChatMessage],
        is_alive: Callable[[], bool],
    ) -> None:
        async with self.client.stream("POST", self.url, json=payload) as response:
            if not response.is_success:
                await response.aread()
                raise self._error_from(response, self._json_body(response))

            slot = AssistantSlot.reserve(messages, is_alive, self.on_delta)

            if response.is_stream_consumed:
                self._consume_loaded(response, slot)
            elif is_event_stream(response):
                await self._consume_frames(response, slot)
            else:
                await self._consume_text(response, slot)

        slot.finalize()
        logger.debug(f"Assistant message {slot.index} complete: {len(slot.content)} characters")

    def _consume_loaded(self, response: httpx.Response, slot: AssistantSlot) -> None:
        text = response.text
        if is_event_stream(response):
            frames, remainder = split_frames(text)
            text = "".join(extract_frame_text(frame) for frame in [*frames, remainder])
        slot.append(text)

    async def _consume_frames(self, response: httpx.Response, slot: AssistantSlot) -> None:
        decoder = new_decoder()
        buffer = ""
        terminated = False

        async for chunk in response.aiter_bytes():
            buffer += decoder.decode(chunk)
            frames, buffer = split_frames(buffer)
            terminated = self._apply_frames(frames, slot) or terminated

        buffer += decoder.decode(b"", final=True)
        frames, remainder = split_frames(buffer)
        if remainder.strip():
            frames.append(remainder)
        terminated = self._apply_frames(frames, slot) or terminated

        if not terminated:
            logger.warning("Chat stream ended without a [DONE] frame")

    @staticmethod
    def _apply_frames(frames: List[str], slot: AssistantSlot) -> bool:
        terminated = False
        for frame in frames:
            slot.append(extract_frame_text(frame))
            terminated = terminated or is_terminal(frame)
        return terminated

    async def _consume_text(self, response: httpx.Response, slot: AssistantSlot) -> None:
        decoder = new_decoder()
        async for chunk in response.aiter_bytes():
            slot.append(decoder.decode(chunk))
        slot.append(decoder.decode(b"", final=True))

    @staticmethod
    def _json_body(response: httpx.Response) -> Optional[Any]:
        try:
            return response.json()
        except ValueError:
            return None

    def _error_from(self, response: httpx.Response, data: Optional[Any]) -> UpstreamError:
        if isinstance(data, dict) and data.get("error"):
            error = str(data["error"])
            return UpstreamError(response.status_code, error, message=error)
        return UpstreamError(
            response.status_code, truncate_body(response.text, self.error_body_limit)
        )
