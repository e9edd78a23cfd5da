"""Chat session enforcing at most one in-flight request."""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field

from streamchat.client.consumer import DeltaListener, StreamConsumer
from streamchat.core.config import settings
from streamchat.core.exceptions import AbortError, StreamChatException
from streamchat.core.logging import setup_logger
from streamchat.models.chat import ChatMessage, ChatRequest

logger = setup_logger(__name__)


class ChatOptions(BaseModel):
    """Per-session generation and history options."""

    model: Optional[str] = Field(default=None, description="Backend model override")
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    max_history: int = Field(
        default=10, ge=0, description="Non-system messages sent as history"
    )
    system_prompt: Optional[str] = Field(
        default=None, description="Local system message kept at the top of the list"
    )
    max_tokens: Optional[int] = Field(default=1536, gt=0)
    stream: bool = Field(
        default=False,
        description="Stream the answer. Off by default so half-written answers are never shown.",
    )


@dataclass
class PendingRequest:
    """Cancellation handle for the request currently in flight."""

    task: Optional["asyncio.Task[None]"] = None
    cancelled: bool = False

    def is_alive(self) -> bool:
        return not self.cancelled

    def cancel(self) -> None:
        """Mark the request dead and abort its transport."""
        self.cancelled = True
        if self.task is not None and not self.task.done():
            self.task.cancel()


class ChatSession:
    """
    One conversation with the chat API.

    States are idle and pending. ``send`` while pending supersedes the running
    request: it is cancelled before the new one touches the message list, and
    whatever partial answer it already wrote is kept. Cancellation never sets
    ``error``; failures do.

    Usage:
        async with ChatSession(ChatOptions(stream=True)) as session:
            await session.send("hello")
            print(session.messages[-1].content)
    """

    def __init__(
        self,
        options: Optional[ChatOptions] = None,
        client: Optional[httpx.AsyncClient] = None,
        url: Optional[str] = None,
        on_delta: Optional[DeltaListener] = None,
    ) -> None:
        """
        Initialize the session.

        Args:
            options: Generation and history options
            client: HTTP client (one is created and owned by the session if omitted)
            url: Chat API endpoint (defaults to the configured CHAT_API_URL)
            on_delta: Called with (message index, text) as streamed text arrives
        """
        self.options = options or ChatOptions()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.UPSTREAM_TIMEOUT_SECONDS)
        )
        self._consumer = StreamConsumer(self._client, url=url, on_delta=on_delta)
        self._pending: Optional[PendingRequest] = None

        self.messages: List[ChatMessage] = self._initial_messages()
        self.error: Optional[str] = None

    def _initial_messages(self) -> List[ChatMessage]:
        if self.options.system_prompt:
            return [ChatMessage(role="system", content=self.options.system_prompt)]
        return []

    @property
    def pending(self) -> bool:
        """Whether a request is in flight."""
        return self._pending is not None

    def build_history(self) -> List[ChatMessage]:
        """Snapshot of the last ``max_history`` non-system messages."""
        if self.options.max_history <= 0:
            return []
        history = [message for message in self.messages if message.role != "system"]
        return [message.model_copy() for message in history[-self.options.max_history :]]

    def _build_payload(self, prompt: str, history: List[ChatMessage]) -> Dict[str, Any]:
        request = ChatRequest(
            prompt=prompt,
            history=history,
            model=self.options.model,
            temperature=self.options.temperature,
            max_tokens=self.options.max_tokens,
            stream=self.options.stream,
        )
        return request.model_dump(mode="json", by_alias=True, exclude_none=True)

    async def send(self, prompt: str) -> None:
        """
        Send a prompt and wait for the answer to be written into ``messages``.

        Returns early, without error, if this request gets superseded or aborted.
        """
        if not prompt or not prompt.strip():
            return

        # Cancel the previous request before anything else is touched
        self._abort_pending()
        self.error = None

        history = self.build_history()
        self.messages.append(ChatMessage(role="user", content=prompt))

        pending = PendingRequest()
        self._pending = pending
        payload = self._build_payload(prompt, history)
        pending.task = asyncio.ensure_future(
            self._consumer.run(payload, self.messages, pending.is_alive)
        )

        try:
            await pending.task
        except asyncio.CancelledError:
            if not pending.cancelled:
                raise
            logger.debug("Chat request superseded")
        except AbortError:
            logger.debug("Chat request aborted")
        except StreamChatException as e:
            if not pending.cancelled:
                self.error = e.message
                logger.warning(f"Chat request failed: {e.message}")
        except Exception as e:
            if not pending.cancelled:
                self.error = str(e) or "Unknown error"
                logger.error(f"Chat request failed unexpectedly: {e}", exc_info=True)
        finally:
            if self._pending is pending:
                self._pending = None

    def _abort_pending(self) -> None:
        if self._pending is not None:
            logger.info("Cancelling in-flight chat request")
            self._pending.cancel()
            self._pending = None

    def abort(self) -> None:
        """Cancel the request in flight, if any. Not reported as an error."""
        self._abort_pending()

    def reset(self) -> None:
        """Cancel any request and go back to just the system prompt."""
        self._abort_pending()
        self.messages = self._initial_messages()
        self.error = None

    async def close(self) -> None:
        """Cancel any request and close the HTTP client if the session owns it."""
        self._abort_pending()
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ChatSession":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
