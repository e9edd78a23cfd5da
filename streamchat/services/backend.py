"""Completion backend client for the chat service."""

from typing import Any, Dict, List, Optional

import httpx

from streamchat.core.config import Settings, settings
from streamchat.core.exceptions import ConfigError, TransportError, UpstreamError, truncate_body
from streamchat.core.frames import extract_answer
from streamchat.core.logging import setup_logger
from streamchat.models.chat import ChatMessage

logger = setup_logger(__name__)


class CompletionBackend:
    """Client for an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize the backend client.

        Args:
            config: Settings to read the endpoint and credential from
            client: Optional pre-built HTTP client (tests pass a mock transport)
        """
        self.config = config or settings
        self._client = client

    def get_client(self) -> httpx.AsyncClient:
        """Get the shared HTTP client instance."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.UPSTREAM_TIMEOUT_SECONDS)
            )
        return self._client

    def ensure_configured(self) -> None:
        """
        Fail fast when the backend credential is missing.

        Raises:
            ConfigError: If no API key is configured
        """
        if not self.config.OPENAI_API_KEY:
            logger.error("Completion backend credential is missing")
            raise ConfigError("Server missing OPENAI_API_KEY")

    def build_payload(
        self,
        messages: List[ChatMessage],
        *,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        stream: bool = False,
    ) -> Dict[str, Any]:
        """Build the request body sent to the backend."""
        payload: Dict[str, Any] = {
            "model": model or self.config.OPENAI_MODEL,
            "temperature": (
                temperature if temperature is not None else self.config.DEFAULT_TEMPERATURE
            ),
            "messages": [message.model_dump() for message in messages],
            "stream": stream,
        }
        # Only add the token limit if it is explicitly set
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        return payload

    def _build_request(self, payload: Dict[str, Any]) -> httpx.Request:
        return self.get_client().build_request(
            "POST",
            self.config.CHAT_COMPLETIONS_URL,
            json=payload,
            headers={"Authorization": f"Bearer {self.config.OPENAI_API_KEY}"},
        )

    async def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        try:
            body = (await response.aread()).decode("utf-8", errors="replace")
        except httpx.HTTPError:
            body = ""
        finally:
            await response.aclose()
        truncated = truncate_body(body, self.config.ERROR_BODY_LIMIT)
        logger.error(
            f"Completion backend returned status={response.status_code}, body={truncated!r}"
        )
        raise UpstreamError(response.status_code, truncated)

    async def complete(self, payload: Dict[str, Any]) -> str:
        """
        Run a blocking completion and return the answer text.

        Raises:
            TransportError: If the backend cannot be reached
            UpstreamError: If the backend answers with a non-success status
        """
        try:
            response = await self.get_client().send(self._build_request(payload), stream=True)
        except httpx.HTTPError as e:
            logger.error(f"Failed to reach completion backend: {e}")
            raise TransportError(f"Failed to reach completion backend: {e}")

        await self._raise_for_status(response)

        try:
            await response.aread()
            data = response.json()
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to read completion backend response: {e}")
        except ValueError:
            logger.warning("Completion backend returned a non-JSON body, using it as text")
            return response.text
        finally:
            await response.aclose()

        return extract_answer(data)

    async def open_stream(self, payload: Dict[str, Any]) -> httpx.Response:
        """
        Send a streaming completion request and wait for the response headers.

        The caller owns the returned response and must close it.

        Raises:
            TransportError: If the backend cannot be reached
            UpstreamError: If the backend answers with a non-success status
        """
        try:
            response = await self.get_client().send(self._build_request(payload), stream=True)
        except httpx.HTTPError as e:
            logger.error(f"Failed to reach completion backend: {e}")
            raise TransportError(f"Failed to reach completion backend: {e}")

        await self._raise_for_status(response)
        logger.debug(
            f"Completion backend stream opened: content_type={response.headers.get('content-type')}"
        )
        return response

    async def close(self) -> None:
        """Close the shared HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


# Singleton instance
completion_backend = CompletionBackend()
