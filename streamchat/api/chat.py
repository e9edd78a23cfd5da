"""Chat API endpoint, streamed or not."""

import asyncio
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.types import Receive, Scope, Send

from streamchat.core.exceptions import StreamChatException
from streamchat.core.logging import setup_logger
from streamchat.dependencies.get_chat_service import get_chat_service
from streamchat.models.chat import ChatRequest, ChatResponse, ErrorResponse
from streamchat.services.chat import ChatService, FrameStream

logger = setup_logger(__name__)

router = APIRouter(tags=["chat"], prefix="/api")

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


def error_response(error: StreamChatException) -> JSONResponse:
    """Build the structured error body for a failed chat request."""
    return JSONResponse(
        status_code=error.status_code,
        content=ErrorResponse(error=error.message).model_dump(),
    )


class EventStreamResponse(StreamingResponse):
    """Event-stream response that releases the backend stream when the call ends."""

    media_type = "text/event-stream"

    def __init__(self, frames: FrameStream) -> None:
        super().__init__(self._relay(frames), headers=SSE_HEADERS)
        self.frames = frames

    @staticmethod
    async def _relay(frames: FrameStream) -> AsyncGenerator[bytes, None]:
        """Relay frames, logging client disconnects."""
        try:
            async for frame in frames:
                yield frame
        except asyncio.CancelledError:
            logger.info("Client disconnected from chat stream. Closing generator.")
            raise

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            # Also runs when the client left before the first frame
            await self.frames.aclose()


@router.post(
    "/chat",
    status_code=status.HTTP_200_OK,
    summary="Chat completion, as one JSON answer or as Server-Sent Events",
    responses={
        500: {"model": ErrorResponse, "description": "Server misconfiguration"},
        502: {"model": ErrorResponse, "description": "Completion backend failure"},
    },
)
async def chat(
    request: ChatRequest,
    chat_service: ChatService = Depends(get_chat_service),
):
    """
    Answer a chat prompt.

    With `stream: false` the response is `{"answer": "..."}`.

    With `stream: true` the response is a `text/event-stream` where:
    1. The first frame is a `: keep-alive` comment
    2. Each following frame carries `data: <payload>` lines, the payload being
       JSON with a text field or literal text
    3. The final frame is `data: [DONE]`

    Args:
        request: ChatRequest with prompt, history and generation options

    Returns:
        ChatResponse, StreamingResponse, or an `{"error": "..."}` body with a
        non-success status when the backend fails before streaming begins.
        Failures after the stream has started close it without `[DONE]`.
    """
    if not request.stream:
        try:
            answer = await chat_service.answer(request)
        except StreamChatException as e:
            logger.error(f"Chat completion failed: {e.message}")
            return error_response(e)
        return ChatResponse(answer=answer)

    try:
        frames = await chat_service.open_stream(request)
    except StreamChatException as e:
        logger.error(f"Chat streaming failed before start: {e.message}")
        return error_response(e)

    return EventStreamResponse(frames)

