"""Chat models shared by the chat API and the chat client."""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["system", "user", "assistant"]


class ChatMessage(BaseModel):
    """A single turn in a conversation."""

    role: Role = Field(..., description="Author of the message")
    content: str = Field(default="", description="Message text")


class ChatRequest(BaseModel):
    """Request model for a chat completion, streamed or not."""

    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(..., description="Current user prompt to respond to")
    history: List[ChatMessage] = Field(
        default_factory=list,
        description="Previous non-system messages, oldest first",
    )
    model: Optional[str] = Field(
        default=None, description="Backend model. Defaults to the configured model."
    )
    temperature: Optional[float] = Field(
        default=None, ge=0, le=2, description="Sampling temperature"
    )
    max_tokens: Optional[int] = Field(
        default=None,
        alias="maxTokens",
        gt=0,
        description="Maximum number of tokens to generate",
    )
    stream: bool = Field(
        default=False,
        description="Whether to stream the answer as Server-Sent Events",
    )


class ChatResponse(BaseModel):
    """Complete (non-streamed) answer."""

    answer: str = Field(..., description="Assistant answer text")


class ErrorResponse(BaseModel):
    """Error body returned instead of an answer or a stream."""

    error: str = Field(..., description="Human-readable error message")
