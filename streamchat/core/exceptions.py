"""Custom exception classes."""

from typing import Any, Dict, Optional


class StreamChatException(Exception):
    """Base exception for the StreamChat application."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ConfigError(StreamChatException):
    """Fatal configuration error, raised before any backend call."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, status_code=500, details=details)


class TransportError(StreamChatException):
    """Network failure reaching the completion backend or the chat API."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, status_code=502, details=details)


class UpstreamError(StreamChatException):
    """The remote side answered with a non-success status."""

    def __init__(
        self,
        upstream_status: int,
        body: str = "",
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.upstream_status = upstream_status
        self.body = body
        super().__init__(
            message or f"Upstream error ({upstream_status}): {body}",
            status_code=502,
            details=details,
        )


class PayloadParseError(StreamChatException):
    """A frame payload is not structured data. Always recovered locally."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, status_code=422, details=details)


class AbortError(StreamChatException):
    """A request was superseded or explicitly cancelled."""

    def __init__(
        self,
        message: str = "Request aborted",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, status_code=499, details=details)


def truncate_body(body: str, limit: int) -> str:
    """Cut an error body down to ``limit`` characters."""
    body = (body or "").strip()
    if len(body) <= limit:
        return body
    return body[:limit] + "..."
