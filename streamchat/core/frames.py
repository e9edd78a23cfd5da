"""Event-stream frame codec shared by the chat API and the chat client.

A frame is a block of lines terminated by a blank line. Lines starting with
``data:`` carry a payload, which is either a JSON object holding a text field
or raw literal text. The payload ``[DONE]`` marks the end of the stream.
"""

import json
import re
from typing import Any, List, Optional, Tuple

from streamchat.core.exceptions import PayloadParseError

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

# Blank line between frames, with or without carriage returns
FRAME_SEPARATOR = re.compile(r"\r?\n\r?\n")

# Only CR and LF end a line inside a frame
LINE_BREAK = re.compile(r"\r\n|\r|\n")

DONE_FRAME = f"{DATA_PREFIX} {DONE_SENTINEL}\n\n"
KEEP_ALIVE_FRAME = ": keep-alive\n\n"


def split_frames(buffer: str) -> Tuple[List[str], str]:
    """
    Split a text buffer into complete frames and a trailing remainder.

    Args:
        buffer: Accumulated stream text

    Returns:
        Tuple of (complete frames in order, incomplete remainder). The
        remainder must be prepended to the next chunk of text.
    """
    parts = FRAME_SEPARATOR.split(buffer)
    return parts[:-1], parts[-1]


def _data_value(line: str) -> Optional[str]:
    stripped = line.strip()
    if not stripped.startswith(DATA_PREFIX):
        return None
    return stripped[len(DATA_PREFIX):].strip()


def parse_structured(value: str) -> dict:
    """
    Parse a payload as a JSON object.

    Raises:
        PayloadParseError: If the payload is not a JSON object
    """
    try:
        parsed = json.loads(value)
    except ValueError as e:
        raise PayloadParseError(f"Payload is not JSON: {e}")
    if not isinstance(parsed, dict):
        raise PayloadParseError("Payload is not a JSON object")
    return parsed


def extract_text(data: Any) -> Optional[str]:
    """
    Pull the text out of a structured payload.

    Fields are checked in order: ``choices[0].delta.content``, ``delta`` (as
    plain text), ``content``, ``answer``.

    Returns:
        The text, or None if the payload has none of the fields
    """
    if not isinstance(data, dict):
        return None

    choices = data.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        delta = choices[0].get("delta")
        if isinstance(delta, dict) and isinstance(delta.get("content"), str):
            return delta["content"]

    for key in ("delta", "content", "answer"):
        if isinstance(data.get(key), str):
            return data[key]

    return None


def extract_answer(data: Any) -> str:
    """Pull the answer out of a complete (non-streamed) completion body."""
    if isinstance(data, dict):
        choices = data.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            message = choices[0].get("message")
            if isinstance(message, dict) and isinstance(message.get("content"), str):
                return message["content"]
    return extract_text(data) or ""


def extract_payload(line: str) -> Optional[str]:
    """
    Extract the text carried by one line of a frame.

    Returns:
        None when the line is not a ``data:`` line, an empty string when it
        carries no text (empty payload or the ``[DONE]`` sentinel), otherwise
        the payload text.
    """
    value = _data_value(line)
    if value is None:
        return None
    if not value or value.upper() == DONE_SENTINEL:
        return ""

    try:
        data = parse_structured(value)
    except PayloadParseError:
        return value

    return extract_text(data) or ""


def extract_frame_text(frame: str) -> str:
    """Concatenate the payload text of every line in a frame."""
    return "".join(extract_payload(line) or "" for line in LINE_BREAK.split(frame))


def is_terminal(frame: str) -> bool:
    """Check whether a frame carries the end-of-stream sentinel."""
    for line in LINE_BREAK.split(frame):
        value = _data_value(line)
        if value is not None and value.upper() == DONE_SENTINEL:
            return True
    return False


def format_frame(text: str) -> str:
    """Wrap text in a single canonical frame."""
    return f"{DATA_PREFIX} {json.dumps({'content': text})}\n\n"
