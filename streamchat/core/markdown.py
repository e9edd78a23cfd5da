"""Final corrective pass over completed assistant text."""

CODE_FENCE = "```"


def finalize_markdown(text: str) -> str:
    """
    Close an unterminated code fence and end the text with a newline.

    Only run on complete text, never mid-stream. Applying it to its own
    output changes nothing.
    """
    out = text or ""
    if out.count(CODE_FENCE) % 2 != 0:
        out += "\n" + CODE_FENCE
    if not out.endswith("\n"):
        out += "\n"
    return out
