"""
Interactive terminal chat against the chat API.

Usage:
    streamchat-chat                  # interactive REPL
    streamchat-chat --stream "hello" # single prompt, streamed
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from streamchat.client.session import ChatOptions, ChatSession
from streamchat.core.config import settings

EXIT_COMMANDS = {"exit", "quit"}
RESET_COMMAND = "/reset"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Chat with a StreamChat server.")
    parser.add_argument("prompt", nargs="*", help="Send one prompt and exit")
    parser.add_argument("--url", default=settings.CHAT_API_URL, help="Chat API endpoint")
    parser.add_argument("--model", default=None, help="Backend model override")
    parser.add_argument("--temperature", type=float, default=None)
    parser.add_argument("--system", default=None, help="Local system prompt")
    parser.add_argument("--max-history", type=int, default=10)
    parser.add_argument(
        "--stream",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Print the answer as it arrives",
    )
    return parser.parse_args(argv)


def _print_delta(index: int, text: str) -> None:
    print(text, end="", flush=True)


async def ask(session: ChatSession, prompt: str) -> None:
    """Send one prompt and print the answer or the error."""
    count = len(session.messages)
    await session.send(prompt)

    if session.error:
        print(f"\n[error] {session.error}", file=sys.stderr)
        return

    if session.options.stream:
        # Streamed text is already on screen
        print()
        return

    for message in session.messages[count:]:
        if message.role == "assistant":
            print(message.content, end="")


async def repl(session: ChatSession) -> None:
    loop = asyncio.get_running_loop()
    while True:
        prompt = (await loop.run_in_executor(None, input, "You: ")).strip()
        if prompt.lower() in EXIT_COMMANDS:
            break
        if prompt == RESET_COMMAND:
            session.reset()
            print("(conversation cleared)")
            continue
        await ask(session, prompt)


async def run(args: argparse.Namespace) -> None:
    options = ChatOptions(
        model=args.model,
        temperature=args.temperature,
        max_history=args.max_history,
        system_prompt=args.system,
        stream=args.stream,
    )
    on_delta = _print_delta if args.stream else None
    async with ChatSession(options, url=args.url, on_delta=on_delta) as session:
        if args.prompt:
            await ask(session, " ".join(args.prompt))
        else:
            await repl(session)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    try:
        asyncio.run(run(args))
    except (KeyboardInterrupt, EOFError):
        pass


if __name__ == "__main__":
    main()
