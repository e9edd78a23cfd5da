"""Tests for the terminal chat client."""
import httpx

from helpers import CHAT_API_URL, SSE_HEADERS, chunked, content_frame, sse
from streamchat.client.cli import ask, parse_args
from streamchat.client.session import ChatOptions, ChatSession


def session_for(handler, **options) -> ChatSession:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ChatSession(ChatOptions(**options), client=client, url=CHAT_API_URL)


class TestParseArgs:
    """Tests for command line parsing."""

    def test_defaults(self):
        args = parse_args([])

        assert args.prompt == []
        assert args.stream is False
        assert args.max_history == 10

    def test_single_prompt_with_flags(self):
        args = parse_args(["--stream", "--max-history", "4", "--model", "m1", "hello", "there"])

        assert args.prompt == ["hello", "there"]
        assert args.stream is True
        assert args.max_history == 4
        assert args.model == "m1"


class TestAsk:
    """Tests for printing one exchange."""

    async def test_prints_answer(self, capsys):
        session = session_for(lambda request: httpx.Response(200, json={"answer": "hi there"}))

        await ask(session, "hello")

        assert capsys.readouterr().out == "hi there\n"

    async def test_prints_streamed_deltas(self, capsys):
        body = [sse(content_frame("Hel"), content_frame("lo"), "[DONE]")]
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(
                lambda request: httpx.Response(200, headers=SSE_HEADERS, content=chunked(body))
            )
        )
        session = ChatSession(
            ChatOptions(stream=True),
            client=client,
            url=CHAT_API_URL,
            on_delta=lambda index, text: print(text, end=""),
        )

        await ask(session, "hello")

        assert capsys.readouterr().out == "Hello\n"

    async def test_prints_error(self, capsys):
        session = session_for(lambda request: httpx.Response(502, json={"error": "backend down"}))

        await ask(session, "hello")

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "[error] backend down" in captured.err
