"""API tests for the chat and health endpoints."""
import asyncio
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from helpers import SSE_HEADERS, chunked, completion_body, content_frame, sse
from streamchat.core.frames import KEEP_ALIVE_FRAME
from streamchat.dependencies.get_chat_service import get_chat_service
from streamchat.main import app


@pytest.fixture
def api_client(make_service):
    """TestClient whose chat service talks to a fake backend built from ``handler``."""

    def _make(handler, config=None) -> TestClient:
        service = make_service(handler, config=config)
        app.dependency_overrides[get_chat_service] = lambda: service
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


class TestChatEndpoint:
    """Tests for POST /api/chat."""

    def test_non_streaming_answer(self, api_client):
        client = api_client(lambda request: httpx.Response(200, json=completion_body("hi there")))

        response = client.post("/api/chat", json={"prompt": "hello"})

        assert response.status_code == 200
        assert response.json() == {"answer": "hi there"}

    def test_streaming_answer(self, api_client):
        upstream = [sse(content_frame("Hel")), sse(content_frame("lo"), "[DONE]")]
        client = api_client(
            lambda request: httpx.Response(200, headers=SSE_HEADERS, content=chunked(upstream))
        )

        response = client.post("/api/chat", json={"prompt": "hello", "stream": True})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert response.text == KEEP_ALIVE_FRAME + b"".join(upstream).decode("utf-8")

    def test_json_backend_is_streamed(self, api_client):
        client = api_client(lambda request: httpx.Response(200, json=completion_body("hi")))

        response = client.post("/api/chat", json={"prompt": "hello", "stream": True})

        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.text.startswith(KEEP_ALIVE_FRAME)
        assert response.text.endswith("data: [DONE]\n\n")

    @pytest.mark.parametrize("stream", [False, True])
    def test_upstream_error_is_structured(self, api_client, stream):
        client = api_client(lambda request: httpx.Response(500, text="quota exceeded"))

        response = client.post("/api/chat", json={"prompt": "hello", "stream": stream})

        assert response.status_code == 502
        assert response.headers["content-type"].startswith("application/json")
        assert response.json() == {"error": "Upstream error (500): quota exceeded"}

    @pytest.mark.parametrize("stream", [False, True])
    def test_missing_credential(self, api_client, unconfigured_settings, stream):
        client = api_client(
            lambda request: httpx.Response(200, json=completion_body("unused")),
            config=unconfigured_settings,
        )

        response = client.post("/api/chat", json={"prompt": "hello", "stream": stream})

        assert response.status_code == 500
        assert response.json() == {"error": "Server missing OPENAI_API_KEY"}

    def test_unreachable_backend(self, api_client):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = api_client(handler)

        response = client.post("/api/chat", json={"prompt": "hello"})

        assert response.status_code == 502
        assert "error" in response.json()

    def test_prompt_is_required(self, api_client):
        client = api_client(lambda request: httpx.Response(200, json=completion_body("x")))

        response = client.post("/api/chat", json={"history": []})

        assert response.status_code == 422


class TestHealthEndpoint:
    """Tests for GET /health."""

    def test_health(self):
        response = TestClient(app).get("/health")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] in {"healthy", "degraded"}
        assert data["backend_configured"] in {True, False}


class TrackedStream(httpx.AsyncByteStream):
    """Backend body that records whether it was closed."""

    def __init__(self, chunks):
        self.chunks = chunks
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk

    async def aclose(self):
        self.closed = True


def chat_scope(body: bytes) -> dict:
    """ASGI scope for a JSON POST to the chat endpoint."""
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "POST",
        "scheme": "http",
        "path": "/api/chat",
        "raw_path": b"/api/chat",
        "root_path": "",
        "query_string": b"",
        "headers": [
            (b"host", b"testserver"),
            (b"content-type", b"application/json"),
            (b"content-length", str(len(body)).encode("ascii")),
        ],
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
    }


class TestBackendStreamRelease:
    """Tests that the backend response is closed however the stream ends."""

    def test_closed_after_full_stream(self, api_client):
        upstream = TrackedStream([sse(content_frame("hi"), "[DONE]")])
        client = api_client(
            lambda request: httpx.Response(200, headers=SSE_HEADERS, stream=upstream)
        )

        response = client.post("/api/chat", json={"prompt": "hello", "stream": True})

        assert response.status_code == 200
        assert upstream.closed

    async def test_closed_when_client_leaves_before_first_frame(self, make_service):
        upstream = TrackedStream([sse(content_frame("never sent"), "[DONE]")])
        service = make_service(
            lambda request: httpx.Response(200, headers=SSE_HEADERS, stream=upstream)
        )
        body = json.dumps({"prompt": "hello", "stream": True}).encode("utf-8")
        incoming = [{"type": "http.request", "body": body, "more_body": False}]

        async def receive():
            if incoming:
                return incoming.pop(0)
            return {"type": "http.disconnect"}

        async def send(message):
            await asyncio.sleep(0)

        app.dependency_overrides[get_chat_service] = lambda: service
        try:
            await app(chat_scope(body), receive, send)
        finally:
            app.dependency_overrides.clear()

        assert upstream.closed
