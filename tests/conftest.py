"""Pytest configuration and shared fixtures."""
from typing import Callable

import httpx
import pytest

from helpers import BACKEND_URL
from streamchat.core.config import Settings
from streamchat.services.backend import CompletionBackend
from streamchat.services.chat import ChatService


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        OPENAI_API_KEY="test-key",
        OPENAI_BASE_URL=BACKEND_URL,
        OPENAI_MODEL="test-model",
        DEFAULT_TEMPERATURE=0.4,
        SYSTEM_PROMPT="You are a helpful assistant.",
        ERROR_BODY_LIMIT=200,
    )


@pytest.fixture
def unconfigured_settings(test_settings: Settings) -> Settings:
    """Settings with no backend credential."""
    return test_settings.model_copy(update={"OPENAI_API_KEY": None})


@pytest.fixture
def make_service(test_settings: Settings) -> Callable[..., ChatService]:
    """Build a ChatService whose completion backend is served by ``handler``."""

    def _make(handler, config: Settings = None) -> ChatService:
        config = config or test_settings
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        backend = CompletionBackend(config=config, client=client)
        return ChatService(backend=backend, config=config)

    return _make
