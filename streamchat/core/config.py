"""Application configuration."""

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from streamchat.prompts.chat import CHAT_SYSTEM_PROMPT


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", populate_by_name=True
    )

    APP_NAME: str = Field(default="StreamChat")

    # Completion backend settings
    OPENAI_API_KEY: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "CF_API_KEY"),
    )
    OPENAI_BASE_URL: str = Field(default="https://api.openai.com/v1")
    OPENAI_MODEL: str = Field(default="gpt-4o-mini")
    DEFAULT_TEMPERATURE: float = Field(default=0.4, ge=0, le=2)
    SYSTEM_PROMPT: str = Field(default=CHAT_SYSTEM_PROMPT)
    UPSTREAM_TIMEOUT_SECONDS: float = Field(default=120.0, gt=0)

    # Upstream error bodies are cut to this many characters
    ERROR_BODY_LIMIT: int = Field(default=200, ge=1, le=10000)

    # Client settings
    CHAT_API_URL: str = Field(default="http://localhost:8000/api/chat")

    # CORS settings
    CORS_ORIGINS: list[str] = Field(default=["*"])

    # Environment
    ENVIRONMENT: str = Field(default="development")
    LOG_LEVEL: str = Field(default="INFO")
    DEBUG: bool = Field(default=True)

    @property
    def CHAT_COMPLETIONS_URL(self) -> str:
        """Construct the chat completions endpoint from the backend base URL."""
        return f"{self.OPENAI_BASE_URL.rstrip('/')}/chat/completions"


settings = Settings()
