# app/core/config.py
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Global application configuration.

    Values are loaded from environment variables (or a local `.env` file)
    at runtime.

    These settings drive:
    - DB connection for the durable actor store
    - Inactivity cleanup timing and the alarm dispatcher
    - The conversational AI endpoint used by the chat flow
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    APP_NAME: str = "Meeting Scheduler"
    APP_ENV: str = Field("local", description="Environment name: local/test/dev/stage/prod")
    LOG_LEVEL: str = Field("INFO", description="Root log level for the service.")

    DB_URL: str = Field(
        "sqlite+aiosqlite:///./meeting_scheduler.db",
        description="SQLAlchemy-compatible async database URL",
    )

    # --- Session lifecycle ---
    INACTIVITY_DAYS: int = Field(
        default=30,
        ge=1,
        description="Days without activity after which a session is deleted.",
    )
    HISTORY_LIMIT: int = Field(
        default=50,
        ge=1,
        description="Maximum number of messages kept per participant.",
    )
    SESSION_CODE_LENGTH: int = Field(
        default=6,
        description="Length of generated session codes.",
    )
    SESSION_CODE_MAX_ATTEMPTS: int = Field(
        default=5,
        ge=1,
        description="How many fresh codes to try when a generated code is already taken.",
    )

    # --- Alarm dispatcher ---
    ALARM_DISPATCH_ENABLED: bool = Field(
        default=True,
        description="Whether the background alarm loop runs inside the API process.",
    )
    ALARM_POLL_SECONDS: float = Field(
        default=60.0,
        gt=0,
        description="Interval between scans for due actor alarms.",
    )

    # --- Conversational AI ---
    AI_PROVIDER: Literal["openai", "ollama"] = Field(
        default="openai",
        description="'openai' for any OpenAI-compatible server, 'ollama' for the native Ollama API.",
    )
    AI_API_BASE: str = Field(
        default="http://localhost:11434",
        description="Base URL of the chat completion server.",
    )
    AI_MODEL: str = Field(
        default="llama3.3:70b",
        description="Model name passed to the chat completion endpoint.",
    )
    AI_API_KEY: str | None = Field(
        default=None,
        description="Bearer token for the AI endpoint, if it requires one.",
    )
    AI_TIMEOUT_SECONDS: float = Field(
        default=60.0,
        gt=0,
        description="Upper bound on a single AI request.",
    )
    AI_MAX_TOKENS: int = Field(default=1024, ge=1)
    AI_TEMPERATURE: float = Field(default=0.3, ge=0.0, le=2.0)


@lru_cache()
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Using LRU cache ensures settings are read and validated only once,
    while still being easily importable across the app.
    """
    return Settings()
