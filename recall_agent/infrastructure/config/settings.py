from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from RECALL_* environment variables or a .env file"""

    model_config = SettingsConfigDict(
        env_prefix="RECALL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Service
    service_name: str = Field("recall-agent", description="Name bound into every log record")
    host: str = Field("0.0.0.0", description="Bind address for the HTTP/WebSocket server")
    port: int = Field(3000, description="Bind port for the HTTP/WebSocket server")
    log_level: str = Field("INFO", description="Root log level")
    log_format: str = Field("json", description="'json' or 'console'")

    # Persistence
    database_url: str = Field(
        "sqlite+aiosqlite:///recall_agent.db",
        description="SQLAlchemy async database URL",
    )

    # Session tokens
    jwt_secret: str = Field("change-me", description="HMAC secret used to sign session tokens")
    jwt_algorithm: str = Field("HS256", description="Session token signing algorithm")

    # Providers
    google_api_key: Optional[str] = Field(None, description="API key for the Gemini backends")
    generation_model: str = Field("gemini-2.5-flash", description="Chat model used for replies")
    embedding_model: str = Field("models/text-embedding-004", description="Embedding model for notes")
    provider_timeout_seconds: float = Field(
        30.0, gt=0, description="Upper bound for a single embedding or generation call"
    )

    # Retrieval
    similarity_threshold: float = Field(0.5, description="Notes scoring at or below this are dropped")
    top_k: int = Field(3, ge=1, description="Maximum number of notes injected as context")

    # Turn policy
    enforce_conversation_ownership: bool = Field(
        False,
        description="Reject turns whose conversation_id belongs to another user",
    )
    allow_empty_notes: bool = Field(
        False,
        description="Persist notes whose directive payload is empty after trimming",
    )
    serialize_conversation_turns: bool = Field(
        True,
        description="Run turns on the same conversation one at a time",
    )


@lru_cache()
def get_settings() -> Settings:
    """Return the process-wide settings instance"""
    return Settings()
