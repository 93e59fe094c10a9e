from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration, read from ``APP_*`` environment variables or ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="APP_",
        extra="ignore",
        case_sensitive=False,
    )

    debug: bool = False
    log_level: str = "INFO"

    # HTTP surface
    api_prefix: str = "/api/v1"
    root_path: str = ""
    cors_origins: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]
    cors_origin_regex: str | None = None
    trusted_hosts: list[str] = ["*"]

    # Supabase project and the tables/bucket the notes live in
    supabase_url: str
    supabase_anon_key: str
    supabase_service_role_key: str

    notes_table: str = "notes"
    topics_table: str = "topics"
    calendar_events_table: str = "calendar_events"
    media_bucket: str = "note-media"
    max_media_bytes: int = 20 * 1024 * 1024

    # Speech-to-text
    transcription_url: str = "http://localhost:8081"
    transcription_timeout: float = 30.0
    max_audio_bytes: int = 25 * 1024 * 1024

    # AI chat providers, one per prompt delimiter
    openai_chat_url: str = "http://localhost:8082"
    anthropic_chat_url: str = "http://localhost:8083"
    perplexity_chat_url: str = "http://localhost:8084"
    ai_chat_timeout: float = 30.0

    # When set, the "openai" provider talks to OpenAI directly instead of the proxy
    openai_api_key: str | None = None
    openai_chat_model: str = "gpt-4o-mini"


settings = Settings()
