"""
Application configuration via pydantic-settings.

Loads values from .env file with sensible defaults for local development.
Use ``get_settings()`` to obtain the cached singleton instance. Only the
composition root (``meetnotes.services.container``) and the entry points
read settings; every service receives explicit values in its constructor.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

MIB = 1024 * 1024


class Settings(BaseSettings):
    """meetnotes settings loaded from environment / .env file.

    All settings can be overridden via environment variables or a `.env` file.
    Field names map directly to env var names (case-insensitive).

    Attributes:
        storage_provider: Object storage backend ("local" or "supabase").
        stt_provider: Speech-to-text backend ("deepgram").
        llm_provider: Summarization model backend ("openai", "claude" or "ollama").
        database_url: Async SQLAlchemy connection string.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore unrecognized env vars
    )

    # --- Application ---
    app_host: str = "0.0.0.0"  # Bind address for the FastAPI server
    app_port: int = 8000
    log_level: str = "INFO"  # Python logging level
    cors_origins: list[str] = ["http://localhost:3000"]

    # --- Job state persistence ---
    database_url: str = "sqlite+aiosqlite:///data/meetnotes.db"

    # --- Object storage ---
    storage_provider: str = "local"
    storage_root: str = "data/objects"  # Used when storage_provider="local"
    storage_bucket: str = "user-uploads"
    storage_signing_secret: str = ""  # HMAC key for local signed URLs; required in production
    public_base_url: str = "http://localhost:8000"  # Base of locally served signed URLs
    supabase_url: str = ""
    supabase_service_key: str = ""  # Service-role key, never shipped to clients

    # --- Uploads ---
    upload_chunk_size: int = 5 * MIB
    upload_chunk_threshold: int = 50 * MIB  # Files above this size are chunked
    upload_max_file_size: int = 500 * MIB
    upload_max_concurrency: int = 6  # Parallel chunk uploads per transfer
    upload_tmp_prefix: str = "chunks"
    upload_allowed_mime_types: list[str] = [
        "audio/mpeg",
        "audio/mp3",
        "audio/wav",
        "audio/x-wav",
        "audio/mp4",
        "audio/webm",
        "audio/ogg",
        "video/mp4",
        "video/mpeg",
        "video/webm",
    ]
    signed_url_ttl_seconds: int = 300  # Read URL handed to the STT fetch
    chunk_read_url_ttl_seconds: int = 60  # Read URL used while assembling chunks

    # --- Speech-to-text ---
    stt_provider: str = "deepgram"
    deepgram_api_key: str = ""
    deepgram_base_url: str = "https://api.deepgram.com"
    deepgram_model: str = "nova-2"
    stt_language: str = ""  # Empty = auto-detect
    stt_max_attempts: int = 3
    stt_retry_wait_seconds: float = 2.0
    stt_timeout_seconds: float | None = None  # None = no deadline on the STT call

    # --- Summarization model ---
    llm_provider: str = "openai"
    openai_api_key: str = ""
    openai_base_url: str = ""  # Empty = SDK default; set to https://openrouter.ai/api/v1 for OpenRouter
    openai_model: str = "gpt-4o-mini"
    claude_api_key: str = ""  # Required when llm_provider="claude"
    claude_model: str = "claude-sonnet-4-20250514"
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.2"
    summary_temperature: float = 0.7

    # --- Status notification and sweep ---
    status_poll_interval_seconds: float = 5.0
    sweep_batch_size: int = 10
    sweep_auto_summarize: bool = True
    pending_upload_timeout_seconds: int = 3600  # Pending rows older than this with no object fail
    cron_secret: str = ""  # Bearer token for the sweep endpoint; empty disables the check


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings singleton.

    Uses ``functools.lru_cache`` so the .env file is read only once.
    Subsequent calls return the same ``Settings`` instance.

    Returns:
        Settings: The application-wide configuration object.
    """
    return Settings()
