"""Configuration for the orchestrator using pydantic-settings."""

from functools import lru_cache
from pathlib import Path

from loguru import logger
from pydantic_settings import BaseSettings, SettingsConfigDict

_PACKAGE_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _PACKAGE_DIR.parent.parent  # src/chat_orchestrator/ -> project root


class Settings(BaseSettings):
    """All orchestrator settings, loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # OpenAI (leave AZURE_OPENAI_ENDPOINT empty to talk to api.openai.com)
    # ------------------------------------------------------------------
    openai_api_key: str = ""
    azure_openai_endpoint: str | None = None
    azure_openai_api_version: str = "2025-03-01-preview"
    request_timeout_s: float = 30.0
    # Azure OpenAI has no moderation endpoint; moderation always calls
    # api.openai.com, with this key when set and OPENAI_API_KEY otherwise.
    moderation_api_key: str = ""

    # ------------------------------------------------------------------
    # Models
    # ------------------------------------------------------------------
    chat_model: str = "gpt-5-mini"
    analysis_model: str = "gpt-4o-mini"
    vision_model: str = "gpt-4o-mini"
    moderation_model: str = "omni-moderation-latest"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------
    tavily_api_key: str = ""
    tavily_endpoint: str = "https://api.tavily.com/search"
    web_search_max_results: int = 5
    vector_db_path: Path = _PROJECT_ROOT / "database" / "vector_store.sqlite"
    vector_search_limit: int = 5

    # ------------------------------------------------------------------
    # Attachment analysis
    # ------------------------------------------------------------------
    document_chunk_size: int = 12_000
    document_max_chunks: int = 20
    text_summary_lines: int = 5

    # ------------------------------------------------------------------
    # HTTP / logging / observability
    # ------------------------------------------------------------------
    cors_origins: list[str] = ["*"]
    log_level: str = "INFO"
    log_json: bool = False
    observability: str = "off"
    otel_service_name: str = "chat-orchestrator"
    otel_exporter_otlp_endpoint: str = "http://localhost:4318"
    otel_console_exporter: bool = False

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------
    def validate_runtime(self) -> None:
        """Check that all required values are present.

        Call this at application startup (not at import time) so that
        tests can override settings before validation runs.
        """
        if not self.openai_api_key:
            raise ValueError("OPENAI_API_KEY not set. Add it to .env")
        if self.document_chunk_size <= 0:
            raise ValueError("DOCUMENT_CHUNK_SIZE must be positive.")
        if self.document_max_chunks <= 0:
            raise ValueError("DOCUMENT_MAX_CHUNKS must be positive.")
        if not self.tavily_api_key:
            # Not fatal: the web_search tool reports itself as unavailable.
            logger.warning("TAVILY_API_KEY not set; web_search tool will return an error")


@lru_cache
def get_settings() -> Settings:
    """Return the cached Settings singleton."""
    return Settings()
