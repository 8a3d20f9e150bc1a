"""Application configuration via pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process-wide, read-only configuration passed into each client."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", frozen=True)

    # ── General ────────────────────────────────────────────
    ENVIRONMENT: str = "development"
    ALLOWED_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # ── Auth ───────────────────────────────────────────────
    JWT_SECRET: str = "change-me-in-production-please"
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str | None = None

    # ── Language model / embeddings ────────────────────────
    OPENAI_API_KEY: str | None = None
    CHAT_MODEL: str = "gpt-4o-mini"
    EMBEDDING_BACKEND: str = "openai"  # 'openai' or 'local'
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    LOCAL_EMBEDDING_MODEL: str = "BAAI/bge-small-en-v1.5"
    EMBEDDING_DIMENSIONS: int = 1536  # must match the vector index on every write and query

    # ── Retrieval ──────────────────────────────────────────
    SIMILARITY_THRESHOLD: float = 0.7

    # ── Storage ────────────────────────────────────────────
    DATABASE_URL: str = "sqlite+aiosqlite:///./snaprag.db"
    CHROMA_PATH: str = ".chroma_db"
    CHROMA_COLLECTION: str = "content_embeddings"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
