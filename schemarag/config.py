"""
Application Configuration

Pydantic-based settings management using environment variables.
Settings are grouped by concern (LLM, embeddings, vector store, graph,
connection pools, background sync, logging) and cached for reuse.

Usage:
    from schemarag.config import get_settings

    settings = get_settings()
    print(settings.llm.default_provider)
    print(settings.pools.max_pools)
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, PostgresDsn, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMSettings(BaseSettings):
    """Text-generation provider configuration."""

    default_provider: Literal["openai", "anthropic"] = Field(
        default="openai", description="Provider used for SQL synthesis"
    )

    # OpenAI configuration
    openai_api_key: str | None = Field(
        None,
        description="OpenAI API key (also used for embeddings)",
        min_length=20,
    )
    openai_model: str = Field(default="gpt-4o", description="OpenAI model for SQL synthesis")
    openai_model_mini: str = Field(default="gpt-4o-mini", description="OpenAI lightweight model")

    # Anthropic configuration
    anthropic_api_key: str | None = Field(
        None,
        description="Anthropic API key",
        min_length=20,
    )
    anthropic_model: str = Field(
        default="claude-3-5-sonnet-20241022", description="Anthropic model for SQL synthesis"
    )
    anthropic_model_mini: str = Field(
        default="claude-3-5-haiku-20241022", description="Anthropic lightweight model"
    )

    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=2.0,
        description="Temperature for SQL synthesis (low = near-deterministic)",
    )
    max_tokens: int = Field(
        default=500,
        gt=0,
        le=16000,
        description="Maximum tokens per generated statement",
    )
    timeout: int = Field(
        default=30,
        gt=0,
        description="Request timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("openai_api_key")
    @classmethod
    def validate_openai_key(cls, v: str | None) -> str | None:
        """Validate OpenAI API key format."""
        if v and not v.startswith("sk-"):
            raise ValueError("OpenAI API key must start with 'sk-'")
        return v

    @field_validator("anthropic_api_key")
    @classmethod
    def validate_anthropic_key(cls, v: str | None) -> str | None:
        """Validate Anthropic API key format."""
        if v and not v.startswith("sk-ant-"):
            raise ValueError("Anthropic API key must start with 'sk-ant-'")
        return v


class EmbeddingSettings(BaseSettings):
    """Embedding model and batching configuration."""

    model: str = Field(
        default="text-embedding-3-small",
        description="OpenAI embedding model used for indexing and questions",
    )
    max_batch_tokens: int = Field(
        default=4000,
        gt=0,
        le=8192,
        description="Estimated token ceiling per embedding request",
    )
    chars_per_token: int = Field(
        default=4,
        gt=0,
        description="Characters per token used by the token estimate",
    )

    model_config = SettingsConfigDict(
        env_prefix="EMBEDDING_",
        env_file=".env",
        extra="ignore",
    )


class SystemDatabaseSettings(BaseSettings):
    """System database configuration (connection profile store)."""

    url: PostgresDsn | None = Field(
        None,
        description="System PostgreSQL connection URL holding connection profiles",
    )

    model_config = SettingsConfigDict(
        env_prefix="SYSTEM_DATABASE_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("url", mode="before")
    @classmethod
    def normalize_url(cls, v: str | PostgresDsn | None) -> str | PostgresDsn | None:
        """Treat empty strings as missing."""
        if v == "":
            return None
        return v


class ChromaSettings(BaseSettings):
    """Chroma vector store configuration."""

    persist_dir: Path = Field(
        default=Path("./chroma_data"),
        description="Directory for Chroma vector store persistence",
    )
    collection_name: str = Field(
        default="schemarag_schema",
        description="Name of the Chroma collection",
    )
    upsert_batch_size: int = Field(
        default=10,
        gt=0,
        le=500,
        description="Records written to the collection per upsert call",
    )
    top_k: int = Field(
        default=15,
        gt=0,
        le=100,
        description="Number of nearest schema records retrieved per question",
    )

    model_config = SettingsConfigDict(
        env_prefix="CHROMA_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("persist_dir")
    @classmethod
    def validate_persist_dir(cls, v: Path) -> Path:
        """Ensure persist directory exists."""
        v.mkdir(parents=True, exist_ok=True)
        return v.resolve()


class GraphSettings(BaseSettings):
    """Schema graph store configuration."""

    persist_dir: Path = Field(
        default=Path("./graph_data"),
        description="Directory holding persisted named graphs",
    )
    graph_name: str = Field(
        default="schema",
        description="Named graph used for schema mirroring",
    )
    table_batch_size: int = Field(
        default=5,
        gt=0,
        le=100,
        description="Tables written per graph sync batch",
    )
    batch_delay_seconds: float = Field(
        default=0.1,
        ge=0.0,
        le=10.0,
        description="Pause between graph sync batches",
    )

    model_config = SettingsConfigDict(
        env_prefix="GRAPH_",
        env_file=".env",
        extra="ignore",
    )


class PoolSettings(BaseSettings):
    """Per-connection pool registry configuration."""

    max_pools: int = Field(
        default=10,
        gt=0,
        description="Live pool count at which idle pools are evicted before creating new ones",
    )
    pool_max_size: int = Field(
        default=20,
        gt=0,
        le=100,
        description="Maximum concurrent connections per pool",
    )
    connect_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Seconds to wait when opening a connection",
    )
    connection_idle_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Seconds an unused pooled connection lives before being closed",
    )
    pool_idle_seconds: float = Field(
        default=600.0,
        gt=0,
        description="Seconds since last use after which a whole pool is evictable",
    )
    sweep_interval_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Interval of the periodic idle-pool sweep",
    )
    command_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Per-statement timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="POOL_",
        env_file=".env",
        extra="ignore",
    )


class SyncSettings(BaseSettings):
    """Background schema synchronization configuration."""

    max_attempts: int = Field(
        default=2,
        ge=1,
        le=10,
        description="Attempts per background sync job",
    )
    retry_backoff_seconds: float = Field(
        default=2.0,
        ge=0.0,
        description="Delay before retrying a failed sync job",
    )
    schema_name: str = Field(
        default="public",
        description="Database schema introspected on target databases",
    )

    model_config = SettingsConfigDict(
        env_prefix="SYNC_",
        env_file=".env",
        extra="ignore",
    )


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Application log level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )
    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Log timestamp format",
    )
    file: Path | None = Field(
        default=None,
        description="Optional log file path (None = stdout only)",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore",
    )

    def configure(self) -> None:
        """Configure Python logging with these settings."""
        handlers: list[logging.Handler] = [logging.StreamHandler()]

        if self.file:
            self.file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(self.file))

        logging.basicConfig(
            level=getattr(logging, self.level),
            format=self.format,
            datefmt=self.date_format,
            handlers=handlers,
            force=True,
        )


class Settings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.

    Environment Variables:
        ENVIRONMENT: Deployment environment (development, staging, production)
        APP_NAME: Application name for logging
        API_HOST: API server host
        API_PORT: API server port
        DATABASE_CREDENTIALS_KEY: Fernet key for stored passwords
        LLM_*: Generation provider configuration (see LLMSettings)
        EMBEDDING_*: Embedding configuration (see EmbeddingSettings)
        SYSTEM_DATABASE_*: Profile store database (see SystemDatabaseSettings)
        CHROMA_*: Vector store configuration (see ChromaSettings)
        GRAPH_*: Graph store configuration (see GraphSettings)
        POOL_*: Pool registry configuration (see PoolSettings)
        SYNC_*: Background sync configuration (see SyncSettings)
        LOG_*: Logging configuration (see LoggingSettings)

    Example:
        >>> settings = get_settings()
        >>> settings.chroma.top_k
        15
        >>> settings.is_production
        False
    """

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    app_name: str = Field(
        default="SchemaRAG",
        description="Application name",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host",
    )
    api_port: int = Field(
        default=8000,
        gt=0,
        le=65535,
        description="API server port",
    )

    llm: LLMSettings = Field(default_factory=LLMSettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    system_database: SystemDatabaseSettings = Field(default_factory=SystemDatabaseSettings)
    chroma: ChromaSettings = Field(default_factory=ChromaSettings)
    graph: GraphSettings = Field(default_factory=GraphSettings)
    pools: PoolSettings = Field(default_factory=PoolSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    database_credentials_key: str | None = Field(
        default=None,
        description="Fernet key for encrypting stored database credentials.",
        validation_alias="DATABASE_CREDENTIALS_KEY",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @model_validator(mode="after")
    def configure_logging(self) -> "Settings":
        """Configure logging when settings are loaded."""
        self.logging.configure()
        return self

    def model_post_init(self, __context) -> None:
        """Log configuration on initialization."""
        logger = logging.getLogger(__name__)
        logger.info(
            f"Settings loaded for {self.app_name} ({self.environment})",
            extra={
                "environment": self.environment,
                "llm_provider": self.llm.default_provider,
                "embedding_model": self.embedding.model,
                "chroma_collection": self.chroma.collection_name,
                "max_pools": self.pools.max_pools,
            },
        )


_DOTENV_PATH = Path(__file__).resolve().parents[1] / ".env"


def _apply_dotenv_precedence() -> None:
    env_source = os.getenv("SCHEMARAG_ENV_SOURCE", "dotenv").lower()
    if env_source not in {"dotenv", "envfile", "file"}:
        return
    if _DOTENV_PATH.exists():
        load_dotenv(_DOTENV_PATH, override=True)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Singleton settings instance
    """
    _apply_dotenv_precedence()
    return Settings()


def clear_settings_cache() -> None:
    """
    Clear the settings cache.

    Useful for testing when you need to reload settings with different
    environment variables.
    """
    get_settings.cache_clear()
