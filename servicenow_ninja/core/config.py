"""Configuration management using Pydantic Settings."""

# Load environment variables from .env file if it exists
# In Docker/production, environment variables are set directly
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE_OPT: str | None = None
ONE_DAY_IN_SECONDS = 86400

# Only load .env if it exists (for local development)
_env_path = Path(".env")
if _env_path.exists():
    load_dotenv(dotenv_path=_env_path)
    ENV_FILE_OPT = str(_env_path)


class Settings(BaseSettings):
    """Application configuration.

    Loads settings from environment variables. In local development, these can be
    provided via a .env file. In Docker/production, they should be set directly.
    """

    model_config = SettingsConfigDict(
        # Only hint an env file to pydantic if it actually exists
        env_file=ENV_FILE_OPT,
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    # Application
    app_name: str = "ServiceNow Ninja"
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # Redis
    redis_url: SecretStr = Field(
        default="redis://localhost:6379/0", description="Redis connection URL"
    )
    redis_password: Optional[SecretStr] = Field(default=None, description="Redis password")

    # OpenAI (optional at import time to allow CLI/docs to load without secrets)
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")

    # Vector Search
    embedding_model: str = Field(
        default="text-embedding-3-small", description="OpenAI embedding model"
    )
    vector_dim: int = Field(default=1536, description="Vector dimensions")
    vector_namespace: str = Field(
        default="servicenow-docs",
        description="Namespace that isolates documentation vectors inside the index",
    )
    embeddings_cache_ttl: int = Field(
        default=7 * ONE_DAY_IN_SECONDS, description="TTL for cached embeddings (seconds)"
    )

    # Crawler
    crawler_user_agent: str = Field(
        default="ServiceNow-Ninja-Crawler/1.0", description="User-Agent for outbound requests"
    )
    request_timeout: float = Field(
        default=30.0, description="Total timeout for a single outbound request (seconds)"
    )
    max_sitemaps_to_process: Optional[int] = Field(
        default=None, description="Cap on robots.txt sources processed per discovery run"
    )
    max_pages_per_sitemap: Optional[int] = Field(
        default=None, description="Cap on page URLs processed per sitemap"
    )
    max_pages_for_embeddings: Optional[int] = Field(
        default=None, description="Cap on pages considered per embedding run"
    )
    sitemap_max_depth: int = Field(
        default=5, description="Maximum nesting depth followed inside sitemap indexes"
    )
    page_fetch_rate: float = Field(
        default=1 / 3, description="Page fetches allowed per second (token refill rate)"
    )
    page_fetch_burst: int = Field(default=1, description="Page fetch token bucket capacity")
    embedding_rate: float = Field(
        default=2.0, description="Chunk upserts allowed per second (token refill rate)"
    )
    embedding_burst: int = Field(default=1, description="Chunk upsert token bucket capacity")
    chunk_size: int = Field(default=1500, description="Chunk window size in characters")
    chunk_overlap: int = Field(default=200, description="Overlap between consecutive chunks")
    crawler_log_max_entries: int = Field(
        default=10000, description="Approximate length cap of the crawler audit stream"
    )

    # Docket Task Queue
    task_timeout: int = Field(default=3600, description="Task timeout in seconds")
    scheduled_crawl_enabled: bool = Field(
        default=False, description="Run the full crawl periodically from the worker"
    )
    scheduled_crawl_interval_seconds: int = Field(
        default=ONE_DAY_IN_SECONDS, description="Interval between scheduled crawls"
    )

    # Search
    search_default_top_k: int = Field(default=5, description="Default number of search results")
    answer_generator: str = Field(
        default="servicenow_ninja.core.search.StaticAnswerGenerator",
        description="Fully qualified class path of the answer generator",
    )

    # Security
    crawler_api_key: Optional[SecretStr] = Field(
        default=None, description="Bearer token required by the crawler trigger endpoint"
    )
    cron_secret: Optional[SecretStr] = Field(
        default=None, description="Bearer token required by the cron trigger endpoint"
    )
    allowed_hosts: list[str] = Field(default=["*"], description="Allowed hosts for CORS")


# Global settings instance
settings = Settings()
