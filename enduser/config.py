"""Application configuration using pydantic-settings.

All environment variables are loaded from .env file or environment.
No hardcoded secrets, URLs, or credentials.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Redis configuration
    redis_host: str = Field(default="localhost", description="Redis host")
    redis_port: int = Field(default=6379, description="Redis port")
    redis_password: str = Field(default="", description="Redis password (requirepass)")
    redis_db: int = Field(default=0, description="Redis database number")

    # Twitter/X OAuth 1.0a user context (required for posting)
    twitter_api_key: str = Field(..., description="Consumer key")
    twitter_api_secret: str = Field(..., description="Consumer secret")
    twitter_access_token: str = Field(..., description="Access token")
    twitter_access_secret: str = Field(..., description="Access token secret")
    twitter_api_base: str = Field(default="https://api.twitter.com", description="X API base URL")
    twitter_bearer_token: str = Field(default="", description="App bearer token for mention lookup")
    bot_handle: str = Field(default="GPTEndUser", description="Bot handle without @")

    # Admin access
    admin_token: str = Field(default="", description="Bearer token for manual post triggers")
    admin_username: str = Field(default="", description="Basic auth username for admin pages")
    admin_password: str = Field(default="", description="Basic auth password for admin pages")

    # LLM configuration (Cloudflare Workers AI)
    cloudflare_account_id: str = Field(default="", description="Cloudflare account ID")
    cloudflare_api_token: str = Field(default="", description="Cloudflare API token with Workers AI access")
    llm_model: str = Field(
        default="@cf/meta/llama-3.3-70b-instruct-fp8-fast",
        description="Workers AI model ID",
    )

    # Weather context
    weather_location_name: str = Field(default="Chicago", description="Display name of the weather location")
    weather_latitude: float = Field(default=41.88, description="Weather latitude")
    weather_longitude: float = Field(default=-87.63, description="Weather longitude")

    # Posting policy
    min_post_interval_seconds: int = Field(
        default=30 * 60,
        description="Minimum interval between successful non-reply posts",
    )
    dedup_ttl_seconds: int = Field(default=6 * 60 * 60, description="Retention of the duplicate guard")
    response_record_ttl_seconds: int = Field(
        default=7 * 24 * 60 * 60,
        description="Retention of the replied-to marker per mention",
    )
    max_post_length: int = Field(default=280, description="Platform post length limit")
    post_timeout_seconds: float = Field(default=10.0, description="Timeout for the post request")

    # Mentions
    mentions_enabled: bool = Field(default=False, description="Enable scheduled mention replies")
    mention_backoff_seconds: int = Field(default=5 * 60, description="Backoff after a lookup rate limit")
    mention_check_interval_minutes: int = Field(default=15, description="Mention check cadence")

    # Data cache
    news_cache_hours: int = Field(default=12, description="Freshness window for news/crypto/weather")
    fetch_timeout_seconds: float = Field(default=15.0, description="Timeout for data fetchers")

    # Schedule (UTC)
    daily_tweet_time: str = Field(default="19:00", description="Daily tweet time, HH:MM UTC")
    good_night_time: str = Field(default="02:30", description="Good night tweet time, HH:MM UTC")

    # Knowledge
    hci_curriculum_path: str = Field(
        default="",
        description="Path to HCI curriculum YAML (bundled file when empty)",
    )

    # Application settings
    app_name: str = Field(default="GPT Enduser", description="Application name")
    log_level: str = Field(default="INFO", description="Logging level")

    @property
    def redis_url(self) -> str:
        """Construct Redis URL."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    @property
    def tweets_url(self) -> str:
        """Tweet create endpoint."""
        return f"{self.twitter_api_base.rstrip('/')}/2/tweets"

    @property
    def workers_ai_url(self) -> str:
        """Workers AI run endpoint for the configured model."""
        return (
            f"https://api.cloudflare.com/client/v4/accounts/{self.cloudflare_account_id}"
            f"/ai/run/{self.llm_model}"
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Using @lru_cache prevents crash on import when .env is missing (e.g. during tests).
    Settings are loaded lazily on first access.
    """
    return Settings()
