"""Application configuration."""

import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from food_engine.services.fields import KJ_HEURISTIC_THRESHOLD
from food_engine.services.retry import RetryPolicy

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Engine settings loaded from `FOOD_ENGINE_*` environment variables."""

    off_base_url: str = "https://world.openfoodfacts.org"
    off_user_agent: str = "FoodEngine/1.0 (food-engine@example.com)"
    http_timeout_seconds: float = 15

    search_rate_limit: int = Field(default=10, ge=1)
    search_rate_window_seconds: float = Field(default=60, gt=0)
    lookup_rate_limit: int = Field(default=100, ge=1)
    lookup_rate_window_seconds: float = Field(default=60, gt=0)

    retry_max_attempts: int = Field(default=4, ge=1)
    retry_base_delay_seconds: float = Field(default=1.0, ge=0)
    retry_max_delay_seconds: float = Field(default=10.0, ge=0)
    retry_jitter: float = Field(default=0.25, ge=0)
    rate_limit_fallback_delay_seconds: float = Field(default=60.0, ge=0)

    kj_heuristic_threshold: float = KJ_HEURISTIC_THRESHOLD
    default_page_size: int = Field(default=20, ge=1)
    max_page_size: int = Field(default=50, ge=1)
    min_query_length: int = Field(default=2, ge=0)
    search_cache_ttl_seconds: float = 3600
    lookup_cache_ttl_seconds: float = 86400

    debug: bool = False
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_prefix="FOOD_ENGINE_",
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    def retry_policy(self) -> RetryPolicy:
        """Build the retry policy shared by all upstream calls."""
        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            base_delay=self.retry_base_delay_seconds,
            max_delay=self.retry_max_delay_seconds,
            jitter=self.retry_jitter,
            rate_limit_fallback_delay=self.rate_limit_fallback_delay_seconds,
        )
