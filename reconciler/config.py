# reconciler/config.py

from typing import Optional
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    app_name: str = "Reconciler API"
    app_env: str = "development"
    debug: bool = True

    # Anthropic (Claude)
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = "claude-sonnet-4-20250514"
    ai_timeout_seconds: float = 15.0
    ai_max_tokens: int = 2000

    # Feature flags
    enable_ai_matching: bool = True

    # Matching config
    min_match_score: int = 55
    max_candidates_per_row: int = 3
    fuzzy_batch_size: int = 30
    fuzzy_max_batches: int = 3
    fuzzy_min_confidence: int = 70
    classification_sample_size: int = 30

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
