from pathlib import Path
from typing import Annotated, List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# =========================
# Configuration (ENV-DRIVEN via Pydantic)
# =========================


class Settings(BaseSettings):
    """Query layer settings read from environment and validated by Pydantic.

    Only a single `.env` file at the project root is read. Real environment
    variables always take precedence over `.env` values.
    """

    model_config = SettingsConfigDict(
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
        env_file=str(Path(__file__).resolve().parent.parent / ".env"),
        env_file_encoding="utf-8",
    )

    # Transport
    request_timeout: float = Field(default=30.0, gt=0, alias="REQUEST_TIMEOUT")
    max_workers: int = Field(default=8, ge=1, le=256, alias="MAX_WORKERS")
    user_agent: str = Field(default="dataquery/0.1", alias="USER_AGENT")

    # Cache
    cache_type: Literal["SimpleCache", "RedisCache"] = Field(default="SimpleCache", alias="CACHE_TYPE")
    cache_lifetime_seconds: Optional[int] = Field(default=None, ge=0, alias="CACHE_LIFETIME_SECONDS")
    cache_tags: Annotated[List[str], NoDecode] = Field(default_factory=list, alias="CACHE_TAGS")
    cache_prefix: str = Field(default="dataquery", alias="CACHE_PREFIX")
    redis_url: Optional[str] = Field(default=None, alias="REDIS_URL")

    # Logging
    log_level: str = Field(default="WARNING", alias="LOG_LEVEL")

    @field_validator("cache_tags", mode="before")
    @classmethod
    def _split_cache_tags(cls, v):
        # CACHE_TAGS=blog,news
        if isinstance(v, str):
            return [t.strip() for t in v.split(",") if t.strip()]
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v


# Singleton accessor to avoid repeated disk reads/parsing
_settings_singleton: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the singleton Settings instance, initializing it on first call."""
    global _settings_singleton
    if _settings_singleton is None:
        _settings_singleton = Settings()
    return _settings_singleton
