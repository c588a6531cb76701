"""
Release cache configuration.

Read from environment variables (and a local ``.env``). Every setting has
a default that keeps the cache usable: with nothing configured it runs
in-process only.
"""

from functools import lru_cache
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
REDIS_URL_SCHEMES = ("redis://", "rediss://", "unix://")


class Settings(BaseSettings):
    """Cache settings."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    ENVIRONMENT: Literal["development", "staging", "production", "test"] = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = Field(default=False, description="Emit JSON log lines")

    # Distributed tier
    REDIS_URL: Optional[str] = Field(
        default=None, description="Unset or blank disables the Redis tier"
    )
    REDIS_CONNECTION_TIMEOUT: float = Field(default=5.0, gt=0, le=60)
    REDIS_OPERATION_TIMEOUT: float = Field(default=5.0, gt=0, le=60)
    REDIS_MAX_CONNECTIONS: int = Field(default=10, ge=1, le=50)
    CIRCUIT_BREAKER_FAILURE_THRESHOLD: int = Field(default=5, ge=1, le=20)
    CIRCUIT_BREAKER_RECOVERY_TIMEOUT: int = Field(default=60, ge=1, le=300)

    # Cache policy
    CACHE_DEFAULT_TTL: int = Field(default=3600, ge=1)
    CACHE_MEMORY_TTL_CEILING: int = Field(
        default=300, ge=1, description="Longest TTL held by the in-process tier"
    )
    CACHE_MEMORY_MAX_SIZE: int = Field(default=1000, ge=1)
    CACHE_CLEANUP_ENABLED: bool = Field(
        default=True, description="Run the janitor inside the app lifespan"
    )
    CACHE_CLEANUP_INTERVAL: float = Field(default=600.0, gt=0)
    CACHE_OPPORTUNISTIC_CLEANUP_RATE: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Share of reads that also sweep expired in-process entries",
    )
    CACHE_LEGACY_PATTERN_MATCHING: bool = Field(
        default=False,
        description="Leave regex metacharacters in invalidation patterns unescaped",
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of: {', '.join(LOG_LEVELS)}")
        return level

    @field_validator("REDIS_URL")
    @classmethod
    def validate_redis_url(cls, v: Optional[str]) -> Optional[str]:
        """Blank means unset; anything else must be a Redis URL."""
        if v is None or not v.strip():
            return None
        if not v.startswith(REDIS_URL_SCHEMES):
            raise ValueError(f"REDIS_URL must start with one of: {', '.join(REDIS_URL_SCHEMES)}")
        return v

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def redis_configured(self) -> bool:
        return self.REDIS_URL is not None


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
