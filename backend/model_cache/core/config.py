"""
Model Cache Configuration

Configuration management with environment variable support.
Connection-level cache options are read from the DATABASES section.
"""

from functools import lru_cache
from typing import Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file
load_dotenv()


class CacheOptions(BaseModel):
    """Cache options of a single connection."""

    cache_key: str = Field(
        default="mc:{}:m:{}:{}:{}",
        description="Key template: prefix, table, primary key name, id",
    )
    prefix: Optional[str] = Field(
        default=None, description="Key prefix (defaults to the connection name)"
    )
    ttl: int = Field(default=3600, ge=1, description="Entry TTL in seconds")
    empty_model_ttl: Optional[int] = Field(
        default=None, ge=1, description="Negative entry TTL (defaults to ttl)"
    )
    redis_url: Optional[str] = Field(
        default=None, description="Redis URL override for this connection"
    )
    max_entries: Optional[int] = Field(
        default=None, ge=1, description="Entry limit of the memory handler"
    )


class ConnectionCacheSettings(BaseModel):
    """Handler selection and cache options for one connection name."""

    handler: str = Field(default="redis", description="Registered handler tag")
    cache: CacheOptions = Field(default_factory=CacheOptions)


class Settings(BaseSettings):
    """Application settings with validation and secure defaults."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    # Redis configuration
    REDIS_URL: str = Field(
        default="redis://localhost:6379", description="Redis connection URL"
    )
    REDIS_MAX_CONNECTIONS: int = Field(
        default=10, ge=1, le=50, description="Redis connection pool size"
    )
    REDIS_CONNECTION_TIMEOUT: float = Field(
        default=5.0, gt=0, description="Redis socket connect timeout in seconds"
    )
    REDIS_OPERATION_TIMEOUT: float = Field(
        default=5.0, gt=0, description="Redis socket timeout in seconds"
    )
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(
        default=30, ge=0, description="Redis connection health check interval"
    )

    # Circuit breaker settings
    CIRCUIT_BREAKER_FAILURE_THRESHOLD: int = Field(
        default=5, ge=1, le=20, description="Circuit breaker failure threshold"
    )
    CIRCUIT_BREAKER_RECOVERY_TIMEOUT: int = Field(
        default=60,
        ge=10,
        le=300,
        description="Circuit breaker recovery timeout in seconds",
    )

    # Database configuration
    DATABASE_URL: Optional[str] = Field(
        default=None, description="SQLAlchemy async database URL"
    )
    DATABASE_POOL_SIZE: int = Field(
        default=20, ge=1, le=100, description="Database connection pool size"
    )

    # Model cache configuration
    DATABASES: Optional[Dict[str, ConnectionCacheSettings]] = Field(
        default=None,
        description="Cache configuration per connection name (JSON)",
    )
    MODEL_CACHE_SINGLE_FLIGHT: bool = Field(
        default=False, description="Share one store query between concurrent misses"
    )

    # Development and debugging
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v):
        """Validate database URL uses an async driver."""
        if v is None:
            return v
        if "+" not in v.split("://", 1)[0]:
            raise ValueError(
                "DATABASE_URL must name an async driver, e.g. postgresql+asyncpg://"
            )
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of: {allowed}")
        return v.upper()

    def databases_config(self) -> Optional[Dict[str, dict]]:
        """DATABASES section as plain mappings, or None when it is absent."""
        if self.DATABASES is None:
            return None
        return {
            name: item.model_dump(exclude_none=True)
            for name, item in self.DATABASES.items()
        }


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
