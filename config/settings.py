"""
Configuration settings for the Standup Engine.
All sensitive values are loaded from environment variables.
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Standup Engine"
    debug: bool = Field(default=False, env="DEBUG")
    environment: str = Field(default="production", env="ENVIRONMENT")
    app_url: str = Field(default="http://localhost:3000", env="APP_URL")

    # Server
    host: str = Field(default="0.0.0.0", env="HOST")
    port: int = Field(default=8000, env="PORT")

    # Database (PostgreSQL)
    database_url: str = Field(default="", env="DATABASE_URL")
    database_echo: bool = Field(default=False, env="DATABASE_ECHO")
    db_pool_size: int = Field(default=10, env="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=20, env="DB_MAX_OVERFLOW")
    db_pool_timeout: int = Field(default=30, env="DB_POOL_TIMEOUT")
    db_pool_recycle: int = Field(default=3600, env="DB_POOL_RECYCLE")

    # Scheduler Settings
    timezone: str = Field(default="UTC", env="TIMEZONE")
    collection_sweep_minutes: int = Field(default=1, env="COLLECTION_SWEEP_MINUTES")
    instance_batch_concurrency: int = Field(default=10, env="INSTANCE_BATCH_CONCURRENCY")

    # Magic token (link-based submission)
    magic_token_secret: str = Field(default="change-me-magic-token-secret-32b", env="MAGIC_TOKEN_SECRET")
    magic_token_algorithm: str = Field(default="HS256", env="MAGIC_TOKEN_ALGORITHM")
    magic_token_default_hours: int = Field(default=24, env="MAGIC_TOKEN_DEFAULT_HOURS")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the application settings."""
    return settings
