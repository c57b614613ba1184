"""Configuration management for Linear Connect."""

import os
from functools import lru_cache

from pydantic import Field, field_validator, ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    model_config = ConfigDict(
        env_file=".env" if os.getenv("ENVIRONMENT") != "test" else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow"
    )

    # Application
    app_name: str = "Linear Connect"
    app_version: str = "0.1.0"
    debug: bool = Field(default=False, env="DEBUG")
    environment: str = Field(default="development", env="ENVIRONMENT")
    log_level: str = Field(default="INFO", env="LOG_LEVEL")

    # Server
    host: str = Field(default="0.0.0.0", env="HOST")
    port: int = Field(default=8000, env="PORT")

    # Linear endpoints
    linear_api_url: str = Field(
        default="https://api.linear.app/graphql", env="LINEAR_API_URL"
    )
    linear_webhook_base_url: str = Field(
        default="https://client-api.linear.app/connect/zapier",
        env="LINEAR_WEBHOOK_BASE_URL",
    )

    # Pagination
    page_size: int = Field(default=25, env="PAGE_SIZE")
    max_pages: int = Field(default=50, env="MAX_PAGES")

    # HTTP client
    http_timeout: float = Field(default=30.0, env="HTTP_TIMEOUT")

    @field_validator("page_size", mode="before")
    @classmethod
    def validate_page_size(cls, v):
        # Linear rejects first > 250
        size = int(v)
        if size < 1:
            return 1
        return min(size, 250)

    @field_validator("linear_webhook_base_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v):
        return str(v).rstrip("/")


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
