"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Database
    database_url: str = "postgresql+asyncpg://listing:listing_dev_password@db:5432/listing"

    # Object store (media service)
    media_service_url: str = "http://media:8010"
    media_service_api_key: str = "dev-media-key-change-in-production"
    media_folder: str = "products"
    media_timeout_seconds: float = 30.0

    # Listings
    max_page_size: int = 100

    # Logging
    log_level: str = "INFO"

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
