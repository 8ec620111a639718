from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from a .env file if present (local dev only)
load_dotenv()


class Settings(BaseSettings):
    """Client configuration loaded from environment variables or .env file."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True)

    # Image Service API
    api_base_url: str = Field("http://localhost:8080", validation_alias="IMAGE_API_BASE_URL")
    http_timeout: float = Field(30.0, validation_alias="IMAGE_API_TIMEOUT", gt=0)

    # Session
    token_file: Path = Field(
        Path.home() / ".imageclient" / "session.json",
        validation_alias="IMAGE_CLIENT_TOKEN_FILE",
        description="JSON file holding the auth token between runs.",
    )

    # Uploads
    upload_chunk_size: int = Field(64 * 1024, validation_alias="IMAGE_UPLOAD_CHUNK_SIZE", gt=0)
    progress_reset_delay: float = Field(
        1.0,
        validation_alias="IMAGE_PROGRESS_RESET_DELAY",
        ge=0,
        description="Seconds the final upload progress stays visible before resetting to 0.",
    )

    # Logging
    log_level: str = Field("INFO", validation_alias="IMAGE_CLIENT_LOG_LEVEL")


@lru_cache()
def get_settings() -> Settings:  # pragma: no cover
    """Return a cached Settings instance so it is only parsed once."""

    return Settings()
