"""Client settings loaded from the environment (prefix `THREAD_SYNC_`) or `.env`."""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="THREAD_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    api_base_url: str = Field(default="http://localhost:3000", description="Backend base URL")
    request_timeout_seconds: float = Field(default=10.0, gt=0)

    detail_depth: int = Field(default=5, ge=1, description="Reply depth fetched for a detail view")

    root_page_size: int = Field(default=10, ge=1, description="Top-level comments visible initially")
    reply_page_size: int = Field(default=2, ge=1, description="Nested replies visible initially")
    page_step: int = Field(default=10, ge=1, description="Items added per 'load more'")

    reply_title_length: int = Field(default=50, ge=1)
    max_image_bytes: int = Field(default=5 * 1024 * 1024, ge=1, description="Largest accepted image upload")

    vote_storage_dir: Optional[Path] = Field(
        default=None, description="Directory for persisted vote records; in-memory when unset"
    )

    log_level: str = Field(default="INFO", pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
