from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Twitch API credentials (used when no credentials file is given)
    twitch_client_id: Optional[str] = Field(default=None)
    twitch_client_secret: Optional[str] = Field(default=None)

    # Output directory
    output_dir: Path = Field(default=Path("."))

    # Twitch clip fetch parameters
    clips_first: int = Field(default=20)
    clips_first_max: int = Field(default=100)
    default_range_days: int = Field(default=7)

    # Download parameters
    download_workers: int = Field(default=4)
    download_chunk_bytes: int = Field(default=1024 * 1024)
    request_timeout: float = Field(default=10.0)
    ratelimit_max_wait: float = Field(default=60.0)

    # Twitch API endpoints (override if needed)
    twitch_token_url: str = Field(default="https://id.twitch.tv/oauth2/token")
    twitch_users_url: str = Field(default="https://api.twitch.tv/helix/users")
    twitch_clips_url: str = Field(default="https://api.twitch.tv/helix/clips")

    # load environment variables from .env
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


# Instantiate a single Settings object for application-wide use
settings = Settings()
