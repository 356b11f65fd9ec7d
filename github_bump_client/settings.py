"""Application settings loaded from environment variables and .env file."""

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CACHE_DIR = Path.home() / ".cache/github-bump-client"


class Settings(BaseSettings):
    """Settings for the GitHub client and bump workflow."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    github_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("HOMEBREW_GITHUB_API_TOKEN", "GITHUB_TOKEN"),
    )
    # Disables every API call
    no_github_api: bool = Field(default=False, validation_alias="HOMEBREW_NO_GITHUB_API")
    # The automation bot may open any number of pull requests
    test_bot_autobump: bool = Field(default=False, validation_alias="HOMEBREW_TEST_BOT_AUTOBUMP")
    github_repository_owner: str | None = Field(
        default=None, validation_alias="GITHUB_REPOSITORY_OWNER"
    )

    api_url: str = "https://api.github.com"
    uploads_url: str = "https://uploads.github.com"
    request_timeout: float = 30.0

    fork_poll_interval: float = 1.0
    fork_poll_max_attempts: int = 120

    cache_dir: Path = DEFAULT_CACHE_DIR
    cache_duration_hours: int = 24
    use_credential_helper: bool = True


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
