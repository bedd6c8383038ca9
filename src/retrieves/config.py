"""Configuration management for retrieves."""

from pathlib import Path

import yaml  # type: ignore[import-untyped]
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ENDPOINT = "https://app.fluidattacks.com/api"
DEFAULT_CONSOLE_URL = "https://app.fluidattacks.com"


class RetrievesConfig(BaseSettings):
    """Integrates API access and snapshot behaviour."""

    model_config = SettingsConfigDict(
        env_prefix="RETRIEVES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("RETRIEVES_API_TOKEN", "INTEGRATES_API_TOKEN"),
        description="Integrates API token (Bearer)",
    )
    endpoint: str = Field(default=DEFAULT_ENDPOINT, description="GraphQL endpoint URL")
    console_url: str = Field(
        default=DEFAULT_CONSOLE_URL,
        description="Base URL used to build links to vulnerability pages",
    )
    page_size: int = Field(default=5000, description="Edges requested per connection page")
    timeout: float = Field(default=30.0, description="HTTP request timeout in seconds")
    max_retries: int = Field(
        default=3,
        description="Attempts for requests answered with 429/502/503/504",
    )
    snapshot_override: Path | None = Field(
        default=None,
        description="Use this snapshot file for every group instead of the per-root default",
    )

    @property
    def has_token(self) -> bool:
        return bool(self.api_token)

    @classmethod
    def from_yaml(cls, path: Path) -> "RetrievesConfig":
        """Load configuration from a YAML file."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)


def load_config(config_path: Path | None = None) -> RetrievesConfig:
    """Load configuration from environment and optional YAML file."""
    if config_path:
        return RetrievesConfig.from_yaml(config_path)
    return RetrievesConfig()
