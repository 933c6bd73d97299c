"""Run configuration using Pydantic settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_GROUP_PREFIX = "app-exchangeaddin"


class Settings(BaseSettings):
    """Add-in sync settings loaded from environment variables.

    Every field can be overridden by the matching ``ADDIN_SYNC_*`` variable
    (or ``.env`` entry) and again by the CLI flags.
    """

    model_config = SettingsConfigDict(
        env_prefix="ADDIN_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    mode: Literal["live", "simulated"] = Field(
        default="live", description="Backend selection: live tenant or in-memory simulation"
    )
    group_prefix: str = Field(
        default=DEFAULT_GROUP_PREFIX, description="Fixed prefix of add-in group names"
    )
    group_pattern: str = Field(
        default="", description="Directory group name pattern (defaults to '<prefix>-*')"
    )
    snapshot_path: Path = Field(
        default=Path("state/addin_snapshot.json"), description="Persisted membership snapshot"
    )
    log_dir: Path = Field(default=Path("logs"), description="Daily log file directory")
    dry_run: bool = Field(default=False, description="Log installs/removes without executing")
    simulated_data: Path | None = Field(
        default=None, description="JSON seed file for the simulated backends"
    )

    @property
    def effective_group_pattern(self) -> str:
        """Group name pattern, falling back to the prefix wildcard."""
        return self.group_pattern or f"{self.group_prefix}-*"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
