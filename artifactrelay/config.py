"""Runtime configuration — env-driven via pydantic-settings.

Reads from a .env file and ARTIFACTRELAY_* environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RelayConfig(BaseSettings):
    """Runtime configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export ARTIFACTRELAY_LOG_LEVEL=DEBUG
        export ARTIFACTRELAY_FINGERPRINT_DB_PATH=/data/fingerprints.db
        export ARTIFACTRELAY_MAX_PARALLEL_UNITS=4
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ARTIFACTRELAY_",
        env_file_encoding="utf-8",
    )

    environment: str = "development"
    log_level: str = "INFO"
    debug: bool = False

    # Storage paths
    catalog_path: Path = Path(".artifactrelay/catalog.json")
    fingerprint_db_path: Path = Path(".artifactrelay/fingerprints.db")
    storage_root: Path = Path(".artifactrelay/storage")
    storage_profile_id: str = "default"

    # Copy behaviour
    default_filter: str = "**"
    max_parallel_units: int = Field(default=1, ge=1)

    # Principal used when a parameterized project name must be checked
    authenticated_principal: str = "authenticated"

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"


config = RelayConfig()
