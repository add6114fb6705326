"""Store configuration: env-driven via pydantic-settings.

Reads from a .env file and RAVENVAULT_* environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from ravenvault.models.snapshots import RegenerationPolicy, RegenerationStrategy


class VaultConfig(BaseSettings):
    """Store configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export RAVENVAULT_STORE_ROOT=/data/backups
        export RAVENVAULT_LOG_LEVEL=DEBUG
        export RAVENVAULT_MAX_SNAPSHOTS=25

    Or via .env file::

        RAVENVAULT_DEFAULT_STRATEGY=full
        RAVENVAULT_PRESERVE_HISTORY=false
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="RAVENVAULT_",
        env_file_encoding="utf-8",
    )

    # Runtime
    log_level: str = "INFO"

    # Storage
    store_root: Path = Path(".backups")
    snapshot_version: str = "1.0.0"
    immutable_by_default: bool = True

    # Default regeneration policy
    default_strategy: RegenerationStrategy = RegenerationStrategy.INCREMENTAL
    validate_before_restore: bool = True
    preserve_history: bool = True
    max_snapshots: int = 10
    ttl_days: int = 30
    cascade_recompute: bool = False

    def default_policy(self) -> RegenerationPolicy:
        """The regeneration policy assembled from these settings."""
        return RegenerationPolicy(
            strategy=self.default_strategy,
            validate_before_restore=self.validate_before_restore,
            preserve_history=self.preserve_history,
            max_snapshots=self.max_snapshots,
            ttl_days=self.ttl_days,
            cascade_recompute=self.cascade_recompute,
        )


# Module-level singleton: import as `from ravenvault.config import config`
config = VaultConfig()
