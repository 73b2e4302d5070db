"""Runtime settings for docvault.

Every knob lives on one pydantic-settings model read from ``DOCVAULT_*``
environment variables and an optional ``.env`` file. Components accept a
``DocVaultSettings`` in their constructor and fall back to ``get_settings()``
so tests can pass an explicit instance instead of patching the environment.

Examples:
    >>> from docvault.core.settings import DocVaultSettings
    >>> settings = DocVaultSettings(history_limit=10)
    >>> settings.document_key
    'app_data'

Tags:
    settings, configuration, pydantic, environment, docvault

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DocVaultSettings(BaseSettings):
    """Settings shared by the store, the coordinator and the CLI.

    Fields
    ──────
    data_dir                   : Root directory of the file blob store
    document_key               : Blob key holding the document
    history_key                : Blob key holding the migration history
    history_limit              : Maximum number of retained history entries
    backup_prefix              : Filename prefix of migration snapshots
    validation_timeout_seconds : Default deadline for async validation rules
    memo_ttl_seconds           : Default TTL for memoized validators
    log_level                  : Structlog log level
    json_logs                  : Force JSON (True) / console (False) logs
    """

    model_config = SettingsConfigDict(
        env_prefix="DOCVAULT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".docvault",
        description="Root directory of the file blob store",
    )
    document_key: str = "app_data"

    # ── Migrations ───────────────────────────────────────────────
    history_key: str = "migration_log"
    history_limit: int = Field(default=50, ge=1)
    backup_prefix: str = "migration_backup_"

    # ── Validation ───────────────────────────────────────────────
    validation_timeout_seconds: float = Field(default=5.0, gt=0)
    memo_ttl_seconds: int = Field(default=30, ge=0)

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, DocVaultSettings] = {}


def get_settings(*, _force_reload: bool = False) -> DocVaultSettings:
    """Load, validate and cache the process-wide settings."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = DocVaultSettings()
    _settings_cache["default"] = settings
    return settings


def reset_settings() -> None:
    """Drop the cached instance (tests)."""
    _settings_cache.clear()


__all__ = [
    "DocVaultSettings",
    "get_settings",
    "reset_settings",
]
