"""Configuration management for nogit."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_EXCLUDE_DIRS: tuple[str, ...] = (
    ".git",
    ".hg",
    ".svn",
    "node_modules",
    "dist",
    "out",
    "__pycache__",
    ".venv",
)

CONFIG_SECTION = "nogit"


class ConfigLoadError(RuntimeError):
    """Raised when the workspace configuration file cannot be parsed."""


class NogitSettings(BaseSettings):
    """Process-level configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    workspace: Path | None = Field(default=None, validation_alias="NOGIT_WORKSPACE")
    config_file: str = Field(default="nogit.yaml", validation_alias="NOGIT_CONFIG_FILE")
    journal_path: Path | None = Field(default=None, validation_alias="NOGIT_JOURNAL_PATH")
    log_level: str = Field(default="INFO", validation_alias="NOGIT_LOG_LEVEL")
    watch: bool = Field(default=True, validation_alias="NOGIT_WATCH")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "NOGIT_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("workspace", "journal_path", mode="before")
    @classmethod
    def _empty_path_is_none(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return value

    @property
    def config_path(self) -> Path | None:
        """Location of the workspace configuration file, if a workspace is set."""

        if self.workspace is None:
            return None
        return self.workspace / self.config_file


class SnapshotConfig(BaseModel):
    """Workspace-level snapshot options, keyed as in ``nogit.yaml``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    enable: bool = True
    snapshot_interval_minutes: int = Field(default=10, ge=1, alias="snapshotIntervalMinutes")
    max_snapshots: int = Field(default=48, ge=1, alias="maxSnapshots")
    snapshot_folder_name: str = Field(default=".nogit", alias="snapshotFolderName")
    exclude_dirs: tuple[str, ...] = Field(default=DEFAULT_EXCLUDE_DIRS, alias="excludeDirs")

    @field_validator("snapshot_folder_name")
    @classmethod
    def _validate_folder_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized or normalized in {".", ".."}:
            raise ValueError("snapshotFolderName must name a directory")
        if "/" in normalized or "\\" in normalized:
            raise ValueError("snapshotFolderName must be a single path segment")
        return normalized

    @field_validator("exclude_dirs", mode="before")
    @classmethod
    def _ensure_tuple(cls, value: Any):
        if value is None:
            return DEFAULT_EXCLUDE_DIRS
        if isinstance(value, str):
            return (value,)
        if isinstance(value, (list, tuple, set)):
            return tuple(str(item).strip() for item in value if str(item).strip())
        raise TypeError("excludeDirs must be a list of directory names")

    @property
    def interval_seconds(self) -> float:
        return max(1, self.snapshot_interval_minutes) * 60.0


def load_snapshot_config(path: Path | None) -> SnapshotConfig:
    """Load snapshot options from a YAML file.

    A missing file yields the defaults. Options may sit at the top level or
    under a ``nogit:`` section.
    """

    if path is None or not Path(path).is_file():
        return SnapshotConfig()

    try:
        document = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigLoadError(f"Failed to read configuration {path}: {exc}") from exc

    if document is None:
        return SnapshotConfig()
    if not isinstance(document, dict):
        raise ConfigLoadError(f"Configuration {path} must be a mapping")
    if CONFIG_SECTION in document:
        document = document[CONFIG_SECTION] or {}
        if not isinstance(document, dict):
            raise ConfigLoadError(f"Section '{CONFIG_SECTION}' in {path} must be a mapping")

    try:
        return SnapshotConfig.model_validate(document)
    except ValidationError as exc:
        raise ConfigLoadError(f"Configuration validation error in {path}: {exc}") from exc


@lru_cache(maxsize=1)
def get_settings() -> NogitSettings:
    """Return cached settings instance."""

    settings = NogitSettings()
    if settings.workspace is not None:
        settings.workspace = settings.workspace.expanduser().resolve()
    if settings.journal_path is not None:
        settings.journal_path = settings.journal_path.expanduser().resolve()
    return settings


__all__ = [
    "ConfigLoadError",
    "DEFAULT_EXCLUDE_DIRS",
    "NogitSettings",
    "SnapshotConfig",
    "get_settings",
    "load_snapshot_config",
]
