"""Configuration using Pydantic Settings for automatic env var support.

Two layers:

* ``ImportSettings``: persisted defaults (JSON file + ``GRANOLA_VAULT_*``
  environment variables, env wins).
* ``ImportOptions``: the validated, per-run options the orchestrator
  consumes. "Always prompt" lives here, per run, never as a global.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from granola_vault.errors import ConfigError
from granola_vault.models import DatePrefixFormat, ImportStrategy
from granola_vault.paths import CONFIG_HOME

CONFIG_ENV = "GRANOLA_VAULT_CONFIG"
DEFAULT_CONFIG_PATH = CONFIG_HOME / "config.json"

DEFAULT_MAX_CONCURRENCY = 3
DEFAULT_ADMISSION_DELAY = 0.1
DEFAULT_MAX_FILENAME_LENGTH = 100


class ImportOptions(BaseModel):
    """Options for a single import run."""

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    strategy: ImportStrategy = ImportStrategy.SKIP
    create_backups: bool = False
    max_concurrency: int = Field(default=DEFAULT_MAX_CONCURRENCY, ge=1)
    # Seconds between admissions (not completions).
    delay_between_imports: float = Field(default=DEFAULT_ADMISSION_DELAY, ge=0)
    stop_on_error: bool = False
    skip_empty_documents: bool = False
    always_prompt: bool = False
    target_folder: str = ""

    @field_validator("target_folder", mode="before")
    @classmethod
    def normalise_folder(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v).replace("\\", "/").strip().strip("/")


class ImportSettings(BaseSettings):
    """Persisted importer defaults."""

    vault_root: Optional[Path] = Field(default=None)
    target_folder: str = Field(default="")
    strategy: ImportStrategy = Field(default=ImportStrategy.SKIP)
    create_backups: bool = Field(default=False)
    max_concurrency: int = Field(default=DEFAULT_MAX_CONCURRENCY, ge=1)
    delay_between_imports: float = Field(default=DEFAULT_ADMISSION_DELAY, ge=0)
    stop_on_error: bool = Field(default=False)
    skip_empty_documents: bool = Field(default=False)
    always_prompt: bool = Field(default=False)
    date_prefix_format: DatePrefixFormat = Field(default=DatePrefixFormat.ISO)
    max_filename_length: int = Field(default=DEFAULT_MAX_FILENAME_LENGTH, ge=10)

    @field_validator("vault_root", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Any:
        if isinstance(v, str):
            return Path(v).expanduser()
        if isinstance(v, Path):
            return v.expanduser()
        return v

    model_config = SettingsConfigDict(
        env_prefix="GRANOLA_VAULT_",
        extra="ignore",
    )

    def to_options(self, **overrides: Any) -> ImportOptions:
        """Build per-run options, letting explicit overrides win over settings."""
        payload: dict[str, Any] = {
            "strategy": self.strategy,
            "create_backups": self.create_backups,
            "max_concurrency": self.max_concurrency,
            "delay_between_imports": self.delay_between_imports,
            "stop_on_error": self.stop_on_error,
            "skip_empty_documents": self.skip_empty_documents,
            "always_prompt": self.always_prompt,
            "target_folder": self.target_folder,
        }
        payload.update({key: value for key, value in overrides.items() if value is not None})
        try:
            return ImportOptions(**payload)
        except ValidationError as exc:
            raise ConfigError(f"Invalid import options: {exc}") from exc


def config_path(explicit: Optional[Path] = None) -> Path:
    if explicit:
        return explicit.expanduser()
    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read config {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError("Config payload must be a JSON object")
    return raw


def load_settings(path: Optional[Path] = None) -> ImportSettings:
    """Load settings from the JSON config file, with environment overrides.

    A missing file is not an error; defaults apply.

    Raises:
        ConfigError: If the file is unreadable or a value fails validation
    """
    file_values = _read_config_file(config_path(path))
    try:
        env_values = ImportSettings().model_dump(exclude_unset=True)
        return ImportSettings(**{**file_values, **env_values})
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings: {exc}") from exc


def write_settings(settings: ImportSettings, path: Optional[Path] = None) -> Path:
    target = config_path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(settings.model_dump_json(indent=2, exclude_none=True), encoding="utf-8")
    return target


__all__ = [
    "ImportOptions",
    "ImportSettings",
    "config_path",
    "load_settings",
    "write_settings",
]
