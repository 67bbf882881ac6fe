"""Kernel settings: optional YAML file plus environment overrides."""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

ENV_PREFIX = "CONTRACTKERNEL_"
DEFAULT_CONTEXT_FILE = Path(".context") / "state.json"

_ENV_FIELDS = {
    "MANIFEST": "manifest_path",
    "CONTEXT": "context_path",
    "PROJECT_ROOT": "project_root",
    "LOG_LEVEL": "log_level",
}


class ConfigError(Exception):
    """Raised when settings cannot be loaded or are invalid."""


class KernelSettings(BaseModel):
    """Where the manifest and the context snapshot live, and how loud to log.

    ``project_root`` defaults to the manifest's directory (or the manifest
    itself when it is a directory); ``context_path`` defaults to
    ``<project_root>/.context/state.json``.
    """

    model_config = ConfigDict(extra="forbid")

    manifest_path: Path
    project_root: Optional[Path] = None
    context_path: Optional[Path] = None
    log_level: str = "WARNING"

    @field_validator("log_level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {value!r}")
        return level

    @model_validator(mode="after")
    def _fill_paths(self) -> "KernelSettings":
        if self.project_root is None:
            manifest = self.manifest_path
            self.project_root = manifest if manifest.is_dir() else manifest.parent
        if self.context_path is None:
            self.context_path = self.project_root / DEFAULT_CONTEXT_FILE
        return self


def _env_overrides(environ: dict[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for suffix, field in _ENV_FIELDS.items():
        value = environ.get(f"{ENV_PREFIX}{suffix}")
        if value:
            overrides[field] = value
    return overrides


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[dict[str, str]] = None,
    **overrides: Any,
) -> KernelSettings:
    """Build settings from a YAML file, the environment and explicit overrides.

    Later sources win: file, then ``CONTRACTKERNEL_*`` variables, then
    keyword overrides (typically CLI options). ``None`` overrides are ignored.

    Raises:
        ConfigError: If the file is unreadable or the merged settings are invalid
    """
    data: dict[str, Any] = {}
    if config_path is not None:
        try:
            loaded = yaml.safe_load(Path(config_path).read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Cannot read config {config_path}: {exc}") from exc
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigError(f"Config {config_path} must be a mapping")
        data.update(loaded or {})

    data.update(_env_overrides(dict(os.environ) if environ is None else environ))
    data.update({key: value for key, value in overrides.items() if value is not None})

    if "manifest_path" not in data:
        raise ConfigError(
            f"No manifest configured; pass one or set {ENV_PREFIX}MANIFEST"
        )
    try:
        return KernelSettings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings: {exc}") from exc
