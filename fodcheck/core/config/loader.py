"""
Configuration loader — reads fodcheck.yml and the environment into Settings.

Precedence, highest first:
    CLI options  >  environment variables  >  fodcheck.yml  >  defaults

Environment variables:
    FODCHECK_CONFIG                  explicit path to a YAML config file
    NIXPKGS_FOD_REPORTS_DRV_CACHE    derivation cache file ('' = no cache)
    FODCHECK_JOBS                    number of worker threads
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from fodcheck.core.errors import ConfigError

logger = logging.getLogger(__name__)

# Default config filename, looked up in the working directory
CONFIG_FILE = "fodcheck.yml"

ENV_CONFIG = "FODCHECK_CONFIG"
ENV_CACHE = "NIXPKGS_FOD_REPORTS_DRV_CACHE"
ENV_JOBS = "FODCHECK_JOBS"


def _default_jobs() -> int:
    return os.cpu_count() or 1


class Settings(BaseModel):
    """Run-wide settings."""

    jobs: int = Field(default_factory=_default_jobs, ge=1)
    cache_path: Path | None = None
    roots_dir: Path | None = None
    restrict_eval: bool = True
    allow_aliases: bool = False

    @field_validator("cache_path", "roots_dir", mode="before")
    @classmethod
    def _empty_is_none(cls, value: object) -> object:
        if value == "":
            return None
        return value


def find_config_file(
    environ: Mapping[str, str] | None = None,
    start_dir: Path | None = None,
) -> Path | None:
    """Locate the config file: $FODCHECK_CONFIG, else ./fodcheck.yml."""
    environ = os.environ if environ is None else environ
    explicit = environ.get(ENV_CONFIG)
    if explicit:
        return Path(explicit)
    candidate = (start_dir or Path.cwd()) / CONFIG_FILE
    return candidate if candidate.is_file() else None


def _read_yaml(path: Path) -> dict:
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
    return data


def load_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
    **overrides: object,
) -> Settings:
    """Load and validate settings.

    Args:
        path: Explicit config file. If None, searched via find_config_file.
        environ: Environment mapping (default: os.environ).
        **overrides: Values that win over everything else; None is ignored.

    Raises:
        ConfigError: If the file or any value is invalid.
    """
    environ = os.environ if environ is None else environ
    if path is None:
        path = find_config_file(environ)

    data: dict = {}
    if path is not None:
        logger.debug("Loading settings from %s", path)
        data = _read_yaml(path)

    if ENV_CACHE in environ:
        data["cache_path"] = environ[ENV_CACHE]
    if environ.get(ENV_JOBS):
        data["jobs"] = environ[ENV_JOBS]

    data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
