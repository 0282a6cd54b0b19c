"""
extman Configuration - TOML-based settings.

This module provides:
- The settings schema
- Settings loading with environment overrides
- Default settings file generation

Example usage:
    from extman.config import load_settings

    settings = load_settings()          # extman.toml or $EXTMAN_CONFIG
    print(settings.installation_root)
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from extman.config.schema import SettingField, ValidationError, validate_settings
from extman.config.toml_handler import TOMLError, read_table, render_settings, write_file

logger = logging.getLogger(__name__)

SECTION = "extman"
CONFIG_ENV = "EXTMAN_CONFIG"
ENV_PREFIX = "EXTMAN_"
DEFAULT_CONFIG_FILE = Path("extman.toml")

SCHEMA: dict[str, SettingField] = {
    "installation_root": SettingField(
        str, "~/.extman/extensions", "Folder holding every installed extension", required=True
    ),
    "registry_url": SettingField(
        str, "https://registry.npmjs.org", "Base URL of the package registry", required=True
    ),
    "installer_command": SettingField(
        str, "npm", "Package installer executable (name or path)", required=True
    ),
    "runtime_executable": SettingField(
        str, "", "Executable used for 'node' in start scripts (empty: node on PATH)"
    ),
    "max_wait": SettingField(float, 300.0, "Maximum lock wait in seconds", minimum=1.0),
    "request_timeout": SettingField(float, 30.0, "Registry request timeout in seconds", minimum=1.0),
    "log_level": SettingField(
        str, "WARNING", "Logging level", choices=("DEBUG", "INFO", "WARNING", "ERROR")
    ),
}


class ConfigError(Exception):
    """Base exception for settings errors."""

    pass


@dataclass
class Settings:
    """extman settings."""

    installation_root: str = SCHEMA["installation_root"].default
    registry_url: str = SCHEMA["registry_url"].default
    installer_command: str = SCHEMA["installer_command"].default
    runtime_executable: str = SCHEMA["runtime_executable"].default
    max_wait: float = SCHEMA["max_wait"].default
    request_timeout: float = SCHEMA["request_timeout"].default
    log_level: str = SCHEMA["log_level"].default

    @property
    def root_path(self) -> Path:
        return Path(os.path.expanduser(self.installation_root))


def config_path(environ: Mapping[str, str] | None = None) -> Path:
    """Get the settings file path ($EXTMAN_CONFIG or ./extman.toml)."""
    environ = os.environ if environ is None else environ
    override = environ.get(CONFIG_ENV)
    return Path(override) if override else DEFAULT_CONFIG_FILE


def _defaults() -> dict[str, Any]:
    return {key: field.default for key, field in SCHEMA.items()}


def _env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides = {}
    for key, field in SCHEMA.items():
        variable = ENV_PREFIX + key.upper()
        raw = environ.get(variable)
        if raw is None:
            continue
        try:
            overrides[key] = field.parse(raw)
        except ValidationError as e:
            raise ConfigError(f"{variable}: {e}") from e
    return overrides


def load_settings(
    path: str | Path | None = None, environ: Mapping[str, str] | None = None
) -> Settings:
    """
    Load settings.

    Values come from the schema defaults, then the settings file (when it
    exists), then EXTMAN_<KEY> environment variables.

    Args:
        path: Settings file (default: $EXTMAN_CONFIG or ./extman.toml)
        environ: Environment mapping (default: os.environ)

    Returns:
        Settings

    Raises:
        ConfigError: If the file or an override is invalid
    """
    environ = os.environ if environ is None else environ
    file_path = Path(path) if path is not None else config_path(environ)

    values = _defaults()

    if file_path.exists():
        try:
            values.update(validate_settings(read_table(file_path, SECTION), SCHEMA))
        except TOMLError as e:
            raise ConfigError(str(e)) from e
        except ValidationError as e:
            raise ConfigError(f"{file_path}: {e}") from e
        logger.debug("Loaded settings from %s", file_path)

    values.update(_env_overrides(environ))
    return Settings(**values)


def write_default_config(path: str | Path) -> Path:
    """
    Write a commented settings file holding the defaults.

    Args:
        path: Destination file

    Returns:
        The written path

    Raises:
        ConfigError: If the file cannot be written
    """
    file_path = Path(path)
    content = render_settings(SECTION, SCHEMA, _defaults())
    try:
        write_file(file_path, content)
    except TOMLError as e:
        raise ConfigError(str(e)) from e
    return file_path


__all__ = [
    "SCHEMA",
    "ConfigError",
    "SettingField",
    "Settings",
    "config_path",
    "load_settings",
    "write_default_config",
]
