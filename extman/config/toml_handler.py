"""
Settings file I/O.

Reading goes through tomllib; generated files are built with tomlkit so
every key carries its description as a comment.
"""

import tomllib
from pathlib import Path
from typing import Any

import tomlkit

from extman.config.schema import SettingField


class TOMLError(Exception):
    """Raised when a settings file cannot be read, parsed or written."""

    pass


def read_table(file_path: Path, section: str) -> dict[str, Any]:
    """
    Read one table of a TOML file.

    Args:
        file_path: Settings file
        section: Table name

    Returns:
        The table contents ({} when the file has no such table)

    Raises:
        TOMLError: If the file cannot be read or parsed, or the key is not a table
    """
    try:
        with open(file_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise TOMLError(f"Failed to parse TOML file {file_path}: {e}") from e
    except OSError as e:
        raise TOMLError(f"Failed to read TOML file {file_path}: {e}") from e

    table = data.get(section, {})
    if not isinstance(table, dict):
        raise TOMLError(f"[{section}] in {file_path} must be a table")
    return table


def render_settings(section: str, schema: dict[str, SettingField], values: dict[str, Any]) -> str:
    """Render a commented settings document."""
    doc = tomlkit.document()
    doc.add(tomlkit.comment("extman settings"))
    doc.add(tomlkit.comment("Every key can be overridden with EXTMAN_<KEY> in the environment."))
    doc.add(tomlkit.nl())

    table = tomlkit.table()
    for key, field in schema.items():
        if field.description:
            table.add(tomlkit.comment(field.description))
        if field.constraints:
            table.add(tomlkit.comment(f"Constraints: {'; '.join(field.constraints)}"))
        table.add(key, values.get(key, field.default))
        table.add(tomlkit.nl())

    doc.add(section, table)
    return tomlkit.dumps(doc)


def write_file(file_path: Path, content: str) -> None:
    """
    Write a settings document, creating parent folders.

    Raises:
        TOMLError: If the file cannot be written
    """
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise TOMLError(f"Failed to write TOML file {file_path}: {e}") from e
