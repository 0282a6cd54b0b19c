"""
Package Manifest.

This module provides parsing of installed package.json manifests and the
semantic-version helpers used to match installed extensions.

Key features:
- Explicit parse-on-demand of package.json (no module caching)
- Validation of the fields the manager consumes (name, version, scripts)
- npm-style version ranges (^, ~, x-ranges, hyphen ranges, ||)
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import semantic_version

from extman.extension.errors import ExtensionError


class ManifestParseError(ExtensionError):
    """Raised when a package.json cannot be read or is invalid."""

    pass


@dataclass(frozen=True)
class VersionRange:
    """
    Represents an npm-style version range.

    Attributes:
        raw: Range string as given (e.g., "^1.0.0")
    """

    raw: str
    _spec: semantic_version.NpmSpec = field(repr=False, compare=False)

    def matches(self, version: str) -> bool:
        """
        Check if a version satisfies this range.

        Args:
            version: Version string to check

        Returns:
            True if version satisfies range, False for invalid versions
        """
        parsed = parse_version(version)
        return parsed is not None and parsed in self._spec

    def select(self, versions: list[str]) -> str | None:
        """
        Pick the highest version satisfying this range.

        Args:
            versions: Candidate version strings (invalid ones are ignored)

        Returns:
            Highest matching version string, or None
        """
        candidates = {}
        for each in versions:
            parsed = parse_version(each)
            if parsed is not None:
                candidates[parsed] = each

        best = self._spec.select(candidates.keys())
        return candidates[best] if best is not None else None


def parse_version(version: str) -> semantic_version.Version | None:
    """
    Parse an exact semantic version.

    A leading "v" or "=" is accepted, as npm does.

    Args:
        version: Version string

    Returns:
        Parsed version, or None if the string is not a valid version
    """
    text = version.strip().lstrip("=v").strip()
    try:
        return semantic_version.Version(text)
    except ValueError:
        return None


def parse_range(range_str: str) -> VersionRange | None:
    """
    Parse an npm-style version range.

    Args:
        range_str: Range string (an empty string means any version)

    Returns:
        VersionRange object, or None if range_str is not a valid range
    """
    text = range_str.strip() or "*"
    try:
        spec = semantic_version.NpmSpec(text)
    except ValueError:
        return None
    return VersionRange(raw=range_str, _spec=spec)


def is_valid_range(range_str: str) -> bool:
    """Check if a string is a syntactically valid version range."""
    return parse_range(range_str) is not None


def satisfies(version: str, range_str: str) -> bool:
    """
    Check if a version satisfies a range.

    Args:
        version: Version string
        range_str: Range string

    Returns:
        True if the range is valid and the version satisfies it
    """
    version_range = parse_range(range_str)
    return version_range is not None and version_range.matches(version)


@dataclass
class Manifest:
    """
    Represents a package.json manifest.

    Attributes:
        name: Package name
        version: Package version
        description: Package description
        scripts: Map of script name -> command line (None if absent)
        raw_data: Raw manifest data
    """

    name: str
    version: str
    description: str
    scripts: dict[str, str] | None
    raw_data: dict[str, Any]

    def script(self, name: str) -> str | None:
        """Get a script command line, or None if not declared."""
        if not self.scripts:
            return None
        return self.scripts.get(name)


def load_manifest(manifest_path: Path) -> Manifest:
    """
    Parse a package.json file.

    Args:
        manifest_path: Path to package.json

    Returns:
        Manifest object

    Raises:
        ManifestParseError: If file cannot be read, parsed or validated
    """
    try:
        with open(manifest_path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ManifestParseError(f"Manifest file not found: {manifest_path}") from e
    except json.JSONDecodeError as e:
        raise ManifestParseError(f"Failed to parse manifest JSON {manifest_path}: {e}") from e
    except OSError as e:
        raise ManifestParseError(f"Failed to read manifest file {manifest_path}: {e}") from e

    return manifest_from_data(data, source=str(manifest_path))


def manifest_from_data(data: Any, source: str = "<data>") -> Manifest:
    """
    Build a Manifest from already-parsed package.json data.

    Args:
        data: Parsed manifest data
        source: Where the data came from (for error messages)

    Returns:
        Manifest object

    Raises:
        ManifestParseError: If manifest structure is invalid
    """
    validate_manifest_structure(data, source)

    scripts = data.get("scripts")
    return Manifest(
        name=data["name"],
        version=data["version"],
        description=data.get("description", "") or "",
        scripts=dict(scripts) if scripts is not None else None,
        raw_data=data,
    )


def validate_manifest_structure(data: Any, source: str = "<data>") -> None:
    """
    Validate manifest structure and required fields.

    Args:
        data: Parsed manifest data
        source: Where the data came from (for error messages)

    Raises:
        ManifestParseError: If manifest structure is invalid
    """
    if not isinstance(data, dict):
        raise ManifestParseError(f"Manifest {source} must be a JSON object")

    for required in ("name", "version"):
        if required not in data:
            raise ManifestParseError(f"Manifest {source} is missing required field: {required}")
        if not isinstance(data[required], str) or not data[required]:
            raise ManifestParseError(f"Manifest {source} field '{required}' must be a string")

    if "description" in data and not isinstance(data["description"], (str, type(None))):
        raise ManifestParseError(f"Manifest {source} field 'description' must be a string")

    if "scripts" in data and data["scripts"] is not None:
        scripts = data["scripts"]
        if not isinstance(scripts, dict):
            raise ManifestParseError(f"Manifest {source} field 'scripts' must be an object")
        for key, value in scripts.items():
            if not isinstance(value, str):
                raise ManifestParseError(
                    f"Manifest {source} script '{key}' must be a string"
                )
