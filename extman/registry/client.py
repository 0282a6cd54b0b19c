"""
Package Registry Client.

This module provides the registry client used to resolve package
specifiers to package metadata.

Key features:
- RegistryClient protocol (the seam the extension manager depends on)
- NpmRegistryClient: npm-compatible registry over httpx
- Metadata for local directories, tarballs and git repositories

Metadata documents always carry:
- _id: "<name>@<version>"
- _spec: the request that produced them
- _resolved: artifact reference to hand to the installer
plus every field of the package manifest.
"""

import asyncio
import io
import json
import logging
import tarfile
import tempfile
from pathlib import Path
from typing import Any, Protocol

import httpx

from extman.extension.manifest import ManifestParseError, load_manifest, manifest_from_data, parse_range
from extman.registry.git_ops import clone_repository, head_commit
from extman.registry.spec import ResolvedSpec, resolve_spec

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY = "https://registry.npmjs.org"


class RegistryError(Exception):
    """Base exception for registry-related errors."""

    pass


class RegistryClient(Protocol):
    """Interface of a package registry client."""

    def resolve(self, name: str | None, spec: str | None) -> ResolvedSpec: ...

    async def fetch_metadata(self, spec: ResolvedSpec) -> dict[str, Any]: ...

    async def list_versions(self, name: str) -> list[str]: ...

    async def aclose(self) -> None: ...


def _with_identity(manifest: dict[str, Any], raw: str, resolved: str) -> dict[str, Any]:
    metadata = dict(manifest)
    metadata["_id"] = f"{manifest['name']}@{manifest['version']}"
    metadata["_spec"] = raw
    metadata["_resolved"] = resolved
    return metadata


def read_directory_metadata(directory: str | Path, raw: str | None = None) -> dict[str, Any]:
    """
    Read package metadata from an unpacked package directory.

    Args:
        directory: Directory containing package.json
        raw: Request string to record as _spec (default: the directory)

    Returns:
        Metadata document

    Raises:
        ManifestParseError: If package.json is missing or invalid
    """
    path = Path(directory)
    manifest = load_manifest(path / "package.json")
    return _with_identity(manifest.raw_data, raw or str(path), str(path))


def read_tarball_metadata(data: bytes, raw: str, resolved: str) -> dict[str, Any]:
    """
    Read package metadata from a package tarball.

    The manifest is the package.json one level below the archive root
    (usually package/package.json).

    Args:
        data: Tarball bytes (gzip compressed or plain)
        raw: Request string to record as _spec
        resolved: Artifact reference to record as _resolved

    Returns:
        Metadata document

    Raises:
        ManifestParseError: If the tarball has no valid package.json
    """
    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:*") as archive:
            member = next(
                (
                    m
                    for m in archive.getmembers()
                    if m.isfile() and m.name.lstrip("./").count("/") == 1
                    and m.name.endswith("/package.json")
                ),
                None,
            )
            if member is None:
                raise ManifestParseError(f"No package.json found in tarball {resolved}")
            extracted = archive.extractfile(member)
            if extracted is None:
                raise ManifestParseError(f"Unreadable package.json in tarball {resolved}")
            content = json.loads(extracted.read().decode("utf-8"))
    except (tarfile.TarError, json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ManifestParseError(f"Failed to read tarball {resolved}: {e}") from e

    manifest = manifest_from_data(content, source=resolved)
    return _with_identity(manifest.raw_data, raw, resolved)


class NpmRegistryClient:
    """
    npm-compatible registry client.

    Registry specifiers are answered from the package document
    (GET {registry}/{name}); local, tarball and git specifiers are read
    directly from their source.
    """

    def __init__(
        self,
        registry_url: str = DEFAULT_REGISTRY,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize NpmRegistryClient.

        Args:
            registry_url: Base URL of the registry
            timeout: Request timeout in seconds
            client: Preconfigured httpx client (mainly for tests)
        """
        self.registry_url = registry_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    def resolve(self, name: str | None, spec: str | None) -> ResolvedSpec:
        return resolve_spec(name, spec)

    async def _get_packument(self, name: str) -> dict[str, Any]:
        """
        Fetch the registry document describing every version of a package.

        Raises:
            RegistryError: If the request fails or the document is malformed
        """
        url = f"{self.registry_url}/{name.replace('/', '%2f')}"
        try:
            response = await self.client.get(url, headers={"Accept": "application/json"})
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise RegistryError(
                f"Registry returned {e.response.status_code} for '{name}'"
            ) from e
        except httpx.HTTPError as e:
            raise RegistryError(f"Failed to reach registry for '{name}': {e}") from e
        except ValueError as e:
            raise RegistryError(f"Malformed registry response for '{name}': {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("versions"), dict):
            raise RegistryError(f"Malformed registry response for '{name}'")
        return data

    def _select_version(self, spec: ResolvedSpec, packument: dict[str, Any]) -> str:
        versions: dict[str, Any] = packument["versions"]

        if spec.type == "version":
            if spec.fetch_spec in versions:
                return spec.fetch_spec
            raise RegistryError(f"No version {spec.fetch_spec} of '{spec.name}'")

        if spec.type == "tag":
            tagged = packument.get("dist-tags", {}).get(spec.fetch_spec)
            if tagged in versions:
                return tagged
            raise RegistryError(f"No dist-tag '{spec.fetch_spec}' for '{spec.name}'")

        version_range = parse_range(spec.fetch_spec)
        selected = version_range.select(list(versions)) if version_range else None
        if selected is None:
            raise RegistryError(f"No version of '{spec.name}' satisfies '{spec.fetch_spec}'")
        return selected

    async def _fetch_registry(self, spec: ResolvedSpec) -> dict[str, Any]:
        packument = await self._get_packument(spec.name or "")
        version = self._select_version(spec, packument)
        manifest = packument["versions"][version]

        tarball = manifest.get("dist", {}).get("tarball")
        if not tarball:
            raise RegistryError(f"No tarball for '{spec.name}@{version}'")

        manifest_from_data(manifest, source=f"{spec.name}@{version}")
        return _with_identity(manifest, spec.raw, tarball)

    async def _fetch_remote(self, spec: ResolvedSpec) -> dict[str, Any]:
        try:
            response = await self.client.get(spec.fetch_spec)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise RegistryError(f"Failed to download '{spec.fetch_spec}': {e}") from e
        return read_tarball_metadata(response.content, spec.raw, spec.fetch_spec)

    def _read_git(self, spec: ResolvedSpec) -> dict[str, Any]:
        with tempfile.TemporaryDirectory(prefix="extman-git-") as tmpdir:
            checkout_dir = Path(tmpdir) / "repo"
            clone_repository(spec.fetch_spec, checkout_dir, spec.committish)
            commit = head_commit(checkout_dir)
            manifest = load_manifest(checkout_dir / "package.json")
        return _with_identity(manifest.raw_data, spec.raw, f"{spec.git_url}#{commit}")

    async def fetch_metadata(self, spec: ResolvedSpec) -> dict[str, Any]:
        """
        Fetch full metadata for a resolved specifier.

        Args:
            spec: Resolved specifier

        Returns:
            Metadata document

        Raises:
            RegistryError: If the registry cannot answer
            ManifestParseError: If the package manifest is invalid
            GitError: If a git source cannot be cloned
        """
        logger.debug("Fetching metadata for %s (%s)", spec.raw, spec.type)

        if spec.registry:
            return await self._fetch_registry(spec)
        if spec.type == "directory":
            return read_directory_metadata(spec.fetch_spec, spec.raw)
        if spec.type == "file":
            data = await asyncio.to_thread(Path(spec.fetch_spec).read_bytes)
            return read_tarball_metadata(data, spec.raw, spec.fetch_spec)
        if spec.type == "remote":
            return await self._fetch_remote(spec)
        if spec.type == "git":
            return await asyncio.to_thread(self._read_git, spec)

        raise RegistryError(f"Unsupported specifier type '{spec.type}'")

    async def list_versions(self, name: str) -> list[str]:
        """
        List every published version of a package.

        Args:
            name: Package name

        Returns:
            Version strings in registry order

        Raises:
            RegistryError: If the registry cannot answer
        """
        packument = await self._get_packument(name)
        return list(packument["versions"])

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()
