"""
Extension.

An Extension is a Package together with the place it is installed.

The kind discriminator tells managed installs (INSTALLED, laid out under
an installation root) apart from LOCAL extensions, which live in a folder
somebody else owns and can never be removed by the manager.
"""

import os
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from extman.extension.errors import LocalExtensionRemovalError
from extman.extension.manifest import Manifest, load_manifest
from extman.extension.package import Package

if TYPE_CHECKING:
    import asyncio

_README_PATTERN = re.compile(r"^readme\.md$", re.IGNORECASE)


class ExtensionKind(Enum):
    """Extension kind enumeration."""

    INSTALLED = "installed"
    LOCAL = "local"


def folder_name(package_id: str) -> str:
    """Get the installation folder name of a package id."""
    return package_id.replace("/", "_")


@dataclass(frozen=True, eq=False)
class Extension:
    """
    An installed (or local) package.

    Attributes:
        package: The package this extension was installed from
        kind: INSTALLED or LOCAL
        installation_root: Root folder (INSTALLED only)
        local_path: Fixed extension folder (LOCAL only)
    """

    package: Package
    kind: ExtensionKind
    installation_root: Path | None = None
    local_path: Path | None = None

    @classmethod
    def installed(cls, package: Package, installation_root: str | Path) -> "Extension":
        return cls(package, ExtensionKind.INSTALLED, installation_root=Path(installation_root))

    @classmethod
    def local(cls, package: Package, path: str | Path) -> "Extension":
        return cls(package, ExtensionKind.LOCAL, local_path=Path(path))

    @property
    def id(self) -> str:
        return self.package.id

    @property
    def name(self) -> str:
        return self.package.name

    @property
    def version(self) -> str:
        return self.package.version

    @property
    def source(self) -> str:
        return self.package.source

    @property
    def is_local(self) -> bool:
        return self.kind is ExtensionKind.LOCAL

    @property
    def location(self) -> Path:
        """The installed location of the package."""
        if self.kind is ExtensionKind.LOCAL:
            return Path(self.local_path)
        return Path(os.path.normpath(os.path.join(self.installation_root, folder_name(self.id))))

    @property
    def module_path(self) -> Path:
        """The path to the installed package (inside location)."""
        if self.kind is ExtensionKind.LOCAL:
            return Path(self.local_path)
        return Path(os.path.normpath(os.path.join(self.location, "node_modules", self.name)))

    @property
    def package_json_path(self) -> Path:
        return self.module_path / "package.json"

    @property
    def configuration_path(self) -> Path | None:
        """The readme.md configuration document of the extension, if any."""
        try:
            entries = os.listdir(self.module_path)
        except OSError:
            return None

        for entry in entries:
            if _README_PATTERN.match(entry):
                full_path = self.module_path / entry
                if full_path.is_file():
                    return full_path
        return None

    @property
    def configuration(self) -> str:
        """Text of the configuration document ('' when there is none)."""
        path = self.configuration_path
        if path is None:
            return ""
        return path.read_text(encoding="utf-8")

    @property
    def definition(self) -> Manifest:
        """The parsed package.json (read from disk on every access)."""
        return load_manifest(self.package_json_path)

    async def remove(self) -> None:
        """
        Remove this extension from disk.

        Raises:
            LocalExtensionRemovalError: For LOCAL extensions
        """
        if self.kind is ExtensionKind.LOCAL:
            raise LocalExtensionRemovalError(self.location)
        await self.package._require_manager().remove_extension(self)

    async def start(self, enable_debugger: bool = False, **options: Any) -> "asyncio.subprocess.Process":
        """Start this extension's start (or debug) script."""
        return await self.package._require_manager().start(self, enable_debugger, **options)

    def __repr__(self) -> str:
        return f"Extension({self.id!r}, kind={self.kind.value}, location={str(self.location)!r})"
