"""
Extension Errors.

This module defines the exception taxonomy of the extension manager.

Every error a caller can observe from install/remove/start/reset derives
from ExtensionError, so callers can catch the whole family at once.
"""

from typing import Any


class ExtensionError(Exception):
    """Base exception for extension-related errors."""

    pass


class UnresolvedPackageException(ExtensionError):
    """Raised when the registry cannot resolve or fetch a package specifier."""

    def __init__(self, package_id: str):
        self.package_id = package_id
        super().__init__(f"Unable to resolve package '{package_id}'.")


class InvalidPackageIdentityException(ExtensionError):
    """Raised when a name/version pair is not a valid package reference."""

    def __init__(self, name: str, version: str, message: str):
        self.name = name
        self.version = version
        super().__init__(
            f"Package '{name}' - '{version}' is not a valid package reference:\n  {message}"
        )


class PackageInstallationException(ExtensionError):
    """Raised when the installer fails or installation hits an unexpected error."""

    def __init__(self, name: str, version: str, message: str):
        self.name = name
        self.version = version
        super().__init__(f"Package '{name}' - '{version}' failed to install:\n  {message}")


class UnsatisfiedEngineException(ExtensionError):
    """Reserved for engine-compatibility checks."""

    def __init__(self, name: str, version: str, message: str = ""):
        self.name = name
        self.version = version
        super().__init__(f"Unable to find matching engine '{name}' - '{version} {message}'")


class MissingStartCommandException(ExtensionError):
    """Raised when an extension manifest has no usable start/debug script."""

    def __init__(self, extension: Any):
        self.extension = extension
        super().__init__(
            f"Extension '{extension.id}' is missing the script 'start' in the package.json file"
        )


class ExtensionFolderLocked(ExtensionError):
    """Raised when the installation root cannot be reset."""

    def __init__(self, path: Any):
        self.path = path
        super().__init__(f"Extension Folder '{path}' is locked by another process.")


class ExtensionManagerError(ExtensionError):
    """Generic extension manager failure."""

    pass


class ManagerDisposedError(ExtensionManagerError):
    """Raised when a disposed manager is asked to mutate the installation root."""

    def __init__(self):
        super().__init__("Extension manager has been disposed.")


class LocalExtensionRemovalError(ExtensionManagerError):
    """Raised when removal of a local (unmanaged) extension is requested."""

    def __init__(self, path: Any):
        self.path = path
        super().__init__(
            f"Cannot remove local extension '{path}'. Lifetime not our responsibility."
        )


class ExtensionRemovalError(ExtensionManagerError):
    """Raised when removing an installed extension fails."""

    pass


class ExecutableNotFoundError(ExtensionError):
    """Raised when the start command cannot be resolved to an executable."""

    def __init__(self, command: str, cmdline: str):
        self.command = command
        super().__init__(
            f"Unable to resolve full path for executable '{command}' -- (cmdline '{cmdline}')"
        )
