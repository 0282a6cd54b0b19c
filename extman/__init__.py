"""
extman - Extension lifecycle manager.

Installs, enumerates, removes and starts extensions distributed through
an npm-compatible package registry.
"""

__version__ = "0.1.0"

from extman.extension.errors import (
    ExecutableNotFoundError,
    ExtensionError,
    ExtensionFolderLocked,
    ExtensionManagerError,
    ExtensionRemovalError,
    InvalidPackageIdentityException,
    LocalExtensionRemovalError,
    ManagerDisposedError,
    MissingStartCommandException,
    PackageInstallationException,
    UnresolvedPackageException,
    UnsatisfiedEngineException,
)
from extman.extension.extension import Extension, ExtensionKind
from extman.extension.installer import InstallerTool
from extman.extension.manager import ExtensionManager, InstallState
from extman.extension.package import Package
from extman.extension.progress import ProgressEvent, ProgressKind
from extman.registry.client import NpmRegistryClient, RegistryClient

__all__ = [
    "__version__",
    "ExecutableNotFoundError",
    "Extension",
    "ExtensionError",
    "ExtensionFolderLocked",
    "ExtensionKind",
    "ExtensionManager",
    "ExtensionManagerError",
    "ExtensionRemovalError",
    "InstallState",
    "InstallerTool",
    "InvalidPackageIdentityException",
    "LocalExtensionRemovalError",
    "ManagerDisposedError",
    "MissingStartCommandException",
    "NpmRegistryClient",
    "Package",
    "PackageInstallationException",
    "ProgressEvent",
    "ProgressKind",
    "RegistryClient",
    "UnresolvedPackageException",
    "UnsatisfiedEngineException",
]
