"""
Extension Manager.

This module provides extension lifecycle management.

Key features:
- Package resolution through a registry client
- Idempotent installation into per-version folders
- Enumeration of installed extensions
- Start script launch with platform-specific executable resolution
- Layered locking:
  - shared/exclusive lock on the installation root (cross-process)
  - process-wide critical section around installer launch (in-process)
  - per-location mutex around install/remove (cross-process)
"""

import asyncio
import logging
import os
import re
import shutil
from enum import Enum
from pathlib import Path
from typing import Any

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
)
from extman.extension.extension import Extension, ExtensionKind
from extman.extension.installer import InstallerError, InstallerTool
from extman.extension.locks import (
    CriticalSection,
    LockTimeoutError,
    Mutex,
    Release,
    SharedLock,
    default_critical_section,
)
from extman.extension.manifest import ManifestParseError, is_valid_range, satisfies
from extman.extension.package import Package
from extman.extension.paths import (
    cmdline_to_list,
    get_full_path,
    get_path_variable_name,
    is_windows,
    prepend_to_path,
    quote_if_necessary,
    temporary_path_prefix,
)
from extman.extension.progress import Progress, ProgressCallback
from extman.registry.client import NpmRegistryClient, RegistryClient, read_directory_metadata
from extman.registry.spec import ResolvedSpec

logger = logging.getLogger(__name__)

DEFAULT_MAX_WAIT = 5 * 60.0

# [@ORG_]NAME@VERSION
_FOLDER_PATTERN = re.compile(r"^((@.+)_)?(.+)@(.+)$")
_NODE_COMMANDS = ("node", "node.exe")


class InstallState(Enum):
    """Installation state enumeration."""

    NOT_INSTALLED = "not_installed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ALREADY_INSTALLED = "already_installed"
    FAILED = "failed"
    CLEANED_UP = "cleaned_up"


def _remove_tree(path: Path) -> None:
    shutil.rmtree(path)


class ExtensionManager:
    """
    Extension lifecycle manager.

    Owns one installation root. Use ExtensionManager.create() to build an
    instance; it holds a shared lock on the root until dispose().
    """

    def __init__(
        self,
        installation_root: Path,
        shared_lock: SharedLock,
        lock_release: Release,
        registry: RegistryClient,
        installer: InstallerTool,
        critical_section: CriticalSection,
        runtime_executable: str,
        max_wait: float = DEFAULT_MAX_WAIT,
        owns_registry: bool = False,
    ):
        self.installation_root = installation_root
        self.registry = registry
        self.installer = installer
        self.critical_section = critical_section
        self.runtime_executable = runtime_executable
        self.max_wait = max_wait
        self._shared_lock: SharedLock | None = shared_lock
        self._lock_release: Release | None = lock_release
        self._owns_registry = owns_registry

    @classmethod
    async def create(
        cls,
        installation_root: str | Path,
        *,
        registry: RegistryClient | None = None,
        installer: InstallerTool | None = None,
        critical_section: CriticalSection | None = None,
        runtime_executable: str | None = None,
        max_wait: float = DEFAULT_MAX_WAIT,
        lock_timeout: float | None = None,
    ) -> "ExtensionManager":
        """
        Create a manager for an installation root.

        Args:
            installation_root: Folder that holds every managed extension
            registry: Registry client (default: NpmRegistryClient)
            installer: Installer tool (default: npm)
            critical_section: Installer critical section (default: shared
                process-wide instance)
            runtime_executable: Executable substituted for "node" in start
                scripts (default: node found on PATH)
            max_wait: Default maximum lock wait in seconds
            lock_timeout: Maximum wait for the shared root lock

        Returns:
            ExtensionManager holding a shared lock on the root

        Raises:
            ExtensionManagerError: If the root is not a directory
            LockTimeoutError: If the shared lock cannot be acquired
        """
        root = Path(os.path.normpath(os.path.abspath(os.path.expanduser(str(installation_root)))))
        if not root.exists():
            root.mkdir(parents=True)
        if not root.is_dir():
            raise ExtensionManagerError(f"Extension folder '{root}' is not a valid directory")

        installer = installer or InstallerTool()
        try:
            installer.resolve()
        except InstallerError as e:
            logger.warning("%s; installs will fail until it is available", e)

        if runtime_executable is None:
            runtime_executable = shutil.which("node") or "node"

        owns_registry = registry is None
        if registry is None:
            registry = NpmRegistryClient()

        lock = SharedLock(root)
        release = await lock.acquire(lock_timeout)

        logger.debug("Extension manager created for %s", root)
        return cls(
            installation_root=root,
            shared_lock=lock,
            lock_release=release,
            registry=registry,
            installer=installer,
            critical_section=critical_section or default_critical_section,
            runtime_executable=runtime_executable,
            max_wait=max_wait,
            owns_registry=owns_registry,
        )

    @property
    def disposed(self) -> bool:
        return self._shared_lock is None

    def _ensure_active(self) -> SharedLock:
        if self._shared_lock is None:
            raise ManagerDisposedError()
        return self._shared_lock

    async def dispose(self) -> None:
        """Release the shared root lock and make the manager unusable."""
        if self._lock_release is not None:
            self._lock_release()
            self._lock_release = None
        self._shared_lock = None

        if self._owns_registry:
            self._owns_registry = False
            await self.registry.aclose()

    async def __aenter__(self) -> "ExtensionManager":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.dispose()

    async def reset(self) -> None:
        """
        Delete every installed extension and clear the installer cache.

        Requires every other holder of the root lock to let go first.

        Raises:
            ManagerDisposedError: If the manager has been disposed
            ExtensionFolderLocked: If the root is busy or cannot be recreated
        """
        shared_lock = self._ensure_active()
        root = self.installation_root

        try:
            release = await shared_lock.exclusive(self.max_wait)
        except LockTimeoutError as e:
            raise ExtensionFolderLocked(root) from e

        try:
            if root.exists():
                await asyncio.to_thread(_remove_tree, root)
            root.mkdir(parents=True, exist_ok=True)
            await self.installer.clean_cache(root)
        except (OSError, InstallerError) as e:
            raise ExtensionFolderLocked(root) from e
        finally:
            release()

        logger.info("Reset installation root %s", root)

    def _resolve_name(self, name: str, version: str) -> ResolvedSpec:
        try:
            return self.registry.resolve(name, version)
        except ExtensionError:
            raise
        except Exception as e:
            raise InvalidPackageIdentityException(name, version, str(e)) from e

    async def _fetch_package_metadata(self, spec: ResolvedSpec) -> dict[str, Any]:
        try:
            metadata = await self.registry.fetch_metadata(spec)
        except Exception as e:
            logger.debug("Unable to fetch metadata for %s: %s", spec.raw, e)
            raise UnresolvedPackageException(spec.raw) from e

        if not all(isinstance(metadata.get(key), str) for key in ("_id", "name", "version")):
            raise UnresolvedPackageException(spec.raw)
        return metadata

    async def get_package_versions(self, name: str) -> list[str]:
        """
        List every published version of a package.

        Args:
            name: Package name

        Returns:
            Version strings in registry order (not filtered, not sorted)

        Raises:
            UnresolvedPackageException: If the registry cannot answer
        """
        try:
            return await self.registry.list_versions(name)
        except ExtensionError:
            raise
        except Exception as e:
            raise UnresolvedPackageException(name) from e

    async def find_package(self, name: str, version: str = "latest") -> Package:
        """
        Resolve a package.

        Args:
            name: Package name
            version: Version, range, tag, path, tarball url or git reference

        Returns:
            Package object

        Raises:
            InvalidPackageIdentityException: If name/version are malformed
            UnresolvedPackageException: If the package cannot be fetched
        """
        resolved = self._resolve_name(name, version)
        metadata = await self._fetch_package_metadata(resolved)
        return Package(resolved, metadata, self)

    async def load_local_extension(self, path: str | Path) -> Extension:
        """
        Wrap an existing package folder as a LOCAL extension.

        Args:
            path: Folder containing package.json

        Returns:
            Extension of kind LOCAL

        Raises:
            ManifestParseError: If the folder has no valid package.json
        """
        folder = Path(os.path.abspath(str(path)))
        metadata = await asyncio.to_thread(read_directory_metadata, folder)
        return Extension.local(Package(None, metadata, self), folder)

    async def get_installed_extension(self, name: str, version_range: str) -> Extension | None:
        """
        Find an installed extension.

        Args:
            name: Package name
            version_range: Version range; anything else (a tag, a path...) is
                resolved first and its concrete version is used

        Returns:
            First matching extension, or None
        """
        if not is_valid_range(version_range):
            pkg = await self.find_package(name, version_range)
            version_range = pkg.version

        for each in await self.get_installed_extensions():
            if each.name == name and satisfies(each.version, version_range):
                return each
        return None

    async def get_installed_extensions(self) -> list[Extension]:
        """
        List extensions installed under the installation root.

        Folders that do not look like [@ORG_]NAME@VERSION, that hold no
        readable package.json, or whose package.json places them somewhere
        else are skipped.

        Returns:
            Extensions in directory enumeration order
        """
        results = []
        try:
            folders = os.listdir(self.installation_root)
        except FileNotFoundError:
            return results

        for folder in folders:
            full_path = Path(os.path.normpath(os.path.join(self.installation_root, folder)))
            if not full_path.is_dir():
                continue

            split = _FOLDER_PATTERN.match(folder)
            if not split:
                continue

            org, name = split.group(2), split.group(3)
            module_path = full_path / "node_modules"
            module_path = module_path / org / name if org else module_path / name

            try:
                metadata = await asyncio.to_thread(read_directory_metadata, module_path)
            except ManifestParseError as e:
                logger.debug("Ignoring %s: %s", full_path, e)
                continue

            extension = Extension.installed(Package(None, metadata, self), self.installation_root)
            if str(full_path) != str(extension.location):
                logger.warning(
                    "Not reporting '%s' since its package.json claims it should be at '%s' "
                    "(probably symlinked once and modified later)",
                    full_path,
                    extension.location,
                )
                continue

            results.append(extension)

        return results

    def _transition(self, pkg: Package, state: InstallState) -> InstallState:
        logger.debug("%s: %s", pkg.id, state.value)
        return state

    async def install_package(
        self,
        pkg: Package,
        force: bool = False,
        max_wait: float | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> Extension:
        """
        Install a package.

        An existing install folder is taken as a finished install unless
        force is set, in which case it is replaced.

        Args:
            pkg: Package to install
            force: Reinstall even if already installed
            max_wait: Maximum lock wait in seconds (default: manager max_wait)
            on_progress: Progress subscriber

        Returns:
            Installed extension

        Raises:
            ManagerDisposedError: If the manager has been disposed
            PackageInstallationException: If installation fails
        """
        self._ensure_active()
        max_wait = self.max_wait if max_wait is None else max_wait

        progress = Progress(on_progress)
        progress.start()

        extension = Extension.installed(pkg, self.installation_root)
        state = self._transition(pkg, InstallState.NOT_INSTALLED)
        section_release: Release | None = None
        location_release: Release | None = None

        try:
            # only one installer launch at a time in this process
            section_release = await self.critical_section.acquire(max_wait)
            location_release = await Mutex(extension.location).acquire(max_wait / 2)

            if not self.installation_root.exists():
                self.installation_root.mkdir(parents=True, exist_ok=True)

            progress.progress(25)

            if extension.location.is_dir():
                if not force:
                    # naive assumption: an existing folder is a finished install
                    state = self._transition(pkg, InstallState.ALREADY_INSTALLED)
                    return extension

                progress.message(f"Removing existing extension {extension.location}")
                try:
                    await asyncio.to_thread(_remove_tree, extension.location)
                except OSError as e:
                    logger.debug("Could not remove %s before reinstall: %s", extension.location, e)

            state = self._transition(pkg, InstallState.INSTALLING)
            extension.location.mkdir(parents=True, exist_ok=True)

            progress.message(f"Installing {pkg.name}, {pkg.version}")
            run = await self.installer.launch(
                extension.location, pkg.resolved or pkg.source, force, cwd=self.installation_root
            )
            section_release()

            await run.wait()
            progress.message(f"Package Install completed {pkg.name}, {pkg.version}")
            state = self._transition(pkg, InstallState.INSTALLED)
            return extension

        except Exception as e:
            installing = state is InstallState.INSTALLING
            state = self._transition(pkg, InstallState.FAILED)
            progress.message(str(e))

            if installing and extension.location.is_dir():
                progress.message(f"Cleaning up failed installation: {extension.location}")
                try:
                    await asyncio.to_thread(_remove_tree, extension.location)
                    state = self._transition(pkg, InstallState.CLEANED_UP)
                except OSError as cleanup_error:
                    logger.debug("Cleanup of %s failed: %s", extension.location, cleanup_error)

            if isinstance(e, ExtensionError):
                raise
            raise PackageInstallationException(pkg.name, pkg.version, str(e)) from e

        finally:
            progress.progress(100)
            progress.end()
            if section_release is not None:
                section_release()
            if location_release is not None:
                location_release()

    async def remove_extension(self, extension: Extension) -> None:
        """
        Remove an installed extension.

        Args:
            extension: Extension to remove

        Raises:
            LocalExtensionRemovalError: For LOCAL extensions
            ManagerDisposedError: If the manager has been disposed
            ExtensionRemovalError: If the folder is busy or cannot be deleted
        """
        if extension.kind is ExtensionKind.LOCAL:
            raise LocalExtensionRemovalError(extension.location)

        self._ensure_active()
        location = extension.location
        if not location.is_dir():
            return

        try:
            release = await Mutex(location).acquire(self.max_wait)
        except LockTimeoutError as e:
            raise ExtensionRemovalError(f"Extension folder '{location}' is busy: {e}") from e

        try:
            await asyncio.to_thread(_remove_tree, location)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise ExtensionRemovalError(f"Failed to remove '{location}': {e}") from e
        finally:
            release()

        logger.info("Removed extension %s", extension.id)

    async def start(
        self, extension: Extension, enable_debugger: bool = False, **options: Any
    ) -> asyncio.subprocess.Process:
        """
        Start an extension.

        Runs the manifest's start script (or its debug script when
        enable_debugger is set and one is declared) from the extension's
        module folder, with the extension's .bin folders on the PATH.

        Args:
            extension: Extension to start
            enable_debugger: Prefer the debug script
            **options: Extra asyncio.create_subprocess_exec options (stdio...)

        Returns:
            The running process; its lifetime belongs to the caller

        Raises:
            MissingStartCommandException: If no usable script is declared
            ExecutableNotFoundError: If the command cannot be resolved
            ExtensionManagerError: If the process cannot be spawned
        """
        scripts = extension.definition.scripts
        if not scripts:
            raise MissingStartCommandException(extension)

        debug_script = scripts.get("debug")
        script = debug_script if enable_debugger and debug_script else scripts.get("start")
        if not script or not script.strip():
            raise MissingStartCommandException(extension)

        command = cmdline_to_list(script)
        if not command:
            raise MissingStartCommandException(extension)

        env = dict(os.environ)
        path_var = get_path_variable_name(env)
        env[path_var] = prepend_to_path(
            [
                Path(extension.location) / "node_modules" / ".bin",
                Path(extension.module_path) / "node_modules" / ".bin",
            ],
            env.get(path_var),
        )

        if command[0] in _NODE_COMMANDS:
            command[0] = self.runtime_executable

        cmdline = " ".join(quote_if_necessary(each) for each in command)
        full_command_path = get_full_path(command[0], env[path_var], env)
        if not full_command_path:
            raise ExecutableNotFoundError(command[0], cmdline)

        spawn_options = {"cwd": str(extension.module_path), "env": env, **options}
        logger.debug("Starting %s: %s", extension.id, cmdline)

        try:
            # a non-.exe path with a space must be launched by base name
            if (
                is_windows()
                and " " in full_command_path
                and not full_command_path.lower().endswith(".exe")
            ):
                with temporary_path_prefix(os.path.dirname(full_command_path), env[path_var]):
                    return await asyncio.create_subprocess_exec(
                        os.path.basename(full_command_path), *command[1:], **spawn_options
                    )

            return await asyncio.create_subprocess_exec(
                full_command_path, *command[1:], **spawn_options
            )
        except OSError as e:
            raise ExtensionManagerError(f"Failed to start extension '{extension.id}': {e}") from e
