"""
Package Installer Tool.

This module runs the external package-installer command-line tool
(npm by default) as a subprocess against a target directory.

Key features:
- One-time resolution of the installer executable
- Launch and completion as separate steps, so callers can release
  their critical section as soon as the process is running
- stdout/stderr capture and exit code handling
- Installer cache cleaning
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from extman.extension.paths import get_full_path, get_path_variable_name

logger = logging.getLogger(__name__)


class InstallerError(Exception):
    """Base exception for installer-related errors."""

    pass


@dataclass
class InstallerResult:
    """
    Outcome of an installer invocation.

    Attributes:
        stdout: Captured standard output
        stderr: Captured standard error
        exit_code: Process exit code
    """

    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class InstallerRun:
    """A launched installer process."""

    def __init__(self, process: asyncio.subprocess.Process, description: str):
        self.process = process
        self.description = description

    async def wait(self) -> InstallerResult:
        """
        Wait for the installer to finish.

        Returns:
            InstallerResult of a successful run

        Raises:
            InstallerError: If the installer exits with a non-zero code
        """
        stdout, stderr = await self.process.communicate()
        result = InstallerResult(
            stdout=(stdout or b"").decode("utf-8", errors="replace"),
            stderr=(stderr or b"").decode("utf-8", errors="replace"),
            exit_code=self.process.returncode if self.process.returncode is not None else -1,
        )

        logger.debug("%s exited with %s", self.description, result.exit_code)
        if result.stdout:
            logger.debug("%s stdout:\n%s", self.description, result.stdout)
        if result.stderr:
            logger.debug("%s stderr:\n%s", self.description, result.stderr)

        if not result.ok:
            raise InstallerError(
                f"{self.description} failed with exit code {result.exit_code}:\n"
                f"stdout: {result.stdout}\n"
                f"stderr: {result.stderr}"
            )
        return result


class InstallerTool:
    """
    Wrapper around the package-installer command line.

    Installs go into <target>/node_modules/<name>, with no lockfile and no
    package.json bookkeeping in the target directory.
    """

    INSTALL_ARGS = [
        "install",
        "--no-save",
        "--no-package-lock",
        "--no-audit",
        "--no-fund",
        "--install-links",
    ]

    def __init__(self, command: str = "npm", extra_args: list[str] | None = None):
        """
        Initialize InstallerTool.

        Args:
            command: Installer executable name or path
            extra_args: Additional arguments passed to every install
        """
        self.command = command
        self.extra_args = list(extra_args or [])
        self._executable: str | None = None

    @property
    def executable(self) -> str:
        """Resolved executable path (resolve() must have been called)."""
        if self._executable is None:
            raise InstallerError(f"Installer '{self.command}' has not been resolved")
        return self._executable

    def resolve(self) -> str:
        """
        Resolve the installer executable to a full path.

        The result is kept for every later invocation.

        Returns:
            Full executable path

        Raises:
            InstallerError: If the executable cannot be found
        """
        if self._executable is not None:
            return self._executable

        path_value = os.environ.get(get_path_variable_name())
        if os.path.isabs(self.command):
            found = get_full_path(self.command)
        else:
            found = get_full_path(self.command, path_value)
        if not found:
            raise InstallerError(f"Installer command '{self.command}' not found")

        self._executable = found
        logger.debug("Resolved installer %s -> %s", self.command, found)
        return found

    def environment(self) -> dict[str, str]:
        """
        Build the installer environment.

        Variables injected by an outer npm run (npm_*) are dropped so they
        cannot leak configuration into the install.
        """
        return {k: v for k, v in os.environ.items() if not k.lower().startswith("npm_")}

    async def _spawn(self, args: list[str], cwd: Path, description: str) -> InstallerRun:
        try:
            process = await asyncio.create_subprocess_exec(
                self.executable,
                *args,
                cwd=str(cwd),
                env=self.environment(),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise InstallerError(f"Failed to launch {description}: {e}") from e

        logger.debug("Launched %s (pid %s)", description, process.pid)
        return InstallerRun(process, description)

    async def launch(
        self, target_dir: Path, artifact: str, force: bool = False, cwd: Path | None = None
    ) -> InstallerRun:
        """
        Launch an install of artifact into target_dir.

        Args:
            target_dir: Directory receiving node_modules/<name>
            artifact: Resolved artifact reference (tarball url, path, git url)
            force: Pass --force to the installer
            cwd: Working directory of the installer (default: target_dir)

        Returns:
            Running installer

        Raises:
            InstallerError: If the process cannot be started
        """
        args = [*self.INSTALL_ARGS, "--prefix", str(target_dir), *self.extra_args]
        if force:
            args.append("--force")
        args.append(artifact)
        return await self._spawn(args, cwd or target_dir, f"Install of '{artifact}'")

    async def invoke(self, target_dir: Path, artifact: str, force: bool = False) -> InstallerResult:
        """Install artifact into target_dir and wait for completion."""
        run = await self.launch(target_dir, artifact, force)
        return await run.wait()

    async def clean_cache(self, cwd: Path) -> InstallerResult:
        """
        Clear the installer's local package cache.

        Args:
            cwd: Working directory of the installer

        Returns:
            InstallerResult

        Raises:
            InstallerError: If the cache cannot be cleaned
        """
        run = await self._spawn(["cache", "clean", "--force"], cwd, "Installer cache clean")
        return await run.wait()
