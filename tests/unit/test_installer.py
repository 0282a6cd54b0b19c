"""
Tests for the installer tool.

This test suite covers:
1. Executable resolution
2. Install command construction
3. Exit code handling
4. Environment filtering
"""

import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from extman.extension.installer import InstallerError, InstallerTool


@pytest.fixture
def mock_process():
    """Mock installer subprocess."""
    process = MagicMock()
    process.pid = 4242
    process.returncode = 0
    process.communicate = AsyncMock(return_value=(b"added 1 package", b""))
    return process


@pytest.fixture
def tool():
    installer = InstallerTool(sys.executable)
    installer.resolve()
    return installer


class TestResolution:
    """Test installer executable resolution."""

    def test_resolve_absolute(self):
        """Absolute executables should resolve to themselves."""
        installer = InstallerTool(sys.executable)
        assert installer.resolve() == sys.executable
        assert installer.executable == sys.executable

    def test_resolve_missing(self):
        """Unknown commands should raise InstallerError."""
        installer = InstallerTool("definitely-missing-installer-xyz")
        with pytest.raises(InstallerError, match="not found"):
            installer.resolve()

    def test_unresolved_executable(self):
        """Using the executable before resolving should fail."""
        with pytest.raises(InstallerError, match="not been resolved"):
            InstallerTool("npm").executable


class TestInstall:
    """Test install invocations."""

    @pytest.mark.asyncio
    async def test_install_arguments(self, tool, mock_process):
        """Installs should target the prefix and pass the artifact last."""
        target = Path("/tmp/extensions/foo@1.0.0")
        with patch("asyncio.create_subprocess_exec", return_value=mock_process) as spawn:
            result = await tool.invoke(target, "https://registry.test/foo/-/foo-1.0.0.tgz")

        args = spawn.call_args.args
        assert args[0] == sys.executable
        assert args[1] == "install"
        assert "--no-save" in args
        assert "--no-package-lock" in args
        assert args[args.index("--prefix") + 1] == str(target)
        assert "--force" not in args
        assert args[-1] == "https://registry.test/foo/-/foo-1.0.0.tgz"
        assert spawn.call_args.kwargs["cwd"] == str(target)
        assert result.ok
        assert result.stdout == "added 1 package"

    @pytest.mark.asyncio
    async def test_force_and_cwd(self, tool, mock_process):
        """Force should add --force; cwd should be configurable."""
        with patch("asyncio.create_subprocess_exec", return_value=mock_process) as spawn:
            run = await tool.launch(Path("/tmp/t"), "foo.tgz", force=True, cwd=Path("/tmp"))
            await run.wait()

        args = spawn.call_args.args
        assert "--force" in args
        assert args[-1] == "foo.tgz"
        assert spawn.call_args.kwargs["cwd"] == str(Path("/tmp"))

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, tool, mock_process):
        """A failing installer should raise with its output."""
        mock_process.returncode = 1
        mock_process.communicate = AsyncMock(return_value=(b"", b"E404 Not Found"))

        with patch("asyncio.create_subprocess_exec", return_value=mock_process):
            with pytest.raises(InstallerError, match="E404"):
                await tool.invoke(Path("/tmp/t"), "foo.tgz")

    @pytest.mark.asyncio
    async def test_spawn_failure(self, tool):
        """OS errors while spawning should raise InstallerError."""
        with patch("asyncio.create_subprocess_exec", side_effect=OSError("exec format error")):
            with pytest.raises(InstallerError, match="Failed to launch"):
                await tool.launch(Path("/tmp/t"), "foo.tgz")

    @pytest.mark.asyncio
    async def test_clean_cache(self, tool, mock_process):
        """Cache cleaning should run 'cache clean --force'."""
        with patch("asyncio.create_subprocess_exec", return_value=mock_process) as spawn:
            await tool.clean_cache(Path("/tmp"))

        assert spawn.call_args.args[1:] == ("cache", "clean", "--force")


class TestEnvironment:
    """Test installer environment filtering."""

    def test_npm_variables_dropped(self):
        """npm_* variables should not leak into the installer."""
        with patch.dict(os.environ, {"npm_config_prefix": "/bad", "KEEP_ME": "1"}):
            env = InstallerTool("npm").environment()

        assert "npm_config_prefix" not in env
        assert env["KEEP_ME"] == "1"
