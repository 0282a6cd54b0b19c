"""
Tests for the pm command-line interface.

This test suite covers:
1. Target parsing
2. Pacman-style flag parsing
3. Command routing and exit codes
"""

import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from extman.extension.errors import UnresolvedPackageException
from pm.cli import create_parser, main
from pm.commands.common import parse_target


def fake_manager_context(manager):
    @asynccontextmanager
    async def open_manager(settings):
        yield manager

    return open_manager


@pytest.fixture
def config_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield str(Path(tmpdir) / "extman.toml")


class TestTargets:
    """Test target parsing."""

    def test_parse_target(self):
        """Targets should split on the first '@' after an optional scope."""
        assert parse_target("foo") == ("foo", None)
        assert parse_target("foo@^1.0.0") == ("foo", "^1.0.0")
        assert parse_target("@acme/tool") == ("@acme/tool", None)
        assert parse_target("@acme/tool@0.2.0") == ("@acme/tool", "0.2.0")
        assert parse_target("foo@") == ("foo", None)
        assert parse_target("foo@git@github.com:u/r.git") == ("foo", "git@github.com:u/r.git")
        assert parse_target("@acme/tool@git+ssh://git@host/r.git") == (
            "@acme/tool",
            "git+ssh://git@host/r.git",
        )


class TestParser:
    """Test flag parsing."""

    def test_combined_flags(self):
        """Short flags should combine pacman-style."""
        parser = create_parser()

        args = parser.parse_args(["-Si", "foo"])
        assert args.sync and args.info and args.targets == ["foo"]

        args = parser.parse_args(["-Qi", "foo"])
        assert args.query and args.info

        args = parser.parse_args(["--start", "foo", "--debug"])
        assert args.start and args.debug

    def test_operations_are_exclusive(self):
        """Two operations at once should be rejected."""
        with pytest.raises(SystemExit):
            create_parser().parse_args(["-S", "-R", "foo"])


class TestMain:
    """Test command routing."""

    def test_help(self, capsys):
        """No operation should print help."""
        assert main([]) == 0
        assert "Usage:" in capsys.readouterr().out

    def test_install(self, config_file, capsys):
        """-S should resolve and install every target."""
        extension = MagicMock(id="foo@1.2.0", location=Path("/ext/foo@1.2.0"))
        manager = MagicMock()
        manager.find_package = AsyncMock(return_value=MagicMock())
        manager.install_package = AsyncMock(return_value=extension)

        with patch("pm.commands.install.open_manager", fake_manager_context(manager)):
            code = main(["-S", "--force", "--config", config_file, "foo@^1"])

        assert code == 0
        manager.find_package.assert_awaited_once_with("foo", "^1")
        assert manager.install_package.await_args.kwargs["force"] is True
        assert "foo@1.2.0" in capsys.readouterr().out

    def test_install_failure(self, config_file, capsys):
        """Failed installs should exit with 1."""
        manager = MagicMock()
        manager.find_package = AsyncMock(side_effect=UnresolvedPackageException("nope@latest"))

        with patch("pm.commands.install.open_manager", fake_manager_context(manager)):
            code = main(["-S", "--config", config_file, "nope"])

        assert code == 1
        assert "Unable to resolve package" in capsys.readouterr().err

    def test_install_without_targets(self, config_file):
        """-S without targets should fail."""
        assert main(["-S", "--config", config_file]) == 1

    def test_query(self, config_file, capsys):
        """-Q should list installed extensions."""
        installed = [MagicMock(version="1.0.0"), MagicMock(version="0.2.0")]
        installed[0].name = "foo"
        installed[1].name = "@acme/tool"
        manager = MagicMock()
        manager.get_installed_extensions = AsyncMock(return_value=installed)

        with patch("pm.commands.query.open_manager", fake_manager_context(manager)):
            assert main(["-Q", "--config", config_file]) == 0

        out = capsys.readouterr().out
        assert "foo 1.0.0" in out
        assert "@acme/tool 0.2.0" in out

    def test_search_versions(self, config_file, capsys):
        """-Ss should list published versions."""
        manager = MagicMock()
        manager.get_package_versions = AsyncMock(return_value=["1.0.0", "2.0.0"])

        with patch("pm.commands.query.open_manager", fake_manager_context(manager)):
            assert main(["-Ss", "--config", config_file, "foo"]) == 0

        assert capsys.readouterr().out.splitlines() == ["foo 1.0.0", "foo 2.0.0"]

    def test_remove_not_installed(self, config_file, capsys):
        """-R of an unknown extension should fail."""
        manager = MagicMock()
        manager.get_installed_extensions = AsyncMock(return_value=[])

        with patch("pm.commands.remove.open_manager", fake_manager_context(manager)):
            assert main(["-R", "--config", config_file, "foo"]) == 1

        assert "not installed" in capsys.readouterr().err

    def test_start_returns_exit_code(self, config_file):
        """--start should return the extension's exit code."""
        process = MagicMock()
        process.wait = AsyncMock(return_value=3)
        manager = MagicMock()
        manager.get_installed_extension = AsyncMock(return_value=MagicMock())
        manager.start = AsyncMock(return_value=process)

        with patch("pm.commands.start.open_manager", fake_manager_context(manager)):
            assert main(["--start", "--config", config_file, "foo@^1"]) == 3

        manager.get_installed_extension.assert_awaited_once_with("foo", "^1")
        assert manager.start.await_args.kwargs["enable_debugger"] is False

    def test_keyboard_interrupt(self, config_file, capsys):
        """Interrupts should exit with 130."""
        with patch("pm.commands.reset.reset_command", side_effect=KeyboardInterrupt):
            assert main(["--reset", "--config", config_file]) == 130
