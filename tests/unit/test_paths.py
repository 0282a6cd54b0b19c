"""
Tests for path and command utilities.

This test suite covers:
1. Command-line tokenization and quoting
2. PATH variable name detection
3. Executable resolution
4. Scoped PATH mutation
"""

import os
import stat
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from extman.extension.paths import (
    cmdline_to_list,
    get_full_path,
    get_path_variable_name,
    prepend_to_path,
    quote_if_necessary,
    real_path_with_extension,
    temporary_path_prefix,
)


def make_executable(path: Path) -> Path:
    path.write_text("#!/bin/sh\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return path


class TestCommandLine:
    """Test command-line tokenization."""

    def test_simple_tokens(self):
        """Whitespace should separate tokens."""
        assert cmdline_to_list("node  server.js\t--port 80") == [
            "node",
            "server.js",
            "--port",
            "80",
        ]

    def test_quoted_segment(self):
        """Quoted segments should form one token without the quotes."""
        assert cmdline_to_list('node ./bin/run.js --flag "a b"') == [
            "node",
            "./bin/run.js",
            "--flag",
            "a b",
        ]

    def test_escaped_quotes_are_kept(self):
        """Escaped quotes should survive tokenization literally."""
        assert cmdline_to_list('echo \\"hi\\"') == ["echo", '\\"hi\\"']

    def test_empty(self):
        """Blank command lines should produce no tokens."""
        assert cmdline_to_list("   ") == []

    def test_quote_if_necessary(self):
        """Only unquoted tokens with spaces should be quoted."""
        assert quote_if_necessary("plain") == "plain"
        assert quote_if_necessary("a b") == '"a b"'
        assert quote_if_necessary('"a b"') == '"a b"'
        assert quote_if_necessary("") == ""


class TestPathVariable:
    """Test PATH variable detection."""

    def test_posix_name(self):
        """POSIX platforms always use PATH."""
        with patch("extman.extension.paths.is_windows", return_value=False):
            assert get_path_variable_name({"Path": "x"}) == "PATH"

    def test_windows_name_from_environment(self):
        """Windows should use the spelling found in the environment."""
        with patch("extman.extension.paths.is_windows", return_value=True):
            assert get_path_variable_name({"PATH": "x"}) == "PATH"
            assert get_path_variable_name({"path": "x"}) == "path"
            assert get_path_variable_name({}) == "Path"

    def test_prepend_to_path(self):
        """Directories should be placed before the existing value in order."""
        assert prepend_to_path(["a", "b"], "c") == os.pathsep.join(["a", "b", "c"])
        assert prepend_to_path(["a"], None) == "a"


@pytest.mark.skipif(os.name == "nt", reason="POSIX executable layout")
class TestFullPath:
    """Test executable resolution."""

    def test_absolute_existing(self):
        """Existing absolute paths should be returned as-is."""
        with tempfile.TemporaryDirectory() as tmpdir:
            tool = make_executable(Path(tmpdir) / "tool")
            assert get_full_path(str(tool)) == str(tool)

    def test_absolute_missing(self):
        """Missing absolute paths should not resolve."""
        with tempfile.TemporaryDirectory() as tmpdir:
            assert get_full_path(str(Path(tmpdir) / "missing")) is None

    def test_quotes_are_ignored(self):
        """Surrounding quotes should be stripped before resolution."""
        with tempfile.TemporaryDirectory() as tmpdir:
            tool = make_executable(Path(tmpdir) / "my tool")
            assert get_full_path(f'"{tool}"') == str(tool)

    def test_search_path(self):
        """Relative commands should be found in the search path, first match wins."""
        with tempfile.TemporaryDirectory() as first, tempfile.TemporaryDirectory() as second:
            make_executable(Path(second) / "tool")
            make_executable(Path(first) / "tool")
            search = os.pathsep.join([first, second])

            assert get_full_path("tool", search) == str(Path(first) / "tool")
            assert get_full_path("other", search) is None
            assert get_full_path("tool", None) is None

    def test_windows_extension_probing(self):
        """On Windows extensionless commands should be probed with PATHEXT."""
        with tempfile.TemporaryDirectory() as tmpdir:
            make_executable(Path(tmpdir) / "tool.CMD")
            env = {"PATHEXT": ".EXE;.CMD"}

            assert real_path_with_extension(str(Path(tmpdir) / "tool"), env) == str(
                Path(tmpdir) / "tool.CMD"
            )
            with patch("extman.extension.paths.is_windows", return_value=True):
                assert get_full_path("tool", tmpdir, env) == str(Path(tmpdir) / "tool.CMD")


class TestTemporaryPathPrefix:
    """Test scoped PATH mutation."""

    def test_restores_on_exit(self):
        """PATH should be restored after the block."""
        with patch.dict(os.environ, {"PATH": "original"}):
            with temporary_path_prefix("extra"):
                assert os.environ["PATH"] == os.pathsep.join(["extra", "original"])
            assert os.environ["PATH"] == "original"

    def test_restores_on_error(self):
        """PATH should be restored when the block raises."""
        with patch.dict(os.environ, {"PATH": "original"}):
            with pytest.raises(RuntimeError):
                with temporary_path_prefix("extra"):
                    raise RuntimeError("boom")
            assert os.environ["PATH"] == "original"

    def test_removes_when_unset(self):
        """An unset PATH should be unset again afterwards."""
        with patch.dict(os.environ, {}, clear=True):
            with temporary_path_prefix("extra"):
                assert os.environ["PATH"] == "extra"
            assert "PATH" not in os.environ
