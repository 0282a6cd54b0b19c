"""
Path and Command Utilities.

This module provides platform-aware helpers for launching extension scripts.

Key features:
- Command-line tokenization with double-quote support
- Quoting of tokens that contain spaces
- PATH variable name detection (case varies on Windows)
- Executable resolution with PATHEXT probing on Windows
- Scoped PATH mutation with guaranteed restore
"""

import contextlib
import os
import re
import sys
from collections.abc import Iterator, Mapping
from pathlib import Path

# Placeholder for escaped quotes while matching quoted segments
_ESCAPED_QUOTE = "\ufffe"
_TOKEN_PATTERN = re.compile(r'[^\s"]+|"([^"]*)"')


def is_windows() -> bool:
    """Check if running on the Windows platform family."""
    return sys.platform == "win32"


def quote_if_necessary(text: str) -> str:
    """
    Wrap text in double quotes if it contains a space and is not quoted yet.

    Args:
        text: Token to quote

    Returns:
        Quoted (or unchanged) token
    """
    if text and " " in text and not text.startswith('"'):
        return f'"{text}"'
    return text


def cmdline_to_list(text: str) -> list[str]:
    """
    Split a command line into tokens.

    Whitespace separates tokens, double-quoted segments form a single token
    without their surrounding quotes, and escaped quotes (\\") are kept
    literally.

    Args:
        text: Command line string

    Returns:
        List of tokens

    Example:
        cmdline_to_list('node ./bin/run.js --flag "a b"')
        # ['node', './bin/run.js', '--flag', 'a b']
    """
    text = text.replace('\\"', _ESCAPED_QUOTE)
    result = []
    for match in _TOKEN_PATTERN.finditer(text):
        token = match.group(1) if match.group(1) else match.group(0)
        result.append(token.replace(_ESCAPED_QUOTE, '\\"'))
    return result


def get_path_variable_name(environ: Mapping[str, str] | None = None) -> str:
    """
    Get the name of the PATH environment variable.

    Windows usually calls it 'Path', but this is not guaranteed, so the
    environment is searched case-insensitively.

    Args:
        environ: Environment to inspect (default: os.environ)

    Returns:
        Variable name
    """
    if not is_windows():
        return "PATH"

    env = os.environ if environ is None else environ
    name = "Path"
    for key in env:
        if key.upper() == "PATH":
            name = key
    return name


def _is_file(path: str) -> bool:
    return os.path.isfile(path)


def real_path_with_extension(command: str, environ: Mapping[str, str] | None = None) -> str | None:
    """
    Find an existing file by appending each PATHEXT extension to command.

    Args:
        command: Command path without extension
        environ: Environment to read PATHEXT from (default: os.environ)

    Returns:
        Path of the first existing candidate, or None
    """
    env = os.environ if environ is None else environ
    pathext = next((v for k, v in env.items() if k.upper() == "PATHEXT"), ".EXE")

    for ext in pathext.split(";"):
        if not ext:
            continue
        filename = f"{command}{ext}"
        if _is_file(filename):
            return filename
    return None


def get_full_path(
    command: str,
    search_path: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> str | None:
    """
    Resolve a command to a fully-qualified executable path.

    Absolute commands are used directly when they name an existing file and
    either carry an extension or the platform is not Windows. On Windows the
    PATHEXT extensions are probed as well. Relative commands are searched in
    each directory of search_path.

    Args:
        command: Command name or path (surrounding quotes are ignored)
        search_path: PATH-style directory list
        environ: Environment for PATHEXT lookup (default: os.environ)

    Returns:
        Full path of the executable, or None if not found
    """
    command = command.replace('"', "")
    ext = os.path.splitext(command)[1]

    if os.path.isabs(command):
        # if the file has an extension, or we're not on windows, use it as-is
        if (ext or not is_windows()) and _is_file(command):
            return command

        if is_windows():
            return real_path_with_extension(command, environ)
        return None

    if search_path:
        for folder in search_path.split(os.pathsep):
            if not folder:
                continue
            full_path = get_full_path(
                os.path.abspath(os.path.join(folder, command)), environ=environ
            )
            if full_path:
                return full_path

    return None


def prepend_to_path(directories: list[str | Path], current: str | None) -> str:
    """
    Prepend directories to a PATH-style value.

    Args:
        directories: Directories to prepend, first entry ends up first
        current: Existing PATH value (may be None)

    Returns:
        New PATH value
    """
    parts = [str(d) for d in directories]
    if current:
        parts.append(current)
    return os.pathsep.join(parts)


@contextlib.contextmanager
def temporary_path_prefix(directory: str | Path, base: str | None = None) -> Iterator[None]:
    """
    Temporarily prepend a directory to the process PATH variable.

    The original value is restored on every exit path, including errors
    raised inside the block.

    Args:
        directory: Directory to prepend
        base: PATH value to prepend to (default: current process PATH)
    """
    name = get_path_variable_name()
    original = os.environ.get(name)
    os.environ[name] = prepend_to_path([directory], original if base is None else base)
    try:
        yield
    finally:
        if original is None:
            os.environ.pop(name, None)
        else:
            os.environ[name] = original
