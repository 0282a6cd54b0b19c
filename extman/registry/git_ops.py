"""
Git Operations for Package Sources.

This module provides the git operations needed to read metadata of
packages referenced by a git specifier.

Key features:
- Clone a repository (shallow when a branch or tag is requested)
- Checkout a specific committish
- Resolve the checked-out commit
"""

import subprocess
from pathlib import Path


class GitError(Exception):
    """Base exception for git-related errors."""

    pass


def _run_git(args: list[str], cwd: Path | None = None) -> str:
    """
    Run a git command and return its stdout.

    Args:
        args: git arguments (without the leading "git")
        cwd: Working directory

    Returns:
        Captured stdout

    Raises:
        GitError: If git is missing or the command fails
    """
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=False,
        )
    except FileNotFoundError as e:
        raise GitError("git command not found. Please install git.") from e
    except OSError as e:
        raise GitError(f"Failed to run git {args[0]}: {e}") from e

    if result.returncode != 0:
        raise GitError(f"git {args[0]} failed: {result.stderr or result.stdout}")

    return result.stdout


def clone_repository(repo_url: str, target_dir: Path, committish: str | None = None) -> None:
    """
    Clone a repository and check out the requested committish.

    A shallow clone of the branch or tag is tried first; commit hashes
    cannot be cloned shallowly, so a full clone plus checkout is the
    fallback.

    Args:
        repo_url: Git repository URL
        target_dir: Target directory for clone (must not exist or be empty)
        committish: Optional branch, tag or commit to check out

    Raises:
        GitError: If clone or checkout fails
    """
    target_dir.parent.mkdir(parents=True, exist_ok=True)

    if not committish:
        _run_git(["clone", "--depth", "1", repo_url, str(target_dir)])
        return

    try:
        _run_git(["clone", "--depth", "1", "--branch", committish, repo_url, str(target_dir)])
        return
    except GitError:
        pass

    _run_git(["clone", repo_url, str(target_dir)])
    checkout(target_dir, committish)


def checkout(repo_dir: Path, committish: str) -> None:
    """
    Checkout a specific branch, tag or commit.

    Args:
        repo_dir: Repository directory
        committish: Ref to checkout

    Raises:
        GitError: If checkout fails
    """
    _run_git(["checkout", committish], cwd=repo_dir)


def head_commit(repo_dir: Path) -> str:
    """
    Get the commit hash currently checked out.

    Args:
        repo_dir: Repository directory

    Returns:
        Full commit hash

    Raises:
        GitError: If the hash cannot be read
    """
    return _run_git(["rev-parse", "HEAD"], cwd=repo_dir).strip()
