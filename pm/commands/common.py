"""
Shared helpers for pm commands.
"""

import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from extman.config import Settings, load_settings
from extman.extension.installer import InstallerTool
from extman.extension.manager import ExtensionManager
from extman.extension.progress import ProgressEvent, ProgressKind
from extman.registry.client import NpmRegistryClient


def parse_target(target: str) -> tuple[str, str | None]:
    """
    Parse a command target.

    The name ends at the first '@' after an optional leading scope, so
    specifiers may contain '@' themselves (git@host:user/repo.git).

    Args:
        target: name, name@spec or @org/name@spec

    Returns:
        Tuple of (name, spec)
    """
    index = target.find("@", 1 if target.startswith("@") else 0)
    if index > 0:
        return target[:index], target[index + 1 :] or None
    return target, None


def load_cli_settings(args: Any) -> Settings:
    """Load settings and apply command-line overrides."""
    settings = load_settings(getattr(args, "config", None))
    if getattr(args, "root", None):
        settings.installation_root = args.root
    return settings


@asynccontextmanager
async def open_manager(settings: Settings) -> AsyncIterator[ExtensionManager]:
    """Create an ExtensionManager from settings and dispose it on exit."""
    registry = NpmRegistryClient(settings.registry_url, timeout=settings.request_timeout)
    manager = await ExtensionManager.create(
        settings.root_path,
        registry=registry,
        installer=InstallerTool(settings.installer_command),
        runtime_executable=settings.runtime_executable or None,
        max_wait=settings.max_wait,
        lock_timeout=settings.max_wait,
    )
    try:
        yield manager
    finally:
        await manager.dispose()
        await registry.aclose()


def print_progress(event: ProgressEvent) -> None:
    """Progress subscriber writing messages to stderr."""
    if event.kind is ProgressKind.MESSAGE and event.message:
        print(f":: {event.message}", file=sys.stderr)
