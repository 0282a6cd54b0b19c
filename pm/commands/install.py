"""
pm install command (-S).

Install extensions from the registry, a tarball, a folder or a git repository.
"""

import asyncio
import sys
from typing import Any

from extman.extension.errors import ExtensionError
from extman.extension.manager import ExtensionManager
from pm.commands.common import load_cli_settings, open_manager, parse_target, print_progress


def install_command(args: Any) -> int:
    """
    Execute install command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if not args.targets:
        print("Error: No targets specified", file=sys.stderr)
        print("Usage: pm -S <name>[@spec]", file=sys.stderr)
        return 1

    return asyncio.run(install_async(args))


async def install_async(args: Any) -> int:
    """Async install implementation."""
    success_count = 0
    fail_count = 0

    async with open_manager(load_cli_settings(args)) as manager:
        for target in args.targets:
            try:
                await install_extension(manager, target, args)
                success_count += 1
            except ExtensionError as e:
                print(f"Failed to install {target}: {e}", file=sys.stderr)
                fail_count += 1

    if args.verbose:
        print(f"\nInstalled: {success_count}, Failed: {fail_count}")

    return 0 if fail_count == 0 else 1


async def install_extension(manager: ExtensionManager, target: str, args: Any) -> None:
    """
    Install a single extension.

    Args:
        manager: Extension manager
        target: name or name@spec
        args: Command arguments
    """
    name, version = parse_target(target)
    pkg = await manager.find_package(name, version or "latest")

    extension = await manager.install_package(
        pkg,
        force=args.force,
        on_progress=print_progress if args.verbose else None,
    )
    print(f"{extension.id} -> {extension.location}")
