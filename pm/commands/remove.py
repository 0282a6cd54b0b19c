"""
pm remove command (-R).

Remove installed extensions matching name[@range].
"""

import asyncio
import sys
from typing import Any

from extman.extension.errors import ExtensionError
from extman.extension.manifest import satisfies
from pm.commands.common import load_cli_settings, open_manager, parse_target


def remove_command(args: Any) -> int:
    """
    Execute remove command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if not args.targets:
        print("Error: No targets specified", file=sys.stderr)
        print("Usage: pm -R <name>[@range]", file=sys.stderr)
        return 1

    return asyncio.run(remove_async(args))


async def remove_async(args: Any) -> int:
    """Async remove implementation."""
    fail_count = 0

    async with open_manager(load_cli_settings(args)) as manager:
        installed = await manager.get_installed_extensions()

        for target in args.targets:
            name, version_range = parse_target(target)
            matches = [
                each
                for each in installed
                if each.name == name and satisfies(each.version, version_range or "*")
            ]
            if not matches:
                print(f"Error: {target} is not installed", file=sys.stderr)
                fail_count += 1
                continue

            for extension in matches:
                try:
                    await manager.remove_extension(extension)
                    print(f"removed {extension.id}")
                except ExtensionError as e:
                    print(f"Failed to remove {extension.id}: {e}", file=sys.stderr)
                    fail_count += 1

    return 0 if fail_count == 0 else 1
