"""
pm start command (--start).

Start an installed extension and wait for it to exit.
"""

import asyncio
import sys
from typing import Any

from pm.commands.common import load_cli_settings, open_manager, parse_target


def start_command(args: Any) -> int:
    """
    Execute start command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code of the extension process (1 on error)
    """
    if len(args.targets) != 1:
        print("Error: Exactly one target required", file=sys.stderr)
        print("Usage: pm --start <name>[@range] [--debug]", file=sys.stderr)
        return 1

    return asyncio.run(start_async(args))


async def start_async(args: Any) -> int:
    """Async start implementation."""
    target = args.targets[0]
    name, version_range = parse_target(target)

    async with open_manager(load_cli_settings(args)) as manager:
        extension = await manager.get_installed_extension(name, version_range or "*")
        if extension is None:
            print(f"Error: {target} is not installed", file=sys.stderr)
            return 1

        process = await manager.start(extension, enable_debugger=args.debug)
        return await process.wait()
