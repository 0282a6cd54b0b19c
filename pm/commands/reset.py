"""
pm reset command (--reset).

Delete every installed extension and clear the installer cache.
"""

import asyncio
from typing import Any

from pm.commands.common import load_cli_settings, open_manager


def reset_command(args: Any) -> int:
    """
    Execute reset command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    return asyncio.run(reset_async(args))


async def reset_async(args: Any) -> int:
    """Async reset implementation."""
    settings = load_cli_settings(args)
    async with open_manager(settings) as manager:
        await manager.reset()
    print(f"reset {settings.root_path}")
    return 0
