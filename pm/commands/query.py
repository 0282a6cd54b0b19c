"""
pm query commands.

-Q / -Qi query installed extensions, -Ss / -Si query the registry.
"""

import asyncio
import sys
from typing import Any

from extman.extension.extension import Extension
from extman.extension.package import Package
from pm.commands.common import load_cli_settings, open_manager, parse_target


def format_extension(extension: Extension) -> str:
    """Format the details of an installed extension."""
    definition = extension.definition
    lines = [
        f"Name            : {extension.name}",
        f"Version         : {extension.version}",
        f"Description     : {definition.description or 'None'}",
        f"Location        : {extension.location}",
        f"Module path     : {extension.module_path}",
        f"Start script    : {definition.script('start') or 'None'}",
        f"Debug script    : {definition.script('debug') or 'None'}",
        f"Configuration   : {extension.configuration_path or 'None'}",
    ]
    return "\n".join(lines)


def format_package(pkg: Package) -> str:
    """Format the details of a resolved package."""
    lines = [
        f"Name            : {pkg.name}",
        f"Version         : {pkg.version}",
        f"Description     : {pkg.metadata.get('description') or 'None'}",
        f"Source          : {pkg.source}",
        f"Resolved        : {pkg.resolved}",
    ]
    return "\n".join(lines)


def query_command(args: Any) -> int:
    """
    Execute installed-extension query (-Q, -Qi).

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if args.info and not args.targets:
        print("Error: No targets specified", file=sys.stderr)
        print("Usage: pm -Qi <name>[@range]", file=sys.stderr)
        return 1

    return asyncio.run(query_async(args))


async def query_async(args: Any) -> int:
    """Async installed-extension query."""
    async with open_manager(load_cli_settings(args)) as manager:
        if not args.info:
            for extension in await manager.get_installed_extensions():
                print(f"{extension.name} {extension.version}")
            return 0

        fail_count = 0
        for target in args.targets:
            name, version_range = parse_target(target)
            extension = await manager.get_installed_extension(name, version_range or "*")
            if extension is None:
                print(f"Error: {target} is not installed", file=sys.stderr)
                fail_count += 1
                continue
            print(format_extension(extension))
            print()

        return 0 if fail_count == 0 else 1


def sync_query_command(args: Any) -> int:
    """
    Execute registry query (-Ss, -Si).

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if not args.targets:
        print("Error: No targets specified", file=sys.stderr)
        print("Usage: pm -Ss <name> | pm -Si <name>[@spec]", file=sys.stderr)
        return 1

    return asyncio.run(sync_query_async(args))


async def sync_query_async(args: Any) -> int:
    """Async registry query."""
    async with open_manager(load_cli_settings(args)) as manager:
        for target in args.targets:
            name, version = parse_target(target)
            if args.search:
                for each in await manager.get_package_versions(name):
                    print(f"{name} {each}")
            else:
                pkg = await manager.find_package(name, version or "latest")
                print(format_package(pkg))
                print()
    return 0
