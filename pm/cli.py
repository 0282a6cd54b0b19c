"""
pm CLI - extman Package Manager.

Pacman-style interface for managing extensions.

Usage:
    pm -S <name>[@spec]          Install extension
    pm -R <name>[@range]         Remove extension(s)
    pm -Q                        List installed extensions
    pm -Qi <name>[@range]        Show installed extension info
    pm -Ss <name>                List published versions
    pm -Si <name>[@spec]         Show package info
    pm --start <name>[@range]    Start extension
    pm --reset                   Delete every installed extension
"""

import argparse
import logging
import sys

from extman.config import ConfigError, load_settings
from extman.extension.errors import ExtensionError
from extman.extension.locks import LockTimeoutError


class PMError(Exception):
    """Base exception for pm errors."""

    pass


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with pacman-style flags."""
    parser = argparse.ArgumentParser(
        prog="pm",
        description="extman Package Manager - Pacman-style extension manager",
        add_help=False,
    )

    # Operation flags (mutually exclusive)
    ops = parser.add_mutually_exclusive_group()
    ops.add_argument("-S", "--sync", action="store_true", help="Install extension")
    ops.add_argument("-R", "--remove", action="store_true", help="Remove extension")
    ops.add_argument("-Q", "--query", action="store_true", help="Query installed")
    ops.add_argument("--start", action="store_true", help="Start extension")
    ops.add_argument("--reset", action="store_true", help="Reset installation root")
    ops.add_argument("-h", "--help", action="store_true", help="Show help")

    # Query sub-flags
    parser.add_argument("-s", "--search", action="store_true", help="List versions (-Ss)")
    parser.add_argument("-i", "--info", action="store_true", help="Show info (-Si, -Qi)")

    # Common options
    parser.add_argument("--force", action="store_true", help="Reinstall on -S")
    parser.add_argument("--debug", action="store_true", help="Run debug script on --start")
    parser.add_argument("--root", help="Installation root")
    parser.add_argument("--config", help="Settings file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    # Positional arguments
    parser.add_argument("targets", nargs="*", help="Extension names or specifiers")

    return parser


def print_help():
    """Print help message."""
    help_text = """
pm - extman Package Manager

Usage:
    pm -S <name>[@spec]          Install extension
    pm -R <name>[@range]         Remove extension(s)
    pm -Q                        List installed extensions
    pm -Qi <name>[@range]        Show installed extension info
    pm -Ss <name>                List published versions
    pm -Si <name>[@spec]         Show package info
    pm --start <name>[@range]    Start extension
    pm --reset                   Delete every installed extension

Options:
    --force                      Reinstall on -S
    --debug                      Run the debug script on --start
    --root <dir>                 Installation root
    --config <file>              Settings file
    -v, --verbose                Verbose output
    -h, --help                   Show this help
"""
    print(help_text.strip())


def configure_logging(args: argparse.Namespace) -> None:
    """Configure logging from settings, forced to DEBUG by -v."""
    if args.verbose:
        level = "DEBUG"
    else:
        try:
            level = load_settings(args.config).log_level
        except ConfigError:
            level = "WARNING"
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main(argv: list[str] | None = None) -> int:
    """Main entry point for pm CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        if args.help or not (
            args.sync or args.remove or args.query or args.start or args.reset
        ):
            print_help()
            return 0

        configure_logging(args)

        if args.sync:
            if args.search or args.info:
                # -Ss / -Si: Registry query
                from pm.commands.query import sync_query_command

                return sync_query_command(args)

            # -S: Install
            from pm.commands.install import install_command

            return install_command(args)

        elif args.remove:
            # -R: Remove
            from pm.commands.remove import remove_command

            return remove_command(args)

        elif args.query:
            # -Q: Query
            from pm.commands.query import query_command

            return query_command(args)

        elif args.start:
            from pm.commands.start import start_command

            return start_command(args)

        elif args.reset:
            from pm.commands.reset import reset_command

            return reset_command(args)

    except (PMError, ExtensionError, ConfigError, LockTimeoutError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
