#!/usr/bin/env python3
"""
bomcat CLI - Command-line interface for the parts catalog category tree.

Usage:
    python -m cli [--user NAME] <command> <subcommand> [options]

Commands:
    categories   Manage the category tree
    migrate      Database migrations

Examples:
    python -m cli migrate apply
    python -m cli categories seed
    python -m cli categories tree
    python -m cli categories create "Through Hole" --parent <resistors-id>
    python -m cli categories move <id> --parent <new-parent-id>
"""

import argparse
import getpass
import sys
from cli import categories, migrate
from config import load_config
from services.base import Services
from db.manager import DatabaseManager
from logger import setup_logging


def main():
    """Main CLI entry point with subcommands."""
    parser = argparse.ArgumentParser(
        prog="cli",
        description="bomcat - Parts catalog category tree management",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--user",
        default=getpass.getuser(),
        help="User name recorded in audit fields (defaults to the login name)",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
        required=True,
    )

    categories.setup_parser(subparsers)
    migrate.setup_parser(subparsers)

    args = parser.parse_args()

    if hasattr(args, "func"):
        try:
            config = load_config()
            setup_logging(config)

            # Migrate commands need db_manager for raw database operations
            if args.command == "migrate":
                args.func(args, DatabaseManager(config))
            else:
                args.func(args, Services(config))
        except Exception as e:
            print(f"Error: {e}")
            sys.exit(1)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
