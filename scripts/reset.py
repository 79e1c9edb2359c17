#!/usr/bin/env python3
"""Reset script for bomcat.

This script will:
1. Delete the data directory (database and logs)
2. Run migrations to create a fresh database
3. Optionally seed the default category tree
"""

import shutil
import sys

from config import get_default_seed_file, load_config
from db.manager import DatabaseManager
from cli.migrate import apply_pending_migrations
from models.seed import load_seed_file
from services.base import Services
from services.seed import seed_categories


def reset():
    """Reset the application state."""
    print("bomcat Reset Script")
    print("=" * 50)

    config = load_config()

    if not config.enable_reset:
        print("\nReset is disabled in configuration (enable_reset=false).")
        print("To enable reset, set enable_reset=true in ~/.config/bomcat.toml")
        sys.exit(1)

    print(f"\nData directory: {config.base_dir}")
    print(f"Database: {config.db_path}")
    print(f"Logs: {config.log_dir}")

    response = input("\nThis will delete ALL data. Continue? (yes/no): ")
    if response.lower() != "yes":
        print("Reset cancelled.")
        sys.exit(0)

    if config.base_dir.exists():
        print(f"\nDeleting {config.base_dir}...")
        shutil.rmtree(config.base_dir)
        print("✓ Data directory deleted")
    else:
        print(f"\n✓ Data directory does not exist: {config.base_dir}")

    print("\nRunning migrations...")
    applied = apply_pending_migrations(DatabaseManager(config))
    print(f"✓ Applied {len(applied)} migration(s)")

    response = input("\nSeed the default category tree? (yes/no): ")
    if response.lower() == "yes":
        seeds = load_seed_file(config.seed_file or get_default_seed_file())
        result = seed_categories(Services(config), seeds)
        print(f"✓ Created {result.created} categories")

    print("\n" + "=" * 50)
    print("Reset complete! Database has been recreated.")
    print(f"Database location: {config.db_path}")


if __name__ == "__main__":
    reset()
