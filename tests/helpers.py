"""Helper utilities for tests."""

from pathlib import Path
import sqlite3

from services.category_paths import build_path, sanitize_label


def run_migrations(conn: sqlite3.Connection, migrations_dir: Path) -> None:
    """Run all SQL migrations in order.

    Args:
        conn: SQLite connection to run migrations against.
        migrations_dir: Path to directory containing .sql migration files.
    """
    for migration_file in sorted(migrations_dir.glob("*.sql")):
        with open(migration_file, "r") as f:
            conn.executescript(f.read())

    conn.commit()


def assert_path_invariant(services) -> None:
    """Check every live category's path against its parent's path and name."""
    categories = services.categories.find_all()
    by_id = {c.id: c for c in categories}
    for category in categories:
        parent_path = by_id[category.parent_id].path if category.parent_id else None
        expected = build_path(parent_path, sanitize_label(category.name))
        assert category.path == expected, (
            f"{category.name}: stored {category.path!r}, expected {expected!r}"
        )
