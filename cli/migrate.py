#!/usr/bin/env python3

from dataclasses import dataclass, field
from typing import List, Set

from logger import get_logger

logger = get_logger()


@dataclass
class MigrationStatus:
    available: List[str] = field(default_factory=list)
    applied: Set[str] = field(default_factory=set)

    @property
    def pending(self) -> List[str]:
        return [m for m in self.available if m not in self.applied]


def init_schema_migrations_table(conn):
    conn.execute("""
        CREATE TABLE IF NOT EXISTS schema_migrations (
            migration_file TEXT PRIMARY KEY,
            applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)
    conn.commit()


def get_applied_migrations(conn) -> Set[str]:
    cursor = conn.execute("SELECT migration_file FROM schema_migrations")
    return {row[0] for row in cursor.fetchall()}


def get_available_migrations(db_manager) -> List[str]:
    """Migration file names in the order they must run (by numeric prefix)."""
    migrations_dir = db_manager.get_migrations_dir()
    if not migrations_dir.exists():
        return []
    return sorted(path.name for path in migrations_dir.glob("*.sql"))


def get_migration_status(conn, db_manager) -> MigrationStatus:
    init_schema_migrations_table(conn)
    return MigrationStatus(
        available=get_available_migrations(db_manager),
        applied=get_applied_migrations(conn),
    )


def apply_migration(conn, migration_file, db_manager):
    """Run one migration script and record it in schema_migrations.

    Raises:
        sqlite3.Error: If the script fails; the failure is logged first.
    """
    sql = (db_manager.get_migrations_dir() / migration_file).read_text()

    try:
        conn.executescript(sql)
        conn.execute(
            "INSERT INTO schema_migrations (migration_file) VALUES (?)",
            (migration_file,),
        )
        conn.commit()
    except Exception as e:
        conn.rollback()
        logger.error(f"Error applying migration {migration_file}: {e}")
        raise
    logger.info(f"Applied migration: {migration_file}")


def apply_pending_migrations(db_manager) -> List[str]:
    """Apply every migration not yet recorded in schema_migrations.

    Returns:
        Names of the migrations that were applied, in order.
    """
    with db_manager.connect() as conn:
        status = get_migration_status(conn, db_manager)
        for migration in status.pending:
            apply_migration(conn, migration, db_manager)
    return status.pending


def cmd_status(args, db_manager):
    """Show which schema migrations have been applied to the catalog database."""
    if not db_manager.get_db_path().exists():
        logger.info(
            "Database does not exist. Run 'python -m cli migrate apply' to create it."
        )
        return

    with db_manager.connect() as conn:
        status = get_migration_status(conn, db_manager)

    if not status.available:
        logger.info("No migrations found.")
        return

    logger.info("Migration Status:")
    logger.info("================")
    for migration in status.available:
        state = "APPLIED" if migration in status.applied else "PENDING"
        logger.info(f"{migration}: {state}")

    logger.info(f"\nTotal migrations: {len(status.available)}")
    logger.info(f"Applied: {len(status.applied)}")
    logger.info(f"Pending: {len(status.pending)}")


def cmd_apply(args, db_manager):
    """Apply pending migrations."""
    applied = apply_pending_migrations(db_manager)
    if not applied:
        logger.info("No pending migrations.")
        return
    logger.info(f"Successfully applied {len(applied)} migration(s).")


def setup_parser(subparsers):
    """Setup migrate subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "migrate",
        help="Database migrations",
        description="Create or upgrade the category database schema",
    )

    migrate_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available migration commands",
        dest="subcommand",
        required=True,
    )

    migrate_subparsers.add_parser(
        "status", help="Show applied and pending migrations"
    ).set_defaults(func=cmd_status)
    migrate_subparsers.add_parser(
        "apply", help="Apply pending migrations"
    ).set_defaults(func=cmd_apply)
