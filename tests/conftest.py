"""Shared pytest fixtures for all tests."""

import sqlite3
import pytest
from pathlib import Path

from cli.migrate import apply_pending_migrations
from config import Config, get_migrations_dir
from db.manager import DatabaseManager
from services.base import Services
from tests.helpers import run_migrations


@pytest.fixture
def test_db():
    """Create an in-memory SQLite database for testing.

    Yields:
        sqlite3.Connection: Connection to in-memory database.
    """
    conn = sqlite3.connect(":memory:")
    conn.execute("PRAGMA foreign_keys = ON")
    yield conn
    conn.close()


@pytest.fixture
def test_config(tmp_path):
    """Create a test configuration pointing to a temporary database.

    Args:
        tmp_path: pytest tmp_path fixture for temporary directory.

    Returns:
        Config: Test configuration object.
    """
    return Config(
        base_dir=tmp_path / "bomcat",
        db_data_dir=tmp_path / "bomcat" / "db",
        db_filename="test.db",
        log_level="DEBUG",
        log_dir=tmp_path / "bomcat" / "logs",
        db_busy_timeout=0.1,
    )


@pytest.fixture
def db_manager_with_schema(test_db):
    """Create a DatabaseManager with schema already set up.

    This fixture provides a DatabaseManager that uses an in-memory database
    with all migrations already applied.

    Args:
        test_db: In-memory database connection fixture.

    Returns:
        DatabaseManager: Database manager with schema ready.
    """
    run_migrations(test_db, get_migrations_dir())

    class TestDatabaseManager:
        """Test database manager that uses in-memory connection."""

        def __init__(self, conn):
            self.conn = conn

        def connect(self):
            """Return a context manager for the test connection."""
            return _TestConnectionContext(self.conn)

        def get_db_path(self):
            """Return a fake path for the test database."""
            return Path(":memory:")

        def get_migrations_dir(self):
            """Get the migrations directory path."""
            return get_migrations_dir()

    class _TestConnectionContext:
        """Context manager for test database connections."""

        def __init__(self, conn):
            self.conn = conn

        def __enter__(self):
            return self.conn

        def __exit__(self, exc_type, exc_val, exc_tb):
            # Don't close the connection - let the fixture handle it
            pass

    return TestDatabaseManager(test_db)


@pytest.fixture
def services(test_config, db_manager_with_schema):
    """Create a Services container with test database.

    Args:
        test_config: Test configuration fixture.
        db_manager_with_schema: Database manager with schema set up.

    Returns:
        Services: Services container for testing.
    """
    return Services(test_config, db_manager=db_manager_with_schema)


@pytest.fixture
def resistors_tree(services):
    """Build a small tree used across tree and mutation tests.

    resistors
    resistors.through_hole
    resistors.through_hole.axial
    resistors.smd
    resistors.smd.r_0603  (named "R 0603")
    capacitors

    Returns:
        dict: Category objects keyed by a short name.
    """
    resistors = services.mutator.create("Resistors", created_by="alice")
    through_hole = services.mutator.create(
        "Through Hole", parent_id=resistors.id, created_by="alice"
    )
    axial = services.mutator.create("Axial", parent_id=through_hole.id)
    smd = services.mutator.create("SMD", parent_id=resistors.id)
    r0603 = services.mutator.create("R 0603", parent_id=smd.id)
    capacitors = services.mutator.create("Capacitors")
    return {
        "resistors": resistors,
        "through_hole": through_hole,
        "axial": axial,
        "smd": smd,
        "r0603": r0603,
        "capacitors": capacitors,
    }


@pytest.fixture
def file_services(test_config):
    """Services backed by a database file, so each call gets its own connection.

    Needed wherever two writers or a reader and a writer must contend.

    Returns:
        Services: Services container on a migrated file database.
    """
    db_manager = DatabaseManager(test_config)
    apply_pending_migrations(db_manager)
    return Services(test_config, db_manager=db_manager)
