"""Database manager for SQLite connections and path management."""

import sqlite3
from contextlib import contextmanager
from config import Config, get_migrations_dir


class DatabaseManager:
    """Manages database connections and paths.

    Args:
        config: Application configuration object.
    """

    def __init__(self, config: Config):
        """Initialize the database manager.

        Args:
            config: Config object containing database configuration.
        """
        self.config = config

    @contextmanager
    def connect(self):
        """Get a database connection with automatic cleanup.

        Yields:
            sqlite3.Connection: Database connection.
        """
        db_path = self.config.db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(db_path, timeout=self.config.db_busy_timeout)
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
        finally:
            conn.close()

    def get_db_path(self):
        """Get the current database path.

        Returns:
            Path: Path to the database file.
        """
        return self.config.db_path

    def get_migrations_dir(self):
        """Get the migrations directory path.

        Returns:
            Path: Path to the migrations directory.
        """
        return get_migrations_dir()


@contextmanager
def transaction(conn: sqlite3.Connection):
    """Run a block of statements as one write transaction.

    BEGIN IMMEDIATE takes SQLite's write lock up front, so reads made inside
    the block see the same state the writes are applied to, and concurrent
    writers queue behind it for the connection's busy timeout.

    Args:
        conn: Open connection with no transaction in progress.

    Yields:
        sqlite3.Connection: The same connection.
    """
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    conn.commit()


@contextmanager
def read_snapshot(conn: sqlite3.Connection):
    """Run a block of reads against one consistent database state.

    A deferred BEGIN takes SQLite's shared lock at the first SELECT and holds
    it until the block ends, so a writer cannot commit between two reads in
    the block. Nothing is written; the transaction is always rolled back.

    Args:
        conn: Open connection with no transaction in progress.

    Yields:
        sqlite3.Connection: The same connection.
    """
    conn.execute("BEGIN")
    try:
        yield conn
    finally:
        conn.rollback()
