"""Custom field service for per-category key/value data."""

import json
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from db.manager import transaction
from logger import get_logger
from services.exceptions import NotFoundError

logger = get_logger()


def _data_type(value: Any) -> str:
    # bool first, it is a subclass of int
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "text"
    return "json"


def write_fields(
    conn: sqlite3.Connection,
    category_id: str,
    fields: Dict[str, Any],
    created_by: Optional[str],
) -> int:
    """Insert custom fields for a category on an open connection.

    None values are skipped. Values are stored as JSON text.

    Returns:
        Number of fields written.
    """
    now = datetime.now(timezone.utc).isoformat()
    rows = [
        (category_id, name, json.dumps(value), _data_type(value), created_by, now)
        for name, value in fields.items()
        if value is not None
    ]
    conn.executemany(
        """
        INSERT INTO category_custom_fields
            (category_id, field_name, field_value, data_type, created_by, created_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        rows,
    )
    return len(rows)


def _ensure_live(conn: sqlite3.Connection, category_id: str) -> None:
    cursor = conn.execute(
        "SELECT 1 FROM categories WHERE id = ? AND is_deleted = 0", (category_id,)
    )
    if cursor.fetchone() is None:
        raise NotFoundError(category_id)


class CustomFieldService:
    """Service for reading and replacing a category's custom fields.

    The tree engine treats these values as opaque; this service only stores
    them against the category id.
    """

    def __init__(self, db_manager):
        """Initialize the custom field service.

        Args:
            db_manager: Database manager instance for database operations.
        """
        self.db_manager = db_manager

    def get(self, category_id: str) -> Dict[str, Any]:
        """Get all custom fields of a category.

        Args:
            category_id: The category ID.

        Returns:
            Mapping of field name to decoded value.

        Raises:
            NotFoundError: If the category does not exist.
        """
        with self.db_manager.connect() as conn:
            _ensure_live(conn, category_id)
            cursor = conn.execute(
                "SELECT field_name, field_value FROM category_custom_fields "
                "WHERE category_id = ? ORDER BY field_name",
                (category_id,),
            )
            return {name: json.loads(value) for name, value in cursor.fetchall()}

    def set(
        self,
        category_id: str,
        fields: Dict[str, Any],
        updated_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Replace all custom fields of a category.

        Args:
            category_id: The category ID.
            fields: New field values; None values are dropped.
            updated_by: User making the change.

        Returns:
            The stored fields.

        Raises:
            NotFoundError: If the category does not exist.
        """
        with self.db_manager.connect() as conn:
            with transaction(conn):
                _ensure_live(conn, category_id)
                conn.execute(
                    "DELETE FROM category_custom_fields WHERE category_id = ?",
                    (category_id,),
                )
                count = write_fields(conn, category_id, fields, updated_by)
                conn.execute(
                    "UPDATE categories SET updated_by = ?, updated_at = ? WHERE id = ?",
                    (
                        updated_by,
                        datetime.now(timezone.utc).isoformat(),
                        category_id,
                    ),
                )

        logger.info(f"Stored {count} custom field(s) for category {category_id}")
        return {name: value for name, value in fields.items() if value is not None}
