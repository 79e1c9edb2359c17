"""Part/category link service.

Parts are owned by the wider catalog; this table only records which
categories they are filed under, so the category delete guard can tell when
a category is still in use.
"""

import sqlite3
from datetime import datetime, timezone
from typing import List

from services.exceptions import NotFoundError


def has_part_references(conn: sqlite3.Connection, category_id: str) -> bool:
    """Default reference check used when deleting a category."""
    cursor = conn.execute(
        "SELECT 1 FROM part_categories WHERE category_id = ? LIMIT 1",
        (category_id,),
    )
    return cursor.fetchone() is not None


class PartCategoryService:
    """Service for linking catalog parts to categories."""

    def __init__(self, db_manager):
        """Initialize the part category service.

        Args:
            db_manager: Database manager instance for database operations.
        """
        self.db_manager = db_manager

    def attach(self, part_id: str, category_id: str) -> None:
        """File a part under a live category.

        Raises:
            NotFoundError: If the category does not exist or is deleted.
            sqlite3.IntegrityError: If the link is already present.
        """
        with self.db_manager.connect() as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO part_categories (part_id, category_id, created_at)
                    SELECT ?, id, ? FROM categories WHERE id = ? AND is_deleted = 0
                    """,
                    (part_id, datetime.now(timezone.utc).isoformat(), category_id),
                )
            except sqlite3.IntegrityError:
                conn.rollback()
                raise
            if cursor.rowcount == 0:
                conn.rollback()
                raise NotFoundError(category_id)
            conn.commit()

    def detach(self, part_id: str, category_id: str) -> bool:
        """Remove a part from a category.

        Returns:
            True if a link was removed, False if there was none.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "DELETE FROM part_categories WHERE part_id = ? AND category_id = ?",
                (part_id, category_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    def count_for_category(self, category_id: str) -> int:
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "SELECT COUNT(*) FROM part_categories WHERE category_id = ?",
                (category_id,),
            )
            return cursor.fetchone()[0]

    def find_category_ids(self, part_id: str) -> List[str]:
        """Get the ids of every category a part is filed under."""
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "SELECT category_id FROM part_categories WHERE part_id = ? "
                "ORDER BY category_id",
                (part_id,),
            )
            return [row[0] for row in cursor.fetchall()]
