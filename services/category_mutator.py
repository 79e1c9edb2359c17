"""Structural changes to the category tree.

Every operation here is a single write transaction. Validation reads are made
on the same connection after BEGIN IMMEDIATE, so no other writer can move a
node between the checks and the writes.
"""

import sqlite3
from typing import Any, Dict, Optional

from db.manager import transaction
from logger import get_logger
from models.category import Category
from services.categories import (
    CategoryService,
    is_path_conflict,
    select_by_path,
    select_category,
    utcnow,
)
from services.category_paths import (
    build_path,
    is_descendant_path,
    rewrite_descendant_paths,
    sanitize_label,
)
from services.category_tree import collect_path_violations
from services.exceptions import (
    CircularReferenceError,
    DuplicateNameError,
    InvalidParentError,
    NotFoundError,
)

logger = get_logger()


class CategoryMutator:
    """Creates, renames, moves and deletes categories.

    Args:
        db_manager: Database manager instance for database operations.
        categories: Category store.
    """

    def __init__(self, db_manager, categories: CategoryService):
        self.db_manager = db_manager
        self.categories = categories

    def create(
        self,
        name: str,
        parent_id: Optional[str] = None,
        description: Optional[str] = None,
        is_public: bool = True,
        created_by: Optional[str] = None,
        custom_fields: Optional[Dict[str, Any]] = None,
    ) -> Category:
        """Create a category under an optional parent. See CategoryService.create."""
        return self.categories.create(
            name,
            parent_id=parent_id,
            description=description,
            is_public=is_public,
            created_by=created_by,
            custom_fields=custom_fields,
        )

    def rename(
        self, category_id: str, new_name: str, updated_by: Optional[str] = None
    ) -> Category:
        """Rename a category, rewriting its path and its descendants' paths."""
        return self.categories.update(category_id, name=new_name, updated_by=updated_by)

    def move(
        self,
        category_id: str,
        new_parent_id: Optional[str],
        updated_by: Optional[str] = None,
    ) -> Category:
        """Move a category and its whole subtree under a new parent.

        Args:
            category_id: The category to move.
            new_parent_id: The new parent, or None to make it a root.
            updated_by: User making the change.

        Returns:
            The moved category with its new path.

        Raises:
            NotFoundError: If the category does not exist.
            InvalidParentError: If the new parent is missing or deleted.
            CircularReferenceError: If the new parent is the category itself
                or one of its descendants.
            DuplicateNameError: If the new parent already has a child with
                the same label.
        """
        with self.db_manager.connect() as conn:
            with transaction(conn):
                category = select_category(conn, category_id)
                if category is None:
                    raise NotFoundError(category_id)

                parent_path = None
                if new_parent_id is not None:
                    if new_parent_id == category_id:
                        raise CircularReferenceError(category_id, new_parent_id)
                    parent = select_category(conn, new_parent_id)
                    if parent is None:
                        raise InvalidParentError(new_parent_id)
                    if is_descendant_path(category.path, parent.path):
                        logger.warning(
                            f"Rejected move of {category.path} under its descendant "
                            f"{parent.path}"
                        )
                        raise CircularReferenceError(category_id, new_parent_id)
                    parent_path = parent.path

                old_path = category.path
                new_path = build_path(parent_path, sanitize_label(category.name))
                clash = select_by_path(conn, new_path)
                if clash is not None and clash.id != category_id:
                    raise DuplicateNameError(category.name, new_path)

                try:
                    conn.execute(
                        """
                        UPDATE categories
                        SET parent_id = ?, path = ?, updated_by = ?, updated_at = ?
                        WHERE id = ?
                        """,
                        (new_parent_id, new_path, updated_by, utcnow(), category_id),
                    )
                except sqlite3.IntegrityError as e:
                    if is_path_conflict(e):
                        raise DuplicateNameError(category.name, new_path) from e
                    raise
                rewritten = rewrite_descendant_paths(conn, old_path, new_path)
                moved = select_category(conn, category_id)

        logger.info(
            f"Moved category {category_id}: {old_path} -> {new_path} "
            f"({rewritten} descendant path(s) rewritten)"
        )
        return moved

    def delete(self, category_id: str, deleted_by: Optional[str] = None) -> None:
        """Delete a leaf category that nothing references. See CategoryService.delete."""
        self.categories.delete(category_id, deleted_by=deleted_by)

    def rebuild_paths(self, updated_by: Optional[str] = None) -> int:
        """Recompute every live path from names and parent links.

        Repairs data that was written without going through this service.
        The scan and the repair run in one write transaction, so no other
        writer can change the tree in between.

        Returns:
            Number of categories whose path changed.

        Raises:
            DuplicateNameError: If two live categories derive the same path.
        """
        with self.db_manager.connect() as conn:
            with transaction(conn):
                violations = collect_path_violations(conn)
                if not violations:
                    return 0
                now = utcnow()
                # Park every affected row on a unique placeholder first
                for violation in violations:
                    conn.execute(
                        "UPDATE categories SET path = ? WHERE id = ?",
                        (f"#rebuild#{violation.category.id}", violation.category.id),
                    )
                for violation in violations:
                    try:
                        conn.execute(
                            "UPDATE categories SET path = ?, updated_by = ?, "
                            "updated_at = ? WHERE id = ?",
                            (violation.expected_path, updated_by, now, violation.category.id),
                        )
                    except sqlite3.IntegrityError as e:
                        if is_path_conflict(e):
                            raise DuplicateNameError(
                                violation.category.name, violation.expected_path
                            ) from e
                        raise

        logger.info(f"Rebuilt {len(violations)} category path(s)")
        return len(violations)
