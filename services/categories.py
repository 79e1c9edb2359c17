"""Category service for database operations.

This is the category store: record CRUD plus the existence and uniqueness
checks that guard it. Structural moves live in services.category_mutator and
read-only tree queries in services.category_tree; both reuse the
connection-level helpers defined here so they can run inside one transaction.
"""

import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from db.manager import transaction
from logger import get_logger
from models.category import Category
from services.category_paths import (
    build_path,
    descendant_range,
    rewrite_descendant_paths,
    sanitize_label,
)
from services.custom_fields import write_fields
from services.exceptions import (
    DuplicateNameError,
    HasChildrenError,
    InvalidNameError,
    InvalidParentError,
    NotFoundError,
    ReferencedExternallyError,
)
from services.part_categories import has_part_references

logger = get_logger()

# Marks "argument not given" where None is itself a meaningful value
UNSET: Any = object()

ReferenceChecker = Callable[[sqlite3.Connection, str], bool]

_CATEGORY_SELECT_FIELDS = """id, name, parent_id, path, description, is_public,
       is_deleted, created_by, created_at, updated_by, updated_at, deleted_by,
       deleted_at"""


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def row_to_category(row) -> Category:
    """Map a categories row (selected with _CATEGORY_SELECT_FIELDS) to a Category."""
    return Category(
        id=row[0],
        name=row[1],
        parent_id=row[2],
        path=row[3],
        description=row[4],
        is_public=bool(row[5]),
        is_deleted=bool(row[6]),
        created_by=row[7],
        created_at=row[8],
        updated_by=row[9],
        updated_at=row[10],
        deleted_by=row[11],
        deleted_at=row[12],
    )


def select_category(
    conn: sqlite3.Connection, category_id: str, include_deleted: bool = False
) -> Optional[Category]:
    query = f"SELECT {_CATEGORY_SELECT_FIELDS} FROM categories WHERE id = ?"
    if not include_deleted:
        query += " AND is_deleted = 0"
    row = conn.execute(query, (category_id,)).fetchone()
    return row_to_category(row) if row else None


def select_by_path(conn: sqlite3.Connection, path: str) -> Optional[Category]:
    row = conn.execute(
        f"SELECT {_CATEGORY_SELECT_FIELDS} FROM categories "
        "WHERE path = ? AND is_deleted = 0",
        (path,),
    ).fetchone()
    return row_to_category(row) if row else None


def select_by_paths(conn: sqlite3.Connection, paths: List[str]) -> List[Category]:
    """Live categories whose path is one of ``paths``, ordered by path."""
    if not paths:
        return []
    placeholders = ", ".join("?" * len(paths))
    cursor = conn.execute(
        f"SELECT {_CATEGORY_SELECT_FIELDS} FROM categories "
        f"WHERE is_deleted = 0 AND path IN ({placeholders}) ORDER BY path",
        paths,
    )
    return [row_to_category(row) for row in cursor.fetchall()]


def select_descendants(conn: sqlite3.Connection, path: str) -> List[Category]:
    """Every live category strictly below ``path``, in pre-order."""
    lower, upper = descendant_range(path)
    cursor = conn.execute(
        f"SELECT {_CATEGORY_SELECT_FIELDS} FROM categories "
        "WHERE is_deleted = 0 AND path >= ? AND path < ? ORDER BY path",
        (lower, upper),
    )
    return [row_to_category(row) for row in cursor.fetchall()]


def select_live_categories(conn: sqlite3.Connection) -> List[Category]:
    """Every live category, parents before children."""
    cursor = conn.execute(
        f"SELECT {_CATEGORY_SELECT_FIELDS} FROM categories "
        "WHERE is_deleted = 0 ORDER BY path, id"
    )
    return [row_to_category(row) for row in cursor.fetchall()]


def has_live_children(conn: sqlite3.Connection, category_id: str) -> bool:
    cursor = conn.execute(
        "SELECT 1 FROM categories WHERE parent_id = ? AND is_deleted = 0 LIMIT 1",
        (category_id,),
    )
    return cursor.fetchone() is not None


def is_path_conflict(error: sqlite3.IntegrityError) -> bool:
    """True if an IntegrityError came from the live path unique index."""
    return "categories.path" in str(error)


class CategoryService:
    """Service for managing category records.

    Args:
        db_manager: Database manager instance for database operations.
        reference_checker: Optional callable ``(conn, category_id) -> bool``
            telling whether anything outside the tree still uses a category.
            Defaults to looking for part links.
    """

    def __init__(self, db_manager, reference_checker: Optional[ReferenceChecker] = None):
        self.db_manager = db_manager
        self.reference_checker = reference_checker or has_part_references

    def find_all(
        self,
        is_public: Optional[bool] = None,
        created_by: Optional[str] = None,
        parent_id: Optional[str] = UNSET,
        include_deleted: bool = False,
    ) -> List[Category]:
        """Get categories, optionally filtered.

        Args:
            is_public: Only return public (True) or private (False) categories.
            created_by: Only return categories created by this user.
            parent_id: Only return direct children of this category; pass None
                for root categories. Omit to skip the parent filter.
            include_deleted: Also return soft-deleted categories.

        Returns:
            List of Category objects ordered by path, so parents always come
            before their children.
        """
        clauses = []
        params: List[Any] = []
        if not include_deleted:
            clauses.append("is_deleted = 0")
        if is_public is not None:
            clauses.append("is_public = ?")
            params.append(int(is_public))
        if created_by is not None:
            clauses.append("created_by = ?")
            params.append(created_by)
        if parent_id is None:
            clauses.append("parent_id IS NULL")
        elif parent_id is not UNSET:
            clauses.append("parent_id = ?")
            params.append(parent_id)

        query = f"SELECT {_CATEGORY_SELECT_FIELDS} FROM categories"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY path, id"

        with self.db_manager.connect() as conn:
            cursor = conn.execute(query, params)
            return [row_to_category(row) for row in cursor.fetchall()]

    list_all = find_all

    def find(self, category_id: str) -> Optional[Category]:
        """Get a single live category by ID.

        Args:
            category_id: The category ID to find.

        Returns:
            Category object if found, None otherwise.
        """
        with self.db_manager.connect() as conn:
            return select_category(conn, category_id)

    get = find

    def find_by_path(self, path: str) -> Optional[Category]:
        """Get a single live category by its materialized path."""
        with self.db_manager.connect() as conn:
            return select_by_path(conn, path)

    def search(
        self,
        query: str,
        is_public: Optional[bool] = None,
        created_by: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Category]:
        """Find live categories whose name contains ``query`` (case-insensitive).

        Returns:
            Matching categories ordered by name.
        """
        escaped = (
            query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        )
        clauses = ["is_deleted = 0", "name LIKE ? ESCAPE '\\'"]
        params: List[Any] = [f"%{escaped}%"]
        if is_public is not None:
            clauses.append("is_public = ?")
            params.append(int(is_public))
        if created_by is not None:
            clauses.append("created_by = ?")
            params.append(created_by)
        params.extend([limit, offset])

        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_CATEGORY_SELECT_FIELDS} FROM categories "
                f"WHERE {' AND '.join(clauses)} ORDER BY name, path LIMIT ? OFFSET ?",
                params,
            )
            return [row_to_category(row) for row in cursor.fetchall()]

    def has_children(self, category_id: str) -> bool:
        with self.db_manager.connect() as conn:
            return has_live_children(conn, category_id)

    def is_referenced(self, category_id: str) -> bool:
        with self.db_manager.connect() as conn:
            return self.reference_checker(conn, category_id)

    def create(
        self,
        name: str,
        parent_id: Optional[str] = None,
        description: Optional[str] = None,
        is_public: bool = True,
        created_by: Optional[str] = None,
        custom_fields: Optional[Dict[str, Any]] = None,
    ) -> Category:
        """Create a new category.

        Args:
            name: Category name; its sanitized label must be unique among
                its siblings.
            parent_id: Optional parent category ID.
            description: Optional description of the category.
            is_public: Whether the category is public.
            created_by: User creating the category.
            custom_fields: Optional custom field values, stored in the same
                transaction.

        Returns:
            The created Category object with id and path populated.

        Raises:
            InvalidNameError: If the name sanitizes to an empty label.
            InvalidParentError: If parent_id does not resolve to a live category.
            DuplicateNameError: If a sibling already has the same label.
        """
        label = sanitize_label(name)
        if not label:
            raise InvalidNameError(name)

        with self.db_manager.connect() as conn:
            with transaction(conn):
                parent_path = None
                if parent_id is not None:
                    parent = select_category(conn, parent_id)
                    if parent is None:
                        logger.warning(f"Rejected create of '{name}': bad parent {parent_id}")
                        raise InvalidParentError(parent_id)
                    parent_path = parent.path

                path = build_path(parent_path, label)
                if select_by_path(conn, path) is not None:
                    raise DuplicateNameError(name, path)

                now = utcnow()
                category = Category(
                    id=str(uuid.uuid4()),
                    name=name,
                    path=path,
                    parent_id=parent_id,
                    description=description,
                    is_public=is_public,
                    created_by=created_by,
                    created_at=now,
                    updated_by=created_by,
                    updated_at=now,
                )
                try:
                    conn.execute(
                        """
                        INSERT INTO categories (id, name, parent_id, path, description,
                            is_public, created_by, created_at, updated_by, updated_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            category.id,
                            category.name,
                            category.parent_id,
                            category.path,
                            category.description,
                            int(category.is_public),
                            category.created_by,
                            category.created_at,
                            category.updated_by,
                            category.updated_at,
                        ),
                    )
                except sqlite3.IntegrityError as e:
                    if is_path_conflict(e):
                        raise DuplicateNameError(name, path) from e
                    raise

                if custom_fields:
                    write_fields(conn, category.id, custom_fields, created_by)
                    category.custom_fields = {
                        k: v for k, v in custom_fields.items() if v is not None
                    }

        logger.info(f"Created category '{category.name}' at {category.path}")
        return category

    def update(
        self,
        category_id: str,
        name: Optional[str] = None,
        description: Optional[str] = UNSET,
        is_public: Optional[bool] = None,
        updated_by: Optional[str] = None,
    ) -> Category:
        """Update an existing category.

        A name change recomputes the path from the current parent path and
        rewrites the paths of every descendant in the same transaction.

        Args:
            category_id: The category ID to update.
            name: New name, or None to keep the current one.
            description: New description (None clears it); omit to keep it.
            is_public: New visibility, or None to keep it.
            updated_by: User making the change.

        Returns:
            The updated Category object.

        Raises:
            NotFoundError: If the category does not exist.
            InvalidNameError: If the new name sanitizes to an empty label.
            DuplicateNameError: If a sibling already uses the new label.
        """
        with self.db_manager.connect() as conn:
            with transaction(conn):
                existing = select_category(conn, category_id)
                if existing is None:
                    raise NotFoundError(category_id)

                assignments: Dict[str, Any] = {}
                new_path = existing.path
                if name is not None and name != existing.name:
                    new_path = self._renamed_path(conn, existing, name)
                    assignments["name"] = name
                    assignments["path"] = new_path
                if description is not UNSET and description != existing.description:
                    assignments["description"] = description
                if is_public is not None and is_public != existing.is_public:
                    assignments["is_public"] = int(is_public)

                if not assignments:
                    return existing

                assignments["updated_by"] = updated_by
                assignments["updated_at"] = utcnow()
                set_clause = ", ".join(f"{column} = ?" for column in assignments)
                try:
                    conn.execute(
                        f"UPDATE categories SET {set_clause} WHERE id = ?",
                        (*assignments.values(), category_id),
                    )
                except sqlite3.IntegrityError as e:
                    if is_path_conflict(e):
                        raise DuplicateNameError(name, new_path) from e
                    raise
                rewritten = rewrite_descendant_paths(conn, existing.path, new_path)
                updated = select_category(conn, category_id)

        if new_path != existing.path:
            logger.info(
                f"Renamed category {category_id}: {existing.path} -> {new_path} "
                f"({rewritten} descendant path(s) rewritten)"
            )
        return updated

    def _renamed_path(self, conn: sqlite3.Connection, existing: Category, name: str) -> str:
        label = sanitize_label(name)
        if not label:
            raise InvalidNameError(name)

        parent_path = None
        if existing.parent_id is not None:
            parent = select_category(conn, existing.parent_id)
            if parent is None:
                raise InvalidParentError(existing.parent_id)
            parent_path = parent.path

        new_path = build_path(parent_path, label)
        clash = select_by_path(conn, new_path)
        if clash is not None and clash.id != existing.id:
            raise DuplicateNameError(name, new_path)
        return new_path

    def delete(self, category_id: str, deleted_by: Optional[str] = None) -> None:
        """Soft-delete a category.

        The row stays in the table with is_deleted set and drops out of every
        query. Descendants are never removed implicitly.

        Args:
            category_id: The category ID to delete.
            deleted_by: User deleting the category.

        Raises:
            NotFoundError: If the category does not exist.
            HasChildrenError: If any live category has it as parent.
            ReferencedExternallyError: If parts are still filed under it.
        """
        with self.db_manager.connect() as conn:
            with transaction(conn):
                existing = select_category(conn, category_id)
                if existing is None:
                    raise NotFoundError(category_id)
                if has_live_children(conn, category_id):
                    logger.warning(f"Refused to delete {existing.path}: has children")
                    raise HasChildrenError(category_id)
                if self.reference_checker(conn, category_id):
                    logger.warning(f"Refused to delete {existing.path}: still referenced")
                    raise ReferencedExternallyError(category_id)

                now = utcnow()
                conn.execute(
                    """
                    UPDATE categories
                    SET is_deleted = 1, deleted_at = ?, deleted_by = ?,
                        updated_at = ?, updated_by = ?
                    WHERE id = ? AND is_deleted = 0
                    """,
                    (now, deleted_by, now, deleted_by, category_id),
                )

        logger.info(f"Deleted category '{existing.name}' ({existing.path})")
