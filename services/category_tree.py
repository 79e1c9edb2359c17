"""Read-only queries over the category tree.

Every query here is answered from materialized paths: descendants are a
prefix range over ``path`` and ancestors are the proper prefixes of it.
"""

import sqlite3
from typing import Dict, List, Optional

from db.manager import read_snapshot
from logger import get_logger
from models.category import Category, CategoryNode, PathViolation
from services.categories import (
    CategoryService,
    select_by_paths,
    select_category,
    select_descendants,
    select_live_categories,
)
from services.category_paths import (
    ancestor_paths,
    build_path,
    is_descendant_path,
    sanitize_label,
)
from services.exceptions import NotFoundError

logger = get_logger()


class CategoryTreeService:
    """Service for navigating the category hierarchy."""

    def __init__(self, db_manager, categories: CategoryService):
        """Initialize the tree service.

        Args:
            db_manager: Database manager instance for database operations.
            categories: Category store used for full listings.
        """
        self.db_manager = db_manager
        self.categories = categories

    def children(self, category_id: str) -> List[Category]:
        """Get every live descendant of a category, at any depth.

        Args:
            category_id: The category whose subtree to list.

        Returns:
            Descendants in path order, excluding the category itself.

        Raises:
            NotFoundError: If the category does not exist.
        """
        with self.db_manager.connect() as conn:
            with read_snapshot(conn):
                category = select_category(conn, category_id)
                if category is None:
                    raise NotFoundError(category_id)
                return select_descendants(conn, category.path)

    def direct_children(self, category_id: str) -> List[Category]:
        """Get only the immediate children of a category."""
        return self.categories.find_all(parent_id=category_id)

    def is_descendant(self, ancestor_id: str, candidate_id: str) -> bool:
        """Check whether candidate lies strictly below ancestor.

        A category is never its own descendant. Unknown ids are not
        descendants of anything.
        """
        if ancestor_id == candidate_id:
            return False
        with self.db_manager.connect() as conn:
            with read_snapshot(conn):
                ancestor = select_category(conn, ancestor_id)
                candidate = select_category(conn, candidate_id)
        if ancestor is None or candidate is None:
            return False
        return is_descendant_path(ancestor.path, candidate.path)

    def breadcrumbs(self, category_id: str) -> List[Category]:
        """Get the ancestors of a category followed by the category itself.

        Args:
            category_id: The category to build breadcrumbs for.

        Returns:
            Categories ordered root first, ending with the category.

        Raises:
            NotFoundError: If the category does not exist.
        """
        with self.db_manager.connect() as conn:
            with read_snapshot(conn):
                category = select_category(conn, category_id)
                if category is None:
                    raise NotFoundError(category_id)
                ancestors = select_by_paths(conn, ancestor_paths(category.path))

        # Path order and depth order agree along a single ancestor chain
        return ancestors + [category]

    def tree(self, is_public: Optional[bool] = None) -> List[CategoryNode]:
        """Assemble all live categories into a forest.

        Args:
            is_public: Optional visibility filter applied before assembly.

        Returns:
            Root nodes, each holding its children recursively, in path order.
        """
        categories = self.categories.find_all(is_public=is_public)

        # First pass: one node per category
        nodes: Dict[str, CategoryNode] = {
            category.id: CategoryNode(category) for category in categories
        }

        # Second pass: link each node to its parent
        roots: List[CategoryNode] = []
        for category in categories:
            node = nodes[category.id]
            if category.parent_id is None:
                roots.append(node)
                continue
            parent = nodes.get(category.parent_id)
            if parent is None:
                logger.warning(
                    f"Category {category.path} has no visible parent; "
                    f"listing it as a root"
                )
                roots.append(node)
            else:
                parent.children.append(node)

        return roots

    def find_path_violations(self) -> List[PathViolation]:
        """Find live categories whose stored path disagrees with their ancestry."""
        with self.db_manager.connect() as conn:
            with read_snapshot(conn):
                return collect_path_violations(conn)


def collect_path_violations(conn: sqlite3.Connection) -> List[PathViolation]:
    """Compare every live category's stored path with the derived one.

    Expected paths are derived top-down from names and parent links, so a
    broken ancestor makes its whole subtree show up here. Callers that repair
    the result must run this inside the same transaction as the repair.

    Args:
        conn: Connection inside a read snapshot or write transaction.

    Returns:
        One PathViolation per category whose path is wrong, in path order.
    """
    categories = select_live_categories(conn)
    by_id = {category.id: category for category in categories}
    expected: Dict[str, str] = {}

    def expected_path(category: Category) -> str:
        if category.id in expected:
            return expected[category.id]
        # Walk up to the nearest resolved ancestor
        chain = [category]
        seen = {category.id}
        parent_id = category.parent_id
        while parent_id is not None and parent_id not in expected:
            parent = by_id.get(parent_id)
            if parent is None or parent.id in seen:
                break
            seen.add(parent.id)
            chain.append(parent)
            parent_id = parent.parent_id
        parent_path = expected.get(parent_id) if parent_id is not None else None
        for node in reversed(chain):
            parent_path = build_path(parent_path, sanitize_label(node.name))
            expected[node.id] = parent_path
        return expected[category.id]

    violations = []
    for category in categories:
        wanted = expected_path(category)
        if wanted != category.path:
            violations.append(PathViolation(category=category, expected_path=wanted))

    if violations:
        logger.warning(f"Found {len(violations)} category path violation(s)")
    return violations
