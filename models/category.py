"""Category model for the parts catalog hierarchy."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from services.category_paths import SEPARATOR, path_depth


@dataclass
class Category:
    """Represents a node in the category tree.

    Attributes:
        id: Opaque unique identifier (UUID string), assigned at creation.
        name: Human-readable name.
        path: Materialized path, the dot-joined sanitized labels from the root
            down to this node.
        parent_id: Optional parent category ID, None for a root.
        description: Optional description of what belongs in this category.
        is_public: Whether the category is visible to everyone.
        is_deleted: Set once the category has been soft-deleted.
        custom_fields: Custom field values, only populated when loaded
            explicitly from the custom field service.
    """

    id: str
    name: str
    path: str
    parent_id: Optional[str] = None
    description: Optional[str] = None
    is_public: bool = True
    is_deleted: bool = False
    created_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_by: Optional[str] = None
    updated_at: Optional[str] = None
    deleted_by: Optional[str] = None
    deleted_at: Optional[str] = None
    custom_fields: Optional[Dict[str, Any]] = None

    @property
    def label(self) -> str:
        """Last segment of the path."""
        return self.path.rsplit(SEPARATOR, 1)[-1]

    @property
    def depth(self) -> int:
        """Number of path segments; roots have depth 1."""
        return path_depth(self.path)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def to_dict(self) -> dict:
        """Convert category to a plain dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "path": self.path,
            "parent_id": self.parent_id,
            "description": self.description,
            "is_public": self.is_public,
        }


@dataclass
class CategoryNode:
    """A category together with its child nodes, as assembled by the tree view."""

    category: Category
    children: List["CategoryNode"] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = self.category.to_dict()
        data["children"] = [child.to_dict() for child in self.children]
        return data

    def walk(self):
        """Yield this node and every node below it in pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class PathViolation:
    """A live category whose stored path does not match its ancestry."""

    category: Category
    expected_path: str
