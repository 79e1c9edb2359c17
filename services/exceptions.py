"""Exceptions raised by the category services."""


class CategoryError(Exception):
    """Base exception for category operations."""

    code = "CATEGORY_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(CategoryError):
    """Raised when an id does not resolve to a live category."""

    code = "NOT_FOUND"

    def __init__(self, category_id: str):
        super().__init__(f"Category with ID {category_id} not found")
        self.category_id = category_id


class InvalidParentError(CategoryError):
    """Raised when a parent category is missing or deleted."""

    code = "INVALID_PARENT"

    def __init__(self, parent_id: str):
        super().__init__(f"Invalid parent category: {parent_id}")
        self.parent_id = parent_id


class DuplicateNameError(CategoryError):
    """Raised when a sibling already uses the same sanitized label."""

    code = "DUPLICATE_NAME"

    def __init__(self, name: str, path: str):
        super().__init__(
            f"Category '{name}' already exists under this parent (path '{path}')"
        )
        self.name = name
        self.path = path


class CircularReferenceError(CategoryError):
    """Raised when a move would make a category its own ancestor."""

    code = "CIRCULAR_REFERENCE"

    def __init__(self, category_id: str, new_parent_id: str):
        super().__init__(
            f"Cannot move category {category_id} under itself or its descendant "
            f"{new_parent_id}"
        )
        self.category_id = category_id
        self.new_parent_id = new_parent_id


class HasChildrenError(CategoryError):
    """Raised when deleting a category that still has child categories."""

    code = "HAS_CHILDREN"

    def __init__(self, category_id: str):
        super().__init__(
            f"Category {category_id} cannot be deleted as it has child categories"
        )
        self.category_id = category_id


class ReferencedExternallyError(CategoryError):
    """Raised when deleting a category that catalog items still reference."""

    code = "REFERENCED_EXTERNALLY"

    def __init__(self, category_id: str):
        super().__init__(
            f"Category {category_id} cannot be deleted as it is referenced by "
            f"existing parts"
        )
        self.category_id = category_id


class InvalidNameError(CategoryError):
    """Raised when a name has no characters usable in a path label."""

    code = "INVALID_NAME"

    def __init__(self, name: str):
        super().__init__(f"Category name '{name}' does not produce a valid label")
        self.name = name
