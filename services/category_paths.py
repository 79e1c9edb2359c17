"""Materialized path helpers for the category tree.

A category's path is the dot-joined chain of sanitized labels from the root
down to the category, e.g. ``resistors.through_hole``. Labels only ever contain
``[a-z0-9_]``, so ``.`` is unambiguous as a separator and every descendant of
``p`` sorts inside the half-open range ``[p + ".", p + "/")``.
"""

import re
import sqlite3
from typing import List, Optional, Tuple

MAX_LABEL_LENGTH = 255
SEPARATOR = "."

_INVALID_LABEL_CHARS = re.compile(r"[^A-Za-z0-9_]")
_UNDERSCORE_RUNS = re.compile(r"_+")


def sanitize_label(name: str) -> str:
    """Convert a human-entered name into a path-safe label.

    Invalid characters become underscores, runs of underscores collapse into
    one, and the result is lowercased and truncated to 255 characters. The
    result may be empty; callers must reject that before persisting.

    Args:
        name: Category name as entered.

    Returns:
        Sanitized label.
    """
    label = _INVALID_LABEL_CHARS.sub("_", name)
    label = _UNDERSCORE_RUNS.sub("_", label)
    return label.lower()[:MAX_LABEL_LENGTH]


def build_path(parent_path: Optional[str], label: str) -> str:
    """Compute a node's path from its parent's path and its own label.

    Args:
        parent_path: Path of the parent, or None for a root.
        label: Sanitized label of the node.

    Returns:
        The materialized path.
    """
    if not parent_path:
        return label
    return f"{parent_path}{SEPARATOR}{label}"


def is_descendant_path(ancestor_path: str, candidate_path: str) -> bool:
    """True if candidate_path lies strictly below ancestor_path."""
    return candidate_path.startswith(ancestor_path + SEPARATOR)


def descendant_range(path: str) -> Tuple[str, str]:
    """Bounds of the half-open string range holding every descendant path.

    '/' is the code point right after '.', and neither appears inside a label.
    """
    return path + SEPARATOR, path + "/"


def path_depth(path: str) -> int:
    """Number of labels in a path; roots have depth 1."""
    return path.count(SEPARATOR) + 1


def ancestor_paths(path: str) -> List[str]:
    """Every proper ancestor path of ``path``, root first."""
    segments = path.split(SEPARATOR)
    return [SEPARATOR.join(segments[:i]) for i in range(1, len(segments))]


def rewrite_descendant_paths(
    conn: sqlite3.Connection, old_path: str, new_path: str
) -> int:
    """Replace the old_path prefix of every live descendant with new_path.

    A single statement rewrites the whole subtree. Intermediate labels are
    copied as they are, never recomputed from names. Must run inside the
    caller's transaction, together with the update of the subtree root.

    Args:
        conn: Connection with an open write transaction.
        old_path: Path of the subtree root before the change.
        new_path: Path of the subtree root after the change.

    Returns:
        Number of descendant rows rewritten.
    """
    if old_path == new_path:
        return 0

    lower, upper = descendant_range(old_path)
    cursor = conn.execute(
        """
        UPDATE categories
        SET path = ? || substr(path, ?)
        WHERE is_deleted = 0 AND path >= ? AND path < ?
        """,
        (new_path, len(old_path) + 1, lower, upper),
    )
    return cursor.rowcount
