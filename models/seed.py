"""Seed and export file format for category trees.

Seed files are YAML: either a list of categories or a mapping with a
``categories`` key. Each category may nest ``children`` to any depth.

    categories:
      - name: Resistors
        description: Fixed and variable resistors
        children:
          - name: Through Hole
          - name: SMD
            custom_fields:
              package: "0603"
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field

from models.category import CategoryNode


class SeedCategory(BaseModel):
    """One category entry in a seed file."""

    name: str = Field(min_length=1)
    description: Optional[str] = None
    is_public: bool = True
    custom_fields: Dict[str, Any] = Field(default_factory=dict)
    children: List["SeedCategory"] = Field(default_factory=list)


SeedCategory.model_rebuild()


class SeedFile(BaseModel):
    categories: List[SeedCategory] = Field(default_factory=list)


def parse_seed(text: str) -> List[SeedCategory]:
    """Parse and validate seed YAML.

    Raises:
        yaml.YAMLError: If the YAML is malformed.
        pydantic.ValidationError: If an entry is missing a name or has the
            wrong shape.
    """
    data = yaml.safe_load(text)
    if data is None:
        return []
    if isinstance(data, list):
        data = {"categories": data}
    return SeedFile.model_validate(data).categories


def load_seed_file(path: Path) -> List[SeedCategory]:
    """Load and validate a seed file from disk.

    Raises:
        FileNotFoundError: If the file doesn't exist.
    """
    if not path.exists():
        raise FileNotFoundError(f"Seed file not found: {path}")

    with open(path, "r") as f:
        return parse_seed(f.read())


def node_to_seed(node: CategoryNode) -> SeedCategory:
    category = node.category
    return SeedCategory(
        name=category.name,
        description=category.description,
        is_public=category.is_public,
        custom_fields=category.custom_fields or {},
        children=[node_to_seed(child) for child in node.children],
    )


def dump_tree(roots: List[CategoryNode]) -> str:
    """Render a category forest in the seed file format."""
    seed = SeedFile(categories=[node_to_seed(root) for root in roots])
    return yaml.safe_dump(
        seed.model_dump(exclude_defaults=True), sort_keys=False, allow_unicode=True
    )
