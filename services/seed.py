"""Create categories from a seed file."""

from dataclasses import dataclass
from typing import List, Optional

from logger import get_logger
from models.seed import SeedCategory
from services.category_paths import build_path, sanitize_label

logger = get_logger()


@dataclass
class SeedResult:
    created: int = 0
    skipped: int = 0

    @property
    def total(self) -> int:
        return self.created + self.skipped


def seed_categories(
    services, seeds: List[SeedCategory], created_by: Optional[str] = None
) -> SeedResult:
    """Create every category in ``seeds`` that does not exist yet.

    Existing categories are matched by path, so seeding is repeatable and
    only fills in what is missing.

    Args:
        services: Services container.
        seeds: Validated seed entries.
        created_by: User recorded on created categories.

    Returns:
        Counts of created and skipped categories.
    """
    result = SeedResult()

    def visit(seed: SeedCategory, parent_id: Optional[str], parent_path: Optional[str]):
        path = build_path(parent_path, sanitize_label(seed.name))
        category = services.categories.find_by_path(path)
        if category is not None:
            logger.info(f"⊘ Skipped '{path}' (already exists)")
            result.skipped += 1
        else:
            category = services.mutator.create(
                seed.name,
                parent_id=parent_id,
                description=seed.description,
                is_public=seed.is_public,
                created_by=created_by,
                custom_fields=seed.custom_fields or None,
            )
            logger.info(f"✓ Created '{category.path}' (ID: {category.id})")
            result.created += 1

        for child in seed.children:
            visit(child, category.id, category.path)

    for seed in seeds:
        visit(seed, None, None)

    return result
