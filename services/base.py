"""Base services container for dependency injection."""

from config import Config
from db.manager import DatabaseManager


class Services:
    """Container for all application services.

    This class provides a centralized way to access all services and makes
    it easy to inject mock services for testing.

    Args:
        config: Application configuration object.
        db_manager: Optional database manager for testing. If provided, config is ignored.
        reference_checker: Optional override for the "is this category still
            used" check run before deletes.
    """

    def __init__(self, config: Config, db_manager=None, reference_checker=None):
        self.config = config
        self.db_manager = db_manager or DatabaseManager(config)

        # Lazy import to avoid circular dependencies
        from services.categories import CategoryService
        from services.category_tree import CategoryTreeService
        from services.category_mutator import CategoryMutator
        from services.custom_fields import CustomFieldService
        from services.part_categories import PartCategoryService

        self.categories = CategoryService(
            self.db_manager, reference_checker=reference_checker
        )
        self.tree = CategoryTreeService(self.db_manager, self.categories)
        self.mutator = CategoryMutator(self.db_manager, self.categories)
        self.custom_fields = CustomFieldService(self.db_manager)
        self.part_categories = PartCategoryService(self.db_manager)
