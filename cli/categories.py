#!/usr/bin/env python3

import sys
from pathlib import Path

import yaml
from pydantic import ValidationError

from config import get_default_seed_file
from logger import get_logger
from models.seed import dump_tree, load_seed_file
from services.exceptions import CategoryError
from services.seed import seed_categories

logger = get_logger()


def _parse_fields(pairs):
    """Turn KEY=VALUE arguments into a dict of string values."""
    fields = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Custom field must look like KEY=VALUE: {pair}")
        fields[key] = value
    return fields


def _print_category(category, indent="  "):
    logger.info(f"{indent}ID: {category.id}")
    logger.info(f"{indent}Name: {category.name}")
    logger.info(f"{indent}Path: {category.path}")
    if category.description:
        logger.info(f"{indent}Description: {category.description}")
    if not category.is_public:
        logger.info(f"{indent}Visibility: private")


def _print_node(node, depth=0):
    category = node.category
    marker = "" if category.is_public else " (private)"
    logger.info(f"{'  ' * depth}- {category.name} [{category.path}]{marker}")
    for child in node.children:
        _print_node(child, depth + 1)


def cmd_list(args, services):
    """List categories in path order."""
    filters = {}
    if args.public is not None:
        filters["is_public"] = args.public
    if args.roots:
        filters["parent_id"] = None
    elif args.parent:
        filters["parent_id"] = args.parent
    categories = services.categories.find_all(**filters)

    if not categories:
        logger.info("No categories found.")
        return

    logger.info("\nCategories:")
    logger.info("=" * 80)
    for category in categories:
        _print_category(category, indent="")
        if category.parent_id:
            logger.info(f"Parent ID: {category.parent_id}")
        logger.info("-" * 80)

    logger.info(f"\nTotal categories: {len(categories)}")


def cmd_tree(args, services):
    """Print the whole category tree."""
    roots = services.tree.tree()
    if not roots:
        logger.info("No categories found.")
        return
    for root in roots:
        _print_node(root)


def cmd_show(args, services):
    """Show one category with its breadcrumbs and custom fields."""
    category = services.categories.find(args.category_id)
    if not category:
        logger.error(f"Category with ID {args.category_id} not found.")
        sys.exit(1)

    breadcrumbs = services.tree.breadcrumbs(category.id)
    logger.info(" > ".join(c.name for c in breadcrumbs))
    _print_category(category)
    logger.info(f"  Subcategories: {len(services.tree.children(category.id))}")
    logger.info(f"  Parts: {services.part_categories.count_for_category(category.id)}")

    fields = services.custom_fields.get(category.id)
    if fields:
        logger.info("  Custom fields:")
        for name, value in fields.items():
            logger.info(f"    {name}: {value}")


def cmd_create(args, services):
    """Create a new category."""
    try:
        fields = _parse_fields(args.field)
        category = services.mutator.create(
            args.name,
            parent_id=args.parent,
            description=args.description,
            is_public=not args.private,
            created_by=args.user,
            custom_fields=fields or None,
        )
    except (CategoryError, ValueError) as e:
        logger.error(f"Error creating category: {e}")
        sys.exit(1)

    logger.info(f"\n✓ Category created successfully with ID: {category.id}")
    _print_category(category)


def cmd_rename(args, services):
    """Rename a category; descendant paths follow."""
    try:
        category = services.mutator.rename(
            args.category_id, args.name, updated_by=args.user
        )
    except CategoryError as e:
        logger.error(f"Error renaming category: {e}")
        sys.exit(1)

    logger.info(f"✓ Category renamed: {category.path}")


def cmd_move(args, services):
    """Move a category (and its subtree) under a new parent or to the root."""
    try:
        category = services.mutator.move(
            args.category_id, args.parent, updated_by=args.user
        )
    except CategoryError as e:
        logger.error(f"Error moving category: {e}")
        sys.exit(1)

    logger.info(f"✓ Category moved: {category.path}")


def cmd_delete(args, services):
    """Delete a category by ID."""
    category = services.categories.find(args.category_id)
    if not category:
        logger.error(f"Category with ID {args.category_id} not found.")
        sys.exit(1)

    logger.info("\nCategory to delete:")
    _print_category(category)

    if not args.yes:
        confirm = (
            input("\nAre you sure you want to delete this category? (yes/no): ")
            .strip()
            .lower()
        )
        if confirm != "yes":
            logger.info("Deletion cancelled.")
            return

    try:
        services.mutator.delete(category.id, deleted_by=args.user)
    except CategoryError as e:
        logger.error(f"Error deleting category: {e}")
        sys.exit(1)

    logger.info(f"✓ Category '{category.name}' deleted successfully.")


def cmd_search(args, services):
    """Search categories by name."""
    categories = services.categories.search(args.query, limit=args.limit)
    if not categories:
        logger.info(f"No categories matching '{args.query}'.")
        return
    for category in categories:
        logger.info(f"{category.name} [{category.path}] (ID: {category.id})")


def cmd_check(args, services):
    """Report categories whose path disagrees with their ancestry."""
    violations = services.tree.find_path_violations()
    if not violations:
        logger.info("✓ All category paths are consistent.")
        return

    for violation in violations:
        logger.warning(
            f"{violation.category.id}: stored '{violation.category.path}', "
            f"expected '{violation.expected_path}'"
        )
    logger.info("Run 'python -m cli categories rebuild' to repair them.")
    sys.exit(1)


def cmd_rebuild(args, services):
    """Recompute all category paths from the parent links."""
    try:
        changed = services.mutator.rebuild_paths(updated_by=args.user)
    except CategoryError as e:
        logger.error(f"Error rebuilding paths: {e}")
        sys.exit(1)
    logger.info(f"✓ Rebuilt {changed} category path(s).")


def cmd_seed(args, services):
    """Seed categories from a YAML file."""
    seed_file = Path(args.file) if args.file else (
        services.config.seed_file or get_default_seed_file()
    )

    try:
        seeds = load_seed_file(seed_file)
    except FileNotFoundError as e:
        logger.error(str(e))
        sys.exit(1)
    except (yaml.YAMLError, ValidationError) as e:
        logger.error(f"Error parsing seed file: {e}")
        sys.exit(1)

    logger.info(f"\nSeeding categories from {seed_file}")
    logger.info("=" * 80)

    try:
        result = seed_categories(services, seeds, created_by=args.user)
    except CategoryError as e:
        logger.error(f"Error seeding categories: {e}")
        sys.exit(1)

    logger.info("=" * 80)
    logger.info("\nSeeding complete!")
    logger.info(f"Created: {result.created}")
    logger.info(f"Skipped: {result.skipped}")
    logger.info(f"Total: {result.total}")


def cmd_export(args, services):
    """Export the category tree in the seed file format."""
    roots = services.tree.tree()
    for root in roots:
        for node in root.walk():
            node.category.custom_fields = services.custom_fields.get(node.category.id)

    text = dump_tree(roots)
    if args.file:
        Path(args.file).write_text(text)
        logger.info(f"✓ Exported category tree to {args.file}")
    else:
        print(text, end="")


def setup_parser(subparsers):
    """Setup categories subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "categories",
        help="Manage categories",
        description="Create, move, list and delete part categories",
    )

    categories_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available category commands",
        dest="subcommand",
        required=True,
    )

    # categories list
    list_parser = categories_subparsers.add_parser("list", help="List categories")
    scope = list_parser.add_mutually_exclusive_group()
    scope.add_argument("--parent", help="Only list direct children of this ID")
    scope.add_argument("--roots", action="store_true", help="Only list roots")
    visibility = list_parser.add_mutually_exclusive_group()
    visibility.add_argument(
        "--public", dest="public", action="store_true", default=None
    )
    visibility.add_argument("--private", dest="public", action="store_false")
    list_parser.set_defaults(func=cmd_list)

    # categories tree
    tree_parser = categories_subparsers.add_parser(
        "tree", help="Print the category tree"
    )
    tree_parser.set_defaults(func=cmd_tree)

    # categories show
    show_parser = categories_subparsers.add_parser(
        "show", help="Show a category with its breadcrumbs"
    )
    show_parser.add_argument("category_id", help="ID of the category")
    show_parser.set_defaults(func=cmd_show)

    # categories create
    create_parser = categories_subparsers.add_parser(
        "create", help="Create a new category"
    )
    create_parser.add_argument("name", help="Category name (e.g., Through Hole)")
    create_parser.add_argument("--parent", help="Parent category ID")
    create_parser.add_argument("--description", help="Optional description")
    create_parser.add_argument(
        "--private", action="store_true", help="Create as a private category"
    )
    create_parser.add_argument(
        "--field",
        action="append",
        metavar="KEY=VALUE",
        help="Custom field (repeatable)",
    )
    create_parser.set_defaults(func=cmd_create)

    # categories rename
    rename_parser = categories_subparsers.add_parser(
        "rename", help="Rename a category"
    )
    rename_parser.add_argument("category_id", help="ID of the category")
    rename_parser.add_argument("name", help="New name")
    rename_parser.set_defaults(func=cmd_rename)

    # categories move
    move_parser = categories_subparsers.add_parser(
        "move", help="Move a category under another parent"
    )
    move_parser.add_argument("category_id", help="ID of the category to move")
    move_parser.add_argument(
        "--parent", help="New parent category ID (omit to move to the root)"
    )
    move_parser.set_defaults(func=cmd_move)

    # categories delete
    delete_parser = categories_subparsers.add_parser(
        "delete", help="Delete a category by ID"
    )
    delete_parser.add_argument("category_id", help="ID of the category to delete")
    delete_parser.add_argument(
        "--yes", action="store_true", help="Skip the confirmation prompt"
    )
    delete_parser.set_defaults(func=cmd_delete)

    # categories search
    search_parser = categories_subparsers.add_parser(
        "search", help="Search categories by name"
    )
    search_parser.add_argument("query", help="Text to look for in names")
    search_parser.add_argument("--limit", type=int, default=20)
    search_parser.set_defaults(func=cmd_search)

    # categories check
    check_parser = categories_subparsers.add_parser(
        "check", help="Verify every stored path matches its ancestry"
    )
    check_parser.set_defaults(func=cmd_check)

    # categories rebuild
    rebuild_parser = categories_subparsers.add_parser(
        "rebuild", help="Recompute stored paths from parent links"
    )
    rebuild_parser.set_defaults(func=cmd_rebuild)

    # categories seed
    seed_parser = categories_subparsers.add_parser(
        "seed", help="Seed categories from a YAML file"
    )
    seed_parser.add_argument("--file", help="Seed file (defaults to the bundled one)")
    seed_parser.set_defaults(func=cmd_seed)

    # categories export
    export_parser = categories_subparsers.add_parser(
        "export", help="Export the category tree as YAML"
    )
    export_parser.add_argument("--file", help="Write to this file instead of stdout")
    export_parser.set_defaults(func=cmd_export)
