import sqlite3
import uuid

import pytest

from services.exceptions import (
    DuplicateNameError,
    HasChildrenError,
    InvalidNameError,
    InvalidParentError,
    NotFoundError,
    ReferencedExternallyError,
)
from services.base import Services
from tests.helpers import assert_path_invariant


class TestCategoryService:
    """Tests for CategoryService."""

    def test_create_category_simple(self, services):
        """Test creating a root category."""
        category = services.categories.create(
            "Resistors", description="Fixed resistors", created_by="alice"
        )

        assert uuid.UUID(category.id)
        assert category.name == "Resistors"
        assert category.path == "resistors"
        assert category.parent_id is None
        assert category.description == "Fixed resistors"
        assert category.is_public is True
        assert category.created_by == "alice"
        assert category.created_at is not None

    def test_create_category_with_parent(self, services):
        """Test that a child's path extends its parent's path."""
        parent = services.categories.create("Resistors")
        child = services.categories.create("Through Hole", parent_id=parent.id)

        assert child.parent_id == parent.id
        assert child.path == "resistors.through_hole"

    def test_create_private_category(self, services):
        category = services.categories.create("Internal", is_public=False)

        found = services.categories.find(category.id)
        assert found.is_public is False

    def test_create_with_missing_parent_raises(self, services):
        """Test that an unknown parent is rejected."""
        with pytest.raises(InvalidParentError):
            services.categories.create("Orphan", parent_id="no-such-id")

        assert services.categories.find_all() == []

    def test_create_with_deleted_parent_raises(self, services):
        """Test that a soft-deleted parent is rejected."""
        parent = services.categories.create("Obsolete")
        services.categories.delete(parent.id)

        with pytest.raises(InvalidParentError):
            services.categories.create("Child", parent_id=parent.id)

    def test_create_duplicate_sibling_raises(self, services):
        """Test that siblings may not share a sanitized label."""
        parent = services.categories.create("Resistors")
        services.categories.create("Through Hole", parent_id=parent.id)

        with pytest.raises(DuplicateNameError):
            services.categories.create("through-hole", parent_id=parent.id)

    def test_create_duplicate_root_raises(self, services):
        services.categories.create("Resistors")

        with pytest.raises(DuplicateNameError):
            services.categories.create("RESISTORS")

    def test_same_name_under_different_parents(self, services):
        """Test that the same name is fine under different parents."""
        a = services.categories.create("Resistors")
        b = services.categories.create("Capacitors")

        smd_a = services.categories.create("SMD", parent_id=a.id)
        smd_b = services.categories.create("SMD", parent_id=b.id)

        assert smd_a.path == "resistors.smd"
        assert smd_b.path == "capacitors.smd"

    def test_create_name_without_label_raises(self, services):
        with pytest.raises(InvalidNameError):
            services.categories.create("")

    def test_create_with_custom_fields(self, services):
        """Test that custom fields are stored with the category."""
        category = services.categories.create(
            "SMD", custom_fields={"package": "0603", "tolerance": 0.01, "gone": None}
        )

        assert category.custom_fields == {"package": "0603", "tolerance": 0.01}
        assert services.custom_fields.get(category.id) == {
            "package": "0603",
            "tolerance": 0.01,
        }

    def test_find_category_by_id(self, services):
        created = services.categories.create(
            "Transistors", description="Discrete transistors"
        )

        found = services.categories.find(created.id)

        assert found == created

    def test_get_is_find(self, services):
        created = services.categories.create("Diodes")

        assert services.categories.get(created.id) == created

    def test_find_category_by_id_not_found(self, services):
        """Test finding a non-existent category returns None."""
        assert services.categories.find("missing") is None

    def test_find_by_path(self, services):
        parent = services.categories.create("Resistors")
        child = services.categories.create("SMD", parent_id=parent.id)

        assert services.categories.find_by_path("resistors.smd") == child
        assert services.categories.find_by_path("smd") is None

    def test_find_all_empty(self, services):
        categories = services.categories.find_all()

        assert categories == []
        assert isinstance(categories, list)

    def test_find_all_ordered_by_path(self, services):
        """Test that listing comes back in pre-order."""
        b = services.categories.create("Beta")
        a = services.categories.create("Alpha")
        services.categories.create("Zulu", parent_id=a.id)
        services.categories.create("Child", parent_id=b.id)

        paths = [c.path for c in services.categories.find_all()]

        assert paths == ["alpha", "alpha.zulu", "beta", "beta.child"]

    def test_find_all_filters(self, services):
        """Test filtering by visibility, owner and parent."""
        root = services.categories.create("Root", created_by="alice")
        services.categories.create("Hidden", parent_id=root.id, is_public=False)
        services.categories.create("Shown", parent_id=root.id, created_by="bob")
        services.categories.create("Other")

        private = services.categories.find_all(is_public=False)
        bobs = services.categories.find_all(created_by="bob")
        roots = services.categories.find_all(parent_id=None)
        children = services.categories.list_all(parent_id=root.id)

        assert [c.name for c in private] == ["Hidden"]
        assert [c.name for c in bobs] == ["Shown"]
        assert [c.name for c in roots] == ["Other", "Root"]
        assert [c.name for c in children] == ["Hidden", "Shown"]

    def test_find_all_excludes_deleted_unless_asked(self, services):
        keep = services.categories.create("Keep")
        gone = services.categories.create("Gone")
        services.categories.delete(gone.id)

        assert services.categories.find_all() == [keep]
        everything = services.categories.find_all(include_deleted=True)
        assert {c.id for c in everything} == {keep.id, gone.id}

    def test_search(self, services):
        """Test case-insensitive name search."""
        services.categories.create("Ceramic Capacitors")
        services.categories.create("Electrolytic Capacitors")
        services.categories.create("Resistors")

        results = services.categories.search("capacitor")

        assert [c.name for c in results] == [
            "Ceramic Capacitors",
            "Electrolytic Capacitors",
        ]

    def test_search_treats_wildcards_literally(self, services):
        services.categories.create("100% Tested")
        services.categories.create("Plain")

        assert [c.name for c in services.categories.search("%")] == ["100% Tested"]
        assert services.categories.search("_") == []

    def test_search_limit_and_offset(self, services):
        for name in ["Part A", "Part B", "Part C"]:
            services.categories.create(name)

        page = services.categories.search("part", limit=2, offset=1)

        assert [c.name for c in page] == ["Part B", "Part C"]

    def test_update_description_and_visibility(self, services):
        category = services.categories.create("Relays", description="Old description")

        updated = services.categories.update(
            category.id, description="New description", is_public=False, updated_by="bob"
        )

        assert updated.description == "New description"
        assert updated.is_public is False
        assert updated.updated_by == "bob"
        assert updated.path == "relays"

    def test_update_can_clear_description(self, services):
        category = services.categories.create("Relays", description="Something")

        updated = services.categories.update(category.id, description=None)

        assert updated.description is None

    def test_update_without_changes_returns_existing(self, services):
        category = services.categories.create("Relays")

        assert services.categories.update(category.id) == category

    def test_update_name_recomputes_path(self, services):
        """Test that renaming rebuilds the path from the current parent."""
        parent = services.categories.create("Resistors")
        child = services.categories.create("Thru Hole", parent_id=parent.id)

        updated = services.categories.update(child.id, name="Through Hole")

        assert updated.name == "Through Hole"
        assert updated.path == "resistors.through_hole"
        assert updated.parent_id == parent.id

    def test_update_name_cascades_to_descendants(self, services):
        """Test that renaming rewrites every path that embeds the old label."""
        root = services.categories.create("Semis")
        ics = services.categories.create("ICs", parent_id=root.id)
        mcu = services.categories.create("MCU", parent_id=ics.id)

        services.categories.update(root.id, name="Semiconductors")

        assert services.categories.find(ics.id).path == "semiconductors.ics"
        assert services.categories.find(mcu.id).path == "semiconductors.ics.mcu"
        assert_path_invariant(services)

    def test_update_name_to_sibling_label_raises(self, services):
        parent = services.categories.create("Resistors")
        services.categories.create("SMD", parent_id=parent.id)
        other = services.categories.create("Through Hole", parent_id=parent.id)

        with pytest.raises(DuplicateNameError):
            services.categories.update(other.id, name="smd")

        assert services.categories.find(other.id).path == "resistors.through_hole"

    def test_update_name_same_label_keeps_path(self, services):
        """Test that a cosmetic rename with the same label is allowed."""
        category = services.categories.create("Through Hole")

        updated = services.categories.update(category.id, name="through hole")

        assert updated.name == "through hole"
        assert updated.path == "through_hole"

    def test_update_nonexistent_category_raises(self, services):
        with pytest.raises(NotFoundError, match="Category with ID missing not found"):
            services.categories.update("missing", name="Name")

    def test_delete_category_is_soft(self, services):
        """Test that deleting hides the category but keeps the row."""
        category = services.categories.create("ToDelete")

        services.categories.delete(category.id, deleted_by="carol")

        assert services.categories.find(category.id) is None
        deleted = services.categories.find_all(include_deleted=True)[0]
        assert deleted.is_deleted is True
        assert deleted.deleted_by == "carol"
        assert deleted.deleted_at is not None

    def test_delete_frees_the_name(self, services):
        """Test that a deleted category's label can be reused."""
        category = services.categories.create("Reused")
        services.categories.delete(category.id)

        again = services.categories.create("Reused")

        assert again.path == "reused"
        assert again.id != category.id

    def test_delete_nonexistent_category_raises(self, services):
        with pytest.raises(NotFoundError):
            services.categories.delete("missing")

    def test_delete_twice_raises(self, services):
        category = services.categories.create("Once")
        services.categories.delete(category.id)

        with pytest.raises(NotFoundError):
            services.categories.delete(category.id)

    def test_delete_with_children_raises(self, services):
        parent = services.categories.create("Parent")
        services.categories.create("Child", parent_id=parent.id)

        with pytest.raises(HasChildrenError):
            services.categories.delete(parent.id)

        assert services.categories.find(parent.id) is not None

    def test_delete_after_children_removed(self, services):
        parent = services.categories.create("Parent")
        child = services.categories.create("Child", parent_id=parent.id)

        services.categories.delete(child.id)
        services.categories.delete(parent.id)

        assert services.categories.find_all() == []

    def test_delete_referenced_by_parts_raises(self, services):
        category = services.categories.create("Relays")
        services.part_categories.attach("part-1", category.id)

        with pytest.raises(ReferencedExternallyError):
            services.categories.delete(category.id)

        services.part_categories.detach("part-1", category.id)
        services.categories.delete(category.id)
        assert services.categories.find(category.id) is None

    def test_custom_reference_checker(self, test_config, db_manager_with_schema):
        """Test that the external reference check can be injected."""
        checked = []

        def checker(conn, category_id):
            checked.append(category_id)
            return True

        services = Services(
            test_config, db_manager=db_manager_with_schema, reference_checker=checker
        )
        category = services.categories.create("Relays")

        with pytest.raises(ReferencedExternallyError):
            services.mutator.delete(category.id)
        assert checked == [category.id]
        assert services.categories.is_referenced(category.id) is True

    def test_has_children(self, services):
        parent = services.categories.create("Parent")
        child = services.categories.create("Child", parent_id=parent.id)

        assert services.categories.has_children(parent.id) is True
        assert services.categories.has_children(child.id) is False

    def test_unique_path_index_backs_the_check(self, services, test_db):
        """Test that the database itself refuses two live rows on one path."""
        services.categories.create("Resistors")

        with pytest.raises(sqlite3.IntegrityError):
            test_db.execute(
                "INSERT INTO categories (id, name, path, created_at, updated_at) "
                "VALUES ('x', 'Resistors', 'resistors', 'now', 'now')"
            )
        test_db.rollback()
