"""Integration tests for category trees."""
import pytest

from marketplace.exceptions import ValidationError, ConflictError, ForbiddenError
from marketplace.seed_data import PRODUCT_CATEGORIES, SERVICE_CATEGORIES
from marketplace.services import category_service


@pytest.fixture
def admin_actor(as_actor, super_admin):
    return as_actor(super_admin)


class TestCategoryTree:

    def test_tree_and_flat_labels(self, session, admin_actor):
        main = category_service.create_category(session, admin_actor, 'Masonry')
        category_service.create_category(session, admin_actor, 'Bricks', parent_id=main.id)

        tree = category_service.get_category_tree(session)
        assert [node['name'] for node in tree] == ['Masonry']
        assert [child['name'] for child in tree[0]['children']] == ['Bricks']

        labels = [item['label'] for item in category_service.get_flat_categories(session)]
        assert labels == ['Masonry', 'Masonry > Bricks']

    def test_display_order_is_appended(self, session, admin_actor):
        first = category_service.create_category(session, admin_actor, 'Aggregates')
        second = category_service.create_category(session, admin_actor, 'Steel')
        assert (first.display_order, second.display_order) == (1, 2)

    def test_only_two_levels(self, session, admin_actor):
        main = category_service.create_category(session, admin_actor, 'Masonry')
        child = category_service.create_category(session, admin_actor, 'Bricks', parent_id=main.id)

        with pytest.raises(ValidationError):
            category_service.create_category(session, admin_actor, 'Red Bricks', parent_id=child.id)

    def test_names_unique_within_parent_case_insensitive(self, session, admin_actor):
        main = category_service.create_category(session, admin_actor, 'Masonry')
        category_service.create_category(session, admin_actor, 'Bricks', parent_id=main.id)

        with pytest.raises(ConflictError):
            category_service.create_category(session, admin_actor, 'bricks', parent_id=main.id)
        # Same name at another level is fine
        category_service.create_category(session, admin_actor, 'Bricks')

    def test_kinds_are_separate_trees(self, session, admin_actor):
        category_service.create_category(session, admin_actor, 'Transport')
        category_service.create_category(session, admin_actor, 'Transport', kind='service')

        assert len(category_service.get_category_tree(session, 'service')) == 1

    def test_requires_super_admin(self, session, as_actor, supplier_admin):
        with pytest.raises(ForbiddenError):
            category_service.create_category(session, as_actor(supplier_admin), 'Masonry')


class TestCategoryChanges:

    def test_cannot_delete_with_children_or_products(self, session, admin_actor, make_product, supplier):
        main = category_service.create_category(session, admin_actor, 'Masonry')
        child = category_service.create_category(session, admin_actor, 'Bricks', parent_id=main.id)
        make_product(supplier, category_id=child.id)

        with pytest.raises(ValidationError):
            category_service.delete_category(session, admin_actor, main.id)
        with pytest.raises(ValidationError):
            category_service.delete_category(session, admin_actor, child.id)

    def test_delete_unused_leaf(self, session, admin_actor):
        main = category_service.create_category(session, admin_actor, 'Masonry')
        category_service.delete_category(session, admin_actor, main.id)
        assert category_service.get_category_tree(session) == []

    def test_cannot_parent_itself(self, session, admin_actor):
        main = category_service.create_category(session, admin_actor, 'Masonry')

        with pytest.raises(ValidationError):
            category_service.update_category(session, admin_actor, main.id, {'parent_id': main.id})

    def test_parent_with_children_cannot_become_child(self, session, admin_actor):
        masonry = category_service.create_category(session, admin_actor, 'Masonry')
        category_service.create_category(session, admin_actor, 'Bricks', parent_id=masonry.id)
        finishes = category_service.create_category(session, admin_actor, 'Finishes')

        with pytest.raises(ValidationError):
            category_service.update_category(session, admin_actor, masonry.id, {'parent_id': finishes.id})

    def test_deactivated_category_leaves_public_tree(self, session, admin_actor):
        main = category_service.create_category(session, admin_actor, 'Masonry')
        category_service.deactivate_category(session, admin_actor, main.id)

        assert category_service.get_category_tree(session) == []
        assert len(category_service.get_category_tree(session, include_inactive=True)) == 1


class TestSeed:

    def test_seed_is_idempotent(self, session, admin_actor):
        first = category_service.seed_categories(session, admin_actor, PRODUCT_CATEGORIES)
        second = category_service.seed_categories(session, admin_actor, PRODUCT_CATEGORIES)

        expected = sum(1 + len(entry['subcategories']) for entry in PRODUCT_CATEGORIES)
        assert first == {'created': expected, 'skipped': 0}
        assert second == {'created': 0, 'skipped': expected}

    def test_seed_service_tree(self, session, admin_actor):
        category_service.seed_categories(session, admin_actor, SERVICE_CATEGORIES, kind='service')
        assert len(category_service.get_category_tree(session, 'service')) == len(SERVICE_CATEGORIES)
