"""
Tests for the Category Service
"""

import pytest
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import settings
from services.category_service import CategoryService
from services.post_service import BlogPostService
from utils.exceptions import DuplicateError, NotFoundError, ValidationError


@pytest.fixture
def categories(local_store):
    return CategoryService(local_store)


class TestCategoryReads:
    """Tests for listing and lookups."""

    def test_display_order(self, categories):
        assert [c.id for c in categories.get_all()] == ["cat-001", "cat-002"]

    def test_order_by_name(self, categories):
        assert [c.name for c in categories.get_all(order_by="name")] == ["Noticias", "Reflexiones"]

    def test_unknown_order_field(self, categories):
        with pytest.raises(ValidationError):
            categories.get_all(order_by="color; drop table")

    def test_active_filter(self, categories):
        categories.update("cat-002", {"is_active": False})

        assert [c.id for c in categories.get_all(active=True)] == ["cat-001"]
        assert [c.id for c in categories.get_all(active=False)] == ["cat-002"]

    def test_get_by_slug(self, categories):
        assert categories.get_by_slug("noticias").id == "cat-002"

    def test_missing(self, categories):
        with pytest.raises(NotFoundError):
            categories.get_by_id("cat-999")

    def test_sermon_table(self, local_store):
        sermon_categories = CategoryService(local_store, settings.SERMON_CATEGORIES_TABLE)
        assert [c.id for c in sermon_categories.get_all()] == ["scat-001"]


class TestCategoryWrites:
    """Tests for create, update and delete."""

    def test_create_derives_slug(self, categories):
        category = categories.create({"name": "Vida Familiar", "display_order": 3})

        assert category.slug == "vida-familiar"
        assert category.is_active is True
        assert category.id.startswith("cat-")

    def test_create_requires_name(self, categories):
        with pytest.raises(ValidationError):
            categories.create({"name": "  "})

    def test_duplicate_slug(self, categories):
        with pytest.raises(DuplicateError):
            categories.create({"name": "Noticias"})

    def test_update_missing(self, categories):
        with pytest.raises(NotFoundError):
            categories.update("cat-999", {"name": "Nada"})

    def test_delete_leaves_posts_uncategorized(self, categories, local_store):
        """Posts that referenced a deleted category are shown without one."""
        categories.delete("cat-001")

        post = BlogPostService(local_store).get_by_id("blog-002")
        assert post.category_id == "cat-001"
        assert post.category is None

    def test_delete_missing(self, categories):
        with pytest.raises(NotFoundError):
            categories.delete("cat-999")
