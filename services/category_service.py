"""
Category Service Module

Entity access for blog and sermon categories. Deleting a category never
touches posts; posts still referencing it are shown without a category.
"""

from typing import Any, Dict, List, Optional

from config import settings
from data.models import Category
from data.protocols import ChangeCallback, Filter, Gateway, Order, Subscription
from utils.exceptions import NotFoundError, ValidationError
from utils.helpers import is_blank, slugify, to_iso, utc_now
from utils.logger import get_logger

logger = get_logger(__name__)

ORDER_FIELDS = ("display_order", "name", "created_at")


class CategoryService:
    """Entity access for one category table."""

    def __init__(self, gateway: Gateway, table: Optional[str] = None):
        """
        Initialize the service.

        Args:
            gateway: The data gateway.
            table: Category table; defaults to the blog categories table.
        """
        self.gateway = gateway
        self.table = table or settings.BLOG_CATEGORIES_TABLE

    def get_all(self, active: Optional[bool] = None, order_by: str = "display_order") -> List[Category]:
        """
        Fetch categories.

        Args:
            active: Restrict to active (True) or inactive (False) categories.
            order_by: One of display_order, name, created_at (ascending).

        Returns:
            list: Categories.
        """
        if order_by not in ORDER_FIELDS:
            raise ValidationError(f"Cannot order categories by '{order_by}'")
        filters = [Filter("is_active", "eq", active)] if active is not None else []
        rows = self.gateway.select(self.table, filters=filters,
                                   order=[Order(order_by, ascending=True)]).unwrap()
        return [Category.from_row(row) for row in rows]

    def _fetch_one(self, column: str, value: str) -> Category:
        rows = self.gateway.select(self.table, filters=[Filter(column, "eq", value)], limit=1).unwrap()
        if not rows:
            raise NotFoundError(f"Category with {column} '{value}' not found", code="PGRST116")
        return Category.from_row(rows[0])

    def get_by_id(self, category_id: str) -> Category:
        return self._fetch_one("id", category_id)

    def get_by_slug(self, slug: str) -> Category:
        return self._fetch_one("slug", slug)

    def create(self, fields: Dict[str, Any]) -> Category:
        """
        Create a category; the slug is derived from the name when absent.

        Raises:
            ValidationError: Name missing.
            DuplicateError: Slug already taken.
        """
        if is_blank(fields.get("name")):
            raise ValidationError("Category name is required")
        record = dict(fields)
        record["slug"] = slugify(record.get("slug") or record["name"], settings.SLUG_MAX_LENGTH)
        record.setdefault("is_active", True)
        record.setdefault("display_order", 0)

        rows = self.gateway.insert(self.table, [record]).unwrap()
        category = Category.from_row(rows[0])
        logger.info(f"Created category {category.id} ({category.slug}) in {self.table}")
        return category

    def update(self, category_id: str, changes: Dict[str, Any]) -> Category:
        if "name" in changes and is_blank(changes["name"]):
            raise ValidationError("Category name is required")
        patch = {k: v for k, v in changes.items() if k != "id"}
        if "slug" in patch:
            patch["slug"] = slugify(patch["slug"] or "", settings.SLUG_MAX_LENGTH)
        patch["updated_at"] = to_iso(utc_now())

        rows = self.gateway.update(self.table, patch, [Filter("id", "eq", category_id)]).unwrap()
        if not rows:
            raise NotFoundError(f"Category '{category_id}' not found", code="PGRST116")
        return Category.from_row(rows[0])

    def delete(self, category_id: str) -> bool:
        rows = self.gateway.delete(self.table, [Filter("id", "eq", category_id)]).unwrap()
        if not rows:
            raise NotFoundError(f"Category '{category_id}' not found", code="PGRST116")
        logger.info(f"Deleted category {category_id} from {self.table}")
        return True

    def subscribe(self, callback: ChangeCallback) -> Subscription:
        return self.gateway.subscribe(self.table, callback)
