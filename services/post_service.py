"""
Post Service Module

Entity access for the post-like content types: blog posts, sermons and
events. Each service translates domain calls into gateway calls and shapes
the rows it gets back (category join, ordering, pagination, search).

All three share one implementation; subclasses only declare their table,
searchable columns, default ordering and deletion policy.
"""

from typing import Any, Dict, List, Optional, Sequence

from config import settings
from data.models import COUNTER_FIELDS, Category, Post, PostFilters
from data.protocols import AnyOf, ChangeCallback, Filter, FilterLike, Gateway, Order, Subscription
from data.query import escape_like, matches_all
from utils.exceptions import NotFoundError, ValidationError
from utils.helpers import is_blank, slugify, to_iso, utc_now
from utils.logger import get_logger

logger = get_logger(__name__)


class PostService:
    """Generic entity access for one post table."""

    entity_name = "Post"
    table = settings.BLOG_POSTS_TABLE
    category_table: Optional[str] = settings.BLOG_CATEGORIES_TABLE
    content_field = "content"
    search_fields: Sequence[str] = ("title", "excerpt", "content", "author_name")
    required_fields: Sequence[str] = ("title", "content")
    order_field = "published_at"
    order_ascending = False
    date_field = "published_at"
    view_counter_rpc = "increment_blog_post_views"
    view_counter_arg = "post_id"
    # Soft-deleted tables mark rows is_active = False and hide them from reads
    soft_delete = False

    def __init__(self, gateway: Gateway, table: Optional[str] = None,
                 category_table: Optional[str] = None):
        """
        Initialize the service.

        Args:
            gateway: The data gateway (remote or local fallback).
            table: Override the table name.
            category_table: Override the category table name.
        """
        self.gateway = gateway
        if table:
            self.table = table
        if category_table:
            self.category_table = category_table

    # =========================================================================
    # Shaping helpers
    # =========================================================================

    def to_post(self, row: Dict[str, Any]) -> Post:
        return Post.from_row(row, content_field=self.content_field)

    def _active_filters(self) -> List[FilterLike]:
        return [Filter("is_active", "eq", True)] if self.soft_delete else []

    def _attach_categories(self, rows: List[Dict[str, Any]]) -> List[Post]:
        """Convert rows to Posts and join each with its category."""
        posts = [self.to_post(row) for row in rows]
        if not self.category_table:
            return posts

        category_ids = sorted({p.category_id for p in posts if p.category_id})
        if not category_ids:
            return posts

        category_rows = self.gateway.select(
            self.category_table, filters=[Filter("id", "in", category_ids)]
        ).unwrap()
        categories = {row["id"]: Category.from_row(row) for row in category_rows}

        for post in posts:
            # Orphaned references (deleted category) stay None
            post.category = categories.get(post.category_id)
        return posts

    def _validate_required(self, fields: Dict[str, Any], partial: bool = False) -> None:
        for name in self.required_fields:
            if partial and name not in fields:
                continue
            if is_blank(fields.get(name)):
                raise ValidationError(f"{self.entity_name} {name} is required")

    def _fetch_one(self, column: str, value: Any) -> Post:
        rows = self.gateway.select(
            self.table,
            filters=[Filter(column, "eq", value)] + self._active_filters(),
            limit=1,
        ).unwrap()
        if not rows:
            raise NotFoundError(f"{self.entity_name} with {column} '{value}' not found", code="PGRST116")
        return self._attach_categories(rows)[0]

    # =========================================================================
    # Reads
    # =========================================================================

    def filter_conditions(self, filters: PostFilters) -> List[FilterLike]:
        """Translate listing filters into gateway predicates."""
        conditions: List[FilterLike] = self._active_filters()

        if filters.published_only is not None:
            conditions.append(Filter("is_published", "eq", filters.published_only))
        if filters.featured_only:
            conditions.append(Filter("is_featured", "eq", True))
        if filters.category_id:
            conditions.append(Filter("category_id", "eq", filters.category_id))
        if filters.preacher:
            conditions.append(Filter("preacher", "ilike", f"%{escape_like(filters.preacher)}%"))
        if filters.date_from:
            conditions.append(Filter(self.date_field, "gte", filters.date_from))
        if filters.date_to:
            conditions.append(Filter(self.date_field, "lte", filters.date_to))
        return conditions

    def matches(self, row: Dict[str, Any], filters: PostFilters) -> bool:
        """Check a raw row (e.g. a push record) against listing filters."""
        return matches_all(row, self.filter_conditions(filters))

    def get_all(self, filters: Optional[PostFilters] = None) -> List[Post]:
        """
        Fetch posts, newest first unless another ordering is requested.

        Args:
            filters: Optional query options. ``offset`` without ``limit`` pages
                by the default page size.

        Returns:
            list: Posts with their categories attached.
        """
        filters = filters or PostFilters()
        conditions = self.filter_conditions(filters)

        order_field = filters.order_field or self.order_field
        if filters.order_direction:
            ascending = filters.order_direction.lower() == "asc"
        else:
            ascending = self.order_ascending

        limit = filters.limit
        if filters.offset and limit is None:
            limit = settings.DEFAULT_PAGE_SIZE

        rows = self.gateway.select(
            self.table,
            filters=conditions,
            order=[Order(order_field, ascending)],
            offset=filters.offset,
            limit=limit,
        ).unwrap()
        return self._attach_categories(rows)

    def get_by_id(self, post_id: str) -> Post:
        return self._fetch_one("id", post_id)

    def get_by_slug(self, slug: str) -> Post:
        return self._fetch_one("slug", slug)

    def get_recent(self, limit: int = 5) -> List[Post]:
        return self.get_all(PostFilters(published_only=True, limit=limit))

    def get_featured(self, limit: int = 3) -> List[Post]:
        return self.get_all(PostFilters(published_only=True, featured_only=True, limit=limit))

    def search(self, query: str, limit: Optional[int] = None) -> List[Post]:
        """
        Case-insensitive substring search over the searchable text columns.

        Only published posts are returned, in the default ordering.

        Args:
            query: Text to look for.
            limit: Maximum results; defaults to settings.SEARCH_DEFAULT_LIMIT.

        Returns:
            list: Matching posts.

        Raises:
            ValidationError: If the query is blank.
        """
        if is_blank(query):
            raise ValidationError("Search query must not be empty")

        pattern = f"%{escape_like(query.strip())}%"
        conditions: List[FilterLike] = [
            AnyOf(tuple(Filter(column, "ilike", pattern) for column in self.search_fields)),
            Filter("is_published", "eq", True),
        ] + self._active_filters()

        rows = self.gateway.select(
            self.table,
            filters=conditions,
            order=[Order(self.order_field, self.order_ascending)],
            limit=limit or settings.SEARCH_DEFAULT_LIMIT,
        ).unwrap()
        logger.debug(f"Search '{query}' on {self.table} matched {len(rows)} rows")
        return self._attach_categories(rows)

    # =========================================================================
    # Writes
    # =========================================================================

    def create(self, fields: Dict[str, Any]) -> Post:
        """
        Create a post.

        Args:
            fields: Column values. ``slug`` is derived from the title when
                absent; counters always start at zero.

        Returns:
            Post: The stored post.

        Raises:
            ValidationError: Required fields are blank.
            DuplicateError: The slug is already taken.
        """
        self._validate_required(fields)

        record = {k: v for k, v in fields.items() if k not in COUNTER_FIELDS}
        record["slug"] = slugify(record.get("slug") or record["title"], settings.SLUG_MAX_LENGTH)
        if not record["slug"]:
            raise ValidationError(f"Could not derive a slug from title '{record['title']}'")

        record.setdefault("is_published", False)
        if record["is_published"] and not record.get("published_at"):
            record["published_at"] = to_iso(utc_now())
        for counter in COUNTER_FIELDS:
            record[counter] = 0
        if self.soft_delete:
            record.setdefault("is_active", True)

        rows = self.gateway.insert(self.table, [record]).unwrap()
        post = self._attach_categories(rows)[0]
        logger.info(f"Created {self.entity_name.lower()} {post.id} ({post.slug})")
        return post

    def update(self, post_id: str, changes: Dict[str, Any]) -> Post:
        """
        Apply a partial update.

        Args:
            post_id: Id of the post.
            changes: Columns to change. Counter columns are rejected.

        Returns:
            Post: The updated post.

        Raises:
            ValidationError: Counter columns present or a required field blanked.
            NotFoundError: No such post.
        """
        counters = [c for c in COUNTER_FIELDS if c in changes]
        if counters:
            raise ValidationError(f"Counters cannot be updated directly: {', '.join(counters)}")
        self._validate_required(changes, partial=True)

        patch = {k: v for k, v in changes.items() if k != "id"}
        if "slug" in patch:
            patch["slug"] = slugify(patch["slug"] or "", settings.SLUG_MAX_LENGTH)
            if not patch["slug"]:
                raise ValidationError(f"{self.entity_name} slug is required")
        patch["updated_at"] = to_iso(utc_now())

        rows = self.gateway.update(
            self.table, patch, [Filter("id", "eq", post_id)] + self._active_filters()
        ).unwrap()
        if not rows:
            raise NotFoundError(f"{self.entity_name} '{post_id}' not found", code="PGRST116")
        logger.info(f"Updated {self.entity_name.lower()} {post_id}")
        return self._attach_categories(rows)[0]

    def delete(self, post_id: str) -> bool:
        """
        Delete a post: hard delete, or ``is_active = False`` for soft-deleted tables.

        Raises:
            NotFoundError: No such post.
        """
        if self.soft_delete:
            result = self.gateway.update(
                self.table,
                {"is_active": False, "updated_at": to_iso(utc_now())},
                [Filter("id", "eq", post_id)] + self._active_filters(),
            )
        else:
            result = self.gateway.delete(self.table, [Filter("id", "eq", post_id)])

        if not result.unwrap():
            raise NotFoundError(f"{self.entity_name} '{post_id}' not found", code="PGRST116")
        logger.info(f"Deleted {self.entity_name.lower()} {post_id}")
        return True

    def increment_view_count(self, post_id: str) -> Any:
        """Bump the view counter through the gateway's atomic server-side function."""
        return self.gateway.rpc(self.view_counter_rpc, {self.view_counter_arg: post_id}).unwrap()

    def subscribe(self, callback: ChangeCallback, scope_filter: Optional[Filter] = None) -> Subscription:
        """Listen for push events on this table. No replay; re-fetch after subscribing."""
        return self.gateway.subscribe(self.table, callback, scope_filter)


class BlogPostService(PostService):
    """Blog posts, ordered by publication date."""
    entity_name = "Blog post"


class SermonService(PostService):
    """Sermons, ordered by the date they were preached."""

    entity_name = "Sermon"
    table = settings.SERMONS_TABLE
    category_table = settings.SERMON_CATEGORIES_TABLE
    content_field = "description"
    search_fields = ("title", "description", "preacher", "scripture_reference")
    required_fields = ("title", "description")
    order_field = "preached_at"
    date_field = "preached_at"
    view_counter_rpc = "increment_sermon_views"
    view_counter_arg = "sermon_id"

    def get_by_preacher(self, preacher: str, limit: Optional[int] = None) -> List[Post]:
        return self.get_all(PostFilters(published_only=True, preacher=preacher, limit=limit))


class EventService(PostService):
    """Events, soonest first; deletion only deactivates them."""

    entity_name = "Event"
    table = settings.EVENTS_TABLE
    category_table = None
    content_field = "description"
    search_fields = ("title", "description", "location_name")
    required_fields = ("title", "description", "event_date")
    order_field = "event_date"
    order_ascending = True
    date_field = "event_date"
    view_counter_rpc = "increment_event_views"
    view_counter_arg = "event_id"
    soft_delete = True

    def get_upcoming(self, limit: int = 5) -> List[Post]:
        """Published events from today onwards."""
        today = utc_now().date().isoformat()
        return self.get_all(PostFilters(published_only=True, date_from=today, limit=limit))
