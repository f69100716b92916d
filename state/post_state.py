"""
Post List State

UI-facing cache of a paged post listing (blog posts, sermons or events):
offset paging, search, optimistic deletion and push merging while mounted.
"""

import dataclasses
import threading
from typing import Any, Callable, Dict, List, Optional

from config import settings
from data.models import Post, PostFilters
from data.protocols import ChangeEvent, ChangeType, Subscription
from services.protocols import PostServiceProtocol
from utils.exceptions import RefugioSyncError, RemoteError
from utils.logger import get_logger

logger = get_logger(__name__)


class PostListState:
    """Paged post listing kept in sync with its service."""

    def __init__(
        self,
        service: PostServiceProtocol,
        filters: Optional[PostFilters] = None,
        page_size: Optional[int] = None,
        realtime: bool = False,
        on_change: Optional[Callable[["PostListState"], None]] = None,
    ):
        self.service = service
        self.filters = filters or PostFilters()
        self.page_size = page_size or self.filters.limit or settings.DEFAULT_PAGE_SIZE
        self.realtime = realtime
        self.on_change = on_change

        self.posts: List[Post] = []
        self.loading = False
        self.error: Optional[str] = None
        self.has_more = False
        self.searching = False

        self._mounted = False
        self._generation = 0
        self._subscription: Optional[Subscription] = None
        self._lock = threading.RLock()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def __enter__(self) -> "PostListState":
        self.mount()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unmount()

    def mount(self) -> None:
        self._mounted = True
        if self.realtime:
            try:
                self._subscription = self.service.subscribe(self._handle_event)
            except RemoteError as e:
                logger.warning(f"Push updates unavailable: {e}")
        self.refetch()

    def unmount(self) -> None:
        self._mounted = False
        with self._lock:
            self._generation += 1
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def _notify(self) -> None:
        if self.on_change and self._mounted:
            self.on_change(self)

    def _fail(self, error: Exception) -> None:
        with self._lock:
            self.error = getattr(error, "message", None) or str(error)
            self.loading = False
        self._notify()

    def _page(self, offset: int) -> PostFilters:
        return dataclasses.replace(self.filters, limit=self.page_size, offset=offset or None)

    def _load(self, fetch: Callable[[], List[Post]], apply: Callable[[List[Post]], None]) -> List[Post]:
        """Run a fetch and apply its result unless a newer fetch or an unmount intervened."""
        with self._lock:
            self._generation += 1
            generation = self._generation
            self.loading = True
            self.error = None
        self._notify()

        try:
            posts = fetch()
        except Exception as e:
            if self._mounted and generation == self._generation:
                self._fail(e)
            raise

        if not self._mounted or generation != self._generation:
            logger.debug("Discarding stale post fetch")
            return posts

        with self._lock:
            apply(posts)
            self.loading = False
        self._notify()
        return posts

    # =========================================================================
    # Fetching
    # =========================================================================

    def refetch(self) -> List[Post]:
        """Reload the first page."""
        def apply(posts: List[Post]) -> None:
            self.posts = posts
            self.has_more = len(posts) >= self.page_size
            self.searching = False

        return self._load(lambda: self.service.get_all(self._page(0)), apply)

    def load_more(self) -> List[Post]:
        """Append the next page. Does nothing while searching or at the end."""
        if not self.has_more or self.searching:
            return []
        offset = len(self.posts)

        def apply(posts: List[Post]) -> None:
            known = {p.id for p in self.posts}
            self.posts.extend(p for p in posts if p.id not in known)
            self.has_more = len(posts) >= self.page_size

        return self._load(lambda: self.service.get_all(self._page(offset)), apply)

    def search(self, query: str, limit: Optional[int] = None) -> List[Post]:
        """Replace the listing with search results; paging is off until refetch()."""
        def apply(posts: List[Post]) -> None:
            self.posts = posts
            self.has_more = False
            self.searching = True

        return self._load(lambda: self.service.search(query, limit), apply)

    # =========================================================================
    # Mutations
    # =========================================================================

    def _index_of(self, post_id: str) -> Optional[int]:
        for index, post in enumerate(self.posts):
            if post.id == post_id:
                return index
        return None

    def create_post(self, fields: Dict[str, Any]) -> Post:
        try:
            post = self.service.create(fields)
        except Exception as e:
            self._fail(e)
            raise
        with self._lock:
            if self._index_of(post.id) is None and self.service.matches(post.to_row(), self.filters):
                self.posts.insert(0, post)
        self._notify()
        return post

    def update_post(self, post_id: str, changes: Dict[str, Any]) -> Post:
        try:
            post = self.service.update(post_id, changes)
        except Exception as e:
            self._fail(e)
            raise
        with self._lock:
            index = self._index_of(post_id)
            if index is not None:
                if self.service.matches(post.to_row(), self.filters):
                    self.posts[index] = post
                else:
                    self.posts.pop(index)
        self._notify()
        return post

    def delete_post(self, post_id: str) -> bool:
        """Remove the post locally, then remotely; restore it if the call fails."""
        with self._lock:
            self.error = None
            index = self._index_of(post_id)
            removed = self.posts.pop(index) if index is not None else None
        self._notify()

        try:
            self.service.delete(post_id)
        except Exception as e:
            with self._lock:
                if removed is not None and self._index_of(post_id) is None:
                    self.posts.insert(min(index, len(self.posts)), removed)
            self._fail(e)
            raise
        return True

    def increment_view_count(self, post_id: str) -> bool:
        """
        Count a view. Failures are logged and reported as False, never raised.
        """
        try:
            count = self.service.increment_view_count(post_id)
        except RefugioSyncError as e:
            logger.warning(f"Could not count view for {post_id}: {e.message}")
            return False

        with self._lock:
            index = self._index_of(post_id)
            if index is not None:
                post = self.posts[index]
                # Some backends return the new total, others nothing
                post.view_count = count if isinstance(count, int) else post.view_count + 1
        self._notify()
        return True

    # =========================================================================
    # Cache lookups
    # =========================================================================

    def get_post_by_id(self, post_id: str) -> Optional[Post]:
        with self._lock:
            index = self._index_of(post_id)
            return self.posts[index] if index is not None else None

    def get_post_by_slug(self, slug: str) -> Optional[Post]:
        with self._lock:
            return next((p for p in self.posts if p.slug == slug), None)

    # =========================================================================
    # Push merge
    # =========================================================================

    def _handle_event(self, event: ChangeEvent) -> None:
        if not self._mounted:
            return
        record = (event.old if event.type == ChangeType.DELETE else event.new) or {}
        post_id = record.get("id")
        if not post_id:
            return

        with self._lock:
            index = self._index_of(post_id)
            # Deactivated, unpublished or recategorised rows leave a filtered listing
            if event.type == ChangeType.DELETE or record.get("is_active") is False \
                    or not self.service.matches(record, self.filters):
                if index is None:
                    return
                self.posts.pop(index)
            else:
                post = self.service.to_post(record)
                if index is not None:
                    # Push rows carry no joined category
                    if post.category_id == self.posts[index].category_id:
                        post.category = self.posts[index].category
                    self.posts[index] = post
                elif event.type == ChangeType.INSERT and not self.searching:
                    self.posts.insert(0, post)
                else:
                    return
        self._notify()
