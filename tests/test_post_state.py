"""
Tests for PostListState

Tests cover first-page loading, offset paging, search mode, optimistic
deletion, view counting and push-event merging.
"""

import pytest
from unittest.mock import MagicMock
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from data.models import Post, PostFilters
from data.protocols import Filter
from services.post_service import BlogPostService, EventService
from state.post_state import PostListState
from utils.exceptions import NotFoundError, RemoteError


@pytest.fixture
def mock_post_service():
    service = MagicMock(spec=BlogPostService)
    service.get_all.return_value = [
        Post(id="blog-001", slug="uno", title="Uno"),
        Post(id="blog-002", slug="dos", title="Dos"),
    ]
    return service


# =============================================================================
# Fetch and Paging Tests
# =============================================================================

class TestFetching:
    """Tests for refetch and load_more."""

    def test_mount_loads_first_page(self, blog_service):
        with PostListState(blog_service) as state:
            assert [p.id for p in state.posts] == ["blog-001", "blog-002"]
            assert state.has_more is False
            assert state.loading is False

    def test_paging(self, blog_service):
        with PostListState(blog_service, page_size=1) as state:
            assert [p.id for p in state.posts] == ["blog-001"]
            assert state.has_more is True

            state.load_more()
            assert [p.id for p in state.posts] == ["blog-001", "blog-002"]

            assert state.load_more() == []
            assert state.has_more is False

    def test_filters_are_kept_across_pages(self, mock_post_service):
        state = PostListState(mock_post_service, PostFilters(category_id="cat-001"), page_size=2)
        state.mount()
        state.load_more()

        second = mock_post_service.get_all.call_args_list[1][0][0]
        assert second.category_id == "cat-001"
        assert second.limit == 2
        assert second.offset == 2

    def test_load_more_skips_known_ids(self, mock_post_service):
        state = PostListState(mock_post_service, page_size=2)
        state.mount()

        state.load_more()

        assert [p.id for p in state.posts] == ["blog-001", "blog-002"]

    def test_fetch_error(self, mock_post_service):
        mock_post_service.get_all.side_effect = RemoteError("offline")
        state = PostListState(mock_post_service)

        with pytest.raises(RemoteError):
            state.mount()
        assert state.error == "offline"
        assert state.loading is False

    def test_stale_fetch_discarded(self, mock_post_service):
        state = PostListState(mock_post_service)

        def slow(filters):
            state.unmount()
            return [Post(id="late", slug="late", title="Late")]

        mock_post_service.get_all.side_effect = slow
        state.mount()

        assert state.posts == []


class TestSearch:
    """Tests for search mode."""

    def test_search_replaces_listing(self, blog_service):
        with PostListState(blog_service) as state:
            state.search("oración")

            assert [p.id for p in state.posts] == ["blog-002"]
            assert state.searching is True
            assert state.has_more is False
            assert state.load_more() == []

            state.refetch()
            assert state.searching is False
            assert len(state.posts) == 2


# =============================================================================
# Mutation Tests
# =============================================================================

class TestMutations:
    """Tests for create, update, delete and view counting."""

    def test_create_prepends_once(self, blog_service):
        with PostListState(blog_service, realtime=True) as state:
            post = state.create_post({"title": "Nuevo", "content": "Contenido", "is_published": True})

            assert state.posts[0].id == post.id
            assert [p.id for p in state.posts].count(post.id) == 1

    def test_update_replaces_in_place(self, blog_service):
        with PostListState(blog_service) as state:
            state.update_post("blog-002", {"title": "Orar"})
            assert state.get_post_by_id("blog-002").title == "Orar"

    def test_delete_is_optimistic(self, mock_post_service):
        seen = {}

        def delete(post_id):
            seen["listed"] = state.get_post_by_id(post_id) is not None
            return True

        mock_post_service.delete.side_effect = delete
        state = PostListState(mock_post_service)
        state.mount()

        state.delete_post("blog-001")

        assert seen["listed"] is False
        assert [p.id for p in state.posts] == ["blog-002"]

    def test_failed_delete_restores(self, mock_post_service):
        mock_post_service.delete.side_effect = NotFoundError("gone")
        state = PostListState(mock_post_service)
        state.mount()

        with pytest.raises(NotFoundError):
            state.delete_post("blog-001")

        assert [p.id for p in state.posts] == ["blog-001", "blog-002"]
        assert state.error == "gone"

    def test_increment_view_count(self, blog_service):
        with PostListState(blog_service, realtime=True) as state:
            assert state.increment_view_count("blog-001") is True
            assert state.get_post_by_id("blog-001").view_count == 1

    def test_increment_failure_is_reported_not_raised(self, mock_post_service):
        mock_post_service.increment_view_count.side_effect = RemoteError("function missing")
        state = PostListState(mock_post_service)
        state.mount()

        assert state.increment_view_count("blog-001") is False
        assert state.get_post_by_id("blog-001").view_count == 0

    def test_increment_without_returned_total(self, mock_post_service):
        mock_post_service.increment_view_count.return_value = None
        state = PostListState(mock_post_service)
        state.mount()

        state.increment_view_count("blog-002")

        assert state.get_post_by_id("blog-002").view_count == 1

    def test_get_post_by_slug(self, blog_service):
        with PostListState(blog_service) as state:
            assert state.get_post_by_slug("la-importancia-de-la-oracion").id == "blog-002"
            assert state.get_post_by_slug("nada") is None


# =============================================================================
# Push Merge Tests
# =============================================================================

class TestPushMerge:
    """Tests for merging push events."""

    def test_insert_elsewhere_prepends(self, blog_service, local_store):
        with PostListState(blog_service, realtime=True) as state:
            BlogPostService(local_store).create({"title": "De otro lado", "content": "Texto"})
            assert state.posts[0].title == "De otro lado"

    def test_update_keeps_category(self, blog_service, local_store):
        with PostListState(blog_service, realtime=True) as state:
            local_store.update("blog_posts", {"title": "Cambiado"},
                               [Filter("id", "eq", "blog-002")])

            post = state.get_post_by_id("blog-002")
            assert post.title == "Cambiado"
            assert post.category.slug == "reflexiones"

    def test_delete_elsewhere_removes(self, blog_service, local_store):
        with PostListState(blog_service, realtime=True) as state:
            BlogPostService(local_store).delete("blog-001")
            assert [p.id for p in state.posts] == ["blog-002"]

    def test_event_deactivation_removes(self, local_store):
        events = EventService(local_store)
        with PostListState(events, realtime=True) as state:
            events.delete("event-002")
            assert [e.id for e in state.posts] == ["event-001"]

    def test_no_insert_while_searching(self, blog_service, local_store):
        with PostListState(blog_service, realtime=True) as state:
            state.search("oración")
            BlogPostService(local_store).create({"title": "Oración nueva", "content": "Texto"})
            assert [p.id for p in state.posts] == ["blog-002"]

    def test_published_list_ignores_pushed_drafts(self, blog_service, local_store):
        with PostListState(blog_service, PostFilters(published_only=True), realtime=True) as state:
            draft = BlogPostService(local_store).create(
                {"title": "Borrador", "content": "Texto", "is_published": False}
            )
            assert draft.id not in [p.id for p in state.posts]

            published = BlogPostService(local_store).create(
                {"title": "Publicado", "content": "Texto", "is_published": True}
            )
            assert state.posts[0].id == published.id

    def test_category_list_ignores_other_categories(self, blog_service, local_store):
        with PostListState(blog_service, PostFilters(category_id="cat-001"), realtime=True) as state:
            assert [p.id for p in state.posts] == ["blog-002"]

            other = BlogPostService(local_store).create(
                {"title": "Aviso", "content": "Texto", "is_published": True, "category_id": "cat-002"}
            )

            assert other.id not in [p.id for p in state.posts]

    def test_unpublishing_removes_from_published_list(self, blog_service, local_store):
        with PostListState(blog_service, PostFilters(published_only=True), realtime=True) as state:
            local_store.update("blog_posts", {"is_published": False},
                               [Filter("id", "eq", "blog-001")])
            assert [p.id for p in state.posts] == ["blog-002"]

    def test_recategorising_removes_from_category_list(self, blog_service, local_store):
        with PostListState(blog_service, PostFilters(category_id="cat-001"), realtime=True) as state:
            BlogPostService(local_store).update("blog-002", {"category_id": "cat-002"})
            assert state.posts == []

    def test_own_create_respects_filters(self, blog_service):
        with PostListState(blog_service, PostFilters(published_only=True)) as state:
            draft = state.create_post({"title": "Borrador", "content": "Texto"})
            assert draft.id not in [p.id for p in state.posts]
