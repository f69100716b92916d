"""
Tests for the Local Fallback Store

Tests cover seeding, re-seeding, CRUD over whole collections, unique slugs,
view-counter rpc and in-process push delivery.
"""

import json
import pytest
from unittest.mock import MagicMock
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import settings
from data.local_store import LocalStore
from data.protocols import ChangeType, Filter, Order
from data.query import escape_like, matches_filter
from data.seed import build_seed
from data.storage import JsonFileStorage, MemoryStorage
from utils.exceptions import DuplicateError, ErrorKind, NotFoundError


# =============================================================================
# Seeding Tests
# =============================================================================

class TestSeeding:
    """Tests for first-run seeding and clear_all_data."""

    def test_seeds_every_collection_key(self, local_store, memory_storage):
        """Each seeded table gets its own iglesia_ key."""
        keys = set(memory_storage.keys())
        assert "iglesia_blog_posts" in keys
        assert "iglesia_sermons" in keys
        assert "iglesia_events" in keys
        assert "iglesia_blog_categories" in keys
        assert "iglesia_blog_interactions" in keys

    def test_seed_ids_are_fixed(self, local_store):
        """Seeded rows carry fixed ids."""
        posts = local_store.select(settings.BLOG_POSTS_TABLE).unwrap()
        assert sorted(p["id"] for p in posts) == ["blog-001", "blog-002"]

        events = local_store.select(settings.EVENTS_TABLE, order=[Order("event_date", True)]).unwrap()
        assert [e["id"] for e in events] == ["event-001", "event-002"]

    def test_event_dates_follow_reference_time(self, local_store):
        """Events fall on the next Sunday and the next Wednesday."""
        events = {e["id"]: e for e in local_store.select(settings.EVENTS_TABLE).unwrap()}
        assert events["event-001"]["event_date"] == "2025-03-16"
        assert events["event-002"]["event_date"] == "2025-03-19"

    def test_emptied_collection_is_not_reseeded(self, memory_storage, fixed_now):
        """A collection that exists but is empty stays empty on the next start."""
        store = LocalStore(memory_storage, latency_ms=(0, 0), clock=lambda: fixed_now)
        store.delete(settings.BLOG_POSTS_TABLE, [Filter("id", "in", ["blog-001", "blog-002"])])

        reopened = LocalStore(memory_storage, latency_ms=(0, 0), clock=lambda: fixed_now)

        assert reopened.select(settings.BLOG_POSTS_TABLE).unwrap() == []

    def test_clear_all_data_restores_seed_set(self, local_store, fixed_now):
        """After clear_all_data every collection equals the seed set (count and ids)."""
        local_store.insert(settings.BLOG_POSTS_TABLE, [{"title": "Extra", "slug": "extra"}])
        local_store.delete(settings.SERMONS_TABLE, [Filter("id", "eq", "sermon-001")])
        local_store.insert(settings.BLOG_INTERACTIONS_TABLE, [{"post_id": "blog-001", "type": "view"}])

        local_store.clear_all_data()

        seed = build_seed(fixed_now)
        for table, rows in seed.items():
            stored = local_store.select(table).unwrap()
            assert len(stored) == len(rows), table
            assert sorted(r["id"] for r in stored) == sorted(r["id"] for r in rows), table


# =============================================================================
# CRUD Tests
# =============================================================================

class TestCrud:
    """Tests for select/insert/update/delete."""

    def test_insert_assigns_id_and_timestamps(self, local_store):
        """Inserted rows get a prefixed id and created/updated timestamps."""
        row = local_store.insert(settings.BLOG_POSTS_TABLE, [{"title": "Nuevo", "slug": "nuevo"}]).unwrap()[0]

        assert row["id"].startswith("blog-")
        assert row["created_at"] == "2025-03-12T15:30:00.000Z"
        assert row["updated_at"] == row["created_at"]

    def test_insert_writes_whole_collection(self, local_store, memory_storage):
        """The stored JSON array contains the new row alongside the seed."""
        local_store.insert(settings.BLOG_POSTS_TABLE, [{"title": "Nuevo", "slug": "nuevo"}])

        stored = json.loads(memory_storage.get_item("iglesia_blog_posts"))
        assert len(stored) == 3

    def test_duplicate_slug_is_rejected(self, local_store):
        """A second post with an existing slug fails with DUPLICATE and is not stored."""
        result = local_store.insert(settings.BLOG_POSTS_TABLE,
                                    [{"title": "Otra", "slug": "la-importancia-de-la-oracion"}])

        assert result.ok is False
        assert result.kind == ErrorKind.DUPLICATE
        with pytest.raises(DuplicateError):
            result.unwrap()
        assert len(local_store.select(settings.BLOG_POSTS_TABLE).unwrap()) == 2

    def test_interactions_have_no_uniqueness(self, local_store):
        """Two identical likes can both be stored."""
        like = {"post_id": "blog-001", "user_id": "member-001", "type": "like"}
        local_store.insert(settings.BLOG_INTERACTIONS_TABLE, [like])
        local_store.insert(settings.BLOG_INTERACTIONS_TABLE, [like])

        rows = local_store.select(settings.BLOG_INTERACTIONS_TABLE).unwrap()
        assert len(rows) == 2

    def test_update_returns_changed_rows(self, local_store):
        rows = local_store.update(settings.BLOG_POSTS_TABLE, {"title": "Nuevo título"},
                                  [Filter("id", "eq", "blog-001")]).unwrap()

        assert len(rows) == 1
        assert rows[0]["title"] == "Nuevo título"
        assert rows[0]["id"] == "blog-001"

    def test_update_cannot_change_id(self, local_store):
        rows = local_store.update(settings.BLOG_POSTS_TABLE, {"id": "hijack"},
                                  [Filter("id", "eq", "blog-001")]).unwrap()
        assert rows[0]["id"] == "blog-001"

    def test_update_no_match_returns_empty(self, local_store):
        rows = local_store.update(settings.BLOG_POSTS_TABLE, {"title": "x"},
                                  [Filter("id", "eq", "missing")]).unwrap()
        assert rows == []

    def test_delete_returns_removed_rows(self, local_store):
        removed = local_store.delete(settings.BLOG_POSTS_TABLE, [Filter("id", "eq", "blog-002")]).unwrap()

        assert [r["id"] for r in removed] == ["blog-002"]
        assert len(local_store.select(settings.BLOG_POSTS_TABLE).unwrap()) == 1

    def test_select_projection(self, local_store):
        rows = local_store.select(settings.BLOG_POSTS_TABLE, columns="id,slug",
                                  filters=[Filter("id", "eq", "blog-001")]).unwrap()
        assert rows == [{"id": "blog-001", "slug": "bienvenidos-a-lugar-de-refugio"}]

    def test_file_storage_persists_across_instances(self, tmp_path, fixed_now):
        """Data written through a JSON file survives a new store instance."""
        path = tmp_path / "storage.json"
        store = LocalStore(JsonFileStorage(str(path)), latency_ms=(0, 0), clock=lambda: fixed_now)
        store.insert(settings.BLOG_POSTS_TABLE, [{"title": "Persistido", "slug": "persistido"}])

        reopened = LocalStore(JsonFileStorage(str(path)), latency_ms=(0, 0), clock=lambda: fixed_now)
        slugs = [r["slug"] for r in reopened.select(settings.BLOG_POSTS_TABLE).unwrap()]
        assert "persistido" in slugs


# =============================================================================
# RPC Tests
# =============================================================================

class TestRpc:
    """Tests for server-side function emulation."""

    def test_increment_view_counter(self, local_store):
        assert local_store.rpc("increment_blog_post_views", {"post_id": "blog-001"}).unwrap() == 1
        assert local_store.rpc("increment_blog_post_views", {"post_id": "blog-001"}).unwrap() == 2

        row = local_store.select(settings.BLOG_POSTS_TABLE, filters=[Filter("id", "eq", "blog-001")]).unwrap()[0]
        assert row["view_count"] == 2

    def test_increment_unknown_row(self, local_store):
        result = local_store.rpc("increment_sermon_views", {"sermon_id": "missing"})
        with pytest.raises(NotFoundError):
            result.unwrap()

    def test_unknown_function(self, local_store):
        result = local_store.rpc("drop_everything", {})
        assert result.ok is False
        assert result.kind == ErrorKind.REMOTE


# =============================================================================
# Push Tests
# =============================================================================

class TestPush:
    """Tests for in-process push delivery."""

    def test_insert_event_delivered(self, local_store):
        callback = MagicMock()
        local_store.subscribe(settings.BLOG_INTERACTIONS_TABLE, callback)

        local_store.insert(settings.BLOG_INTERACTIONS_TABLE,
                           [{"post_id": "blog-001", "user_id": "u1", "type": "like"}])

        callback.assert_called_once()
        event = callback.call_args[0][0]
        assert event.type == ChangeType.INSERT
        assert event.new["type"] == "like"

    def test_row_filter_narrows_events(self, local_store):
        callback = MagicMock()
        local_store.subscribe(settings.BLOG_INTERACTIONS_TABLE, callback, Filter("post_id", "eq", "blog-002"))

        local_store.insert(settings.BLOG_INTERACTIONS_TABLE, [{"post_id": "blog-001", "type": "view"}])

        callback.assert_not_called()

    def test_delete_event_carries_old_row(self, local_store):
        callback = MagicMock()
        local_store.subscribe(settings.BLOG_POSTS_TABLE, callback)

        local_store.delete(settings.BLOG_POSTS_TABLE, [Filter("id", "eq", "blog-001")])

        event = callback.call_args[0][0]
        assert event.type == ChangeType.DELETE
        assert event.record_id == "blog-001"

    def test_unsubscribe_is_idempotent(self, local_store):
        callback = MagicMock()
        subscription = local_store.subscribe(settings.BLOG_POSTS_TABLE, callback)

        subscription.unsubscribe()
        subscription.unsubscribe()
        local_store.insert(settings.BLOG_POSTS_TABLE, [{"title": "Nuevo", "slug": "nuevo"}])

        callback.assert_not_called()

    def test_failing_subscriber_does_not_break_write(self, local_store):
        """A subscriber raising is logged; the write and other subscribers proceed."""
        broken = MagicMock(side_effect=RuntimeError("boom"))
        healthy = MagicMock()
        local_store.subscribe(settings.BLOG_POSTS_TABLE, broken)
        local_store.subscribe(settings.BLOG_POSTS_TABLE, healthy)

        result = local_store.insert(settings.BLOG_POSTS_TABLE, [{"title": "Nuevo", "slug": "nuevo"}])

        assert result.ok
        healthy.assert_called_once()


class TestMemoryStorage:
    """Tests for the in-memory storage."""

    def test_round_trip_and_remove(self):
        storage = MemoryStorage()
        storage.set_item("k", "v")
        assert storage.get_item("k") == "v"
        storage.remove_item("k")
        storage.remove_item("k")
        assert storage.get_item("k") is None


class TestLikePatterns:
    """Tests for LIKE wildcard escaping."""

    def test_escape_like(self):
        assert escape_like("100%_a\\b") == "100\\%\\_a\\\\b"

    def test_escaped_wildcards_match_literally(self):
        pattern = f"%{escape_like('50%')}%"
        assert matches_filter({"title": "Meta: 50% recaudado"}, Filter("title", "ilike", pattern))
        assert not matches_filter({"title": "Meta: 500 recaudado"}, Filter("title", "ilike", pattern))

    def test_unescaped_wildcards(self):
        assert matches_filter({"title": "Culto"}, Filter("title", "ilike", "c_l%"))
