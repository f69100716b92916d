"""
Shared Test Fixtures for Refugio Sync

This module provides common fixtures used across all test modules.
Fixtures include settings overrides, in-memory storage, a zero-latency
local store, mock HTTP sessions and factories for gateway rows.
"""

import pytest
from unittest.mock import MagicMock
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import requests

from data.local_store import LocalStore
from data.rest_gateway import RestGateway
from data.storage import MemoryStorage
from services.interaction_service import InteractionService
from services.post_service import BlogPostService


# =============================================================================
# Settings Fixtures
# =============================================================================

@pytest.fixture
def mock_settings(monkeypatch):
    """
    Override the settings module with safe test values.

    The real module object is patched in place, so every module that did
    ``from config import settings`` sees the test values.

    Usage:
        def test_something(mock_settings):
            mock_settings.COMMENT_MAX_LENGTH = 10

    Returns:
        module: The patched config.settings module.
    """
    from config import settings

    # Gateway (obvious test values)
    monkeypatch.setattr(settings, "GATEWAY_URL", "https://test-project.supabase.co")
    monkeypatch.setattr(settings, "GATEWAY_ANON_KEY", "test-anon-key-123456")
    monkeypatch.setattr(settings, "REQUEST_TIMEOUT", 5)

    # Local fallback store
    monkeypatch.setattr(settings, "LOCAL_STORAGE_FILE", "/tmp/test_refugio_storage.json")
    monkeypatch.setattr(settings, "LOCAL_LATENCY_MIN_MS", 0)
    monkeypatch.setattr(settings, "LOCAL_LATENCY_MAX_MS", 0)

    # Auth and content
    monkeypatch.setattr(settings, "SESSION_TTL_HOURS", 24)
    monkeypatch.setattr(settings, "INSECURE_LOCAL_AUTH", True)
    monkeypatch.setattr(settings, "PASSWORD_HASH_ITERATIONS", 1000)
    monkeypatch.setattr(settings, "COMMENT_MAX_LENGTH", 1000)
    monkeypatch.setattr(settings, "COMMENTS_REQUIRE_APPROVAL", False)
    monkeypatch.setattr(settings, "DEFAULT_PAGE_SIZE", 10)
    monkeypatch.setattr(settings, "SEARCH_DEFAULT_LIMIT", 20)

    return settings


# =============================================================================
# Clock Fixtures
# =============================================================================

@pytest.fixture
def fixed_now():
    """A Wednesday afternoon in UTC; next Sunday is 2025-03-16."""
    return datetime(2025, 3, 12, 15, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def millis_clock():
    """
    Controllable epoch-millisecond clock.

    Usage:
        def test_expiry(millis_clock):
            millis_clock.now = 5_000
    """
    class _Clock:
        now = 1_700_000_000_000

        def __call__(self) -> int:
            return self.now

    return _Clock()


# =============================================================================
# Storage and Gateway Fixtures
# =============================================================================

@pytest.fixture
def memory_storage():
    """Empty in-memory key-value storage."""
    return MemoryStorage()


@pytest.fixture
def local_store(memory_storage, fixed_now):
    """Seeded local store with no simulated latency."""
    return LocalStore(memory_storage, latency_ms=(0, 0), clock=lambda: fixed_now)


@pytest.fixture
def empty_store(memory_storage, fixed_now):
    """Local store seeded with nothing at all."""
    return LocalStore(memory_storage, latency_ms=(0, 0), clock=lambda: fixed_now,
                      seed_builder=lambda now: {})


@pytest.fixture
def blog_service(local_store):
    return BlogPostService(local_store)


@pytest.fixture
def interaction_service(local_store):
    return InteractionService(local_store)


# =============================================================================
# HTTP Fixtures
# =============================================================================

@pytest.fixture
def mock_http_response():
    """
    Factory fixture for creating mock HTTP responses.

    Usage:
        def test_http_request(mock_http_response):
            response = mock_http_response(
                status_code=200,
                json_data=[{'id': 'blog-001'}],
            )

    Returns:
        callable: A factory function for creating mock responses.
    """
    def _create_response(
        status_code: int = 200,
        json_data: Any = None,
        text: str = '',
    ) -> MagicMock:
        """
        Create a mock HTTP response object.

        Args:
            status_code: HTTP status code (default 200).
            json_data: Value returned from response.json().
            text: Raw body when the response is not JSON.

        Returns:
            MagicMock: A mock response object mimicking requests.Response.
        """
        import json

        mock_response = MagicMock()
        mock_response.status_code = status_code
        mock_response.ok = 200 <= status_code < 300

        if json_data is not None:
            mock_response.text = json.dumps(json_data)
            mock_response.json.return_value = json_data
        else:
            mock_response.text = text
            mock_response.json.side_effect = ValueError("No JSON data")
        mock_response.content = mock_response.text.encode('utf-8')

        return mock_response

    return _create_response


@pytest.fixture
def mock_session(mock_http_response):
    """
    Mock requests.Session returning an empty JSON list by default.

    Usage:
        def test_call(mock_session):
            mock_session.request.return_value = mock_session.response(json_data=[...])
    """
    session = MagicMock(spec=requests.Session)
    session.request.return_value = mock_http_response(json_data=[])
    session.response = mock_http_response
    return session


@pytest.fixture
def rest_gateway(mock_session):
    return RestGateway("https://test-project.supabase.co", "test-anon-key", session=mock_session, timeout=5)


# =============================================================================
# Row Factories
# =============================================================================

@pytest.fixture
def post_row_factory():
    """
    Factory fixture for blog post rows as the gateway stores them.

    Usage:
        def test_posts(post_row_factory):
            row = post_row_factory(id='blog-100', title='Hola')
    """
    def _create_post_row(
        id: str = 'blog-100',
        title: str = 'Test Post',
        content: str = 'Test content for unit testing.',
        slug: Optional[str] = None,
        category_id: Optional[str] = None,
        is_published: bool = True,
        published_at: str = '2025-03-01T10:00:00.000Z',
        **extra: Any,
    ) -> Dict[str, Any]:
        row = {
            'id': id,
            'slug': slug or id,
            'title': title,
            'content': content,
            'excerpt': None,
            'author_id': 'pastor-001',
            'author_name': 'Pastor Principal',
            'category_id': category_id,
            'tags': [],
            'is_published': is_published,
            'is_featured': False,
            'view_count': 0,
            'like_count': 0,
            'comment_count': 0,
            'created_at': published_at,
            'updated_at': published_at,
            'published_at': published_at,
        }
        row.update(extra)
        return row

    return _create_post_row


@pytest.fixture
def store_with_posts(memory_storage, fixed_now):
    """
    Factory building a local store whose blog posts are exactly the given rows.

    Usage:
        def test_search(store_with_posts, post_row_factory):
            store = store_with_posts([post_row_factory(id='a'), ...])
    """
    from config import settings

    def _create(posts: List[Dict[str, Any]], categories: Optional[List[Dict[str, Any]]] = None) -> LocalStore:
        def seed(now):
            return {
                settings.BLOG_POSTS_TABLE: posts,
                settings.BLOG_CATEGORIES_TABLE: categories or [],
                settings.BLOG_INTERACTIONS_TABLE: [],
            }
        return LocalStore(memory_storage, latency_ms=(0, 0), clock=lambda: fixed_now, seed_builder=seed)

    return _create


# =============================================================================
# Logging Fixtures
# =============================================================================

@pytest.fixture
def capture_logs():
    """
    Capture log records of the application's logger for assertion in tests.

    Returns:
        list: A list that will contain captured log records.
    """
    import logging

    class LogCapture(logging.Handler):
        def __init__(self):
            super().__init__()
            self.records = []

        def emit(self, record):
            self.records.append(record)

    handler = LogCapture()
    handler.setLevel(logging.DEBUG)

    app_logger = logging.getLogger("refugio")
    original_level = app_logger.level
    app_logger.setLevel(logging.DEBUG)
    app_logger.addHandler(handler)

    yield handler.records

    app_logger.removeHandler(handler)
    app_logger.setLevel(original_level)
