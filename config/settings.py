"""
Configuration Settings for Refugio Sync

This module centralizes all configuration settings for the application,
including the gateway endpoint, the local fallback store and interaction
limits. Values come from the environment, loaded from a .env file at the
project root.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Determine the application root directory
APP_ROOT = Path(__file__).resolve().parent.parent

# Load environment variables from .env file
load_dotenv(dotenv_path=os.path.join(APP_ROOT, '.env'))


def _env_bool(name: str, default: bool) -> bool:
    """Read a boolean flag from the environment."""
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    """Read an integer from the environment, keeping the default on bad input."""
    value = os.getenv(name)
    try:
        return int(value) if value not in (None, "") else default
    except ValueError:
        return default


# =============================================================================
# Remote Gateway
# =============================================================================

# The dashboard exports these under the VITE_ prefix; plain names win.
GATEWAY_URL = (
    os.getenv("GATEWAY_URL")
    or os.getenv("SUPABASE_URL")
    or os.getenv("VITE_SUPABASE_URL")
    or ""
)
GATEWAY_ANON_KEY = (
    os.getenv("GATEWAY_ANON_KEY")
    or os.getenv("SUPABASE_ANON_KEY")
    or os.getenv("VITE_SUPABASE_ANON_KEY")
    or ""
)

REQUEST_TIMEOUT = _env_int("REQUEST_TIMEOUT", 10)  # Seconds per HTTP call
REST_PATH = "/rest/v1"
AUTH_PATH = "/auth/v1"
REALTIME_PATH = "/realtime/v1"
REALTIME_SCHEMA = os.getenv("REALTIME_SCHEMA", "public")
REALTIME_TIMEOUT = _env_int("REALTIME_TIMEOUT", 10)  # Seconds to connect or join a channel

# =============================================================================
# Local Fallback Store
# =============================================================================

LOCAL_STORAGE_FILE = os.getenv("LOCAL_STORAGE_FILE", os.path.join(APP_ROOT, "local_storage.json"))
LOCAL_LATENCY_MIN_MS = _env_int("LOCAL_LATENCY_MIN_MS", 100)
LOCAL_LATENCY_MAX_MS = _env_int("LOCAL_LATENCY_MAX_MS", 800)

# Storage keys, one per collection plus the current session
STORAGE_KEY_PREFIX = "iglesia_"
SESSION_STORAGE_KEY = "iglesia_session"
USERS_STORAGE_KEY = "iglesia_users"

# =============================================================================
# Tables
# =============================================================================

BLOG_POSTS_TABLE = "blog_posts"
BLOG_CATEGORIES_TABLE = "blog_categories"
BLOG_INTERACTIONS_TABLE = "blog_interactions"
SERMONS_TABLE = "sermons"
SERMON_CATEGORIES_TABLE = "sermon_categories"
SERMON_INTERACTIONS_TABLE = "sermon_interactions"
EVENTS_TABLE = "events"
MINISTRIES_TABLE = "ministries"
TESTIMONIES_TABLE = "testimonies"

KNOWN_TABLES = [
    BLOG_POSTS_TABLE,
    BLOG_CATEGORIES_TABLE,
    BLOG_INTERACTIONS_TABLE,
    SERMONS_TABLE,
    SERMON_CATEGORIES_TABLE,
    SERMON_INTERACTIONS_TABLE,
    EVENTS_TABLE,
    MINISTRIES_TABLE,
    TESTIMONIES_TABLE,
]

# =============================================================================
# Authentication (local fallback)
# =============================================================================

SESSION_TTL_HOURS = _env_int("SESSION_TTL_HOURS", 24)
# Accept any password for a known email in local mode. Development only.
INSECURE_LOCAL_AUTH = _env_bool("INSECURE_LOCAL_AUTH", True)
PASSWORD_HASH_ITERATIONS = 120_000

# =============================================================================
# Content Settings
# =============================================================================

COMMENT_MAX_LENGTH = _env_int("COMMENT_MAX_LENGTH", 1000)
COMMENTS_REQUIRE_APPROVAL = _env_bool("COMMENTS_REQUIRE_APPROVAL", False)
DEFAULT_PAGE_SIZE = _env_int("DEFAULT_PAGE_SIZE", 10)
SEARCH_DEFAULT_LIMIT = _env_int("SEARCH_DEFAULT_LIMIT", 20)
SLUG_MAX_LENGTH = 80


def is_remote_configured() -> bool:
    """Return True when both gateway settings are present."""
    return bool(GATEWAY_URL and GATEWAY_ANON_KEY)


def validate_settings():
    """Validate settings; see config.validators.validate_settings."""
    from config.validators import validate_settings as _validate
    return _validate()
