"""
Helper Utility Module

This module provides various helper functions used throughout Refugio Sync.
"""

import random
import re
import time
import unicodedata
from datetime import datetime, timezone
from typing import Any, Tuple
from urllib.parse import urlparse


def is_valid_url(url: str) -> bool:
    """
    Check if a URL is valid.

    Args:
        url: The URL to validate

    Returns:
        bool: True if the URL is valid, False otherwise
    """
    try:
        result = urlparse(url)
        return all([result.scheme, result.netloc])
    except Exception:
        return False


def is_blank(value: Any) -> bool:
    """
    Check whether a field value counts as missing.

    Args:
        value: Any field value

    Returns:
        bool: True for None, empty or whitespace-only strings
    """
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def slugify(text: str, max_length: int = 80) -> str:
    """
    Build a URL-safe slug from a title.

    Accents are folded ("Oración" becomes "oracion") and every run of
    non-alphanumeric characters collapses to a single hyphen.

    Args:
        text: The text to convert
        max_length: Maximum slug length

    Returns:
        str: The slug, possibly empty
    """
    normalized = unicodedata.normalize('NFKD', text or '')
    ascii_text = normalized.encode('ascii', 'ignore').decode('ascii').lower()
    slug = re.sub(r'[^a-z0-9]+', '-', ascii_text).strip('-')
    return slug[:max_length].rstrip('-')


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    """
    Format a datetime the way the gateway stores timestamps.

    Args:
        moment: The datetime to format (naive values are treated as UTC)

    Returns:
        str: ISO-8601 string with millisecond precision and a "Z" suffix
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime('%Y-%m-%dT%H:%M:%S.') + f"{moment.microsecond // 1000:03d}Z"


def now_millis() -> int:
    """Current epoch time in milliseconds."""
    return int(time.time() * 1000)


def generate_id(prefix: str) -> str:
    """
    Generate a record id of the form ``<prefix>-<millis>-<random>``.

    Args:
        prefix: Entity prefix such as "blog" or "event"

    Returns:
        str: A new id
    """
    alphabet = 'abcdefghijklmnopqrstuvwxyz0123456789'
    suffix = ''.join(random.choice(alphabet) for _ in range(7))
    return f"{prefix}-{now_millis()}-{suffix}"


def simulate_latency(latency_range: Tuple[int, int]) -> None:
    """
    Sleep for a random delay inside a millisecond range.

    Args:
        latency_range: (minimum, maximum) delay in milliseconds
    """
    low, high = latency_range
    if high <= 0:
        return
    delay_ms = random.uniform(max(low, 0), high)
    time.sleep(delay_ms / 1000.0)


def truncate_text(text: str, max_length: int = 100, add_ellipsis: bool = True) -> str:
    """
    Truncate text to a maximum length.

    Args:
        text: The text to truncate
        max_length: Maximum length
        add_ellipsis: Whether to add an ellipsis if text is truncated

    Returns:
        str: Truncated text
    """
    if not text or len(text) <= max_length:
        return text

    truncated = text[:max_length].rstrip()
    if add_ellipsis:
        truncated += "..."

    return truncated
