"""
Tests for the helper utilities
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from utils.helpers import (
    generate_id, is_blank, is_valid_url, simulate_latency, slugify, to_iso, truncate_text,
)


class TestSlugify:
    """Tests for slugify."""

    @pytest.mark.parametrize("text,expected", [
        ("La Importancia de la Oración", "la-importancia-de-la-oracion"),
        ("  ¡Año Nuevo!  ", "ano-nuevo"),
        ("Juan 3:16", "juan-3-16"),
        ("", ""),
        ("¿?", ""),
    ])
    def test_slugify(self, text, expected):
        assert slugify(text) == expected

    def test_max_length_does_not_end_in_hyphen(self):
        assert slugify("uno dos tres", max_length=4) == "uno"


class TestIsBlank:
    @pytest.mark.parametrize("value,expected", [
        (None, True), ("", True), ("  \n", True), ("a", False), (0, False), (False, False),
    ])
    def test_is_blank(self, value, expected):
        assert is_blank(value) is expected


class TestTimestamps:
    """Tests for timestamp formatting and ids."""

    def test_to_iso_millis_and_z(self):
        moment = datetime(2025, 3, 12, 15, 30, 0, 123456, tzinfo=timezone.utc)
        assert to_iso(moment) == "2025-03-12T15:30:00.123Z"

    def test_to_iso_converts_offsets(self):
        moment = datetime(2025, 3, 12, 10, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert to_iso(moment) == "2025-03-12T15:00:00.000Z"

    def test_naive_is_utc(self):
        assert to_iso(datetime(2025, 1, 1)) == "2025-01-01T00:00:00.000Z"

    def test_generate_id(self):
        first, second = generate_id("blog"), generate_id("blog")
        assert first.startswith("blog-")
        assert first != second


class TestMisc:
    """Tests for the remaining helpers."""

    def test_is_valid_url(self):
        assert is_valid_url("https://test-project.supabase.co") is True
        assert is_valid_url("test-project") is False

    def test_truncate_text(self):
        assert truncate_text("Hola mundo", 4) == "Hola..."
        assert truncate_text("Hola", 10) == "Hola"

    def test_zero_latency_does_not_sleep(self):
        with patch("utils.helpers.time.sleep") as mock_sleep:
            simulate_latency((0, 0))
        mock_sleep.assert_not_called()

    def test_latency_within_range(self):
        with patch("utils.helpers.time.sleep") as mock_sleep:
            simulate_latency((100, 200))
        delay = mock_sleep.call_args[0][0]
        assert 0.1 <= delay <= 0.2
