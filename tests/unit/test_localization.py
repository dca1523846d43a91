"""
Unit Tests for Localization Resolver

Tests the locale -> "en" -> literal key fallback chain.
"""

import pytest
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "roleplay_practice", "src"))

from roleplay_practice.localization import language_name, resolve, resolve_list


class TestResolve:
    """Test suite for resolve()."""

    @pytest.fixture
    def title(self):
        return {"sv": "Sätta gränser", "en": "Setting Boundaries"}

    def test_exact_locale(self, title):
        assert resolve(title, "sv", "boundary-setting") == "Sätta gränser"

    def test_falls_back_to_english(self, title):
        assert resolve(title, "es", "boundary-setting") == "Setting Boundaries"

    def test_falls_back_to_literal_key(self):
        assert resolve({"sv": "Endast svenska"}, "es", "scenario.title") == "scenario.title"

    def test_empty_value_counts_as_missing(self):
        assert resolve({"sv": "  ", "en": "Hello"}, "sv", "greeting") == "Hello"

    def test_missing_map_never_empty(self):
        assert resolve(None, "sv", "greeting") == "greeting"
        assert resolve({}, None) == "?"

    def test_list_values(self):
        hints = {"sv": ["Fråga"], "en": ["Ask", "Listen"]}
        assert resolve(hints, "en") == ["Ask", "Listen"]
        assert resolve({"sv": ["Fråga"]}, "fi", "hints") == ["hints"]


class TestResolveList:
    """Test suite for resolve_list()."""

    def test_always_list(self):
        assert resolve_list({}, "en", "step1.hints") == ["step1.hints"]

    def test_empty_list_falls_back(self):
        assert resolve_list({"sv": [], "en": ["Be specific"]}, "sv") == ["Be specific"]


class TestLanguageName:
    """Test suite for language_name()."""

    def test_known_locale(self):
        assert language_name("sv") == "Swedish"

    def test_unknown_locale_is_english(self):
        assert language_name("xx") == "English"
        assert language_name(None) == "English"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
