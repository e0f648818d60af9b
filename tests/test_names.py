"""Unit tests for account name normalization."""

import pytest

from pipeline_analytics.names import is_valid_name, normalize_name


class TestNormalizeName:
    """Tests for normalize_name."""

    def test_suffix_and_case_variants_match(self) -> None:
        assert normalize_name("Acme Inc.") == normalize_name("Acme") == normalize_name("ACME")

    def test_strips_comma_suffixes_repeatedly(self) -> None:
        assert normalize_name("Acme, LLC") == "acme"
        assert normalize_name("Acme Inc, LLC") == "acme"

    def test_collapses_whitespace(self) -> None:
        assert normalize_name("  Big   Blue\tCorp ") == "big blue corp"

    def test_suffix_only_inside_word_kept(self) -> None:
        """'Zinc' does not lose its trailing 'inc'."""
        assert normalize_name("Zinc") == "zinc"

    def test_none_is_empty(self) -> None:
        assert normalize_name(None) == ""


class TestIsValidName:
    """Tests for is_valid_name."""

    @pytest.mark.parametrize("name", [None, "", "   ", "A", "123", "---", "N/A", "tbd", "Unknown", "TEST", "null", "undefined"])
    def test_rejects_garbage(self, name) -> None:
        assert is_valid_name(name) is False

    @pytest.mark.parametrize("name", ["3 Pillar", "Acme", "AB"])
    def test_accepts_real_names(self, name: str) -> None:
        assert is_valid_name(name) is True
