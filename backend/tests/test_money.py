"""
Unit Tests for Money Input

Tests cover:
- Keystroke masking of euro amounts
- Parsing Belgian formatted amounts
- nl-BE currency display
- IBAN normalization and validation
"""
import pytest
from decimal import Decimal

from lidgeld.services.money import (
    euro_input_mask,
    format_currency_be,
    format_iban,
    is_valid_iban,
    normalize_iban,
    parse_euro_input,
)


class TestEuroInputMask:
    """Tests for the input mask."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("25", "25"),
            ("25,5", "25,5"),
            ("25,509", "25,50"),
            ("1.234,56", "1234,56"),
            ("€ 12,00", "12,00"),
            ("12,3,4", "12,34"),
            ("abc", ""),
            ("", ""),
            (",5", ",5"),
            ("12,", "12,"),
        ],
    )
    def test_mask(self, raw, expected):
        assert euro_input_mask(raw) == expected

    def test_mask_is_idempotent(self):
        for raw in ("1.234,567", "€ 5,5", "12,3,4", "x1y2,z3"):
            once = euro_input_mask(raw)
            assert euro_input_mask(once) == once

    def test_none_gives_empty(self):
        assert euro_input_mask(None) == ""


class TestParseEuroInput:
    """Tests for the value behind the mask."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("25,50", 25.5),
            ("1.234,56", 1234.56),
            ("€ 25,50", 25.5),
            ("100", 100.0),
            ("0,05", 0.05),
        ],
    )
    def test_parse(self, text, expected):
        assert parse_euro_input(text) == pytest.approx(expected)

    @pytest.mark.parametrize("text", ["", "abc", ",", None])
    def test_unusable_text_is_zero(self, text):
        assert parse_euro_input(text) == 0.0

    def test_parse_masked_input(self):
        assert parse_euro_input(euro_input_mask("€ 1.250,759")) == pytest.approx(1250.75)


class TestFormatCurrencyBe:
    """Tests for Belgian currency display."""

    def test_thousands_and_decimals(self):
        assert format_currency_be(1234.5) == "€ 1.234,50"

    def test_small_amount(self):
        assert format_currency_be(Decimal("7")) == "€ 7,00"

    def test_millions(self):
        assert format_currency_be(1234567.891) == "€ 1.234.567,89"

    def test_negative(self):
        assert format_currency_be(-25.5) == "€ -25,50"


class TestIban:
    """Tests for IBAN helpers."""

    def test_normalize(self):
        assert normalize_iban(" be68 5390-0754 7034 ") == "BE68539007547034"

    def test_format(self):
        assert format_iban("be68539007547034") == "BE68 5390 0754 7034"

    @pytest.mark.parametrize(
        "iban",
        ["BE68539007547034", "BE71 0961 2345 6769", "NL91ABNA0417164300"],
    )
    def test_valid(self, iban):
        assert is_valid_iban(iban) is True

    @pytest.mark.parametrize(
        "iban",
        ["BE68539007547035", "BE6853900754703", "NL91ABNA041716430", "XX", ""],
    )
    def test_invalid(self, iban):
        assert is_valid_iban(iban) is False
