"""Tests for display number formatting."""

import pytest

from geckodash.formatters import format_number, format_price_change, format_volume_number


class TestFormatNumber:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("1234567890", "1.23B"),
            ("2500000", "2.50M"),
            ("1500", "1.50K"),
            ("999.456", "999.46"),
            (42, "42.00"),
        ],
    )
    def test_abbreviates(self, value, expected: str) -> None:
        assert format_number(value) == expected

    @pytest.mark.parametrize("value", [None, "", "abc", "nan", 0])
    def test_missing_renders_dash(self, value) -> None:
        assert format_number(value) == "-"


class TestFormatVolumeNumber:
    def test_one_decimal(self) -> None:
        assert format_volume_number("1250000") == "1.2M"
        assert format_volume_number("3450") == "3.5K"
        assert format_volume_number("12.34") == "12.3"

    def test_missing_renders_dash(self) -> None:
        assert format_volume_number(None) == "-"


class TestFormatPriceChange:
    def test_drops_sign(self) -> None:
        assert format_price_change("+1358.8") == "1.4K"
        assert format_price_change("-12.34") == "12.3"

    def test_millions(self) -> None:
        assert format_price_change("2500000") == "2.5M"

    def test_unparseable_returns_cleaned(self) -> None:
        assert format_price_change("+n/a") == "n/a"

    def test_empty_renders_dash(self) -> None:
        assert format_price_change("") == "-"
        assert format_price_change(None) == "-"
